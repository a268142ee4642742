"""Session records and the stores that keep them between requests."""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, TypeVar
from uuid import uuid4

from blacktape.services.analysis_document import (
    advance_status,
    apply_analysis_fields,
    merge_analysis_update,
    utc_timestamp,
)

T = TypeVar("T")

MessageRole = Literal["user", "assistant"]


class SessionNotFoundError(LookupError):
    """Raised when an analysis session id is not present in the store."""


@dataclass(slots=True)
class ChatMessage:
    """One turn of the conversation attached to an analysis."""

    id: str
    role: MessageRole
    content: str
    timestamp: str

    @classmethod
    def create(cls, role: MessageRole, content: str) -> "ChatMessage":
        return cls(id=str(uuid4()), role=role, content=content, timestamp=utc_timestamp())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=data["role"],
            content=data.get("content", ""),
            timestamp=data["timestamp"],
        )


@dataclass(slots=True)
class AnalysisSession:
    """An analysis document together with its conversation history."""

    analysis: Dict[str, Any]
    messages: List[ChatMessage] = field(default_factory=list)

    @property
    def analysis_id(self) -> str:
        return self.analysis["id"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis,
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisSession":
        return cls(
            analysis=dict(data["analysis"]),
            messages=[ChatMessage.from_dict(item) for item in data.get("messages", [])],
        )


class SessionStore(ABC):
    """Key-value store of sessions keyed by analysis id.

    ``update`` must run its read-modify-write as one step for a single key;
    the document helpers below rely on it to keep versions and the decision
    log consistent.
    """

    @abstractmethod
    def get(self, analysis_id: str) -> Optional[AnalysisSession]:
        ...

    @abstractmethod
    def put(self, session: AnalysisSession) -> None:
        ...

    @abstractmethod
    def delete(self, analysis_id: str) -> bool:
        ...

    @abstractmethod
    def list_sessions(self) -> List[AnalysisSession]:
        """Return all sessions, most recently updated first."""

    @abstractmethod
    def update(self, analysis_id: str, mutator: Callable[[AnalysisSession], T]) -> T:
        """Apply ``mutator`` to a private copy of the session and persist it."""

    def require(self, analysis_id: str) -> AnalysisSession:
        session = self.get(analysis_id)
        if session is None:
            raise SessionNotFoundError(analysis_id)
        return session

    def update_analysis(self, analysis_id: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Un-versioned metadata patch (status, mode, title)."""

        def apply(session: AnalysisSession) -> Dict[str, Any]:
            session.analysis = apply_analysis_fields(session.analysis, updates)
            return session.analysis

        return self.update(analysis_id, apply)

    def merge_update(self, analysis_id: str, update: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge structured fields as one new document version."""

        def apply(session: AnalysisSession) -> Dict[str, Any]:
            session.analysis = merge_analysis_update(session.analysis, update)
            return session.analysis

        return self.update(analysis_id, apply)

    def advance_status(self, analysis_id: str, status: str) -> Dict[str, Any]:
        def apply(session: AnalysisSession) -> Dict[str, Any]:
            session.analysis = advance_status(session.analysis, status)
            return session.analysis

        return self.update(analysis_id, apply)

    def add_message(self, analysis_id: str, role: MessageRole, content: str) -> ChatMessage:
        message = ChatMessage.create(role, content)

        def apply(session: AnalysisSession) -> ChatMessage:
            session.messages.append(message)
            return message

        return self.update(analysis_id, apply)


class InMemorySessionStore(SessionStore):
    """Process-local store; callers only ever see copies of stored sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[str, AnalysisSession] = {}
        self._lock = threading.RLock()

    def get(self, analysis_id: str) -> Optional[AnalysisSession]:
        with self._lock:
            session = self._sessions.get(analysis_id)
            return copy.deepcopy(session) if session is not None else None

    def put(self, session: AnalysisSession) -> None:
        with self._lock:
            self._sessions[session.analysis_id] = copy.deepcopy(session)

    def delete(self, analysis_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(analysis_id, None) is not None

    def list_sessions(self) -> List[AnalysisSession]:
        with self._lock:
            sessions = [copy.deepcopy(session) for session in self._sessions.values()]
        return sorted(sessions, key=lambda s: s.analysis.get("updatedAt", ""), reverse=True)

    def update(self, analysis_id: str, mutator: Callable[[AnalysisSession], T]) -> T:
        with self._lock:
            stored = self._sessions.get(analysis_id)
            if stored is None:
                raise SessionNotFoundError(analysis_id)
            working = copy.deepcopy(stored)
            result = mutator(working)
            self._sessions[analysis_id] = working
            return copy.deepcopy(result)


class SQLiteSessionStore(SessionStore):
    """SQLite-backed store holding each session as one JSON payload."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS analysis_sessions (
                    analysis_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, analysis_id: str) -> Optional[AnalysisSession]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM analysis_sessions WHERE analysis_id = ?",
                (analysis_id,),
            ).fetchone()
        if not row:
            return None
        return AnalysisSession.from_dict(json.loads(row["payload"]))

    def put(self, session: AnalysisSession) -> None:
        with self._lock, self._connect() as conn:
            self._write(conn, session)

    def delete(self, analysis_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM analysis_sessions WHERE analysis_id = ?",
                (analysis_id,),
            )
        return cursor.rowcount > 0

    def list_sessions(self) -> List[AnalysisSession]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT payload FROM analysis_sessions ORDER BY updated_at DESC"
            ).fetchall()
        return [AnalysisSession.from_dict(json.loads(row["payload"])) for row in rows]

    def update(self, analysis_id: str, mutator: Callable[[AnalysisSession], T]) -> T:
        with self._lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT payload FROM analysis_sessions WHERE analysis_id = ?",
                (analysis_id,),
            ).fetchone()
            if not row:
                raise SessionNotFoundError(analysis_id)
            session = AnalysisSession.from_dict(json.loads(row["payload"]))
            result = mutator(session)
            self._write(conn, session)
        return result

    @staticmethod
    def _write(conn: sqlite3.Connection, session: AnalysisSession) -> None:
        conn.execute(
            """
            INSERT INTO analysis_sessions (analysis_id, payload, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(analysis_id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
            """,
            (
                session.analysis_id,
                json.dumps(session.to_dict()),
                session.analysis.get("updatedAt", ""),
            ),
        )


__all__ = [
    "AnalysisSession",
    "ChatMessage",
    "InMemorySessionStore",
    "SQLiteSessionStore",
    "SessionNotFoundError",
    "SessionStore",
]
