try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from blacktape.services.analysis_document import create_analysis
from blacktape.services.session_store import (
    AnalysisSession,
    InMemorySessionStore,
    SQLiteSessionStore,
    SessionNotFoundError,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteSessionStore(str(tmp_path / "sessions" / "blacktape.db"))
    return InMemorySessionStore()


def _seed(store, text: str = "Open a second warehouse") -> str:
    analysis = create_analysis(text)
    store.put(AnalysisSession(analysis=analysis))
    return analysis["id"]


def test_put_get_round_trip(store):
    analysis_id = _seed(store)

    session = store.get(analysis_id)

    assert session is not None
    assert session.analysis_id == analysis_id
    assert session.messages == []
    assert store.get("missing") is None


def test_merge_update_versions_stored_document(store):
    analysis_id = _seed(store)

    store.merge_update(analysis_id, {"planSummary": {"objective": "Expand"}})
    store.merge_update(analysis_id, {"unknowns": [{"id": "U1"}]})

    analysis = store.require(analysis_id).analysis
    assert analysis["version"] == "1.2"
    assert analysis["planSummary"] == {"objective": "Expand"}
    assert len(analysis["decisionLog"]) == 3


def test_status_patch_and_messages(store):
    analysis_id = _seed(store)

    store.update_analysis(analysis_id, {"status": "in_progress"})
    message = store.add_message(analysis_id, "user", "What about costs?")
    store.add_message(analysis_id, "assistant", "Costs are high.")
    store.advance_status(analysis_id, "completed")

    session = store.require(analysis_id)
    assert session.analysis["status"] == "completed"
    assert session.analysis["version"] == "1.0"
    assert [m.role for m in session.messages] == ["user", "assistant"]
    assert session.messages[0].id == message.id


def test_returned_sessions_are_copies(store):
    analysis_id = _seed(store)

    session = store.require(analysis_id)
    session.analysis["title"] = "changed locally"

    assert store.require(analysis_id).analysis["title"] != "changed locally"


def test_list_sessions_most_recent_first(store):
    older = _seed(store, "first")
    newer = _seed(store, "second")
    store.merge_update(older, {"unknowns": []})

    ids = [session.analysis_id for session in store.list_sessions()]

    assert set(ids) == {older, newer}
    assert ids[0] == older


def test_delete_and_missing_sessions(store):
    analysis_id = _seed(store)

    assert store.delete(analysis_id) is True
    assert store.delete(analysis_id) is False
    with pytest.raises(SessionNotFoundError):
        store.require(analysis_id)
    with pytest.raises(SessionNotFoundError):
        store.merge_update(analysis_id, {"unknowns": []})


def test_sqlite_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "blacktape.db")
    first = SQLiteSessionStore(path)
    analysis_id = _seed(first)
    first.add_message(analysis_id, "user", "hello")

    reopened = SQLiteSessionStore(path)
    session = reopened.require(analysis_id)

    assert session.messages[0].content == "hello"
