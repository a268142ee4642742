"""Client wrapper for streaming text from Google Gemini models."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Sequence

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from blacktape.core.config import GeminiSettings


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
)

_ROLE_MAP = {"user": "user", "assistant": "model"}

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request due to configuration issues."""


class GeminiClient:
    """Token source for analysis runs backed by the Gemini streaming API."""

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    async def stream_text(
        self,
        *,
        system_prompt: str,
        prompt: str,
        history: Sequence[Mapping[str, str]] = (),
    ) -> AsyncIterator[str]:
        """Yield text fragments as the model produces them.

        ``history`` holds prior turns as ``{"role", "content"}`` mappings with
        roles ``user`` or ``assistant``.
        """
        contents = _build_contents(history, prompt)
        response = await self._open_stream(system_prompt=system_prompt, contents=contents)
        try:
            async for chunk in response:
                text = _chunk_text(chunk)
                if text:
                    yield text
        except GoogleAPICallError as exc:  # pragma: no cover - network call
            raise GeminiModelError(f"Gemini stream interrupted: {exc.message}") from exc

    async def _open_stream(
        self,
        *,
        system_prompt: str,
        contents: list[dict[str, Any]],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = self._text_model_candidates()
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(
                model_name,
                system_instruction=system_prompt,
                generation_config=self._generation_config(),
            )
            try:
                return await generative_model.generate_content_async(contents, stream=True)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(
                    f"Gemini streaming generate_content failed: {exc.message}"
                ) from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                f"Gemini model '{primary}' is not available. Update "
                "GEMINI_MODEL_NAME to a supported value."
            ) from last_not_found

        raise GeminiModelError("Gemini streaming generate_content failed: no model configured.")

    def _generation_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {"max_output_tokens": self._settings.max_output_tokens}
        if self._settings.temperature is not None:
            config["temperature"] = self._settings.temperature
        return config

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(self._settings.model_name, _TEXT_FALLBACKS)

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _build_contents(
    history: Sequence[Mapping[str, str]], prompt: str
) -> list[dict[str, Any]]:
    contents: list[dict[str, Any]] = []
    for message in history:
        content = message.get("content") or ""
        if not content:
            continue
        role = _ROLE_MAP.get(message.get("role", "user"), "user")
        contents.append({"role": role, "parts": [content]})
    contents.append({"role": "user", "parts": [prompt]})
    return contents


def _chunk_text(chunk: Any) -> str:
    # ``.text`` raises when a chunk carries no text parts (e.g. safety metadata).
    try:
        return chunk.text or ""
    except ValueError:
        return ""


__all__ = ["GeminiClient", "GeminiModelError"]
