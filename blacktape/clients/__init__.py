"""Expose constructed client wrappers."""

from .analysis_stream import AnalysisStreamClient, AnalysisStreamError
from .gemini import GeminiClient, GeminiModelError

__all__ = [
    "AnalysisStreamClient",
    "AnalysisStreamError",
    "GeminiClient",
    "GeminiModelError",
]
