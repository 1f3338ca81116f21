"""Analysis providers."""

from .base import AnalysisProvider
from .gemini import GeminiProvider
from .backend import BackendProvider

__all__ = ["AnalysisProvider", "GeminiProvider", "BackendProvider"]
