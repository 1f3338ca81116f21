"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest

from voice_keyword_mcp.models import Keyword, MatchServiceResult, TranscriptionResult


@pytest.fixture
def mock_provider():
    provider = AsyncMock()
    provider.transcribe = AsyncMock(
        return_value=TranscriptionResult(text="Hello, I need urgent support", language="en")
    )
    provider.translate = AsyncMock(return_value={})
    provider.match_keywords = AsyncMock(return_value=MatchServiceResult())
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def sample_keywords():
    return [
        Keyword(id="k1", text="Hello"),
        Keyword(id="k2", text="Urgent"),
        Keyword(id="k3", text="Help"),
        Keyword(id="k4", text="Support"),
    ]
