"""
Tests for the Gemini optimizer client. HTTP is mocked at the request layer.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from dayplanner.ai.gemini_service import GeminiService
from dayplanner.core.exceptions import GeminiAPIError, OptimizerResponseError

SCHEMA = {"type": "OBJECT", "properties": {"stops": {"type": "ARRAY"}}}


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestGeminiComplete:
    """Test structured completion parsing."""

    async def test_returns_parsed_object(self):
        service = GeminiService(api_key="AIzaTestKey", model_name="gemini-test")
        reply = gemini_reply(json.dumps({"title": "Day", "stops": []}))

        with patch.object(service, "_make_request", AsyncMock(return_value=reply)) as request:
            result = await service.complete("plan it", SCHEMA)

        assert result == {"title": "Day", "stops": []}
        endpoint, data = request.call_args.args
        assert endpoint == "gemini-test:generateContent"
        assert data["generationConfig"]["responseMimeType"] == "application/json"
        assert data["generationConfig"]["responseSchema"] == SCHEMA
        assert data["contents"][0]["parts"][0]["text"] == "plan it"

    @pytest.mark.parametrize("reply", [
        {"candidates": []},
        gemini_reply("   "),
        gemini_reply("not json"),
        gemini_reply("[1, 2, 3]"),
    ])
    async def test_bad_answers_raise(self, reply):
        service = GeminiService(api_key="AIzaTestKey")

        with patch.object(service, "_make_request", AsyncMock(return_value=reply)):
            with pytest.raises(OptimizerResponseError):
                await service.complete("plan it", SCHEMA)

    async def test_missing_key(self, monkeypatch):
        from dayplanner.core.config import settings
        monkeypatch.setattr(settings, "google_gemini_api_key", None)
        service = GeminiService()

        with pytest.raises(GeminiAPIError) as exc_info:
            await service.complete("plan it", SCHEMA)

        assert exc_info.value.error_code == "GEMINI_NOT_CONFIGURED"

    async def test_close_without_session(self):
        service = GeminiService(api_key="AIzaTestKey")
        await service.close()
        assert service.session is None
