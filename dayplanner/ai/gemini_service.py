"""
Google Gemini text-completion client used as the plan optimizer.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Protocol

import aiohttp

from ..core.config import settings
from ..core.exceptions import GeminiAPIError, OptimizerResponseError
from ..core.logger import get_logger

logger = get_logger(__name__)


class TextCompletionPort(Protocol):
    """Anything that turns a prompt plus a JSON schema into a JSON object."""

    async def complete(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        ...


class GeminiService:
    """Service for structured JSON completions from the Google Gemini API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.api_key = api_key or settings.google_gemini_api_key
        self.base_url = "https://generativelanguage.googleapis.com/v1beta/models"
        self.model_name = model_name or settings.gemini_model
        self.timeout_seconds = timeout_seconds or settings.optimizer_timeout_seconds
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def _make_request(
        self,
        endpoint: str,
        data: Dict[str, Any],
        method: str = "POST"
    ) -> Dict[str, Any]:
        """Make API request to Gemini."""
        if not self.api_key:
            raise GeminiAPIError("Gemini API key is not configured", error_code="GEMINI_NOT_CONFIGURED")

        url = f"{self.base_url}/{endpoint}"
        session = await self._get_session()

        try:
            async with session.request(
                method, url, json=data, headers={"x-goog-api-key": self.api_key}
            ) as response:
                result = await response.json(content_type=None)

                if response.status != 200:
                    error = result.get("error", {}) if isinstance(result, dict) else {}
                    error_msg = error.get("message", "Unknown Gemini API error")
                    logger.error(f"Gemini API error ({response.status}): {error_msg}")
                    raise GeminiAPIError(
                        f"Gemini API error ({response.status}): {error_msg}",
                        error_code="GEMINI_HTTP_ERROR",
                        details={"status_code": response.status, "endpoint": endpoint}
                    )

                return result

        except aiohttp.ClientError as e:
            logger.error(f"HTTP error calling Gemini API: {e}")
            raise GeminiAPIError(f"HTTP error: {e}", error_code="GEMINI_HTTP_ERROR") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Gemini API timed out after {self.timeout_seconds}s")
            raise GeminiAPIError("Gemini API timed out", error_code="GEMINI_TIMEOUT") from e
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from Gemini API: {e}")
            raise GeminiAPIError(f"Invalid JSON response: {e}", error_code="GEMINI_BAD_JSON") from e

    async def complete(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ask Gemini for a JSON object matching ``schema``.

        Args:
            prompt: Full prompt text
            schema: OpenAPI-style response schema

        Returns:
            dict: Parsed JSON object

        Raises:
            GeminiAPIError: On transport or HTTP failure
            OptimizerResponseError: When the answer is empty or not a JSON object
        """
        data = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt}
                    ]
                }
            ],
            "generationConfig": {
                "temperature": settings.ai_temperature,
                "maxOutputTokens": settings.max_tokens_per_request,
                "responseMimeType": "application/json",
                "responseSchema": schema
            }
        }

        logger.debug(f"Requesting Gemini completion ({len(prompt)} prompt chars)")
        result = await self._make_request(f"{self.model_name}:generateContent", data)

        candidates = result.get("candidates", [])
        if not candidates:
            raise OptimizerResponseError("No candidates returned from Gemini", error_code="GEMINI_EMPTY")

        parts = candidates[0].get("content", {}).get("parts", [])
        response_text = parts[0].get("text", "") if parts else ""
        if not response_text.strip():
            raise OptimizerResponseError("Empty response from Gemini", error_code="GEMINI_EMPTY")

        try:
            parsed = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise OptimizerResponseError(
                f"Gemini returned invalid JSON: {e}", error_code="GEMINI_BAD_JSON"
            ) from e

        if not isinstance(parsed, dict):
            raise OptimizerResponseError("Gemini returned a non-object JSON value", error_code="GEMINI_BAD_JSON")

        return parsed
