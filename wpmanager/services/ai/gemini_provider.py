"""Google Gemini backend over the generateContent REST endpoint."""

from typing import Any

import httpx

from wpmanager.services.ai.base import AIProvider, MalformedResponseError, parse_json_object

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/"


class GeminiProvider(AIProvider):
    """Backend using Gemini's JSON response MIME type.

    Args:
        api_key: Gemini API key.
        model: Model name (e.g. 'gemini-2.5-pro').
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests inject ``httpx.MockTransport``).
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-pro",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        async with httpx.AsyncClient(
            base_url=GEMINI_API_BASE,
            timeout=self._timeout,
            headers={"x-goog-api-key": self._api_key},
            transport=self._transport,
        ) as client:
            response = await client.post(f"models/{self._model}:generateContent", json=payload)
            response.raise_for_status()
            body = response.json()

        try:
            parts = body["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError("Gemini response has no candidate content") from e
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        return parse_json_object(text)
