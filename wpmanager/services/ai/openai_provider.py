"""OpenAI chat-completions backend."""

from typing import Any

from openai import AsyncOpenAI

from wpmanager.services.ai.base import AIProvider, MalformedResponseError, parse_json_object


class OpenAIProvider(AIProvider):
    """Backend using OpenAI's JSON response mode.

    Args:
        api_key: OpenAI API key.
        model: Chat model name.
        timeout: Request timeout in seconds.
        client: Pre-built client (tests inject a fake).
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
        )
        if not response.choices:
            raise MalformedResponseError("Empty response from OpenAI")
        return parse_json_object(response.choices[0].message.content)
