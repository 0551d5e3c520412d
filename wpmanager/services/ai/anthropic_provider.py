"""Anthropic Messages API backend."""

from typing import Any

from anthropic import AsyncAnthropic

from wpmanager.services.ai.base import AIProvider, MalformedResponseError, parse_json_object

_MAX_TOKENS = 2048


class AnthropicProvider(AIProvider):
    """Backend using Claude models; JSON is requested through the system prompt.

    Args:
        api_key: Anthropic API key.
        model: Model name.
        timeout: Request timeout in seconds.
        client: Pre-built client (tests inject a fake).
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5",
        timeout: float = 60.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = model
        self._client = client or AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=_MAX_TOKENS,
            system=system_prompt + "\n\nRespond with the JSON object only.",
            messages=[{"role": "user", "content": user_prompt}],
        )
        if not response.content:
            raise MalformedResponseError("Empty response from Anthropic")
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return parse_json_object(text)
