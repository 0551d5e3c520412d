"""Scriptable AI backend for tests."""

from typing import Any

from wpmanager.services.ai.base import AIProvider


class FakeAIProvider(AIProvider):
    """Returns queued JSON replies (or raises queued errors) in order.

    When the queue is empty ``default_reply`` is returned. Every call is
    recorded as ``(system_prompt, user_prompt)``.
    """

    name = "fake"

    def __init__(self, name: str = "fake", default_reply: dict[str, Any] | None = None) -> None:
        self.name = name
        self.default_reply = default_reply or {"content": "Done.", "actions": []}
        self.replies: list[dict[str, Any] | Exception] = []
        self.calls: list[tuple[str, str]] = []

    def queue(self, reply: dict[str, Any] | Exception) -> None:
        self.replies.append(reply)

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        self.calls.append((system_prompt, user_prompt))
        reply = self.replies.pop(0) if self.replies else self.default_reply
        if isinstance(reply, Exception):
            raise reply
        return reply
