"""Common contract and result types for AI backends.

Every backend implements a single primitive, ``_complete_json``: send a
system prompt and a user prompt, return the model's JSON object. The four
public operations are built on top of it here, so response normalization
and safe fallbacks behave identically across backends. None of the public
operations raise: malformed or missing model output, SDK errors and
network failures all degrade to the documented fallback values.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar

from wpmanager.db.models import Site
from wpmanager.services.action_types import (
    DeclaredAction,
    RejectedAction,
    parse_declared_actions,
)
from wpmanager.services.ai import prompts
from wpmanager.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

FALLBACK_COMMAND_MESSAGE = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please try again or contact support if the issue persists."
)
DEFAULT_COMMAND_MESSAGE = "I understand your request. Let me help you with that."
FALLBACK_ANALYSIS_SUGGESTION = "Unable to analyze content at this time"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class MalformedResponseError(ValueError):
    """Model output could not be interpreted as a JSON object."""


def parse_json_object(text: str | None) -> dict[str, Any]:
    """Parse model output into a JSON object.

    Tolerates surrounding whitespace, markdown code fences, and prose
    around a single top-level object.

    Raises:
        MalformedResponseError: If no JSON object can be extracted.
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty model response")

    candidate = text.strip()
    fenced = _CODE_FENCE.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError("Model response is not JSON") from None
        try:
            parsed = json.loads(candidate[start:end + 1])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Model response is not JSON: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Model response is a {type(parsed).__name__}, expected an object"
        )
    return parsed


@dataclass
class SiteContext:
    """Non-secret site facts given to the model as context."""

    name: str
    url: str
    wp_version: str | None = None
    active_theme: str | None = None
    plugin_count: int = 0
    last_connected: str | None = None

    @classmethod
    def from_site(cls, site: Site) -> "SiteContext":
        return cls(
            name=site.name,
            url=site.url,
            wp_version=site.wp_version,
            active_theme=site.active_theme,
            plugin_count=site.plugin_count or 0,
            last_connected=site.last_connected,
        )


@dataclass
class AIResponse:
    """Normalized reply to a user command."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    actions: list[DeclaredAction] = field(default_factory=list)
    rejected_actions: list[RejectedAction] = field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("error"))


@dataclass
class ContentAnalysis:
    suggestions: list[str]
    seo_score: int
    readability_score: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ThemeRecommendation:
    name: str
    description: str = ""
    features: list[str] = field(default_factory=list)
    price: str = ""


@dataclass
class PluginRecommendation:
    name: str
    description: str = ""
    purpose: str = ""
    installation: str = ""


def _clamp_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class AIProvider(ABC):
    """Uniform interface over an interchangeable language-model backend."""

    name: ClassVar[str]

    @abstractmethod
    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        """Run one completion and return the model's JSON object.

        Implementations may raise anything (SDK errors, network errors,
        ``MalformedResponseError``); callers in this class convert failures
        to fallbacks.
        """

    def _log_failure(self, operation: str, error: Exception) -> None:
        logger.warning(
            "%s %s failed: %s: %s",
            self.name, operation, type(error).__name__,
            sanitize_error_message(str(error)),
        )

    async def process_command(
        self, text: str, site_context: SiteContext | None = None
    ) -> AIResponse:
        """Interpret a user command into a reply plus declared actions."""
        try:
            raw = await self._complete_json(prompts.build_system_prompt(site_context), text)
        except Exception as e:
            self._log_failure("process_command", e)
            return AIResponse(
                content=FALLBACK_COMMAND_MESSAGE,
                metadata={"error": True, "provider": self.name},
            )

        content = raw.get("content")
        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        actions, rejected = parse_declared_actions(raw.get("actions"))
        metadata = {**metadata, "provider": self.name}
        return AIResponse(
            content=content.strip() if isinstance(content, str) and content.strip()
            else DEFAULT_COMMAND_MESSAGE,
            metadata=metadata,
            actions=actions,
            rejected_actions=rejected,
        )

    async def analyze_content(self, text: str) -> ContentAnalysis:
        """Score content for SEO and readability with improvement suggestions."""
        try:
            raw = await self._complete_json(
                prompts.CONTENT_ANALYSIS_PROMPT, prompts.content_analysis_request(text)
            )
        except Exception as e:
            self._log_failure("analyze_content", e)
            return ContentAnalysis(
                suggestions=[FALLBACK_ANALYSIS_SUGGESTION], seo_score=0, readability_score=0
            )

        return ContentAnalysis(
            suggestions=_str_list(raw.get("suggestions")),
            seo_score=_clamp_score(raw.get("seoScore", raw.get("seo_score"))),
            readability_score=_clamp_score(
                raw.get("readabilityScore", raw.get("readability_score"))
            ),
        )

    async def recommend_themes(
        self, site_type: str, preferences: dict[str, Any] | None = None
    ) -> list[ThemeRecommendation]:
        """Suggest themes for a kind of site."""
        try:
            raw = await self._complete_json(
                prompts.THEME_RECOMMENDATION_PROMPT,
                prompts.theme_recommendation_request(site_type, preferences or {}),
            )
        except Exception as e:
            self._log_failure("recommend_themes", e)
            return []

        themes = []
        for item in raw.get("themes") or []:
            if not isinstance(item, dict) or not _as_text(item.get("name")).strip():
                continue
            themes.append(
                ThemeRecommendation(
                    name=item["name"].strip(),
                    description=_as_text(item.get("description")),
                    features=_str_list(item.get("features")),
                    price=str(item.get("price") or ""),
                )
            )
        return themes

    async def recommend_plugins(self, needs: list[str]) -> list[PluginRecommendation]:
        """Suggest plugins that address the listed needs."""
        try:
            raw = await self._complete_json(
                prompts.PLUGIN_RECOMMENDATION_PROMPT,
                prompts.plugin_recommendation_request(needs),
            )
        except Exception as e:
            self._log_failure("recommend_plugins", e)
            return []

        plugins = []
        for item in raw.get("plugins") or []:
            if not isinstance(item, dict) or not _as_text(item.get("name")).strip():
                continue
            plugins.append(
                PluginRecommendation(
                    name=item["name"].strip(),
                    description=_as_text(item.get("description")),
                    purpose=_as_text(item.get("purpose")),
                    installation=_as_text(item.get("installation")),
                )
            )
        return plugins
