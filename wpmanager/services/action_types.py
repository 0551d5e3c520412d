"""Typed action declarations produced by the AI layer.

Each action kind carries its own params model; the union is discriminated
on ``type`` so the executor and gateway see statically known fields
instead of an untyped mapping.

AI backends are told about the five executable kinds in
``AI_ACTION_TYPES``. ``theme_change`` is accepted as well so a request for
it is recorded and fails fast with a clear "not supported" error.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

AI_ACTION_TYPES: tuple[str, ...] = (
    "theme_customize",
    "plugin_install",
    "plugin_activate",
    "content_update",
    "settings_update",
)

CONTENT_TYPES: frozenset[str] = frozenset(
    {"posts", "pages", "media", "categories", "tags", "comments"}
)

# WordPress plugin identifiers: "akismet" or "akismet/akismet".
PLUGIN_ID_PATTERN = r"^[^./]+(/[^./]+)?$"


def _wrap_flat_settings(data: Any) -> Any:
    """Accept ``{"primary_color": ...}`` as shorthand for ``{"settings": {...}}``."""
    if isinstance(data, dict) and "settings" not in data:
        return {"settings": dict(data)}
    return data


class ThemeCustomizeParams(BaseModel):
    settings: dict[str, Any] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_settings(cls, data: Any) -> Any:
        return _wrap_flat_settings(data)


class ThemeChangeParams(BaseModel):
    theme: str | None = Field(
        default=None, validation_alias=AliasChoices("theme", "stylesheet", "name")
    )


class PluginInstallParams(BaseModel):
    slug: str = Field(
        min_length=1, validation_alias=AliasChoices("slug", "plugin", "name")
    )
    status: Literal["active", "inactive"] = "active"


class PluginActivateParams(BaseModel):
    plugin: str = Field(
        min_length=1,
        pattern=PLUGIN_ID_PATTERN,
        validation_alias=AliasChoices("plugin", "slug", "name"),
    )


class ContentUpdateParams(BaseModel):
    """Create (no id) or update (id present) a REST collection item."""

    content_type: str = Field(
        default="posts", validation_alias=AliasChoices("type", "content_type")
    )
    id: int | None = Field(default=None, gt=0)
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("id must be a positive integer")
        if value is None or isinstance(value, int):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            if stripped.isascii() and stripped.isdigit():
                return int(stripped)
        raise ValueError("id must be a positive integer")

    @field_validator("content_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        normalized = value.strip().lower()
        if normalized in {"post", "page", "category", "tag", "comment"}:
            normalized = "categories" if normalized == "category" else normalized + "s"
        if normalized not in CONTENT_TYPES:
            raise ValueError(
                f"unsupported content type '{value}' "
                f"(expected one of {', '.join(sorted(CONTENT_TYPES))})"
            )
        return normalized


class SettingsUpdateParams(BaseModel):
    settings: dict[str, Any] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_settings(cls, data: Any) -> Any:
        return _wrap_flat_settings(data)


class _DeclaredAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: str = ""


class ThemeCustomizeAction(_DeclaredAction):
    type: Literal["theme_customize"]
    params: ThemeCustomizeParams


class ThemeChangeAction(_DeclaredAction):
    type: Literal["theme_change"]
    params: ThemeChangeParams = Field(default_factory=ThemeChangeParams)


class PluginInstallAction(_DeclaredAction):
    type: Literal["plugin_install"]
    params: PluginInstallParams


class PluginActivateAction(_DeclaredAction):
    type: Literal["plugin_activate"]
    params: PluginActivateParams


class ContentUpdateAction(_DeclaredAction):
    type: Literal["content_update"]
    params: ContentUpdateParams


class SettingsUpdateAction(_DeclaredAction):
    type: Literal["settings_update"]
    params: SettingsUpdateParams


DeclaredAction = Annotated[
    Union[
        ThemeCustomizeAction,
        ThemeChangeAction,
        PluginInstallAction,
        PluginActivateAction,
        ContentUpdateAction,
        SettingsUpdateAction,
    ],
    Field(discriminator="type"),
]

_ACTION_ADAPTER: TypeAdapter[DeclaredAction] = TypeAdapter(DeclaredAction)


@dataclass
class RejectedAction:
    """An AI-declared action that failed validation and will not run."""

    index: int
    action_type: str | None
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "type": self.action_type, "reason": self.reason}


def parse_declared_action(raw: Any) -> DeclaredAction:
    """Validate one raw ``{type, description, params}`` mapping.

    Raises:
        pydantic.ValidationError: If the type is unknown or params are invalid.
    """
    return _ACTION_ADAPTER.validate_python(raw)


def parse_declared_actions(
    raw_actions: Any,
) -> tuple[list[DeclaredAction], list[RejectedAction]]:
    """Split raw model output into valid typed actions and rejections.

    Never raises; declaration order of the valid actions is preserved.

    Args:
        raw_actions: The ``actions`` value from a provider response.

    Returns:
        (valid actions, rejected entries with reasons)
    """
    if raw_actions is None:
        return [], []
    if not isinstance(raw_actions, list):
        return [], [RejectedAction(index=0, action_type=None, reason="actions is not a list")]

    valid: list[DeclaredAction] = []
    rejected: list[RejectedAction] = []
    for index, raw in enumerate(raw_actions):
        raw_type = raw.get("type") if isinstance(raw, dict) else None
        try:
            action = parse_declared_action(raw)
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            logger.warning(
                "Dropping invalid AI action #%d (type=%r): %s", index, raw_type, reason
            )
            rejected.append(
                RejectedAction(index=index, action_type=raw_type, reason=reason)
            )
            continue
        if not action.description:
            action.description = action.type.replace("_", " ")
        valid.append(action)
    return valid, rejected


def action_params_dict(action: DeclaredAction) -> dict[str, Any]:
    """Return the action's params as a JSON-ready dict."""
    return action.params.model_dump(mode="json")
