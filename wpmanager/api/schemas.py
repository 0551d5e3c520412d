"""Pydantic schemas for API request/response validation.

Response models read straight from ORM rows (``from_attributes``); JSON
text columns are decoded on the way out. No response model has a field
for a stored secret.
"""

import json
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# JSON-column fields accept the ORM attribute name first and the public
# name second, so a dumped response model validates again unchanged.


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value else None
    return value


# Site schemas


class SiteCreate(BaseModel):
    """Request schema for connecting a WordPress site."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("password", "app_password", "appPassword"),
    )
    auth_method: Literal["app-password", "token"] = Field(
        "app-password", validation_alias=AliasChoices("auth_method", "authMethod")
    )


class SiteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    url: str
    username: str
    auth_method: str
    is_active: bool
    is_online: bool | None = None
    last_connected: str | None
    wp_version: str | None
    active_theme: str | None
    plugin_count: int
    created_at: str
    updated_at: str


class SiteStatusResponse(BaseModel):
    site: SiteResponse
    status: dict[str, Any]


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str
    activity_type: str
    description: str
    metadata: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("metadata_json", "metadata")
    )
    created_at: str

    @field_validator("metadata", mode="before")
    @classmethod
    def _parse_metadata(cls, v: Any) -> Any:
        return _decode_json(v)


class ActionResponse(BaseModel):
    """A declared action and its execution outcome."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str
    message_id: str | None
    action_type: str
    description: str
    params: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("params_json", "params")
    )
    status: str
    result: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("result_json", "result")
    )
    sequence: int
    created_at: str
    started_at: str | None
    completed_at: str | None

    @field_validator("params", "result", mode="before")
    @classmethod
    def _parse_json(cls, v: Any) -> Any:
        return _decode_json(v)


# Conversation schemas


class ConversationCreate(BaseModel):
    site_id: str | None = Field(None, validation_alias=AliasChoices("site_id", "siteId"))
    title: str | None = Field(None, max_length=255)


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str | None
    title: str
    created_at: str
    updated_at: str


class MessageCreate(BaseModel):
    """Request schema for sending a user message."""

    role: Literal["user"] = "user"
    content: str = Field(..., min_length=1)
    provider: str | None = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    role: str
    content: str
    metadata: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("metadata_json", "metadata")
    )
    sequence: int
    created_at: str

    @field_validator("metadata", mode="before")
    @classmethod
    def _parse_metadata(cls, v: Any) -> Any:
        return _decode_json(v)


class SendMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_message: MessageResponse = Field(alias="userMessage")
    ai_message: MessageResponse = Field(alias="aiMessage")
    actions: list[ActionResponse]


# AI schemas


class ProvidersResponse(BaseModel):
    providers: list[str]
    default: str


class AnalyzeContentRequest(BaseModel):
    content: str = Field(..., min_length=1)
    provider: str | None = None


class ContentAnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggestions: list[str]
    seo_score: int = Field(alias="seoScore")
    readability_score: int = Field(alias="readabilityScore")


class RecommendThemesRequest(BaseModel):
    site_type: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("site_type", "siteType")
    )
    preferences: dict[str, Any] = Field(default_factory=dict)
    provider: str | None = None


class ThemeRecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str
    features: list[str]
    price: str


class RecommendPluginsRequest(BaseModel):
    needs: list[str] = Field(..., min_length=1)
    provider: str | None = None


class PluginRecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str
    purpose: str
    installation: str


# Stored secrets


class ApiKeyCreate(BaseModel):
    provider: str = Field(..., min_length=1, max_length=50)
    key_name: str = Field(
        ..., min_length=1, max_length=255, validation_alias=AliasChoices("key_name", "keyName")
    )
    api_key: str = Field(..., min_length=1, validation_alias=AliasChoices("api_key", "apiKey"))


class ApiKeyUpdate(BaseModel):
    key_name: str | None = Field(
        None, max_length=255, validation_alias=AliasChoices("key_name", "keyName")
    )
    api_key: str | None = Field(
        None, min_length=1, validation_alias=AliasChoices("api_key", "apiKey")
    )
    is_active: bool | None = Field(None, validation_alias=AliasChoices("is_active", "isActive"))


class ApiKeyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    provider: str
    key_name: str
    is_active: bool
    last_used: str | None
    created_at: str
    updated_at: str
    has_key: bool = Field(alias="hasKey")


class HostingAccountCreate(BaseModel):
    provider: str = Field(..., min_length=1, max_length=50)
    account_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("account_name", "accountName"),
    )
    server_url: str | None = Field(
        None, max_length=2048, validation_alias=AliasChoices("server_url", "serverUrl")
    )
    credentials: dict[str, Any]


class HostingAccountResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    provider: str
    account_name: str
    server_url: str | None
    is_active: bool
    last_connected: str | None
    created_at: str
    updated_at: str
    has_credentials: bool = Field(alias="hasCredentials")


# Monitoring


class MonitoringStatusResponse(BaseModel):
    is_active: bool
    interval_seconds: float
    monitored_sites: int
    last_run: str | None
