"""SQLAlchemy ORM models for the WP AI Manager state database.

Defines users, connected WordPress sites, conversations and their
messages, AI-declared actions, the per-site activity log, and stored
provider API keys and hosting accounts. Uses SQLAlchemy 2.0 style with
Mapped and mapped_column.

Ownership is enforced with foreign keys: deleting a User removes
everything they own, and deleting a Site removes its conversations,
messages, actions and activities.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class AuthMethod(str, Enum):
    """How the site's REST API credential is presented."""

    app_password = "app-password"
    token = "token"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    user = "user"
    assistant = "assistant"


class ActionType(str, Enum):
    """Kinds of remote mutation an assistant message may declare."""

    theme_customize = "theme_customize"
    theme_change = "theme_change"
    plugin_install = "plugin_install"
    plugin_activate = "plugin_activate"
    content_update = "content_update"
    settings_update = "settings_update"


class ActionStatus(str, Enum):
    """Status values for declared actions.

    Lifecycle: pending -> in_progress -> completed/failed
    """

    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class ActivityType(str, Enum):
    """Activity log categories not derived from an action type."""

    site_connected = "site_connected"
    status_checked = "status_checked"
    monitoring_alert = "monitoring_alert"


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class User(Base):
    """Account that owns sites, conversations and stored secrets.

    Identity is established by the upstream authentication layer; rows are
    provisioned on first sight of a user id.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=generate_uuid
    )
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    sites: Mapped[list["Site"]] = relationship(
        "Site", back_populates="user", cascade="all, delete", passive_deletes=True
    )
    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="user", cascade="all, delete", passive_deletes=True
    )
    api_keys: Mapped[list["ApiKey"]] = relationship(
        "ApiKey", back_populates="user", cascade="all, delete", passive_deletes=True
    )
    hosting_accounts: Mapped[list["HostingAccount"]] = relationship(
        "HostingAccount", back_populates="user", cascade="all, delete", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r})>"


class Site(Base):
    """A connected remote WordPress installation.

    Attributes:
        id: UUID primary key.
        user_id: Owning user.
        name: Display name chosen by the user.
        url: Base URL of the site (no trailing slash).
        username: REST API username.
        encrypted_password: Credential codec ciphertext of the app password/token.
        auth_method: 'app-password' or 'token'.
        is_active: Site is enabled for management and background monitoring.
        is_online: Outcome of the last connection test or status check.
        last_connected: ISO8601 timestamp of the last successful contact.
        wp_version: Cached WordPress version reported by the site.
        active_theme: Cached active theme name.
        plugin_count: Cached number of installed plugins.
    """

    __tablename__ = "wordpress_sites"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    encrypted_password: Mapped[str] = mapped_column(Text, nullable=False)
    auth_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuthMethod.app_password.value
    )
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_online: Mapped[bool | None] = mapped_column(nullable=True)
    last_connected: Mapped[str | None] = mapped_column(String(50), nullable=True)
    wp_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    active_theme: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plugin_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    user: Mapped["User"] = relationship("User", back_populates="sites")
    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="site", cascade="all, delete", passive_deletes=True
    )
    actions: Mapped[list["Action"]] = relationship(
        "Action", back_populates="site", cascade="all, delete", passive_deletes=True
    )
    activities: Mapped[list["Activity"]] = relationship(
        "Activity", back_populates="site", cascade="all, delete", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_sites_user_id", "user_id"),
        Index("idx_sites_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Site(id={self.id!r}, url={self.url!r})>"


class Conversation(Base):
    """A chat thread tying a user to an optional site."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    site_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("wordpress_sites.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(
        String(255), nullable=False, default="New Conversation"
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    user: Mapped["User"] = relationship("User", back_populates="conversations")
    site: Mapped[Optional["Site"]] = relationship("Site", back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete",
        passive_deletes=True,
        order_by="Message.sequence",
    )

    __table_args__ = (
        Index("idx_conversations_user_updated", "user_id", "updated_at"),
        Index("idx_conversations_site_id", "site_id"),
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, title={self.title!r})>"


class Message(Base):
    """An immutable, ordered entry in a conversation.

    Attributes:
        role: 'user' or 'assistant'.
        content: Free text.
        metadata_json: JSON blob (declared actions, classification, provider).
        sequence: Monotonic position within the conversation.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_conversation_seq"),
        Index("idx_messages_conversation_seq", "conversation_id", "sequence"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id!r}, role={self.role!r}, seq={self.sequence})>"


class Action(Base):
    """One declared unit of work against a site.

    Lifecycle: pending -> in_progress -> completed/failed. Terminal states
    are final; a failed action is re-issued as a new request.
    """

    __tablename__ = "wp_actions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wordpress_sites.id", ondelete="CASCADE"), nullable=False
    )
    message_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    params_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ActionStatus.pending.value
    )
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    started_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    completed_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    site: Mapped["Site"] = relationship("Site", back_populates="actions")

    __table_args__ = (
        Index("idx_actions_site_id", "site_id"),
        Index("idx_actions_message_id", "message_id"),
        Index("idx_actions_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Action(id={self.id!r}, type={self.action_type!r}, "
            f"status={self.status!r})>"
        )


class Activity(Base):
    """Append-only audit entry describing something that happened to a site."""

    __tablename__ = "site_activities"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wordpress_sites.id", ondelete="CASCADE"), nullable=False
    )
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    site: Mapped["Site"] = relationship("Site", back_populates="activities")

    __table_args__ = (
        Index("idx_activities_site_created", "site_id", "created_at"),
        Index("idx_activities_type", "activity_type"),
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id!r}, type={self.activity_type!r})>"


class ApiKey(Base):
    """A user-supplied third-party API key, stored encrypted."""

    __tablename__ = "user_api_keys"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    key_name: Mapped[str] = mapped_column(String(255), nullable=False)
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    last_used: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    user: Mapped["User"] = relationship("User", back_populates="api_keys")

    __table_args__ = (Index("idx_api_keys_user_id", "user_id"),)

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id!r}, provider={self.provider!r})>"


class HostingAccount(Base):
    """A hosting provider account whose credentials are stored as an encrypted JSON blob."""

    __tablename__ = "hosting_accounts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    server_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    encrypted_credentials: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    last_connected: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    user: Mapped["User"] = relationship("User", back_populates="hosting_accounts")

    __table_args__ = (Index("idx_hosting_accounts_user_id", "user_id"),)

    def __repr__(self) -> str:
        return f"<HostingAccount(id={self.id!r}, provider={self.provider!r})>"
