"""Database module for WP AI Manager state and persistence."""

from wpmanager.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from wpmanager.db.models import (
    Action,
    ActionStatus,
    ActionType,
    Activity,
    ActivityType,
    ApiKey,
    AuthMethod,
    Base,
    Conversation,
    HostingAccount,
    Message,
    MessageRole,
    Site,
    User,
)

__all__ = [
    # Models
    "Base",
    "User",
    "Site",
    "Conversation",
    "Message",
    "Action",
    "Activity",
    "ApiKey",
    "HostingAccount",
    # Enums
    "AuthMethod",
    "MessageRole",
    "ActionType",
    "ActionStatus",
    "ActivityType",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
]
