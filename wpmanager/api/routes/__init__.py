"""API route modules."""

from wpmanager.api.routes import (
    ai,
    api_keys,
    conversations,
    hosting_accounts,
    monitoring,
    sites,
)

__all__ = [
    "ai",
    "api_keys",
    "conversations",
    "hosting_accounts",
    "monitoring",
    "sites",
]
