"""User-supplied third-party API keys, stored encrypted.

Only ``api_key_view`` output leaves this module; it reports ``has_key``
and never the key itself. Plaintext keys are decrypted only to build a
per-request AI backend (``ai_backend``).
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from wpmanager.db.models import ApiKey, utc_now_iso
from wpmanager.errors import AccessDeniedError, NotFoundError
from wpmanager.services.ai import AIDispatcher, AIProvider, AIProviderName
from wpmanager.services.credential_encryption import CredentialCodec, CredentialDecryptionError
from wpmanager.services.site_service import ensure_user

logger = logging.getLogger(__name__)


def api_key_view(row: ApiKey) -> dict[str, Any]:
    return {
        "id": row.id,
        "provider": row.provider,
        "key_name": row.key_name,
        "is_active": row.is_active,
        "last_used": row.last_used,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "has_key": bool(row.encrypted_key),
    }


class ApiKeyService:
    def __init__(self, db: Session, codec: CredentialCodec) -> None:
        self.db = db
        self.codec = codec

    def list_keys(self, user_id: str) -> list[ApiKey]:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id)
            .order_by(ApiKey.created_at.desc())
            .all()
        )

    def get_key(self, user_id: str, key_id: str) -> ApiKey:
        row = self.db.get(ApiKey, key_id)
        if row is None:
            raise NotFoundError("API key", key_id)
        if row.user_id != user_id:
            raise AccessDeniedError("API key")
        return row

    def create_key(self, user_id: str, provider: str, key_name: str, api_key: str) -> ApiKey:
        ensure_user(self.db, user_id)
        now = utc_now_iso()
        row = ApiKey(
            user_id=user_id,
            provider=provider.strip().lower(),
            key_name=key_name.strip(),
            encrypted_key=self.codec.encrypt(api_key),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Stored %s API key %s for user %s", row.provider, row.id, user_id)
        return row

    def update_key(
        self,
        user_id: str,
        key_id: str,
        key_name: str | None = None,
        api_key: str | None = None,
        is_active: bool | None = None,
    ) -> ApiKey:
        """Update a key's name, value or active flag."""
        row = self.get_key(user_id, key_id)
        now = utc_now_iso()
        if key_name is not None:
            row.key_name = key_name.strip()
        if api_key is not None:
            row.encrypted_key = self.codec.encrypt(api_key)
        if is_active is not None:
            row.is_active = is_active
        row.updated_at = now
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_key(self, user_id: str, key_id: str) -> None:
        row = self.get_key(user_id, key_id)
        self.db.delete(row)
        self.db.commit()

    # =========================================================================
    # Use in AI requests
    # =========================================================================

    def active_ai_keys(self, user_id: str) -> dict[str, ApiKey]:
        """The user's active key per AI backend; the most recently updated wins."""
        backends = {name.value for name in AIProviderName}
        rows = (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id, ApiKey.is_active.is_(True))
            .order_by(ApiKey.updated_at.desc())
            .all()
        )
        keys: dict[str, ApiKey] = {}
        for row in rows:
            if row.provider in backends:
                keys.setdefault(row.provider, row)
        return keys

    def ai_backend(
        self, dispatcher: AIDispatcher, user_id: str, provider: str | None = None
    ) -> AIProvider:
        """Backend for one request, authenticated with the user's key when stored.

        A backend the user holds an active key for counts as available even
        when the process has no key for it. Otherwise the process-wide
        backend is used. ``last_used`` is stamped on the key actually used.

        Raises:
            AIConfigurationError: If no usable backend matches ``provider``.
        """
        stored = self.active_ai_keys(user_id)
        name = dispatcher.resolve_name(provider, stored)
        row = stored.get(name.value)
        if row is None:
            return dispatcher.get_provider(name.value)

        try:
            api_key = self.codec.decrypt(row.encrypted_key)
        except CredentialDecryptionError as e:
            logger.warning(
                "Stored %s key %s for user %s is unreadable, using server key: %s",
                row.provider, row.id, user_id, e,
            )
            return dispatcher.get_provider(name.value)

        row.last_used = utc_now_iso()
        self.db.commit()
        logger.info("Using stored %s key %s for user %s", row.provider, row.id, user_id)
        return dispatcher.provider_with_key(name, api_key)
