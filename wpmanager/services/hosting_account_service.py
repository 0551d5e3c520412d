"""Hosting provider accounts with an encrypted credential blob.

Credentials are an arbitrary JSON object (API token, SFTP user and
password, ...), encrypted as a whole with the credential codec.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from wpmanager.db.models import HostingAccount, utc_now_iso
from wpmanager.errors import AccessDeniedError, NotFoundError, ValidationError
from wpmanager.services.credential_encryption import CredentialCodec
from wpmanager.services.site_service import ensure_user

logger = logging.getLogger(__name__)


def hosting_account_view(row: HostingAccount) -> dict[str, Any]:
    return {
        "id": row.id,
        "provider": row.provider,
        "account_name": row.account_name,
        "server_url": row.server_url,
        "is_active": row.is_active,
        "last_connected": row.last_connected,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "has_credentials": bool(row.encrypted_credentials),
    }


class HostingAccountService:
    def __init__(self, db: Session, codec: CredentialCodec) -> None:
        self.db = db
        self.codec = codec

    def list_accounts(self, user_id: str) -> list[HostingAccount]:
        return (
            self.db.query(HostingAccount)
            .filter(HostingAccount.user_id == user_id)
            .order_by(HostingAccount.created_at.desc())
            .all()
        )

    def get_account(self, user_id: str, account_id: str) -> HostingAccount:
        row = self.db.get(HostingAccount, account_id)
        if row is None:
            raise NotFoundError("Hosting account", account_id)
        if row.user_id != user_id:
            raise AccessDeniedError("Hosting account")
        return row

    def create_account(
        self,
        user_id: str,
        provider: str,
        account_name: str,
        credentials: dict[str, Any],
        server_url: str | None = None,
    ) -> HostingAccount:
        """Store a hosting account.

        Raises:
            ValidationError: If ``credentials`` is empty.
        """
        if not credentials:
            raise ValidationError("Hosting account credentials are required")
        ensure_user(self.db, user_id)
        now = utc_now_iso()
        row = HostingAccount(
            user_id=user_id,
            provider=provider.strip().lower(),
            account_name=account_name.strip(),
            server_url=server_url,
            encrypted_credentials=self.codec.encrypt_json(credentials),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Stored %s hosting account %s for user %s", row.provider, row.id, user_id)
        return row

    def delete_account(self, user_id: str, account_id: str) -> None:
        row = self.get_account(user_id, account_id)
        self.db.delete(row)
        self.db.commit()
