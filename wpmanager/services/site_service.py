"""Connected-site lifecycle: connect, list, inspect, refresh and delete.

A site is only persisted after a live connection test succeeds. The
application password is encrypted before the row is written and decrypted
again only for the duration of an outbound call.
"""

import logging
from urllib.parse import urlsplit

from sqlalchemy.orm import Session

from wpmanager.db.models import ActivityType, AuthMethod, Site, User, utc_now_iso
from wpmanager.errors import AccessDeniedError, NotFoundError, WPManagerError
from wpmanager.services.activity_service import ActivityService
from wpmanager.services.credential_encryption import (
    CredentialCodec,
    CredentialDecryptionError,
)
from wpmanager.services.site_gateway import (
    ConnectionTestResult,
    SiteStatus,
    SiteTarget,
    WordPressGateway,
)

logger = logging.getLogger(__name__)


class SiteConnectionError(Exception):
    """The live connection test failed; the site was not saved.

    Attributes:
        result: The failed connection test result.
    """

    def __init__(self, result: ConnectionTestResult) -> None:
        super().__init__(result.error or "Connection test failed")
        self.result = result


def normalize_site_url(url: str) -> str:
    """Validate an http(s) site URL and strip any trailing slash.

    Raises:
        WPManagerError: E-2001 if the URL is not an absolute http(s) URL.
    """
    candidate = (url or "").strip()
    parts = urlsplit(candidate)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise WPManagerError.from_code("E-2001", url=candidate)
    return candidate.rstrip("/")


def ensure_user(db: Session, user_id: str) -> User:
    """Return the user row for an authenticated id, creating it on first sight."""
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Provisioned user %s", user_id)
    return user


class SiteService:
    """Business logic for connected WordPress sites.

    Attributes:
        db: SQLAlchemy session for database operations.
        codec: Credential codec for the stored application password.
        gateway: WordPress gateway for connection tests and probes.
    """

    def __init__(
        self,
        db: Session,
        codec: CredentialCodec,
        gateway: WordPressGateway,
        activity_service: ActivityService | None = None,
    ) -> None:
        self.db = db
        self.codec = codec
        self.gateway = gateway
        self.activity = activity_service or ActivityService(db)

    async def create_site(
        self,
        user_id: str,
        name: str,
        url: str,
        username: str,
        secret: str,
        auth_method: str = AuthMethod.app_password.value,
    ) -> Site:
        """Test the connection and, if it succeeds, save the site.

        Args:
            user_id: Owning user.
            name: Display name.
            url: Site base URL.
            username: REST API username.
            secret: Application password or token, in plaintext.
            auth_method: 'app-password' or 'token'.

        Returns:
            The persisted Site with cached metadata from the test.

        Raises:
            WPManagerError: E-2001 for an invalid URL.
            SiteConnectionError: If the live connection test fails.
        """
        url = normalize_site_url(url)
        auth_method = AuthMethod(auth_method).value

        result = await self.gateway.test_connection(url, username, secret, auth_method)
        if not result.success:
            logger.info("Not saving site %s: %s", url, result.error)
            raise SiteConnectionError(result)

        ensure_user(self.db, user_id)
        now = utc_now_iso()
        site = Site(
            user_id=user_id,
            name=name.strip() or url,
            url=url,
            username=username,
            encrypted_password=self.codec.encrypt(secret),
            auth_method=auth_method,
            is_active=True,
            is_online=True,
            last_connected=now,
            wp_version=result.wp_version,
            active_theme=result.active_theme,
            plugin_count=result.plugin_count or 0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(site)
        self.db.commit()
        self.db.refresh(site)

        self.activity.record(
            site.id,
            ActivityType.site_connected.value,
            f"Connected WordPress site {site.name}",
            {"wpVersion": result.wp_version},
        )
        logger.info("Connected site %s (%s) for user %s", site.id, url, user_id)
        return site

    def list_sites(self, user_id: str) -> list[Site]:
        """All sites owned by a user, newest first."""
        return (
            self.db.query(Site)
            .filter(Site.user_id == user_id)
            .order_by(Site.created_at.desc())
            .all()
        )

    def get_site(self, user_id: str, site_id: str) -> Site:
        """Fetch a site the user owns.

        Raises:
            NotFoundError: If no such site exists.
            AccessDeniedError: If it belongs to another user.
        """
        site = self.db.get(Site, site_id)
        if site is None:
            raise NotFoundError("Site", site_id)
        if site.user_id != user_id:
            raise AccessDeniedError("Site")
        return site

    def delete_site(self, user_id: str, site_id: str) -> None:
        """Delete a site and everything attached to it."""
        site = self.get_site(user_id, site_id)
        self.db.delete(site)
        self.db.commit()
        logger.info("Deleted site %s", site_id)

    def decrypt_secret(self, site: Site) -> str:
        """Return the site's plaintext credential.

        Raises:
            WPManagerError: E-5001 if the stored ciphertext cannot be decrypted.
        """
        try:
            return self.codec.decrypt(site.encrypted_password)
        except CredentialDecryptionError as e:
            logger.error("Stored credential for site %s is unreadable: %s", site.id, e)
            raise WPManagerError.from_code("E-5001", details={"site_id": site.id}) from e

    def target_for(self, site: Site) -> SiteTarget:
        return SiteTarget.from_site(site, self.decrypt_secret(site))

    async def check_status(self, user_id: str, site_id: str) -> tuple[Site, SiteStatus]:
        """Probe a site and refresh its cached metadata.

        Records the outcome in ``is_online``. An offline result leaves the
        cached metadata untouched and keeps the site enabled, so the
        background monitor keeps watching it.

        Returns:
            (updated site, probe result)
        """
        site = self.get_site(user_id, site_id)
        status = await self.gateway.probe_status(self.target_for(site))

        now = utc_now_iso()
        site.is_online = status.is_online
        if status.is_online:
            site.wp_version = status.wp_version
            site.active_theme = status.active_theme
            site.plugin_count = status.plugin_count or 0
            site.last_connected = now
        site.updated_at = now
        self.db.commit()
        self.db.refresh(site)

        self.activity.record(
            site.id,
            ActivityType.status_checked.value,
            f"Status check: {'online' if status.is_online else 'offline'}",
            status.to_dict(),
        )
        return site, status
