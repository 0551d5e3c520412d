"""Process-wide service container.

Built once at application startup and stored on ``app.state``. Request
handlers reach it through a FastAPI dependency; nothing here is a
module-level mutable singleton.
"""

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from wpmanager.config import AppSettings
from wpmanager.services.ai import AIDispatcher
from wpmanager.services.credential_encryption import CredentialCodec, build_codec
from wpmanager.services.monitoring_service import SiteMonitor
from wpmanager.services.site_gateway import WordPressGateway


@dataclass
class AppServices:
    settings: AppSettings
    codec: CredentialCodec
    gateway: WordPressGateway
    dispatcher: AIDispatcher
    monitor: SiteMonitor


def build_services(
    settings: AppSettings,
    session_factory: Callable[[], Session] | None = None,
) -> AppServices:
    """Construct every long-lived service from settings.

    Args:
        settings: Loaded application settings.
        session_factory: Session factory for the monitor (defaults to
            ``wpmanager.db.SessionLocal``).
    """
    if session_factory is None:
        from wpmanager.db.connection import SessionLocal

        session_factory = SessionLocal

    codec = build_codec(settings)
    gateway = WordPressGateway(
        timeout=settings.site_request_timeout,
        probe_timeout=settings.connection_test_timeout,
    )
    return AppServices(
        settings=settings,
        codec=codec,
        gateway=gateway,
        dispatcher=AIDispatcher(settings),
        monitor=SiteMonitor(
            session_factory,
            codec,
            gateway,
            interval_seconds=settings.monitoring_interval_seconds,
            slow_response_ms=settings.slow_response_ms,
            very_slow_response_ms=settings.very_slow_response_ms,
        ),
    )
