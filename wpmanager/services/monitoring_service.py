"""Background health monitoring of connected sites.

``SiteMonitor`` probes every enabled site (``is_active``) on a fixed
interval, including sites the last status check found offline, keeps the
latest health metrics per site in memory, and writes a
``monitoring_alert`` activity for each problem it finds. It runs on its
own asyncio task and opens its own database sessions, so it never blocks
or shares state with request handling. It writes Activity rows only.

Ticks never overlap: ``run_once`` is guarded by a lock and a tick that
starts while another is still running is skipped.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from wpmanager.db.models import ActivityType, Site, utc_now_iso
from wpmanager.services.activity_service import ActivityService
from wpmanager.services.credential_encryption import CredentialCodec, CredentialDecryptionError
from wpmanager.services.site_gateway import SiteStatus, SiteTarget, WordPressGateway

logger = logging.getLogger(__name__)

# (upper bound in ms, score); anything slower scores the final value
_PERFORMANCE_BANDS: tuple[tuple[int, int], ...] = (
    (1000, 100),
    (2000, 80),
    (3000, 60),
    (5000, 40),
)
_SLOWEST_SCORE = 20


def performance_score(response_time_ms: int) -> int:
    """Map a response time onto the 100/80/60/40/20 score bands."""
    for upper, score in _PERFORMANCE_BANDS:
        if response_time_ms < upper:
            return score
    return _SLOWEST_SCORE


@dataclass
class HealthAlert:
    type: str
    severity: str
    message: str
    recommendations: list[str] = field(default_factory=list)


@dataclass
class SiteHealthMetrics:
    """Latest health snapshot for one site."""

    site_id: str
    is_online: bool
    response_time_ms: int
    performance_score: int
    last_checked: str
    wp_version: str | None = None
    plugin_count: int | None = None
    alerts: list[HealthAlert] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SiteMonitor:
    """Periodic site health checker.

    Args:
        session_factory: Callable returning a new SQLAlchemy session.
        codec: Credential codec to decrypt site secrets for probes.
        gateway: WordPress gateway used for status probes.
        interval_seconds: Time between ticks.
        slow_response_ms: Response time above which a medium alert is raised.
        very_slow_response_ms: Response time above which the alert is high.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        codec: CredentialCodec,
        gateway: WordPressGateway,
        interval_seconds: float = 900,
        slow_response_ms: int = 5000,
        very_slow_response_ms: int = 10000,
    ) -> None:
        self._session_factory = session_factory
        self._codec = codec
        self._gateway = gateway
        self.interval_seconds = interval_seconds
        self.slow_response_ms = slow_response_ms
        self.very_slow_response_ms = very_slow_response_ms
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._metrics: dict[str, SiteHealthMetrics] = {}
        self.last_run: str | None = None

    # --- Lifecycle ---

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the monitoring loop on the running event loop. No-op if running."""
        if self.is_active:
            return
        self._task = asyncio.create_task(self._loop(), name="wpmanager-site-monitor")
        logger.info("Site monitor started (interval %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Site monitor stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.error("Site monitor tick failed", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    # --- Ticks ---

    async def run_once(self) -> dict[str, int] | None:
        """Check every active site once.

        Returns:
            Counts of checked sites and raised alerts, or None if another
            tick was already running and this one was skipped.
        """
        if self._lock.locked():
            logger.info("Site monitor tick skipped: previous tick still running")
            return None
        async with self._lock:
            db = self._session_factory()
            try:
                return await self._check_all(db)
            finally:
                db.close()

    async def _check_all(self, db: Session) -> dict[str, int]:
        sites = db.query(Site).filter(Site.is_active.is_(True)).all()
        activity = ActivityService(db)
        checked = alerts_raised = 0
        for site in sites:
            try:
                metrics = await self._check_site(site)
            except CredentialDecryptionError:
                logger.warning("Skipping site %s: stored credential is unreadable", site.id)
                continue
            except Exception:
                logger.error("Health check for site %s failed", site.id, exc_info=True)
                continue

            self._metrics[site.id] = metrics
            checked += 1
            for alert in metrics.alerts:
                activity.record(
                    site.id,
                    ActivityType.monitoring_alert.value,
                    alert.message,
                    {
                        "severity": alert.severity,
                        "type": alert.type,
                        "recommendations": alert.recommendations,
                    },
                )
                alerts_raised += 1

        self.last_run = utc_now_iso()
        logger.info("Site monitor checked %d site(s), raised %d alert(s)", checked, alerts_raised)
        return {"checked": checked, "alerts": alerts_raised}

    async def _check_site(self, site: Site) -> SiteHealthMetrics:
        target = SiteTarget.from_site(site, self._codec.decrypt(site.encrypted_password))
        status = await self._gateway.probe_status(target)
        return SiteHealthMetrics(
            site_id=site.id,
            is_online=status.is_online,
            response_time_ms=status.response_time_ms,
            performance_score=performance_score(status.response_time_ms) if status.is_online else 0,
            last_checked=utc_now_iso(),
            wp_version=status.wp_version,
            plugin_count=status.plugin_count,
            alerts=self.alerts_for(site, status),
        )

    def alerts_for(self, site: Site, status: SiteStatus) -> list[HealthAlert]:
        """Derive alerts from one probe result."""
        if not status.is_online:
            return [
                HealthAlert(
                    type="uptime",
                    severity="critical",
                    message=f"Site {site.name} is offline or not responding",
                    recommendations=[
                        "Check your hosting provider status",
                        "Verify the domain and DNS configuration",
                        "Confirm the WordPress REST API is enabled",
                    ],
                )
            ]
        if status.response_time_ms > self.slow_response_ms:
            severity = "high" if status.response_time_ms > self.very_slow_response_ms else "medium"
            return [
                HealthAlert(
                    type="performance",
                    severity=severity,
                    message=(
                        f"Site {site.name} responded slowly ({status.response_time_ms} ms)"
                    ),
                    recommendations=[
                        "Enable a caching plugin",
                        "Optimize images and media",
                        "Review plugins for slow queries",
                    ],
                )
            ]
        return []

    # --- Reads ---

    def get_site_metrics(self, site_id: str) -> SiteHealthMetrics | None:
        return self._metrics.get(site_id)

    def get_status(self) -> dict[str, Any]:
        return {
            "is_active": self.is_active,
            "interval_seconds": self.interval_seconds,
            "monitored_sites": len(self._metrics),
            "last_run": self.last_run,
        }
