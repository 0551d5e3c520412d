"""Per-site activity log.

Activities are append-only audit entries: a successful action, a new
connection, a monitoring alert. Metadata passes through
``redact_sensitive`` before it is stored, so secrets echoed back by a
remote API never reach the database.

Usage:
    activity = ActivityService(db)
    activity.record(site.id, "plugin_install", "Install Yoast SEO", {"slug": "wordpress-seo"})
    recent = activity.list_for_site(site.id, limit=20)
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from wpmanager.db.models import Activity, utc_now_iso
from wpmanager.utils.redaction import redact_sensitive


class ActivityService:
    """Write and read ``Activity`` rows.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        site_id: str,
        activity_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> Activity:
        """Append an activity entry for a site.

        Args:
            site_id: Site the activity belongs to.
            activity_type: An action type or an ``ActivityType`` value.
            description: Human-readable summary.
            metadata: Optional JSON-serializable details (redacted before storage).
            commit: Commit immediately; pass False to join the caller's transaction.

        Returns:
            The persisted Activity.
        """
        activity = Activity(
            site_id=site_id,
            activity_type=activity_type,
            description=description,
            metadata_json=(
                json.dumps(redact_sensitive(metadata), default=str)
                if metadata is not None
                else None
            ),
            created_at=utc_now_iso(),
        )
        self.db.add(activity)
        if commit:
            self.db.commit()
            self.db.refresh(activity)
        else:
            self.db.flush()
        return activity

    def list_for_site(self, site_id: str, limit: int = 50) -> list[Activity]:
        """Most recent activities for a site, newest first."""
        return (
            self.db.query(Activity)
            .filter(Activity.site_id == site_id)
            .order_by(Activity.created_at.desc())
            .limit(limit)
            .all()
        )
