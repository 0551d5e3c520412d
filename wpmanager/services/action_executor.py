"""Action lifecycle and serial execution against a site.

Each declared action becomes one ``Action`` row that moves through
pending -> in_progress -> completed/failed. ``ActionExecutor.transition``
is the only code path that changes an action's status, so the state
machine is enforced in one place.

Execution is strictly serial in declaration order. A failure is recorded
on that action and does not stop the remaining ones; nothing is retried.
"""

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from wpmanager.db.models import Action, ActionStatus, Site, utc_now_iso
from wpmanager.services.action_types import DeclaredAction, action_params_dict
from wpmanager.services.activity_service import ActivityService
from wpmanager.services.site_gateway import SiteGatewayError, SiteTarget, WordPressGateway
from wpmanager.utils.redaction import redact_sensitive, sanitize_error_message

logger = logging.getLogger(__name__)


class InvalidActionTransition(Exception):
    """Raised when attempting an invalid action state transition.

    Attributes:
        current_state: The current state of the action.
        attempted_state: The state that was attempted.
        allowed_transitions: Valid transition targets from the current state.
    """

    def __init__(
        self,
        current_state: ActionStatus,
        attempted_state: ActionStatus,
        allowed_transitions: list[ActionStatus],
    ) -> None:
        self.current_state = current_state
        self.attempted_state = attempted_state
        self.allowed_transitions = allowed_transitions
        allowed_str = ", ".join(s.value for s in allowed_transitions) or "none (terminal)"
        super().__init__(
            f"Cannot transition action from '{current_state.value}' to "
            f"'{attempted_state.value}'. Allowed transitions: {allowed_str}"
        )


VALID_TRANSITIONS: dict[ActionStatus, list[ActionStatus]] = {
    ActionStatus.pending: [ActionStatus.in_progress],
    ActionStatus.in_progress: [ActionStatus.completed, ActionStatus.failed],
    ActionStatus.completed: [],  # terminal
    ActionStatus.failed: [],  # terminal (user re-issues the request)
}


def can_transition(current: ActionStatus, target: ActionStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def action_result(action: Action) -> dict[str, Any] | None:
    """Decode an action's stored result payload."""
    return json.loads(action.result_json) if action.result_json else None


def action_params(action: Action) -> dict[str, Any]:
    return json.loads(action.params_json) if action.params_json else {}


class ActionExecutor:
    """Persists and runs declared actions one at a time.

    Attributes:
        db: SQLAlchemy session for database operations.
        gateway: WordPress gateway performing the remote calls.
        activity: Activity log written for each completed action.
    """

    def __init__(
        self,
        db: Session,
        gateway: WordPressGateway,
        activity_service: ActivityService | None = None,
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.activity = activity_service or ActivityService(db)

    def create_pending(
        self,
        site_id: str,
        action: DeclaredAction,
        message_id: str | None = None,
        sequence: int = 0,
    ) -> Action:
        """Persist a declared action in the pending state."""
        row = Action(
            site_id=site_id,
            message_id=message_id,
            action_type=action.type,
            description=action.description,
            params_json=json.dumps(action_params_dict(action)),
            status=ActionStatus.pending.value,
            sequence=sequence,
            created_at=utc_now_iso(),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def transition(
        self,
        action: Action,
        new_status: ActionStatus,
        result: dict[str, Any] | None = None,
    ) -> Action:
        """Move an action to a new status.

        Sets ``started_at`` on entering in_progress and ``completed_at`` on
        entering a terminal state.

        Raises:
            InvalidActionTransition: If the transition is not allowed.
        """
        current = ActionStatus(action.status)
        if not can_transition(current, new_status):
            raise InvalidActionTransition(
                current_state=current,
                attempted_state=new_status,
                allowed_transitions=VALID_TRANSITIONS.get(current, []),
            )

        now = utc_now_iso()
        action.status = new_status.value
        if new_status == ActionStatus.in_progress:
            action.started_at = now
        if new_status in (ActionStatus.completed, ActionStatus.failed):
            action.completed_at = now
        if result is not None:
            action.result_json = json.dumps(redact_sensitive(result), default=str)

        self.db.commit()
        self.db.refresh(action)
        return action

    async def execute_declared_actions(
        self,
        site: Site,
        secret: str,
        message_id: str | None,
        actions: list[DeclaredAction],
    ) -> list[Action]:
        """Persist and execute declared actions in order.

        Args:
            site: Target site.
            secret: The site's decrypted credential, used only for these calls.
            message_id: Assistant message that declared the actions.
            actions: Typed declarations in declaration order.

        Returns:
            The Action rows, each in a terminal state, in declaration order.
        """
        target = SiteTarget.from_site(site, secret)
        executed: list[Action] = []
        for sequence, declared in enumerate(actions):
            row = self.create_pending(site.id, declared, message_id, sequence)
            executed.append(await self._run_one(target, row, declared))
        return executed

    async def _run_one(self, target: SiteTarget, row: Action, declared: DeclaredAction) -> Action:
        self.transition(row, ActionStatus.in_progress)
        try:
            result = await self.gateway.execute_action(target, declared)
        except SiteGatewayError as e:
            logger.info("Action %s (%s) failed: %s", row.id, row.action_type, e.message)
            return self.transition(row, ActionStatus.failed, {"error": e.message})
        except Exception as e:
            logger.error("Action %s (%s) raised unexpectedly", row.id, row.action_type, exc_info=True)
            message = sanitize_error_message(str(e)) or type(e).__name__
            return self.transition(row, ActionStatus.failed, {"error": message})

        self.transition(row, ActionStatus.completed, result)
        self.activity.record(
            row.site_id,
            row.action_type,
            row.description,
            metadata=result,
        )
        logger.info("Action %s (%s) completed", row.id, row.action_type)
        return row
