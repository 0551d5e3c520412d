"""Conversations, messages and the request-driven command flow.

``process_user_message`` is the heart of the application:

    user message persisted
      -> AI backend selected and called with non-secret site context
      -> site credential decrypted (failure recorded as actions_skipped)
      -> assistant message persisted (declared and rejected actions in metadata)
      -> declared actions executed serially against the attached site
"""

import json
import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from wpmanager.db.models import (
    Action,
    Conversation,
    Message,
    MessageRole,
    Site,
    utc_now_iso,
)
from wpmanager.errors import AccessDeniedError, NotFoundError, WPManagerError
from wpmanager.services.action_executor import ActionExecutor
from wpmanager.services.action_types import action_params_dict
from wpmanager.services.ai import AIConfigurationError, AIDispatcher, AIResponse, SiteContext
from wpmanager.services.api_key_service import ApiKeyService
from wpmanager.services.site_service import SiteService, ensure_user

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
_TITLE_LENGTH = 60


def message_metadata(message: Message) -> dict[str, Any]:
    return json.loads(message.metadata_json) if message.metadata_json else {}


def _title_from(content: str) -> str:
    first_line = content.strip().splitlines()[0] if content.strip() else ""
    if len(first_line) <= _TITLE_LENGTH:
        return first_line or DEFAULT_TITLE
    return first_line[: _TITLE_LENGTH - 3].rstrip() + "..."


class ConversationService:
    """Business logic for conversations and the command flow.

    Attributes:
        db: SQLAlchemy session for database operations.
        sites: Site service (ownership checks and credential access).
        dispatcher: AI backend dispatcher.
        executor: Action executor for declared actions.
        api_keys: Stored user keys, preferred over the server's AI keys.
    """

    def __init__(
        self,
        db: Session,
        sites: SiteService,
        dispatcher: AIDispatcher,
        executor: ActionExecutor,
        api_keys: ApiKeyService,
    ) -> None:
        self.db = db
        self.sites = sites
        self.dispatcher = dispatcher
        self.executor = executor
        self.api_keys = api_keys

    # =========================================================================
    # Conversation CRUD
    # =========================================================================

    def create_conversation(
        self, user_id: str, site_id: str | None = None, title: str | None = None
    ) -> Conversation:
        """Start a conversation, optionally bound to a site the user owns."""
        ensure_user(self.db, user_id)
        if site_id is not None:
            self.sites.get_site(user_id, site_id)
        now = utc_now_iso()
        conversation = Conversation(
            user_id=user_id,
            site_id=site_id,
            title=(title or "").strip() or DEFAULT_TITLE,
            created_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def list_conversations(self, user_id: str, site_id: str | None = None) -> list[Conversation]:
        query = self.db.query(Conversation).filter(Conversation.user_id == user_id)
        if site_id is not None:
            query = query.filter(Conversation.site_id == site_id)
        return query.order_by(Conversation.updated_at.desc()).all()

    def get_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        """Fetch a conversation the user owns.

        Raises:
            NotFoundError: If no such conversation exists.
            AccessDeniedError: If it belongs to another user.
        """
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        if conversation.user_id != user_id:
            raise AccessDeniedError("Conversation")
        return conversation

    def list_messages(self, conversation_id: str) -> list[Message]:
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.sequence)
            .all()
        )

    def save_message(
        self,
        conversation: Conversation,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Append a message at the next sequence position."""
        current_max = (
            self.db.query(func.max(Message.sequence))
            .filter(Message.conversation_id == conversation.id)
            .scalar()
        )
        now = utc_now_iso()
        message = Message(
            conversation_id=conversation.id,
            role=role.value,
            content=content,
            metadata_json=json.dumps(metadata, default=str) if metadata is not None else None,
            sequence=(current_max or 0) + 1,
            created_at=now,
        )
        self.db.add(message)
        conversation.updated_at = now
        self.db.commit()
        self.db.refresh(message)
        return message

    # =========================================================================
    # Command flow
    # =========================================================================

    async def process_user_message(
        self,
        conversation: Conversation,
        content: str,
        provider: str | None = None,
    ) -> tuple[Message, Message, list[Action]]:
        """Run one user command through the AI backend and the executor.

        Args:
            conversation: Conversation the message belongs to (ownership
                already checked by the caller).
            content: The user's message text.
            provider: Backend name, or None for the default selection.

        Returns:
            (user message, assistant message, executed actions)
        """
        is_first = not conversation.messages
        user_message = self.save_message(conversation, MessageRole.user, content)
        if is_first and conversation.title == DEFAULT_TITLE:
            conversation.title = _title_from(content)
            self.db.commit()

        site = self.db.get(Site, conversation.site_id) if conversation.site_id else None
        site_context = SiteContext.from_site(site) if site is not None else None

        try:
            backend = self.api_keys.ai_backend(self.dispatcher, conversation.user_id, provider)
        except AIConfigurationError as e:
            logger.warning("No AI backend for conversation %s: %s", conversation.id, e.message)
            ai_message = self.save_message(
                conversation,
                MessageRole.assistant,
                e.message,
                {"error": True, "error_code": e.error_code},
            )
            return user_message, ai_message, []

        response = await backend.process_command(content, site_context)
        metadata = self._assistant_metadata(response)
        secret: str | None = None
        if response.actions and site is None:
            metadata["actions_skipped"] = "No site is attached to this conversation."
        elif response.actions:
            try:
                secret = self.sites.decrypt_secret(site)
            except WPManagerError as e:
                metadata["actions_skipped"] = e.message
                metadata["error_code"] = e.code

        ai_message = self.save_message(
            conversation, MessageRole.assistant, response.content, metadata
        )

        actions: list[Action] = []
        if secret is not None:
            actions = await self.executor.execute_declared_actions(
                site, secret, ai_message.id, response.actions
            )
            logger.info(
                "Conversation %s: executed %d action(s) on site %s",
                conversation.id, len(actions), site.id,
            )
        return user_message, ai_message, actions

    @staticmethod
    def _assistant_metadata(response: AIResponse) -> dict[str, Any]:
        metadata = dict(response.metadata)
        metadata["actions"] = [
            {
                "type": action.type,
                "description": action.description,
                "params": action_params_dict(action),
            }
            for action in response.actions
        ]
        if response.rejected_actions:
            metadata["rejected_actions"] = [r.to_dict() for r in response.rejected_actions]
        return metadata
