"""FastAPI routes for conversations and the command flow.

``POST /conversations/{id}/messages`` runs the whole request path: the
user message is stored, the AI backend replies, and any declared actions
run against the conversation's site before the response is returned.
"""

from fastapi import APIRouter, Depends

from wpmanager.api.deps import get_conversation_service, get_current_user_id
from wpmanager.api.schemas import (
    ActionResponse,
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    SendMessageResponse,
)
from wpmanager.db.models import Conversation, Message
from wpmanager.services.conversation_service import ConversationService

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
def list_conversations(
    site_id: str | None = None,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationService = Depends(get_conversation_service),
) -> list[Conversation]:
    return conversations.list_conversations(user_id, site_id=site_id)


@router.post("", response_model=ConversationResponse, status_code=201)
def create_conversation(
    body: ConversationCreate,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    return conversations.create_conversation(user_id, site_id=body.site_id, title=body.title)


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
def list_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationService = Depends(get_conversation_service),
) -> list[Message]:
    conversation = conversations.get_conversation(user_id, conversation_id)
    return conversations.list_messages(conversation.id)


@router.post("/{conversation_id}/messages", response_model=SendMessageResponse)
async def send_message(
    conversation_id: str,
    body: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationService = Depends(get_conversation_service),
) -> SendMessageResponse:
    """Send a user message and return both messages plus executed actions."""
    conversation = conversations.get_conversation(user_id, conversation_id)
    user_message, ai_message, actions = await conversations.process_user_message(
        conversation, body.content, provider=body.provider
    )
    return SendMessageResponse(
        user_message=MessageResponse.model_validate(user_message),
        ai_message=MessageResponse.model_validate(ai_message),
        actions=[ActionResponse.model_validate(a) for a in actions],
    )
