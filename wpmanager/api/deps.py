"""FastAPI dependencies shared by the route modules."""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from wpmanager.db.connection import get_db
from wpmanager.services.action_executor import ActionExecutor
from wpmanager.services.activity_service import ActivityService
from wpmanager.services.api_key_service import ApiKeyService
from wpmanager.services.container import AppServices
from wpmanager.services.conversation_service import ConversationService
from wpmanager.services.site_service import SiteService


def get_services(request: Request) -> AppServices:
    """The process-wide service container built at startup."""
    return request.app.state.services


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity as established by the upstream authentication layer.

    Raises:
        HTTPException: 401 when the identity header is missing.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def get_site_service(
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> SiteService:
    return SiteService(db, services.codec, services.gateway, ActivityService(db))


def get_api_key_service(
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> ApiKeyService:
    return ApiKeyService(db, services.codec)


def get_conversation_service(
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
    sites: SiteService = Depends(get_site_service),
    api_keys: ApiKeyService = Depends(get_api_key_service),
) -> ConversationService:
    executor = ActionExecutor(db, services.gateway, sites.activity)
    return ConversationService(db, sites, services.dispatcher, executor, api_keys)
