"""FastAPI routes for connected WordPress sites.

Connecting a site runs a live connection test first; a failed test
returns 400 with the gateway's error and nothing is saved. Responses
never include the stored credential.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from wpmanager.api.deps import get_current_user_id, get_site_service
from wpmanager.api.schemas import (
    ActionResponse,
    ActivityResponse,
    SiteCreate,
    SiteResponse,
    SiteStatusResponse,
)
from wpmanager.db.connection import get_db
from wpmanager.db.models import Action, Site
from wpmanager.services.site_service import SiteConnectionError, SiteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sites", tags=["sites"])


@router.get("", response_model=list[SiteResponse])
def list_sites(
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> list[Site]:
    return sites.list_sites(user_id)


@router.post("", response_model=SiteResponse, status_code=201)
async def create_site(
    body: SiteCreate,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
):
    """Connect a WordPress site after a successful live connection test."""
    try:
        return await sites.create_site(
            user_id=user_id,
            name=body.name,
            url=body.url,
            username=body.username,
            secret=body.password,
            auth_method=body.auth_method,
        )
    except SiteConnectionError as e:
        return JSONResponse(
            status_code=400,
            content={
                "message": "Failed to connect to WordPress site",
                "error": e.result.error,
                "error_kind": e.result.error_kind,
            },
        )


@router.get("/{site_id}", response_model=SiteResponse)
def get_site(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> Site:
    return sites.get_site(user_id, site_id)


@router.delete("/{site_id}", status_code=204)
def delete_site(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> None:
    """Delete a site together with its conversations, actions and activity."""
    sites.delete_site(user_id, site_id)


@router.get("/{site_id}/activities", response_model=list[ActivityResponse])
def list_activities(
    site_id: str,
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
):
    site = sites.get_site(user_id, site_id)
    return sites.activity.list_for_site(site.id, limit=limit)


@router.post("/{site_id}/check-status", response_model=SiteStatusResponse)
async def check_status(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> SiteStatusResponse:
    """Probe the site now and refresh its cached metadata."""
    site, status = await sites.check_status(user_id, site_id)
    return SiteStatusResponse(site=SiteResponse.model_validate(site), status=status.to_dict())


@router.get("/{site_id}/actions", response_model=list[ActionResponse])
def list_actions(
    site_id: str,
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
    db: Session = Depends(get_db),
) -> list[Action]:
    site = sites.get_site(user_id, site_id)
    return (
        db.query(Action)
        .filter(Action.site_id == site.id)
        .order_by(Action.created_at.desc(), Action.sequence.desc())
        .limit(limit)
        .all()
    )


@router.get("/{site_id}/posts")
async def list_posts(
    site_id: str,
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> list:
    site = sites.get_site(user_id, site_id)
    return await sites.gateway.list_posts(sites.target_for(site), limit=limit)


@router.get("/{site_id}/plugins")
async def list_plugins(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> list:
    site = sites.get_site(user_id, site_id)
    return await sites.gateway.list_plugins(sites.target_for(site))


@router.get("/{site_id}/themes")
async def list_themes(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    sites: SiteService = Depends(get_site_service),
) -> list:
    site = sites.get_site(user_id, site_id)
    return await sites.gateway.list_themes(sites.target_for(site))
