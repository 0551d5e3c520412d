"""FastAPI routes exposing the background site monitor."""

from fastapi import APIRouter, Depends

from wpmanager.api.deps import get_current_user_id, get_services, get_site_service
from wpmanager.api.schemas import MonitoringStatusResponse
from wpmanager.errors import NotFoundError
from wpmanager.services.container import AppServices
from wpmanager.services.site_service import SiteService

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get("/status", response_model=MonitoringStatusResponse)
def monitoring_status(
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
) -> dict:
    return services.monitor.get_status()


@router.get("/site/{site_id}")
def site_health(
    site_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
    sites: SiteService = Depends(get_site_service),
) -> dict:
    """Latest health metrics the monitor recorded for a site."""
    site = sites.get_site(user_id, site_id)
    metrics = services.monitor.get_site_metrics(site.id)
    if metrics is None:
        raise NotFoundError("Health metrics", site.id)
    return metrics.to_dict()
