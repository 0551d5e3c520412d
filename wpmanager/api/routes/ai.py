"""FastAPI routes for direct AI helper operations.

Backend selection errors surface as 400 with an E-1xxx error code (via
the application's exception handler); model failures degrade to the
backends' fallback values. The caller's stored API key for the chosen
backend is preferred over the server's.
"""

from fastapi import APIRouter, Depends

from wpmanager.api.deps import get_api_key_service, get_current_user_id, get_services
from wpmanager.api.schemas import (
    AnalyzeContentRequest,
    ContentAnalysisResponse,
    PluginRecommendationResponse,
    ProvidersResponse,
    RecommendPluginsRequest,
    RecommendThemesRequest,
    ThemeRecommendationResponse,
)
from wpmanager.services.api_key_service import ApiKeyService
from wpmanager.services.container import AppServices

router = APIRouter(prefix="/ai", tags=["ai"])


@router.get("/providers", response_model=ProvidersResponse)
def list_providers(services: AppServices = Depends(get_services)) -> ProvidersResponse:
    """Configured AI backends and the default selection."""
    dispatcher = services.dispatcher
    return ProvidersResponse(
        providers=dispatcher.available_providers(),
        default=dispatcher.default_provider,
    )


@router.post("/analyze-content", response_model=ContentAnalysisResponse)
async def analyze_content(
    body: AnalyzeContentRequest,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
    api_keys: ApiKeyService = Depends(get_api_key_service),
) -> ContentAnalysisResponse:
    provider = api_keys.ai_backend(services.dispatcher, user_id, body.provider)
    analysis = await provider.analyze_content(body.content)
    return ContentAnalysisResponse(**analysis.to_dict())


@router.post("/recommend-themes", response_model=list[ThemeRecommendationResponse])
async def recommend_themes(
    body: RecommendThemesRequest,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
    api_keys: ApiKeyService = Depends(get_api_key_service),
):
    provider = api_keys.ai_backend(services.dispatcher, user_id, body.provider)
    return await provider.recommend_themes(body.site_type, body.preferences)


@router.post("/recommend-plugins", response_model=list[PluginRecommendationResponse])
async def recommend_plugins(
    body: RecommendPluginsRequest,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
    api_keys: ApiKeyService = Depends(get_api_key_service),
):
    provider = api_keys.ai_backend(services.dispatcher, user_id, body.provider)
    return await provider.recommend_plugins(body.needs)
