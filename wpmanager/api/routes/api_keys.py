"""FastAPI routes for the user's stored third-party API keys."""

from fastapi import APIRouter, Depends

from wpmanager.api.deps import get_api_key_service, get_current_user_id
from wpmanager.api.schemas import ApiKeyCreate, ApiKeyResponse, ApiKeyUpdate
from wpmanager.services.api_key_service import ApiKeyService, api_key_view

router = APIRouter(prefix="/user/api-keys", tags=["api-keys"])


@router.get("", response_model=list[ApiKeyResponse])
def list_api_keys(
    user_id: str = Depends(get_current_user_id),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> list[dict]:
    return [api_key_view(row) for row in keys.list_keys(user_id)]


@router.post("", response_model=ApiKeyResponse, status_code=201)
def create_api_key(
    body: ApiKeyCreate,
    user_id: str = Depends(get_current_user_id),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> dict:
    row = keys.create_key(user_id, body.provider, body.key_name, body.api_key)
    return api_key_view(row)


@router.put("/{key_id}", response_model=ApiKeyResponse)
def update_api_key(
    key_id: str,
    body: ApiKeyUpdate,
    user_id: str = Depends(get_current_user_id),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> dict:
    row = keys.update_key(
        user_id,
        key_id,
        key_name=body.key_name,
        api_key=body.api_key,
        is_active=body.is_active,
    )
    return api_key_view(row)


@router.delete("/{key_id}", status_code=204)
def delete_api_key(
    key_id: str,
    user_id: str = Depends(get_current_user_id),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> None:
    keys.delete_key(user_id, key_id)
