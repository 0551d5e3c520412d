"""FastAPI routes for the user's hosting provider accounts."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wpmanager.api.deps import get_current_user_id, get_services
from wpmanager.api.schemas import HostingAccountCreate, HostingAccountResponse
from wpmanager.db.connection import get_db
from wpmanager.services.container import AppServices
from wpmanager.services.hosting_account_service import (
    HostingAccountService,
    hosting_account_view,
)

router = APIRouter(prefix="/user/hosting-accounts", tags=["hosting-accounts"])


def get_hosting_account_service(
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> HostingAccountService:
    return HostingAccountService(db, services.codec)


@router.get("", response_model=list[HostingAccountResponse])
def list_hosting_accounts(
    user_id: str = Depends(get_current_user_id),
    accounts: HostingAccountService = Depends(get_hosting_account_service),
) -> list[dict]:
    return [hosting_account_view(row) for row in accounts.list_accounts(user_id)]


@router.post("", response_model=HostingAccountResponse, status_code=201)
def create_hosting_account(
    body: HostingAccountCreate,
    user_id: str = Depends(get_current_user_id),
    accounts: HostingAccountService = Depends(get_hosting_account_service),
) -> dict:
    row = accounts.create_account(
        user_id,
        provider=body.provider,
        account_name=body.account_name,
        credentials=body.credentials,
        server_url=body.server_url,
    )
    return hosting_account_view(row)


@router.delete("/{account_id}", status_code=204)
def delete_hosting_account(
    account_id: str,
    user_id: str = Depends(get_current_user_id),
    accounts: HostingAccountService = Depends(get_hosting_account_service),
) -> None:
    accounts.delete_account(user_id, account_id)
