"""Admin REST API — ledger verification, wallet activation, outbox dispatch."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_admin.application.schemas import WalletActivationRequest
from src.st_admin.application.service import AdminService
from src.st_common.database import get_db_session
from src.st_common.identity import WalletOwnerId
from src.st_common.response import ApiResponse, success_response
from src.st_gateway.auth.dependencies import CurrentUser, require_admin

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.get("/ledger/verify")
async def verify_ledgers(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    owner_id: str | None = Query(None, description="Limit the check to one wallet"),
) -> ApiResponse:
    data = await _service.verify_ledgers(db, owner_id)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/wallets/{owner_id}/deactivate")
async def deactivate_wallet(
    owner_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: WalletActivationRequest | None = None,
) -> ApiResponse:
    reason = body.reason if body else None
    data = await _service.set_wallet_active(db, WalletOwnerId(owner_id), False, admin.id, reason)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/wallets/{owner_id}/activate")
async def activate_wallet(
    owner_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: WalletActivationRequest | None = None,
) -> ApiResponse:
    reason = body.reason if body else None
    data = await _service.set_wallet_active(db, WalletOwnerId(owner_id), True, admin.id, reason)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/notifications/dispatch")
async def dispatch_notifications(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    data = await _service.dispatch_notifications()
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
