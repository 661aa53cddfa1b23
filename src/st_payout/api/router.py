"""st_payout REST API — the caller's own payouts, plus admin batch triggers."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.database import get_db_session
from src.st_common.identity import WalletOwnerId
from src.st_common.response import ApiResponse, success_response
from src.st_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin
from src.st_payout.application.schemas import (
    PayoutRequest,
    PayoutSettingsRequest,
    SetupAccountRequest,
)
from src.st_payout.application.service import PayoutService

router = APIRouter(prefix="/payouts", tags=["payouts"])

_service = PayoutService()


@router.get("/status")
async def get_payout_status(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_payout_status(db, WalletOwnerId(current_user.id))
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/setup")
async def setup_account(
    body: SetupAccountRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    identity = body.model_dump()
    identity["email"] = identity["email"] or current_user.email
    data = await _service.setup_account(db, WalletOwnerId(current_user.id), identity)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/request")
async def request_payout(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: PayoutRequest | None = None,
) -> ApiResponse:
    body = body or PayoutRequest()
    data = await _service.process_payout(db, WalletOwnerId(current_user.id), body.amount_cents)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.put("/settings")
async def update_payout_settings(
    body: PayoutSettingsRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_payout_settings(
        db,
        WalletOwnerId(current_user.id),
        body.enabled,
        body.schedule.value if body.schedule else None,
        body.minimum_payout_cents,
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/history")
async def get_payout_history(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _service.get_payout_history(db, WalletOwnerId(current_user.id), limit, offset)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/process-automatic")
async def process_scheduled_payouts(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    data = await _service.process_scheduled_payouts()
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/reconcile")
async def reconcile_payouts(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    data = await _service.reconcile_submitted()
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
