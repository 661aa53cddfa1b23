"""st_wallet REST API — the caller's own wallet, plus an admin credit endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.database import get_db_session
from src.st_common.identity import WalletOwnerId
from src.st_common.response import ApiResponse, success_response
from src.st_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin
from src.st_wallet.application.schemas import CreditRequest, DebitRequest
from src.st_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletApplicationService()


@router.get("/balance")
async def get_wallet_info(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(10, ge=0, le=100, description="Recent transactions to include"),
) -> ApiResponse:
    data = await _service.get_wallet_info(db, WalletOwnerId(current_user.id), limit)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: str | None = Query(None, description="Filter by WalletTransactionType"),
) -> ApiResponse:
    data = await _service.list_transactions(
        db, WalletOwnerId(current_user.id), cursor, limit, type
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/check-balance")
async def check_balance(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    amount_cents: int = Query(..., gt=0),
) -> ApiResponse:
    data = await _service.check_balance(db, WalletOwnerId(current_user.id), amount_cents)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/deduct")
async def deduct_funds(
    body: DebitRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.debit_funds(
        db,
        WalletOwnerId(current_user.id),
        body.amount_cents,
        body.type,
        body.description,
        body.metadata,
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/add")
async def add_funds(
    body: CreditRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    metadata = {**body.metadata, "credited_by": admin.id}
    data = await _service.credit_funds(
        db,
        WalletOwnerId(body.owner_id),
        body.amount_cents,
        body.type,
        body.description,
        metadata,
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
