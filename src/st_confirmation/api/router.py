"""st_confirmation REST API — handoff confirmation per leg and role, dispute reporting.

Buyer endpoints accept guests: without a token the caller is identified by
the `guest_email` in the body.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.database import get_db_session
from src.st_common.enums import ConfirmationLeg
from src.st_common.response import ApiResponse, success_response
from src.st_confirmation.application.schemas import (
    BuyerConfirmRequest,
    DisputeReportRequest,
    SellerConfirmRequest,
)
from src.st_confirmation.application.service import Caller, ConfirmationService
from src.st_gateway.auth.dependencies import (
    CurrentUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from src.st_scheduler.auto_complete import AutoCompletionSweeper

router = APIRouter(prefix="/confirmations", tags=["confirmations"])

_service = ConfirmationService()


def _caller(user: CurrentUser | None, guest_email: str | None = None) -> Caller:
    if user is None:
        return Caller(email=guest_email)
    return Caller(user_id=user.id, email=user.email or guest_email, is_admin=user.is_admin)


@router.post("/{leg}/artisan/{order_id}")
async def confirm_by_seller(
    leg: ConfirmationLeg,
    order_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: SellerConfirmRequest | None = None,
) -> ApiResponse:
    body = body or SellerConfirmRequest()
    data = await _service.confirm_seller(
        db, order_id, current_user.id, leg, body.notes, body.delivery_proof
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{leg}/buyer/{order_id}")
async def confirm_by_buyer(
    leg: ConfirmationLeg,
    order_id: str,
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: BuyerConfirmRequest | None = None,
) -> ApiResponse:
    body = body or BuyerConfirmRequest()
    data = await _service.confirm_buyer(
        db, order_id, _caller(current_user, body.guest_email), leg, body.notes
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/dispute/{order_id}")
async def report_dispute(
    order_id: str,
    body: DisputeReportRequest,
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.report_dispute(
        db,
        order_id,
        _caller(current_user, body.guest_email),
        body.dispute_type,
        body.reason,
        body.details,
        [item.model_dump() for item in body.evidence],
        body.reported_by,
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/status/{order_id}")
async def get_confirmation_status(
    order_id: str,
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    guest_email: str | None = None,
) -> ApiResponse:
    data = await _service.get_confirmation_status(
        db, order_id, _caller(current_user, guest_email)
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/auto-complete")
async def run_auto_completion(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    result = await AutoCompletionSweeper().sweep()
    return success_response(result.as_dict(), getattr(request.state, "request_id", None))
