"""st_dispute admin REST API — every endpoint requires the admin role."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.database import get_db_session
from src.st_common.response import ApiResponse, success_response
from src.st_dispute.application.schemas import (
    AddEvidenceRequest,
    DisputeListQuery,
    ResolveRequest,
    UpdateStatusRequest,
)
from src.st_dispute.application.service import DisputeService
from src.st_gateway.auth.dependencies import CurrentUser, require_admin

router = APIRouter(prefix="/admin/disputes", tags=["disputes"])

_service = DisputeService()


@router.get("")
async def list_disputes(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    query: Annotated[DisputeListQuery, Depends()],
) -> ApiResponse:
    data = await _service.get_disputes(db, query)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/stats/overview")
async def dispute_statistics(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    period_days: int = Query(30, ge=1, le=365),
) -> ApiResponse:
    data = await _service.get_dispute_statistics(db, period_days)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/{order_id}")
async def get_dispute(
    order_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_dispute_details(db, order_id)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.put("/{order_id}/status")
async def update_dispute_status(
    order_id: str,
    body: UpdateStatusRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_status(db, order_id, admin.id, body.status.value, body.notes)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{order_id}/resolve")
async def resolve_dispute(
    order_id: str,
    body: ResolveRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.resolve(db, order_id, admin.id, body.resolution, body.notes)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{order_id}/evidence")
async def add_evidence(
    order_id: str,
    body: AddEvidenceRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.add_evidence(
        db, order_id, admin.id, body.type, body.url, body.description
    )
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
