"""DisputeRepository — raw SQL over `order_disputes` (one row per order).

Status changes and resolutions are conditional UPDATE ... RETURNING statements;
0 rows means a concurrent admin action won and the service reports the conflict.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_dispute.domain.models import Dispute, DisputeFilters, DisputeStatistics, NewDispute

_DISPUTE_COLUMNS = """
    order_id, is_disputed, dispute_type, reason, details, reported_by, reporter_id,
    reported_at, status, resolution, admin_notes, resolution_notes, resolved_at,
    resolved_by, evidence, created_at, updated_at
"""

_GET_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM order_disputes WHERE order_id = :order_id")

_GET_FOR_UPDATE_SQL = text(
    f"SELECT {_DISPUTE_COLUMNS} FROM order_disputes WHERE order_id = :order_id FOR UPDATE"
)

_OPEN_SQL = text(f"""
    INSERT INTO order_disputes
        (order_id, is_disputed, dispute_type, reason, details,
         reported_by, reporter_id, reported_at, status, evidence)
    VALUES
        (:order_id, TRUE, :dispute_type, :reason, :details,
         :reported_by, :reporter_id, NOW(), 'open', CAST(:evidence AS JSONB))
    ON CONFLICT (order_id) DO NOTHING
    RETURNING {_DISPUTE_COLUMNS}
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE order_disputes
    SET status = :status,
        admin_notes = COALESCE(:admin_notes, admin_notes),
        resolved_at = CASE WHEN CAST(:resolved_by AS VARCHAR) IS NULL
                           THEN resolved_at ELSE NOW() END,
        resolved_by = COALESCE(:resolved_by, resolved_by),
        updated_at = NOW()
    WHERE order_id = :order_id AND status = :expected_status
    RETURNING {_DISPUTE_COLUMNS}
""")

_RESOLVE_SQL = text(f"""
    UPDATE order_disputes
    SET resolution = :resolution,
        status = 'resolved',
        resolution_notes = :notes,
        resolved_at = NOW(),
        resolved_by = :admin_id,
        is_disputed = CASE WHEN :release_hold THEN FALSE ELSE is_disputed END,
        updated_at = NOW()
    WHERE order_id = :order_id AND resolution IS NULL
    RETURNING {_DISPUTE_COLUMNS}
""")

_ADD_EVIDENCE_SQL = text(f"""
    UPDATE order_disputes
    SET evidence = evidence || CAST(:evidence AS JSONB),
        updated_at = NOW()
    WHERE order_id = :order_id
    RETURNING {_DISPUTE_COLUMNS}
""")

_FILTER_CLAUSE = """
    WHERE (CAST(:status AS VARCHAR) IS NULL OR status = :status)
      AND (CAST(:dispute_type AS VARCHAR) IS NULL OR dispute_type = :dispute_type)
      AND (CAST(:reported_by AS VARCHAR) IS NULL OR reported_by = :reported_by)
      AND (CAST(:date_from AS TIMESTAMPTZ) IS NULL OR reported_at >= :date_from)
      AND (CAST(:date_to AS TIMESTAMPTZ) IS NULL OR reported_at <= :date_to)
"""

_COUNT_SQL = text(f"SELECT COUNT(*) AS total FROM order_disputes {_FILTER_CLAUSE}")

# Whitelisted ORDER BY targets; the sort key never reaches SQL as user text.
_SORT_COLUMNS = {
    "reported_at": "reported_at",
    "resolved_at": "resolved_at",
    "status": "status",
    "updated_at": "updated_at",
}

_STATS_TOTALS_SQL = text("""
    SELECT COUNT(*) AS total,
           COUNT(*) FILTER (WHERE is_disputed) AS active,
           AVG(EXTRACT(EPOCH FROM (resolved_at - reported_at)) / 86400.0)
               FILTER (WHERE resolved_at IS NOT NULL) AS avg_resolution_days
    FROM order_disputes
    WHERE reported_at >= :since
""")

_STATS_GROUPED_SQL = {
    column: text(f"""
        SELECT {column} AS key, COUNT(*) AS n
        FROM order_disputes
        WHERE reported_at >= :since AND {column} IS NOT NULL
        GROUP BY {column}
    """)
    for column in ("status", "dispute_type", "reported_by", "resolution")
}


def _load_json_list(value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return list(json.loads(value))
    return list(value)


def _row_to_dispute(row: Any) -> Dispute:
    return Dispute(
        order_id=row.order_id,
        is_disputed=row.is_disputed,
        dispute_type=row.dispute_type,
        reason=row.reason,
        details=row.details,
        reported_by=row.reported_by,
        reporter_id=row.reporter_id,
        reported_at=row.reported_at,
        status=row.status,
        resolution=row.resolution,
        admin_notes=row.admin_notes,
        resolution_notes=row.resolution_notes,
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
        evidence=_load_json_list(row.evidence),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _filter_params(filters: DisputeFilters) -> dict[str, Any]:
    return {
        "status": filters.status,
        "dispute_type": filters.dispute_type,
        "reported_by": filters.reported_by,
        "date_from": filters.date_from,
        "date_to": filters.date_to,
    }


class DisputeRepository:
    async def get(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Dispute | None:
        sql = _GET_FOR_UPDATE_SQL if for_update else _GET_SQL
        row = (await db.execute(sql, {"order_id": order_id})).fetchone()
        return _row_to_dispute(row) if row is not None else None

    async def open_dispute(self, db: AsyncSession, new: NewDispute) -> Dispute | None:
        row = (
            await db.execute(
                _OPEN_SQL,
                {
                    "order_id": new.order_id,
                    "dispute_type": new.dispute_type,
                    "reason": new.reason,
                    "details": new.details,
                    "reported_by": new.reported_by,
                    "reporter_id": new.reporter_id,
                    "evidence": json.dumps(new.evidence, default=str),
                },
            )
        ).fetchone()
        return _row_to_dispute(row) if row is not None else None

    async def update_status(
        self,
        db: AsyncSession,
        order_id: str,
        expected_status: str,
        status: str,
        admin_notes: str | None,
        resolved_by: str | None,
    ) -> Dispute | None:
        row = (
            await db.execute(
                _UPDATE_STATUS_SQL,
                {
                    "order_id": order_id,
                    "expected_status": expected_status,
                    "status": status,
                    "admin_notes": admin_notes,
                    "resolved_by": resolved_by,
                },
            )
        ).fetchone()
        return _row_to_dispute(row) if row is not None else None

    async def resolve(
        self,
        db: AsyncSession,
        order_id: str,
        resolution: str,
        notes: str | None,
        admin_id: str,
        release_hold: bool,
    ) -> Dispute | None:
        row = (
            await db.execute(
                _RESOLVE_SQL,
                {
                    "order_id": order_id,
                    "resolution": resolution,
                    "notes": notes,
                    "admin_id": admin_id,
                    "release_hold": release_hold,
                },
            )
        ).fetchone()
        return _row_to_dispute(row) if row is not None else None

    async def add_evidence(
        self, db: AsyncSession, order_id: str, evidence: dict[str, Any]
    ) -> Dispute | None:
        row = (
            await db.execute(
                _ADD_EVIDENCE_SQL,
                {"order_id": order_id, "evidence": json.dumps([evidence], default=str)},
            )
        ).fetchone()
        return _row_to_dispute(row) if row is not None else None

    async def list_disputes(
        self,
        db: AsyncSession,
        filters: DisputeFilters,
        offset: int,
        limit: int,
        sort_by: str,
        descending: bool,
    ) -> tuple[list[Dispute], int]:
        column = _SORT_COLUMNS.get(sort_by, "reported_at")
        direction = "DESC" if descending else "ASC"
        list_sql = text(f"""
            SELECT {_DISPUTE_COLUMNS}
            FROM order_disputes
            {_FILTER_CLAUSE}
            ORDER BY {column} {direction} NULLS LAST, order_id
            OFFSET :offset
            LIMIT :limit
        """)
        params = _filter_params(filters)
        rows = (
            await db.execute(list_sql, {**params, "offset": offset, "limit": limit})
        ).fetchall()
        total = (await db.execute(_COUNT_SQL, params)).scalar_one()
        return [_row_to_dispute(r) for r in rows], int(total)

    async def statistics(
        self, db: AsyncSession, since: datetime, period_days: int
    ) -> DisputeStatistics:
        totals = (await db.execute(_STATS_TOTALS_SQL, {"since": since})).fetchone()
        grouped: dict[str, dict[str, int]] = {}
        for column, sql in _STATS_GROUPED_SQL.items():
            rows = (await db.execute(sql, {"since": since})).fetchall()
            grouped[column] = {r.key: int(r.n) for r in rows}
        avg_days = totals.avg_resolution_days if totals is not None else None
        return DisputeStatistics(
            period_days=period_days,
            total=int(totals.total) if totals is not None else 0,
            active=int(totals.active) if totals is not None else 0,
            by_status=grouped["status"],
            by_type=grouped["dispute_type"],
            by_reporter=grouped["reported_by"],
            by_resolution=grouped["resolution"],
            average_resolution_days=round(float(avg_days), 2) if avg_days is not None else None,
        )
