"""Append-only audit trail.

Snapshots are stored as JSON, so values are reduced to JSON types before
they reach the row. Updates usually pass ``changes_only=True`` so the entry
records just the fields that moved.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.models.audit import AuditLog
from resource_portal.request_context import RequestContext
from resource_portal.schemas.user import UserContext


def to_jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(item) for item in value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return value


def diff_snapshots(before: dict | None, after: dict | None) -> tuple[dict, dict]:
    """Reduce two snapshots to the keys whose values differ."""
    before = before or {}
    after = after or {}
    keys = [key for key in {**before, **after} if before.get(key) != after.get(key)]
    return (
        {key: before.get(key) for key in keys},
        {key: after.get(key) for key in keys},
    )


async def write_audit_log(
    session: AsyncSession,
    *,
    actor: UserContext | None,
    action: str,
    entity_type: str,
    entity_id: str,
    before: dict | None,
    after: dict | None,
    context: RequestContext | None,
    changes_only: bool = False,
) -> AuditLog:
    if changes_only and before is not None and after is not None:
        before, after = diff_snapshots(before, after)
    actor_email = actor.email if actor else None
    if actor_email is None and context is not None:
        actor_email = context.identity_email
    entry = AuditLog(
        actor_employee_id=actor.employee_id if actor else None,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=to_jsonable(before) if before is not None else None,
        after_json=to_jsonable(after) if after is not None else None,
        ip=context.ip if context else None,
        user_agent=context.user_agent if context else None,
        request_id=context.request_id if context else None,
    )
    session.add(entry)
    return entry


async def list_audit_entries(
    session: AsyncSession,
    *,
    page: int,
    limit: int,
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    actor_email: str | None = None,
    request_id: str | None = None,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type.upper())
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if action:
        stmt = stmt.where(AuditLog.action == action.upper())
    if actor_email:
        stmt = stmt.where(AuditLog.actor_email == actor_email.strip().lower())
    if request_id:
        stmt = stmt.where(AuditLog.request_id == request_id)
    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    result = await session.execute(
        stmt.order_by(AuditLog.created_at.desc(), AuditLog.audit_id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total
