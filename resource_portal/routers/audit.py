from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import ENTITY_EMPLOYEE, ENTITY_TYPE_VALUES
from resource_portal.core.config import settings
from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.models.audit import ActivityTimeline
from resource_portal.rbac import require_admin, require_employee
from resource_portal.schemas.audit import AuditLogOut, TimelineEntryOut
from resource_portal.schemas.common import Pagination
from resource_portal.schemas.user import UserContext
from resource_portal.services.audit_service import list_audit_entries

router = APIRouter(tags=["audit"])


@router.get("/audit", response_model=dict)
async def list_audit(
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    actor_email: str | None = None,
    request_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    entries, total = await list_audit_entries(
        session,
        page=page,
        limit=limit,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_email=actor_email,
        request_id=request_id,
    )
    return {
        "entries": [AuditLogOut.model_validate(row) for row in entries],
        "pagination": Pagination.build(page=page, limit=limit, total_items=total),
    }


@router.get("/timeline/{entity_type}/{entity_id}", response_model=list[TimelineEntryOut])
async def entity_timeline(
    entity_type: str,
    entity_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    entity_type = entity_type.upper()
    if entity_type not in ENTITY_TYPE_VALUES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_entity_type")
    own_record = entity_type == ENTITY_EMPLOYEE and entity_id == str(user.employee_id)
    if not is_admin(user.roles) and not own_record:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")

    result = await session.execute(
        select(ActivityTimeline)
        .where(ActivityTimeline.entity_type == entity_type, ActivityTimeline.entity_id == entity_id)
        .order_by(ActivityTimeline.created_at.desc(), ActivityTimeline.activity_id.desc())
        .limit(limit)
    )
    return [TimelineEntryOut.model_validate(row) for row in result.scalars().all()]
