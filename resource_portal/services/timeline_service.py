from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.models.audit import ActivityTimeline
from resource_portal.schemas.user import UserContext


async def log_timeline_activity(
    session: AsyncSession,
    *,
    actor: UserContext | None,
    entity_type: str,
    entity_id: int | str,
    activity_type: str,
    title: str,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
    resource_id: int | None = None,
    employee_id: int | None = None,
    workflow_id: int | None = None,
) -> ActivityTimeline:
    entry = ActivityTimeline(
        entity_type=entity_type,
        entity_id=str(entity_id),
        activity_type=activity_type,
        title=title[:512],
        description=description,
        metadata_json=metadata,
        performed_by_id=actor.employee_id if actor else None,
        performed_by_email=actor.email if actor else None,
        resource_id=resource_id,
        employee_id=employee_id,
        workflow_id=workflow_id,
    )
    session.add(entry)
    return entry
