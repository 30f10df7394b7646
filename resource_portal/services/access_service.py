from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import (
    ACCESS_STATUS_APPROVED,
    ACCESS_STATUS_GRANTED,
    ACCESS_STATUS_REQUESTED,
    ACCESS_STATUS_REVOKED,
    ACTIVITY_ACCESS_REQUESTED,
    ACTIVITY_ACCESS_REVOKED,
    ASSIGNMENT_STATUS_ACTIVE,
    EMPLOYEE_STATUS_ACTIVE,
    ENTITY_ACCESS,
    WORKFLOW_TYPE_ACCESS_REQUEST,
)
from resource_portal.models.employee import Employee
from resource_portal.models.resource import ResourceAssignment
from resource_portal.models.workflow import AccessRequest, ApprovalWorkflow
from resource_portal.request_context import RequestContext
from resource_portal.schemas.user import UserContext
from resource_portal.schemas.workflow import AccessRequestCreate
from resource_portal.services.assignment_service import revoke_assignment
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.resource_service import get_resource_or_404
from resource_portal.services.timeline_service import log_timeline_activity
from resource_portal.services.workflow_service import create_workflow, resolve_approver

logger = logging.getLogger("portal.access")


def _snapshot(access: AccessRequest) -> dict:
    return {
        "employee_id": access.employee_id,
        "resource_id": access.resource_id,
        "hardware_request": access.hardware_request,
        "permission_level": access.permission_level,
        "status": access.status,
        "approver_id": access.approver_id,
    }


async def get_access_or_404(session: AsyncSession, access_id: int) -> AccessRequest:
    access = (
        await session.execute(select(AccessRequest).where(AccessRequest.access_id == access_id))
    ).scalars().one_or_none()
    if not access:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="access_request_not_found")
    return access


async def create_access_request(
    session: AsyncSession,
    payload: AccessRequestCreate,
    *,
    employee_id: int,
    actor: UserContext,
    context: RequestContext | None,
) -> tuple[AccessRequest, ApprovalWorkflow]:
    employee = (
        await session.execute(select(Employee).where(Employee.employee_id == employee_id))
    ).scalars().one_or_none()
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="employee_not_found")
    if employee.status != EMPLOYEE_STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="employee_not_active")

    resource = None
    if payload.resource_id is not None:
        resource = await get_resource_or_404(session, payload.resource_id)

    approver = await resolve_approver(session, employee, payload.approver_id)

    access = AccessRequest(
        employee_id=employee.employee_id,
        resource_id=resource.resource_id if resource else None,
        hardware_request=payload.hardware_request,
        permission_level=payload.permission_level,
        justification=payload.justification,
        status=ACCESS_STATUS_REQUESTED,
        approver_id=approver.employee_id,
    )
    session.add(access)
    await session.flush()

    if resource and payload.hardware_request:
        resource_type = "MIXED"
    elif resource:
        resource_type = resource.type
    else:
        resource_type = "HARDWARE"
    workflow = await create_workflow(
        session,
        workflow_type=WORKFLOW_TYPE_ACCESS_REQUEST,
        requester=employee,
        approver=approver,
        data={
            "access_request_id": access.access_id,
            "resource_id": access.resource_id,
            "resource_name": resource.name if resource else payload.hardware_request,
            "resource_type": resource_type,
            "hardware_request": payload.hardware_request,
            "permission_level": payload.permission_level,
            "justification": payload.justification,
        },
        comments=payload.justification,
        actor=actor,
        context=context,
        access_request_id=access.access_id,
    )

    await write_audit_log(
        session,
        actor=actor,
        action="ACCESS_REQUEST_CREATE",
        entity_type=ENTITY_ACCESS,
        entity_id=str(access.access_id),
        before=None,
        after={**_snapshot(access), "workflow_id": workflow.workflow_id},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_ACCESS,
        entity_id=access.access_id,
        activity_type=ACTIVITY_ACCESS_REQUESTED,
        title=f"{employee.name} requested {resource.name if resource else payload.hardware_request}",
        description=payload.justification,
        metadata={"permission_level": access.permission_level, "approver_id": approver.employee_id},
        resource_id=access.resource_id,
        employee_id=employee.employee_id,
        workflow_id=workflow.workflow_id,
    )
    logger.info(
        "access_requested",
        extra={"access_id": access.access_id, "employee_id": employee.employee_id, "approver_id": approver.employee_id},
    )
    return access, workflow


async def list_access_requests(
    session: AsyncSession,
    *,
    access_status: str | None = None,
    employee_id: int | None = None,
    visible_to: int | None = None,
) -> list[AccessRequest]:
    stmt = select(AccessRequest)
    if access_status:
        stmt = stmt.where(AccessRequest.status == access_status.upper())
    if employee_id is not None:
        stmt = stmt.where(AccessRequest.employee_id == employee_id)
    if visible_to is not None:
        stmt = stmt.where(or_(AccessRequest.employee_id == visible_to, AccessRequest.approver_id == visible_to))
    result = await session.execute(stmt.order_by(AccessRequest.requested_at.desc(), AccessRequest.access_id.desc()))
    return list(result.scalars().all())


async def delete_access_request(
    session: AsyncSession,
    access: AccessRequest,
    *,
    actor: UserContext,
    is_admin: bool,
    context: RequestContext | None,
) -> None:
    if not is_admin and access.employee_id != actor.employee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    if access.status != ACCESS_STATUS_REQUESTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="access_request_not_pending")

    await write_audit_log(
        session,
        actor=actor,
        action="ACCESS_REQUEST_DELETE",
        entity_type=ENTITY_ACCESS,
        entity_id=str(access.access_id),
        before=_snapshot(access),
        after=None,
        context=context,
    )
    await session.execute(delete(ApprovalWorkflow).where(ApprovalWorkflow.access_request_id == access.access_id))
    await session.delete(access)


async def revoke_access(
    session: AsyncSession,
    access: AccessRequest,
    reason: str | None,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> list[int]:
    if access.status not in (ACCESS_STATUS_APPROVED, ACCESS_STATUS_GRANTED):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="access_not_revocable")

    before = _snapshot(access)
    assignments = (
        await session.execute(
            select(ResourceAssignment).where(
                ResourceAssignment.access_request_id == access.access_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            )
        )
    ).scalars().all()
    revoked_ids: list[int] = []
    for assignment in assignments:
        await revoke_assignment(session, assignment, reason, actor=actor, context=context)
        revoked_ids.append(assignment.assignment_id)

    access.status = ACCESS_STATUS_REVOKED
    access.revoked_at = datetime.utcnow()
    session.add(access)

    await write_audit_log(
        session,
        actor=actor,
        action="ACCESS_REVOKE",
        entity_type=ENTITY_ACCESS,
        entity_id=str(access.access_id),
        before=before,
        after={**_snapshot(access), "revoked_assignment_ids": revoked_ids},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_ACCESS,
        entity_id=access.access_id,
        activity_type=ACTIVITY_ACCESS_REVOKED,
        title="Access revoked",
        description=reason,
        metadata={"revoked_assignment_ids": revoked_ids},
        resource_id=access.resource_id,
        employee_id=access.employee_id,
    )
    logger.info("access_revoked", extra={"access_id": access.access_id, "assignments": len(revoked_ids)})
    return revoked_ids
