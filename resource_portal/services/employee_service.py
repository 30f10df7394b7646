from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import (
    ACCESS_STATUS_APPROVED,
    ACCESS_STATUS_REQUESTED,
    ACTIVITY_CREATED,
    ACTIVITY_DELETED,
    ACTIVITY_REASSIGNED,
    ACTIVITY_UPDATED,
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_RETURNED,
    EMPLOYEE_STATUS_ACTIVE,
    ENTITY_EMPLOYEE,
    ENTITY_RESOURCE,
    RESOURCE_TYPE_PHYSICAL,
    WORKFLOW_STATUS_PENDING,
)
from resource_portal.core.assignment_machine import append_note
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource, ResourceAssignment
from resource_portal.models.workflow import AccessRequest, ApprovalWorkflow
from resource_portal.request_context import RequestContext
from resource_portal.schemas.employee import (
    EmployeeCreate,
    EmployeeDependencies,
    EmployeeReassignResult,
    EmployeeUpdate,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services.assignment_service import transition_assignment
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.resource_service import get_resource_or_404
from resource_portal.services.timeline_service import log_timeline_activity

logger = logging.getLogger("portal.employees")

SELF_SERVICE_FIELDS = {"phone", "address"}


def _snapshot(employee: Employee) -> dict[str, Any]:
    return {
        "name": employee.name,
        "email": employee.email,
        "role": employee.role,
        "department": employee.department,
        "manager_id": employee.manager_id,
        "status": employee.status,
        "phone": employee.phone,
        "address": employee.address,
    }


async def get_employee_or_404(session: AsyncSession, employee_id: int) -> Employee:
    employee = (
        await session.execute(select(Employee).where(Employee.employee_id == employee_id))
    ).scalars().one_or_none()
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="employee_not_found")
    return employee


async def _email_taken(session: AsyncSession, email: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(Employee.employee_id).where(Employee.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Employee.employee_id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar() is not None


async def create_employee(
    session: AsyncSession,
    payload: EmployeeCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> Employee:
    email = str(payload.email).strip().lower()
    if await _email_taken(session, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="email_exists")
    if payload.manager_id is not None:
        await _manager_or_400(session, payload.manager_id)

    employee = Employee(**payload.model_dump(exclude={"email"}), email=email)
    employee.name = employee.name.strip()
    session.add(employee)
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        action="EMPLOYEE_CREATE",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=str(employee.employee_id),
        before=None,
        after=_snapshot(employee),
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_EMPLOYEE,
        entity_id=employee.employee_id,
        activity_type=ACTIVITY_CREATED,
        title=f"Employee {employee.name} added",
        metadata={"role": employee.role, "department": employee.department},
        employee_id=employee.employee_id,
    )
    logger.info("employee_created", extra={"employee_id": employee.employee_id, "actor": actor.email})
    return employee


async def _manager_or_400(session: AsyncSession, manager_id: int) -> Employee:
    manager = (
        await session.execute(select(Employee).where(Employee.employee_id == manager_id))
    ).scalars().one_or_none()
    if not manager:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="manager_not_found")
    return manager


async def list_employees(
    session: AsyncSession,
    *,
    page: int,
    limit: int,
    department: str | None = None,
    employee_status: str | None = None,
    role: str | None = None,
    search: str | None = None,
) -> tuple[list[Employee], int]:
    stmt = select(Employee)
    if department:
        stmt = stmt.where(Employee.department == department)
    if employee_status:
        stmt = stmt.where(Employee.status == employee_status.upper())
    if role:
        stmt = stmt.where(Employee.role == role.upper())
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(Employee.name).like(pattern), Employee.email.like(pattern)))

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    result = await session.execute(
        stmt.order_by(Employee.name.asc(), Employee.employee_id.asc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_employee(
    session: AsyncSession,
    employee: Employee,
    payload: EmployeeUpdate,
    *,
    actor: UserContext,
    is_admin: bool,
    context: RequestContext | None,
) -> Employee:
    data = payload.model_dump(exclude_unset=True)
    if not is_admin and set(data) - SELF_SERVICE_FIELDS:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")

    if "email" in data and data["email"] is not None:
        data["email"] = str(data["email"]).strip().lower()
        if await _email_taken(session, data["email"], exclude_id=employee.employee_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="email_exists")
    if data.get("manager_id") is not None:
        if data["manager_id"] == employee.employee_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="self_manager")
        await _manager_or_400(session, data["manager_id"])

    before_all = _snapshot(employee)
    for key, value in data.items():
        setattr(employee, key, value)
    session.add(employee)

    after_all = _snapshot(employee)
    changed = [key for key in after_all if after_all[key] != before_all[key]]
    await write_audit_log(
        session,
        actor=actor,
        action="EMPLOYEE_UPDATE",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=str(employee.employee_id),
        before=before_all,
        after=after_all,
        context=context,
        changes_only=True,
    )
    if changed:
        await log_timeline_activity(
            session,
            actor=actor,
            entity_type=ENTITY_EMPLOYEE,
            entity_id=employee.employee_id,
            activity_type=ACTIVITY_UPDATED,
            title=f"Employee {employee.name} updated",
            metadata={"fields": changed},
            employee_id=employee.employee_id,
        )
    return employee


async def _count(session: AsyncSession, stmt) -> int:
    return (await session.execute(stmt)).scalar() or 0


async def employee_dependencies(session: AsyncSession, employee_id: int) -> EmployeeDependencies:
    return EmployeeDependencies(
        employee_id=employee_id,
        active_assignments=await _count(
            session,
            select(func.count(ResourceAssignment.assignment_id)).where(
                ResourceAssignment.employee_id == employee_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            ),
        ),
        custodian_of_resources=await _count(
            session,
            select(func.count(Resource.resource_id)).where(Resource.custodian_id == employee_id),
        ),
        open_access_requests=await _count(
            session,
            select(func.count(AccessRequest.access_id)).where(
                AccessRequest.employee_id == employee_id,
                AccessRequest.status.in_([ACCESS_STATUS_REQUESTED, ACCESS_STATUS_APPROVED]),
            ),
        ),
        pending_approvals=await _count(
            session,
            select(func.count(ApprovalWorkflow.workflow_id)).where(
                ApprovalWorkflow.approver_id == employee_id,
                ApprovalWorkflow.status == WORKFLOW_STATUS_PENDING,
            ),
        ),
    )


async def delete_employee(
    session: AsyncSession,
    employee: Employee,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    dependencies = await employee_dependencies(session, employee.employee_id)
    if dependencies.has_dependencies:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "employee_has_dependencies", "dependencies": dependencies.model_dump()},
        )

    await write_audit_log(
        session,
        actor=actor,
        action="EMPLOYEE_DELETE",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=str(employee.employee_id),
        before=_snapshot(employee),
        after=None,
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_EMPLOYEE,
        entity_id=employee.employee_id,
        activity_type=ACTIVITY_DELETED,
        title=f"Employee {employee.name} removed",
    )
    await session.delete(employee)
    logger.info("employee_deleted", extra={"employee_id": employee.employee_id, "actor": actor.email})


async def reassign_employee(
    session: AsyncSession,
    source: Employee,
    target: Employee,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> EmployeeReassignResult:
    """Hand everything a leaver holds or looks after to a colleague.

    Custodianship, active assignments, direct reports and pending approvals
    move to ``target``. Seat-based assignments the target already holds are
    returned instead of duplicated. Items keep their status; only the holder
    changes.
    """
    if source.employee_id == target.employee_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="same_employee")
    if target.status != EMPLOYEE_STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="target_not_active")

    result = EmployeeReassignResult(source_employee_id=source.employee_id, target_employee_id=target.employee_id)

    resources = (
        await session.execute(select(Resource).where(Resource.custodian_id == source.employee_id))
    ).scalars().all()
    for resource in resources:
        resource.custodian_id = target.employee_id
        session.add(resource)
    result.resources = len(resources)

    assignments = (
        await session.execute(
            select(ResourceAssignment)
            .where(
                ResourceAssignment.employee_id == source.employee_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            )
            .order_by(ResourceAssignment.assignment_id.asc())
        )
    ).scalars().all()
    held = set(
        (
            await session.execute(
                select(ResourceAssignment.resource_id).where(
                    ResourceAssignment.employee_id == target.employee_id,
                    ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
                )
            )
        ).scalars().all()
    )
    note = f"Reassigned from {source.name} to {target.name}"
    for assignment in assignments:
        resource = await get_resource_or_404(session, assignment.resource_id, lock=True)
        if assignment.resource_id in held and resource.type != RESOURCE_TYPE_PHYSICAL:
            await transition_assignment(
                session,
                assignment,
                ASSIGNMENT_STATUS_RETURNED,
                f"{note}; {target.name} already holds {resource.name}",
                actor=actor,
                context=context,
            )
            result.assignments_released += 1
            continue
        assignment.employee_id = target.employee_id
        assignment.notes = append_note(assignment.notes, note)
        session.add(assignment)
        held.add(assignment.resource_id)
        result.assignments_moved += 1
        await log_timeline_activity(
            session,
            actor=actor,
            entity_type=ENTITY_RESOURCE,
            entity_id=resource.resource_id,
            activity_type=ACTIVITY_REASSIGNED,
            title=f"{resource.name} moved to {target.name}",
            description=note,
            metadata={
                "assignment_id": assignment.assignment_id,
                "from_employee_id": source.employee_id,
                "to_employee_id": target.employee_id,
                "item_id": assignment.item_id,
            },
            resource_id=resource.resource_id,
            employee_id=target.employee_id,
        )

    reports = (
        await session.execute(
            select(Employee).where(
                Employee.manager_id == source.employee_id,
                Employee.employee_id != target.employee_id,
            )
        )
    ).scalars().all()
    for report in reports:
        report.manager_id = target.employee_id
        session.add(report)
    result.subordinates = len(reports)
    if target.manager_id == source.employee_id:
        target.manager_id = source.manager_id if source.manager_id != target.employee_id else None
        session.add(target)
        result.subordinates += 1

    # the target cannot approve their own requests
    workflows = (
        await session.execute(
            select(ApprovalWorkflow).where(
                ApprovalWorkflow.approver_id == source.employee_id,
                ApprovalWorkflow.status == WORKFLOW_STATUS_PENDING,
                ApprovalWorkflow.requester_id != target.employee_id,
            )
        )
    ).scalars().all()
    moved_access_ids = [workflow.access_request_id for workflow in workflows if workflow.access_request_id]
    for workflow in workflows:
        workflow.approver_id = target.employee_id
        session.add(workflow)
    if moved_access_ids:
        access_requests = (
            await session.execute(select(AccessRequest).where(AccessRequest.access_id.in_(moved_access_ids)))
        ).scalars().all()
        for access in access_requests:
            access.approver_id = target.employee_id
            session.add(access)
    result.approvals = len(workflows)

    counts = result.model_dump(exclude={"source_employee_id", "target_employee_id"})
    await write_audit_log(
        session,
        actor=actor,
        action="EMPLOYEE_REASSIGN",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=str(source.employee_id),
        before={"employee_id": source.employee_id, "name": source.name},
        after={"employee_id": target.employee_id, "name": target.name, **counts},
        context=context,
    )
    summary = (
        f"Transferred {result.resources} resources, {result.assignments_moved} assignments, "
        f"{result.subordinates} direct reports and {result.approvals} pending approvals"
    )
    for employee, title in (
        (source, f"Responsibilities handed to {target.name}"),
        (target, f"Responsibilities received from {source.name}"),
    ):
        await log_timeline_activity(
            session,
            actor=actor,
            entity_type=ENTITY_EMPLOYEE,
            entity_id=employee.employee_id,
            activity_type=ACTIVITY_REASSIGNED,
            title=title,
            description=summary,
            metadata={"from_employee_id": source.employee_id, "to_employee_id": target.employee_id, **counts},
            employee_id=employee.employee_id,
        )
    logger.info(
        "employee_reassigned",
        extra={"from_employee_id": source.employee_id, "to_employee_id": target.employee_id, **counts},
    )
    return result
