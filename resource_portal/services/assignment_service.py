"""Assignment rules: who may hold what, and how seats and items are consumed.

Every write path locks the resource row first so two requests competing for
the last item or seat serialise on the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import (
    ACTIVITY_ASSIGNED,
    ACTIVITY_STATUS_CHANGED,
    ACTIVITY_UNASSIGNED,
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_RETURNED,
    ASSIGNMENT_TYPE_INDIVIDUAL,
    ASSIGNMENT_TYPE_POOLED,
    ASSIGNMENT_TYPE_SHARED,
    EMPLOYEE_STATUS_ACTIVE,
    ENTITY_ASSIGNMENT,
    ENTITY_EMPLOYEE,
    ENTITY_RESOURCE,
    ITEM_STATUS_ASSIGNED,
    ITEM_STATUS_AVAILABLE,
    RESOURCE_STATUS_ACTIVE,
    RESOURCE_TYPE_CLOUD,
    RESOURCE_TYPE_PHYSICAL,
    RESOURCE_TYPE_SOFTWARE,
    WORKFLOW_STATUS_APPROVED,
    WORKFLOW_STATUS_PENDING,
)
from resource_portal.core.assignment_machine import (
    CLOSING_STATUSES,
    append_note,
    assignment_description,
    can_transition,
    determine_assignment_type,
    is_item_based,
    item_status_after,
    revoke_note,
    should_update_item,
)
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource, ResourceAssignment, ResourceItem
from resource_portal.models.workflow import ApprovalWorkflow
from resource_portal.request_context import RequestContext
from resource_portal.schemas.resource import ItemAssignability
from resource_portal.schemas.user import UserContext
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.resource_service import (
    UNLIMITED_QUANTITY,
    active_assignment_counts,
    get_employee,
    get_resource_or_404,
    item_has_active_assignment,
    license_count,
)
from resource_portal.services.timeline_service import log_timeline_activity

logger = logging.getLogger("portal.assignments")


@dataclass
class AssignmentPlan:
    assignment_type: str
    item: ResourceItem | None


@dataclass
class AssignmentOutcome:
    assignment: ResourceAssignment
    created: bool
    message: str


def _conflict(code: str, message: str | None = None) -> HTTPException:
    detail: str | dict = code if message is None else {"code": code, "message": message}
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


async def get_assignment_or_404(session: AsyncSession, assignment_id: int) -> ResourceAssignment:
    assignment = (
        await session.execute(select(ResourceAssignment).where(ResourceAssignment.assignment_id == assignment_id))
    ).scalars().one_or_none()
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="assignment_not_found")
    return assignment


async def _active_for_employee(
    session: AsyncSession,
    *,
    employee_id: int,
    resource_id: int,
    assignment_type: str | None = None,
    item_id: int | None = None,
) -> ResourceAssignment | None:
    stmt = select(ResourceAssignment).where(
        ResourceAssignment.employee_id == employee_id,
        ResourceAssignment.resource_id == resource_id,
        ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
    )
    if assignment_type is not None:
        stmt = stmt.where(ResourceAssignment.assignment_type == assignment_type)
    if item_id is not None:
        stmt = stmt.where(ResourceAssignment.item_id == item_id)
    result = await session.execute(stmt.order_by(ResourceAssignment.assigned_at.asc()).limit(1))
    return result.scalars().one_or_none()


async def _employee_or_error(session: AsyncSession, employee_id: int) -> Employee:
    employee = await get_employee(session, employee_id)
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="employee_not_found")
    if employee.status != EMPLOYEE_STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="employee_not_active")
    return employee


async def _assignable_item(session: AsyncSession, resource: Resource, item_id: int) -> ResourceItem:
    item = (
        await session.execute(select(ResourceItem).where(ResourceItem.item_id == item_id))
    ).scalars().one_or_none()
    if not item or item.resource_id != resource.resource_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="item_not_found")
    if item.status != ITEM_STATUS_AVAILABLE:
        raise _conflict("item_not_available", f"Item is {item.status}")
    if await item_has_active_assignment(session, item.item_id):
        raise _conflict("item_already_assigned")
    return item


async def _available_item_count(session: AsyncSession, resource_id: int) -> int:
    return (
        await session.execute(
            select(func.count(ResourceItem.item_id)).where(
                ResourceItem.resource_id == resource_id,
                ResourceItem.status == ITEM_STATUS_AVAILABLE,
            )
        )
    ).scalar() or 0


async def _total_item_count(session: AsyncSession, resource_id: int) -> int:
    return (
        await session.execute(select(func.count(ResourceItem.item_id)).where(ResourceItem.resource_id == resource_id))
    ).scalar() or 0


async def validate_assignment(
    session: AsyncSession,
    resource: Resource,
    employee: Employee,
    *,
    item_id: int | None,
    requested_type: str | None,
    quantity: int = 1,
) -> AssignmentPlan:
    if resource.status != RESOURCE_STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="resource_not_active")

    assignment_type = determine_assignment_type(resource.type, requested_type)
    if is_item_based(resource.type, assignment_type) and quantity != 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_quantity")

    if resource.type == RESOURCE_TYPE_PHYSICAL:
        if item_id is None:
            if await _available_item_count(session, resource.resource_id):
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="item_required")
            raise _conflict("no_available_items")
        if await _active_for_employee(
            session, employee_id=employee.employee_id, resource_id=resource.resource_id, item_id=item_id
        ):
            raise _conflict("employee_already_has_item")
        item = await _assignable_item(session, resource, item_id)
        return AssignmentPlan(assignment_type=assignment_type, item=item)

    if resource.type == RESOURCE_TYPE_SOFTWARE and assignment_type == ASSIGNMENT_TYPE_POOLED:
        licenses = await license_count(session, resource)
        if licenses.used + quantity > licenses.total:
            raise _conflict(
                "no_available_licenses",
                f"No available licenses for {resource.name} ({licenses.used}/{licenses.total} in use)",
            )
        if await _active_for_employee(
            session,
            employee_id=employee.employee_id,
            resource_id=resource.resource_id,
            assignment_type=ASSIGNMENT_TYPE_POOLED,
        ):
            raise _conflict("employee_already_has_license")
        return AssignmentPlan(assignment_type=assignment_type, item=None)

    if resource.type == RESOURCE_TYPE_SOFTWARE:
        if await _active_for_employee(session, employee_id=employee.employee_id, resource_id=resource.resource_id):
            raise _conflict("employee_already_has_software")
        item = await _assignable_item(session, resource, item_id) if item_id is not None else None
        return AssignmentPlan(assignment_type=assignment_type, item=item)

    if resource.type == RESOURCE_TYPE_CLOUD:
        if await _active_for_employee(session, employee_id=employee.employee_id, resource_id=resource.resource_id):
            raise _conflict("employee_already_has_access")
        if resource.quantity is not None and resource.quantity != UNLIMITED_QUANTITY:
            in_use = (await active_assignment_counts(session, [resource.resource_id]))[resource.resource_id]
            if in_use + quantity > resource.quantity:
                raise _conflict(
                    "no_available_seats",
                    f"All {resource.quantity} seats of {resource.name} are in use",
                )
        item = await _assignable_item(session, resource, item_id) if item_id is not None else None
        return AssignmentPlan(assignment_type=assignment_type, item=item)

    item = await _assignable_item(session, resource, item_id) if item_id is not None else None
    return AssignmentPlan(assignment_type=assignment_type, item=item)


async def select_available_item(session: AsyncSession, resource_id: int) -> ResourceItem | None:
    """Oldest AVAILABLE item of the resource that nobody holds."""
    busy = select(ResourceAssignment.item_id).where(
        ResourceAssignment.item_id.is_not(None),
        ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
    )
    result = await session.execute(
        select(ResourceItem)
        .where(
            ResourceItem.resource_id == resource_id,
            ResourceItem.status == ITEM_STATUS_AVAILABLE,
            ResourceItem.item_id.not_in(busy),
        )
        .order_by(ResourceItem.created_at.asc(), ResourceItem.item_id.asc())
        .limit(1)
    )
    return result.scalars().first()


async def _write_assignment(
    session: AsyncSession,
    resource: Resource,
    employee: Employee,
    plan: AssignmentPlan,
    *,
    quantity: int,
    notes: str | None,
    actor: UserContext,
    context: RequestContext | None,
    access_request_id: int | None = None,
    approval_workflow_id: int | None = None,
    method: str = "direct",
) -> ResourceAssignment:
    now = datetime.utcnow()
    assignment = ResourceAssignment(
        resource_id=resource.resource_id,
        item_id=plan.item.item_id if plan.item else None,
        employee_id=employee.employee_id,
        assignment_type=plan.assignment_type,
        status=ASSIGNMENT_STATUS_ACTIVE,
        quantity=quantity,
        assigned_by_id=actor.employee_id,
        access_request_id=access_request_id,
        approval_workflow_id=approval_workflow_id,
        notes=(notes or "").strip() or None,
        assigned_at=now,
    )
    session.add(assignment)
    if plan.item is not None:
        plan.item.status = ITEM_STATUS_ASSIGNED
        session.add(plan.item)
    await session.flush()

    description = assignment_description(resource.type, plan.assignment_type)
    metadata = {
        "assignment_id": assignment.assignment_id,
        "assignment_type": plan.assignment_type,
        "item_id": assignment.item_id,
        "resource_type": resource.type,
        "method": method,
    }
    await write_audit_log(
        session,
        actor=actor,
        action="ASSIGNMENT_CREATE",
        entity_type=ENTITY_ASSIGNMENT,
        entity_id=str(assignment.assignment_id),
        before=None,
        after={**metadata, "resource_id": resource.resource_id, "employee_id": employee.employee_id},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_ASSIGNED,
        title=f"{resource.name} assigned to {employee.name}",
        description=description,
        metadata=metadata,
        resource_id=resource.resource_id,
        employee_id=employee.employee_id,
        workflow_id=approval_workflow_id,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_EMPLOYEE,
        entity_id=employee.employee_id,
        activity_type=ACTIVITY_ASSIGNED,
        title=f"Received {resource.name}",
        description=description,
        metadata=metadata,
        resource_id=resource.resource_id,
        employee_id=employee.employee_id,
        workflow_id=approval_workflow_id,
    )
    logger.info(
        "assignment_created",
        extra={
            "assignment_id": assignment.assignment_id,
            "resource_id": resource.resource_id,
            "employee_id": employee.employee_id,
            "assignment_type": plan.assignment_type,
            "method": method,
        },
    )
    return assignment


async def create_assignment(
    session: AsyncSession,
    *,
    resource_id: int,
    employee_id: int,
    item_id: int | None,
    requested_type: str | None,
    quantity: int = 1,
    notes: str | None = None,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceAssignment:
    resource = await get_resource_or_404(session, resource_id, lock=True)
    employee = await _employee_or_error(session, employee_id)
    plan = await validate_assignment(
        session,
        resource,
        employee,
        item_id=item_id,
        requested_type=requested_type,
        quantity=quantity,
    )
    return await _write_assignment(
        session,
        resource,
        employee,
        plan,
        quantity=quantity,
        notes=notes,
        actor=actor,
        context=context,
    )


async def quick_assign(
    session: AsyncSession,
    *,
    resource_id: int,
    employee_id: int,
    notes: str | None,
    actor: UserContext,
    context: RequestContext | None,
    access_request_id: int | None = None,
    approval_workflow_id: int | None = None,
) -> AssignmentOutcome:
    """Assign without naming an item: reuse, then auto-select."""
    resource = await get_resource_or_404(session, resource_id, lock=True)
    employee = await _employee_or_error(session, employee_id)

    existing = await _active_for_employee(session, employee_id=employee.employee_id, resource_id=resource.resource_id)
    if existing:
        return AssignmentOutcome(
            assignment=existing,
            created=False,
            message=f"{employee.name} already has {resource.name}",
        )

    if resource.type == RESOURCE_TYPE_CLOUD:
        plan = await validate_assignment(session, resource, employee, item_id=None, requested_type=None)
    else:
        if not await _total_item_count(session, resource.resource_id):
            raise _conflict("no_items_added", f"No items have been added to {resource.name}")
        item = await select_available_item(session, resource.resource_id)
        if item is None:
            raise _conflict("no_available_items", f"All items of {resource.name} are assigned")
        plan = await validate_assignment(
            session,
            resource,
            employee,
            item_id=item.item_id,
            requested_type=ASSIGNMENT_TYPE_INDIVIDUAL,
        )

    assignment = await _write_assignment(
        session,
        resource,
        employee,
        plan,
        quantity=1,
        notes=notes,
        actor=actor,
        context=context,
        access_request_id=access_request_id,
        approval_workflow_id=approval_workflow_id,
        method="auto_select",
    )
    return AssignmentOutcome(
        assignment=assignment,
        created=True,
        message=f"{resource.name} assigned to {employee.name}",
    )


async def assign_after_approval(
    session: AsyncSession,
    *,
    resource_id: int,
    employee_id: int,
    approval_workflow_id: int | None,
    requested_type: str | None,
    notes: str | None,
    actor: UserContext,
    context: RequestContext | None,
) -> AssignmentOutcome:
    resource = await get_resource_or_404(session, resource_id, lock=True)
    employee = await _employee_or_error(session, employee_id)
    assignment_type = determine_assignment_type(resource.type, requested_type)

    workflow: ApprovalWorkflow | None = None
    if approval_workflow_id is not None:
        workflow = (
            await session.execute(select(ApprovalWorkflow).where(ApprovalWorkflow.workflow_id == approval_workflow_id))
        ).scalars().one_or_none()
        if not workflow:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="workflow_not_found")
        if workflow.status not in (WORKFLOW_STATUS_PENDING, WORKFLOW_STATUS_APPROVED):
            raise _conflict("workflow_not_pending")

    item_count = await _total_item_count(session, resource.resource_id)
    needs_items = resource.type == RESOURCE_TYPE_PHYSICAL
    if needs_items and not item_count:
        raise _conflict("no_items_added", f"No items have been added to {resource.name}")

    item_id: int | None = None
    if is_item_based(resource.type, assignment_type) and item_count:
        item = await select_available_item(session, resource.resource_id)
        if item is None:
            raise _conflict("no_available_items", f"All items of {resource.name} are assigned")
        item_id = item.item_id

    plan = await validate_assignment(session, resource, employee, item_id=item_id, requested_type=assignment_type)
    assignment = await _write_assignment(
        session,
        resource,
        employee,
        plan,
        quantity=1,
        notes=notes,
        actor=actor,
        context=context,
        approval_workflow_id=approval_workflow_id,
        method="post_approval",
    )

    if workflow is not None and workflow.status == WORKFLOW_STATUS_PENDING:
        workflow.status = WORKFLOW_STATUS_APPROVED
        workflow.approver_id = workflow.approver_id or actor.employee_id
        workflow.decided_at = datetime.utcnow()
        session.add(workflow)

    return AssignmentOutcome(
        assignment=assignment,
        created=True,
        message=assignment_description(resource.type, plan.assignment_type),
    )


async def transition_assignment(
    session: AsyncSession,
    assignment: ResourceAssignment,
    new_status: str,
    notes: str | None,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceAssignment:
    if not can_transition(assignment.status, new_status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_transition")

    resource = await get_resource_or_404(session, assignment.resource_id, lock=True)
    before = {"status": assignment.status, "item_id": assignment.item_id}
    now = datetime.utcnow()

    assignment.status = new_status
    if new_status in CLOSING_STATUSES:
        assignment.returned_at = now
    assignment.notes = append_note(assignment.notes, notes)
    session.add(assignment)

    item_status = None
    if assignment.item_id is not None:
        item = (
            await session.execute(select(ResourceItem).where(ResourceItem.item_id == assignment.item_id))
        ).scalars().one_or_none()
        held_elsewhere = (
            await session.execute(
                select(func.count(ResourceAssignment.assignment_id)).where(
                    ResourceAssignment.item_id == assignment.item_id,
                    ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
                    ResourceAssignment.assignment_id != assignment.assignment_id,
                )
            )
        ).scalar() or 0
        if item is not None and not held_elsewhere and should_update_item(before["status"], item.status):
            item_status = item_status_after(new_status)
        if item_status is not None:
            item.status = item_status
            session.add(item)
        elif item is not None:
            logger.info(
                "assignment_item_left_unchanged",
                extra={"assignment_id": assignment.assignment_id, "item_id": item.item_id, "item_status": item.status},
            )

    await write_audit_log(
        session,
        actor=actor,
        action="ASSIGNMENT_STATUS_CHANGE",
        entity_type=ENTITY_ASSIGNMENT,
        entity_id=str(assignment.assignment_id),
        before=before,
        after={"status": new_status, "item_id": assignment.item_id, "item_status": item_status},
        context=context,
    )
    activity = ACTIVITY_UNASSIGNED if new_status == ASSIGNMENT_STATUS_RETURNED else ACTIVITY_STATUS_CHANGED
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=activity,
        title=f"{resource.name} assignment marked {new_status.lower()}",
        description=(notes or "").strip() or None,
        metadata={
            "assignment_id": assignment.assignment_id,
            "old_status": before["status"],
            "new_status": new_status,
            "item_status": item_status,
        },
        resource_id=resource.resource_id,
        employee_id=assignment.employee_id,
    )
    logger.info(
        "assignment_status_changed",
        extra={
            "assignment_id": assignment.assignment_id,
            "old_status": before["status"],
            "new_status": new_status,
        },
    )
    return assignment


async def revoke_assignment(
    session: AsyncSession,
    assignment: ResourceAssignment,
    reason: str | None,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceAssignment:
    return await transition_assignment(
        session,
        assignment,
        ASSIGNMENT_STATUS_RETURNED,
        revoke_note(reason),
        actor=actor,
        context=context,
    )


async def shared_resource_users(session: AsyncSession, resource_id: int) -> list[ResourceAssignment]:
    result = await session.execute(
        select(ResourceAssignment)
        .where(
            ResourceAssignment.resource_id == resource_id,
            ResourceAssignment.assignment_type == ASSIGNMENT_TYPE_SHARED,
            ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
        )
        .order_by(ResourceAssignment.assigned_at.asc(), ResourceAssignment.assignment_id.asc())
    )
    return list(result.scalars().all())


async def can_assign_item(session: AsyncSession, item_id: int) -> ItemAssignability:
    item = (await session.execute(select(ResourceItem).where(ResourceItem.item_id == item_id))).scalars().one_or_none()
    if not item:
        return ItemAssignability(item_id=item_id, can_assign=False, reason="Item not found")
    if item.status != ITEM_STATUS_AVAILABLE:
        return ItemAssignability(item_id=item_id, can_assign=False, reason=f"Item is {item.status}")
    if await item_has_active_assignment(session, item_id):
        return ItemAssignability(item_id=item_id, can_assign=False, reason="Item is already assigned")
    return ItemAssignability(item_id=item_id, can_assign=True)


async def list_assignments(
    session: AsyncSession,
    *,
    employee_id: int | None = None,
    resource_id: int | None = None,
    assignment_status: str | None = None,
) -> list[ResourceAssignment]:
    stmt = select(ResourceAssignment)
    if employee_id is not None:
        stmt = stmt.where(ResourceAssignment.employee_id == employee_id)
    if resource_id is not None:
        stmt = stmt.where(ResourceAssignment.resource_id == resource_id)
    if assignment_status:
        stmt = stmt.where(ResourceAssignment.status == assignment_status)
    result = await session.execute(
        stmt.order_by(ResourceAssignment.assigned_at.desc(), ResourceAssignment.assignment_id.desc())
    )
    return list(result.scalars().all())
