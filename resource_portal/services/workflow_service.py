"""Approval workflows: classification, approver resolution and decisions.

Approving an access request tries to fulfil it immediately. When nothing is
available to hand out the request stays APPROVED and the deferral is put on
the timeline so somebody can assign it later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import (
    ACCESS_STATUS_APPROVED,
    ACCESS_STATUS_GRANTED,
    ACCESS_STATUS_REQUESTED,
    ACCESS_STATUS_REVOKED,
    ACTIVITY_ACCESS_GRANTED,
    ACTIVITY_ACCESS_REVOKED,
    ACTIVITY_WORKFLOW_COMPLETED,
    ACTIVITY_WORKFLOW_CREATED,
    CATEGORY_COMPLIANCE,
    CATEGORY_FINANCIAL,
    CATEGORY_GENERAL_OPERATIONS,
    CATEGORY_HUMAN_RESOURCES,
    CATEGORY_IT_OPERATIONS,
    CATEGORY_SECURITY_ACCESS,
    EMPLOYEE_STATUS_ACTIVE,
    ENTITY_ACCESS,
    ENTITY_WORKFLOW,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    PRIORITY_URGENT,
    RESOURCE_TYPE_PHYSICAL,
    WORKFLOW_STATUS_APPROVED,
    WORKFLOW_STATUS_CANCELLED,
    WORKFLOW_STATUS_PENDING,
    WORKFLOW_STATUS_REJECTED,
    WORKFLOW_TYPE_ACCESS_REQUEST,
)
from resource_portal.core.roles import Role, is_admin
from resource_portal.models.employee import Employee
from resource_portal.models.workflow import AccessRequest, ApprovalWorkflow
from resource_portal.request_context import RequestContext
from resource_portal.schemas.resource import ItemCreate, ResourceCreate
from resource_portal.schemas.user import UserContext
from resource_portal.services.assignment_service import quick_assign
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.resource_service import create_item, create_resource
from resource_portal.services.timeline_service import log_timeline_activity

logger = logging.getLogger("portal.workflows")

CATEGORY_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("IT_", "SOFTWARE_", "CLOUD_"), CATEGORY_IT_OPERATIONS),
    (("ACCESS_", "SECURITY_", "ELEVATED_", "SYSTEM_"), CATEGORY_SECURITY_ACCESS),
    (("POLICY_", "COMPLIANCE_", "PROCEDURE_"), CATEGORY_COMPLIANCE),
    (("EXPENSE_", "BUDGET_", "VENDOR_"), CATEGORY_FINANCIAL),
    (("HIRING_", "ROLE_", "TRAINING_"), CATEGORY_HUMAN_RESOURCES),
)


def operational_category(workflow_type: str) -> str:
    for prefixes, category in CATEGORY_PREFIXES:
        if workflow_type.startswith(prefixes):
            return category
    return CATEGORY_GENERAL_OPERATIONS


def _amount(data: dict[str, Any] | None) -> float:
    raw = (data or {}).get("amount")
    if isinstance(raw, bool) or raw is None:
        return 0.0
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def workflow_priority(workflow_type: str, data: dict[str, Any] | None = None) -> str:
    amount = _amount(data)
    if workflow_type.startswith(("COMPLIANCE_", "HIRING_")):
        return PRIORITY_URGENT
    if workflow_type.startswith(("SECURITY_", "ELEVATED_ACCESS")) or amount > 5000:
        return PRIORITY_HIGH
    if workflow_type.startswith(("IT_", "POLICY_")) or amount > 1000:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


async def _active_employee(session: AsyncSession, employee_id: int | None) -> Employee | None:
    if employee_id is None:
        return None
    return (
        await session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                Employee.status == EMPLOYEE_STATUS_ACTIVE,
            )
        )
    ).scalars().one_or_none()


async def _first_active_with_role(session: AsyncSession, role: Role) -> Employee | None:
    return (
        await session.execute(
            select(Employee)
            .where(Employee.role == role.value, Employee.status == EMPLOYEE_STATUS_ACTIVE)
            .order_by(Employee.employee_id.asc())
            .limit(1)
        )
    ).scalars().first()


async def resolve_approver(session: AsyncSession, requester: Employee, approver_id: int | None) -> Employee:
    """Given approver, then the requester's manager, then a CTO, then a CEO."""
    if approver_id is not None:
        approver = await _active_employee(session, approver_id)
        if not approver:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="approver_not_found")
        return approver
    manager = await _active_employee(session, requester.manager_id)
    if manager:
        return manager
    for role in (Role.CTO, Role.CEO):
        candidate = await _first_active_with_role(session, role)
        if candidate:
            return candidate
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="no_approver_available")


async def get_workflow_or_404(session: AsyncSession, workflow_id: int) -> ApprovalWorkflow:
    workflow = (
        await session.execute(select(ApprovalWorkflow).where(ApprovalWorkflow.workflow_id == workflow_id))
    ).scalars().one_or_none()
    if not workflow:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="workflow_not_found")
    return workflow


async def create_workflow(
    session: AsyncSession,
    *,
    workflow_type: str,
    requester: Employee,
    approver: Employee,
    data: dict[str, Any] | None,
    comments: str | None,
    actor: UserContext,
    context: RequestContext | None,
    access_request_id: int | None = None,
) -> ApprovalWorkflow:
    workflow = ApprovalWorkflow(
        workflow_type=workflow_type,
        status=WORKFLOW_STATUS_PENDING,
        requester_id=requester.employee_id,
        approver_id=approver.employee_id,
        data=data or {},
        comments=comments,
        operational_category=operational_category(workflow_type),
        priority=workflow_priority(workflow_type, data),
        access_request_id=access_request_id,
    )
    session.add(workflow)
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        action="WORKFLOW_CREATE",
        entity_type=ENTITY_WORKFLOW,
        entity_id=str(workflow.workflow_id),
        before=None,
        after={
            "workflow_type": workflow.workflow_type,
            "requester_id": workflow.requester_id,
            "approver_id": workflow.approver_id,
            "priority": workflow.priority,
        },
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_WORKFLOW,
        entity_id=workflow.workflow_id,
        activity_type=ACTIVITY_WORKFLOW_CREATED,
        title=f"{workflow_type.replace('_', ' ').title()} submitted",
        description=f"Awaiting approval from {approver.name}",
        metadata={"operational_category": workflow.operational_category, "priority": workflow.priority},
        employee_id=requester.employee_id,
        workflow_id=workflow.workflow_id,
    )
    logger.info(
        "workflow_created",
        extra={
            "workflow_id": workflow.workflow_id,
            "workflow_type": workflow_type,
            "approver_id": approver.employee_id,
        },
    )
    return workflow


@dataclass
class DecisionOutcome:
    workflow: ApprovalWorkflow
    access_request: AccessRequest | None = None
    assignment_id: int | None = None
    created_resource_id: int | None = None
    fulfilment: str | None = None


def _can_decide(workflow: ApprovalWorkflow, user: UserContext) -> bool:
    if is_admin(user.roles):
        return True
    return user.employee_id is not None and user.employee_id == workflow.approver_id


async def _fulfil_hardware_request(
    session: AsyncSession,
    access: AccessRequest,
    workflow: ApprovalWorkflow,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> tuple[int, int]:
    custodian_id = actor.employee_id or workflow.approver_id
    resource = await create_resource(
        session,
        ResourceCreate(
            name=access.hardware_request,
            custodian_id=custodian_id,
            type=RESOURCE_TYPE_PHYSICAL,
            category="Hardware Request",
            description=access.justification,
            metadata={"access_request_id": access.access_id, "workflow_id": workflow.workflow_id},
        ),
        actor=actor,
        context=context,
    )
    await create_item(session, resource, ItemCreate(), actor=actor, context=context)
    outcome = await quick_assign(
        session,
        resource_id=resource.resource_id,
        employee_id=access.employee_id,
        notes=f"Hardware request approved: {access.hardware_request}",
        actor=actor,
        context=context,
        access_request_id=access.access_id,
        approval_workflow_id=workflow.workflow_id,
    )
    return resource.resource_id, outcome.assignment.assignment_id


async def _approve_access(
    session: AsyncSession,
    outcome: DecisionOutcome,
    access: AccessRequest,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    workflow = outcome.workflow
    now = datetime.utcnow()
    access.status = ACCESS_STATUS_APPROVED
    access.approved_at = now
    session.add(access)

    if access.resource_id is None and access.hardware_request:
        outcome.created_resource_id, outcome.assignment_id = await _fulfil_hardware_request(
            session, access, workflow, actor=actor, context=context
        )
    elif access.resource_id is not None:
        try:
            # quick_assign validates fully before it writes anything
            result = await quick_assign(
                session,
                resource_id=access.resource_id,
                employee_id=access.employee_id,
                notes=f"Granted via access request #{access.access_id}",
                actor=actor,
                context=context,
                access_request_id=access.access_id,
                approval_workflow_id=workflow.workflow_id,
            )
        except HTTPException as exc:
            outcome.fulfilment = "deferred"
            reason = exc.detail if isinstance(exc.detail, str) else exc.detail.get("code")
            logger.warning(
                "access_fulfilment_deferred",
                extra={"access_id": access.access_id, "workflow_id": workflow.workflow_id, "reason": reason},
            )
            await log_timeline_activity(
                session,
                actor=actor,
                entity_type=ENTITY_ACCESS,
                entity_id=access.access_id,
                activity_type=ACTIVITY_WORKFLOW_COMPLETED,
                title="Access approved, assignment pending",
                description=f"Automatic assignment could not complete: {reason}",
                metadata={"reason": reason},
                resource_id=access.resource_id,
                employee_id=access.employee_id,
                workflow_id=workflow.workflow_id,
            )
            return
        outcome.assignment_id = result.assignment.assignment_id
    else:
        return

    access.status = ACCESS_STATUS_GRANTED
    access.granted_at = datetime.utcnow()
    session.add(access)
    outcome.fulfilment = "granted"
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_ACCESS,
        entity_id=access.access_id,
        activity_type=ACTIVITY_ACCESS_GRANTED,
        title="Access granted",
        metadata={"assignment_id": outcome.assignment_id, "created_resource_id": outcome.created_resource_id},
        resource_id=access.resource_id or outcome.created_resource_id,
        employee_id=access.employee_id,
        workflow_id=workflow.workflow_id,
    )


async def decide_workflow(
    session: AsyncSession,
    workflow: ApprovalWorkflow,
    *,
    action: str,
    comments: str | None,
    actor: UserContext,
    context: RequestContext | None,
) -> DecisionOutcome:
    if workflow.status != WORKFLOW_STATUS_PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="workflow_not_pending")
    if not _can_decide(workflow, actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not_workflow_approver")

    before = {"status": workflow.status}
    now = datetime.utcnow()
    approved = action == "approve"
    workflow.status = WORKFLOW_STATUS_APPROVED if approved else WORKFLOW_STATUS_REJECTED
    workflow.decided_at = now
    if comments:
        workflow.comments = comments
    session.add(workflow)
    outcome = DecisionOutcome(workflow)

    if workflow.workflow_type == WORKFLOW_TYPE_ACCESS_REQUEST and workflow.access_request_id is not None:
        access = (
            await session.execute(
                select(AccessRequest).where(AccessRequest.access_id == workflow.access_request_id)
            )
        ).scalars().one_or_none()
        if access is not None:
            outcome.access_request = access
            if approved:
                await _approve_access(session, outcome, access, actor=actor, context=context)
            else:
                access.status = ACCESS_STATUS_REVOKED
                access.revoked_at = now
                session.add(access)

    await write_audit_log(
        session,
        actor=actor,
        action="WORKFLOW_APPROVE" if approved else "WORKFLOW_REJECT",
        entity_type=ENTITY_WORKFLOW,
        entity_id=str(workflow.workflow_id),
        before=before,
        after={
            "status": workflow.status,
            "comments": comments,
            "assignment_id": outcome.assignment_id,
            "fulfilment": outcome.fulfilment,
        },
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_WORKFLOW,
        entity_id=workflow.workflow_id,
        activity_type=ACTIVITY_WORKFLOW_COMPLETED,
        title=f"Workflow {workflow.status.lower()}",
        description=comments,
        metadata={"action": action, "fulfilment": outcome.fulfilment},
        employee_id=workflow.requester_id,
        workflow_id=workflow.workflow_id,
    )
    logger.info(
        "workflow_decided",
        extra={"workflow_id": workflow.workflow_id, "status": workflow.status, "actor": actor.email},
    )
    return outcome


async def cancel_workflow(
    session: AsyncSession,
    workflow: ApprovalWorkflow,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ApprovalWorkflow:
    if actor.employee_id is None or workflow.requester_id != actor.employee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not_workflow_requester")
    if workflow.status != WORKFLOW_STATUS_PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="workflow_not_pending")
    now = datetime.utcnow()
    workflow.status = WORKFLOW_STATUS_CANCELLED
    workflow.decided_at = now
    session.add(workflow)

    access: AccessRequest | None = None
    if workflow.access_request_id is not None:
        access = (
            await session.execute(select(AccessRequest).where(AccessRequest.access_id == workflow.access_request_id))
        ).scalars().one_or_none()
    if access is not None and access.status == ACCESS_STATUS_REQUESTED:
        access.status = ACCESS_STATUS_REVOKED
        access.revoked_at = now
        session.add(access)
        await log_timeline_activity(
            session,
            actor=actor,
            entity_type=ENTITY_ACCESS,
            entity_id=access.access_id,
            activity_type=ACTIVITY_ACCESS_REVOKED,
            title="Access request withdrawn",
            description="The requester cancelled the approval workflow",
            metadata={"workflow_id": workflow.workflow_id},
            resource_id=access.resource_id,
            employee_id=access.employee_id,
            workflow_id=workflow.workflow_id,
        )

    await write_audit_log(
        session,
        actor=actor,
        action="WORKFLOW_CANCEL",
        entity_type=ENTITY_WORKFLOW,
        entity_id=str(workflow.workflow_id),
        before={"status": WORKFLOW_STATUS_PENDING},
        after={
            "status": WORKFLOW_STATUS_CANCELLED,
            "access_request_id": workflow.access_request_id,
            "access_status": access.status if access else None,
        },
        context=context,
    )
    logger.info(
        "workflow_cancelled",
        extra={"workflow_id": workflow.workflow_id, "access_id": workflow.access_request_id},
    )
    return workflow


async def pending_for_approver(session: AsyncSession, approver_id: int) -> list[ApprovalWorkflow]:
    result = await session.execute(
        select(ApprovalWorkflow)
        .where(ApprovalWorkflow.approver_id == approver_id, ApprovalWorkflow.status == WORKFLOW_STATUS_PENDING)
        .order_by(ApprovalWorkflow.created_at.asc(), ApprovalWorkflow.workflow_id.asc())
    )
    return list(result.scalars().all())


async def list_workflows(
    session: AsyncSession,
    *,
    workflow_status: str | None = None,
    workflow_type: str | None = None,
    category: str | None = None,
    requester_id: int | None = None,
    visible_to: int | None = None,
) -> list[ApprovalWorkflow]:
    stmt = select(ApprovalWorkflow)
    if workflow_status:
        stmt = stmt.where(ApprovalWorkflow.status == workflow_status.upper())
    if workflow_type:
        stmt = stmt.where(ApprovalWorkflow.workflow_type == workflow_type.upper())
    if category:
        stmt = stmt.where(ApprovalWorkflow.operational_category == category.upper())
    if requester_id is not None:
        stmt = stmt.where(ApprovalWorkflow.requester_id == requester_id)
    if visible_to is not None:
        stmt = stmt.where(
            (ApprovalWorkflow.requester_id == visible_to) | (ApprovalWorkflow.approver_id == visible_to)
        )
    result = await session.execute(
        stmt.order_by(ApprovalWorkflow.created_at.desc(), ApprovalWorkflow.workflow_id.desc())
    )
    return list(result.scalars().all())


async def workflow_stats(session: AsyncSession, *, employee_id: int | None, admin: bool) -> dict[str, Any]:
    scope = select(ApprovalWorkflow)
    if not admin:
        scope = scope.where(
            (ApprovalWorkflow.approver_id == employee_id) | (ApprovalWorkflow.requester_id == employee_id)
        )
    sub = scope.subquery()

    by_status: dict[str, int] = {}
    rows = await session.execute(select(sub.c.status, func.count()).group_by(sub.c.status))
    for workflow_status, count in rows.all():
        by_status[workflow_status] = count

    by_category: dict[str, int] = {}
    rows = await session.execute(select(sub.c.operational_category, func.count()).group_by(sub.c.operational_category))
    for category, count in rows.all():
        by_category[category] = count

    my_requests = 0
    if employee_id is not None:
        my_requests = (
            await session.execute(
                select(func.count(ApprovalWorkflow.workflow_id)).where(ApprovalWorkflow.requester_id == employee_id)
            )
        ).scalar() or 0

    approved = by_status.get(WORKFLOW_STATUS_APPROVED, 0)
    rejected = by_status.get(WORKFLOW_STATUS_REJECTED, 0)
    return {
        "pending": by_status.get(WORKFLOW_STATUS_PENDING, 0),
        "approved": approved,
        "rejected": rejected,
        "my_requests": my_requests,
        "total_processed": approved + rejected,
        "by_category": by_category,
    }
