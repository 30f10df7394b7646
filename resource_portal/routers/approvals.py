from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.models.employee import Employee
from resource_portal.rbac import require_employee, require_employee_record
from resource_portal.request_context import get_request_context
from resource_portal.schemas.user import UserContext
from resource_portal.schemas.workflow import (
    AccessRequestOut,
    WorkflowCreate,
    WorkflowDecision,
    WorkflowDecisionResult,
    WorkflowOut,
    WorkflowStats,
)
from resource_portal.services import workflow_service

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.post("", response_model=WorkflowOut, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    payload: WorkflowCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    requester_id = require_employee_record(user)
    requester = (
        await session.execute(select(Employee).where(Employee.employee_id == requester_id))
    ).scalars().one()
    approver = await workflow_service.resolve_approver(session, requester, payload.approver_id)
    workflow = await workflow_service.create_workflow(
        session,
        workflow_type=payload.workflow_type,
        requester=requester,
        approver=approver,
        data=payload.data,
        comments=payload.comments,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return WorkflowOut.model_validate(workflow)


@router.get("", response_model=list[WorkflowOut])
async def list_workflows(
    status_filter: str | None = Query(default=None, alias="status"),
    workflow_type: str | None = None,
    category: str | None = None,
    mine: bool = False,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    admin = is_admin(user.roles)
    if not admin and user.employee_id is None:
        return []
    rows = await workflow_service.list_workflows(
        session,
        workflow_status=status_filter,
        workflow_type=workflow_type,
        category=category,
        requester_id=user.employee_id if mine else None,
        visible_to=None if admin else user.employee_id,
    )
    return [WorkflowOut.model_validate(row) for row in rows]


@router.get("/pending", response_model=list[WorkflowOut])
async def pending(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    if user.employee_id is None:
        return []
    rows = await workflow_service.pending_for_approver(session, user.employee_id)
    return [WorkflowOut.model_validate(row) for row in rows]


@router.get("/stats", response_model=WorkflowStats)
async def stats(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    return WorkflowStats(
        **await workflow_service.workflow_stats(
            session,
            employee_id=user.employee_id,
            admin=is_admin(user.roles),
        )
    )


@router.get("/{workflow_id}", response_model=WorkflowOut)
async def get_workflow(
    workflow_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    workflow = await workflow_service.get_workflow_or_404(session, workflow_id)
    if not is_admin(user.roles) and user.employee_id not in (workflow.requester_id, workflow.approver_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    return WorkflowOut.model_validate(workflow)


@router.post("/{workflow_id}/decision", response_model=WorkflowDecisionResult)
async def decide(
    workflow_id: int,
    payload: WorkflowDecision,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    workflow = await workflow_service.get_workflow_or_404(session, workflow_id)
    outcome = await workflow_service.decide_workflow(
        session,
        workflow,
        action=payload.action,
        comments=payload.comments,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    await session.refresh(workflow)
    return WorkflowDecisionResult(
        workflow=WorkflowOut.model_validate(workflow),
        access_request=AccessRequestOut.model_validate(outcome.access_request) if outcome.access_request else None,
        assignment_id=outcome.assignment_id,
        created_resource_id=outcome.created_resource_id,
        fulfilment=outcome.fulfilment,
    )


@router.post("/{workflow_id}/cancel", response_model=WorkflowOut)
async def cancel(
    workflow_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    workflow = await workflow_service.get_workflow_or_404(session, workflow_id)
    await workflow_service.cancel_workflow(session, workflow, actor=user, context=get_request_context(request))
    await session.commit()
    await session.refresh(workflow)
    return WorkflowOut.model_validate(workflow)
