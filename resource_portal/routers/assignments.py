from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.rbac import require_admin, require_employee, require_manager
from resource_portal.request_context import get_request_context
from resource_portal.schemas.assignment import (
    AssignmentCreate,
    AssignmentOut,
    AssignmentResult,
    AssignmentRevoke,
    AssignmentTransition,
    PostApprovalAssign,
    QuickAssign,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services import assignment_service

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    assignment = await assignment_service.create_assignment(
        session,
        resource_id=payload.resource_id,
        employee_id=payload.employee_id,
        item_id=payload.item_id,
        requested_type=payload.assignment_type,
        quantity=payload.quantity,
        notes=payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return AssignmentOut.model_validate(assignment)


@router.post("/quick", response_model=AssignmentResult)
async def quick_assign(
    payload: QuickAssign,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    outcome = await assignment_service.quick_assign(
        session,
        resource_id=payload.resource_id,
        employee_id=payload.employee_id,
        notes=payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return AssignmentResult(
        assignment=AssignmentOut.model_validate(outcome.assignment),
        created=outcome.created,
        message=outcome.message,
    )


@router.post("/post-approval", response_model=AssignmentResult)
async def assign_after_approval(
    payload: PostApprovalAssign,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_manager()),
):
    outcome = await assignment_service.assign_after_approval(
        session,
        resource_id=payload.resource_id,
        employee_id=payload.employee_id,
        approval_workflow_id=payload.approval_workflow_id,
        requested_type=payload.assignment_type,
        notes=payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return AssignmentResult(
        assignment=AssignmentOut.model_validate(outcome.assignment),
        created=outcome.created,
        message=outcome.message,
    )


@router.get("", response_model=list[AssignmentOut])
async def list_assignments(
    employee_id: int | None = None,
    resource_id: int | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    if not is_admin(user.roles):
        if user.employee_id is None:
            return []
        employee_id = user.employee_id
    rows = await assignment_service.list_assignments(
        session,
        employee_id=employee_id,
        resource_id=resource_id,
        assignment_status=status_filter.upper() if status_filter else None,
    )
    return [AssignmentOut.model_validate(row) for row in rows]


@router.get("/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    assignment = await assignment_service.get_assignment_or_404(session, assignment_id)
    if not is_admin(user.roles) and assignment.employee_id != user.employee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    return AssignmentOut.model_validate(assignment)


@router.post("/{assignment_id}/transition", response_model=AssignmentOut)
async def transition(
    assignment_id: int,
    payload: AssignmentTransition,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    assignment = await assignment_service.get_assignment_or_404(session, assignment_id)
    await assignment_service.transition_assignment(
        session,
        assignment,
        payload.new_status,
        payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return AssignmentOut.model_validate(assignment)


@router.post("/{assignment_id}/revoke", response_model=AssignmentOut)
async def revoke(
    assignment_id: int,
    payload: AssignmentRevoke,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    assignment = await assignment_service.get_assignment_or_404(session, assignment_id)
    await assignment_service.revoke_assignment(
        session,
        assignment,
        payload.reason,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return AssignmentOut.model_validate(assignment)
