from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.core.config import settings
from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.rbac import require_admin, require_employee
from resource_portal.request_context import get_request_context
from resource_portal.schemas.common import Pagination
from resource_portal.schemas.employee import (
    EmployeeCreate,
    EmployeeDependencies,
    EmployeeOut,
    EmployeeReassign,
    EmployeeReassignResult,
    EmployeeUpdate,
    OnboardingRequest,
    OnboardingResult,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services.employee_service import (
    create_employee,
    delete_employee,
    employee_dependencies,
    get_employee_or_404,
    list_employees,
    reassign_employee,
    update_employee,
)
from resource_portal.services.onboarding_service import onboard_employee

router = APIRouter(prefix="/employees", tags=["employees"])


def _ensure_self_or_admin(user: UserContext, employee_id: int) -> None:
    if is_admin(user.roles) or user.employee_id == employee_id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create(
    payload: EmployeeCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    employee = await create_employee(session, payload, actor=user, context=get_request_context(request))
    await session.commit()
    await session.refresh(employee)
    return EmployeeOut.model_validate(employee)


@router.get("", response_model=dict)
async def list_all(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    department: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    role: str | None = None,
    search: str | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    if not is_admin(user.roles):
        if user.employee_id is None:
            employees = []
        else:
            employees = [await get_employee_or_404(session, user.employee_id)]
        return {
            "employees": [EmployeeOut.model_validate(employee) for employee in employees],
            "pagination": Pagination.build(page=1, limit=limit, total_items=len(employees)),
        }

    employees, total = await list_employees(
        session,
        page=page,
        limit=limit,
        department=department,
        employee_status=status_filter,
        role=role,
        search=search,
    )
    return {
        "employees": [EmployeeOut.model_validate(employee) for employee in employees],
        "pagination": Pagination.build(page=page, limit=limit, total_items=total),
    }


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_one(
    employee_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    _ensure_self_or_admin(user, employee_id)
    return EmployeeOut.model_validate(await get_employee_or_404(session, employee_id))


@router.patch("/{employee_id}", response_model=EmployeeOut)
async def update(
    employee_id: int,
    payload: EmployeeUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    _ensure_self_or_admin(user, employee_id)
    employee = await get_employee_or_404(session, employee_id)
    await update_employee(
        session,
        employee,
        payload,
        actor=user,
        is_admin=is_admin(user.roles),
        context=get_request_context(request),
    )
    await session.commit()
    await session.refresh(employee)
    return EmployeeOut.model_validate(employee)


@router.get("/{employee_id}/dependencies", response_model=EmployeeDependencies)
async def dependencies(
    employee_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    await get_employee_or_404(session, employee_id)
    return await employee_dependencies(session, employee_id)


@router.delete("/{employee_id}", response_model=dict)
async def delete(
    employee_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    employee = await get_employee_or_404(session, employee_id)
    await delete_employee(session, employee, actor=user, context=get_request_context(request))
    try:
        await session.commit()
    except IntegrityError:
        # historical assignments or requests still reference the row
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="employee_has_history")
    return {"deleted": True, "employee_id": employee_id}


@router.post("/{employee_id}/reassign", response_model=EmployeeReassignResult)
async def reassign(
    employee_id: int,
    payload: EmployeeReassign,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    source = await get_employee_or_404(session, employee_id)
    target = await get_employee_or_404(session, payload.target_employee_id)
    result = await reassign_employee(session, source, target, actor=user, context=get_request_context(request))
    await session.commit()
    return result


@router.post("/{employee_id}/onboarding", response_model=OnboardingResult)
async def onboarding(
    employee_id: int,
    payload: OnboardingRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    employee = await get_employee_or_404(session, employee_id)
    result = await onboard_employee(
        session,
        employee,
        payload.resource_ids,
        notes=payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return result
