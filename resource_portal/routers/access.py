from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.rbac import require_admin, require_employee, require_employee_record
from resource_portal.request_context import get_request_context
from resource_portal.schemas.user import UserContext
from resource_portal.schemas.workflow import AccessRequestCreate, AccessRequestOut, AccessRevoke, WorkflowOut
from resource_portal.services import access_service

router = APIRouter(prefix="/access", tags=["access"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def request_access(
    payload: AccessRequestCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    admin = is_admin(user.roles)
    if payload.employee_id is not None and payload.employee_id != user.employee_id and not admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    employee_id = payload.employee_id if payload.employee_id is not None else require_employee_record(user)

    access, workflow = await access_service.create_access_request(
        session,
        payload,
        employee_id=employee_id,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return {
        "access_request": AccessRequestOut.model_validate(access),
        "workflow": WorkflowOut.model_validate(workflow),
    }


@router.get("", response_model=list[AccessRequestOut])
async def list_access(
    status_filter: str | None = Query(default=None, alias="status"),
    employee_id: int | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    if is_admin(user.roles):
        rows = await access_service.list_access_requests(
            session,
            access_status=status_filter,
            employee_id=employee_id,
        )
    else:
        if user.employee_id is None:
            return []
        rows = await access_service.list_access_requests(
            session,
            access_status=status_filter,
            visible_to=user.employee_id,
        )
    return [AccessRequestOut.model_validate(row) for row in rows]


@router.get("/{access_id}", response_model=AccessRequestOut)
async def get_access(
    access_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    access = await access_service.get_access_or_404(session, access_id)
    if not is_admin(user.roles) and user.employee_id not in (access.employee_id, access.approver_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    return AccessRequestOut.model_validate(access)


@router.delete("/{access_id}", response_model=dict)
async def delete_access(
    access_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    access = await access_service.get_access_or_404(session, access_id)
    await access_service.delete_access_request(
        session,
        access,
        actor=user,
        is_admin=is_admin(user.roles),
        context=get_request_context(request),
    )
    await session.commit()
    return {"deleted": True, "access_id": access_id}


@router.post("/{access_id}/revoke", response_model=dict)
async def revoke_access(
    access_id: int,
    payload: AccessRevoke,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    access = await access_service.get_access_or_404(session, access_id)
    revoked = await access_service.revoke_access(
        session,
        access,
        payload.reason,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return {"access_request": AccessRequestOut.model_validate(access), "revoked_assignment_ids": revoked}
