from __future__ import annotations

from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import EMPLOYEE_STATUS_ACTIVE
from resource_portal.core.config import settings
from resource_portal.core.roles import Role, has_required_role, parse_role
from resource_portal.db.session import get_session
from resource_portal.models.employee import Employee
from resource_portal.schemas.user import UserContext


async def get_current_user(request: Request, session: AsyncSession = Depends(get_session)) -> UserContext:
    email = (request.headers.get("x-user-email") or settings.default_user_email).strip().lower()
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_identity")

    employee = (
        await session.execute(select(Employee).where(Employee.email == email).limit(1))
    ).scalars().one_or_none()

    if employee:
        if employee.status != EMPLOYEE_STATUS_ACTIVE:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="employee_not_active")
        role = parse_role(employee.role) or Role.EMPLOYEE
        return UserContext(
            user_id=str(employee.employee_id),
            email=employee.email,
            roles=[role],
            employee_id=employee.employee_id,
            full_name=employee.name,
            department=employee.department,
            manager_id=employee.manager_id,
        )

    if settings.require_known_employee:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="employee_not_found")

    full_name = request.headers.get("x-user-name") or _derive_name_from_email(email)
    roles_header = request.headers.get("x-user-roles") or settings.default_user_roles
    roles: list[Role] = []
    for raw in roles_header.split(","):
        role = parse_role(raw)
        if role is not None:
            roles.append(role)

    if not roles:
        roles = [Role.EMPLOYEE]

    return UserContext(
        user_id=email,
        email=email,
        roles=roles,
        employee_id=None,
        full_name=full_name,
    )


def _derive_name_from_email(email: str) -> str:
    local = email.split("@", 1)[0].strip()
    if not local:
        return email
    parts = [p for p in local.replace("_", ".").split(".") if p]
    if not parts:
        return local
    return " ".join(p[:1].upper() + p[1:] for p in parts)


def require_roles(required: Iterable[Role]):
    required = list(required)

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not has_required_role(user.roles, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
        return user

    return dependency
