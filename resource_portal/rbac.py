from __future__ import annotations

from fastapi import HTTPException, status

from resource_portal.core.auth import require_roles
from resource_portal.core.roles import ALL_ROLES, MANAGER_ROLES, Role
from resource_portal.schemas.user import UserContext


def require_admin():
    return require_roles([Role.CEO, Role.CTO])


def require_catalog_admin():
    return require_roles([Role.CEO, Role.CTO, Role.ADMIN])


def require_manager():
    return require_roles(sorted(MANAGER_ROLES, key=lambda role: role.value))


def require_employee():
    return require_roles(sorted(ALL_ROLES, key=lambda role: role.value))


def require_employee_record(user: UserContext) -> int:
    if user.employee_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="employee_record_required")
    return user.employee_id
