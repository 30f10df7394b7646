from __future__ import annotations

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    CEO = "CEO"
    CTO = "CTO"
    CFO = "CFO"
    COO = "COO"
    ENGINEERING_MANAGER = "ENGINEERING_MANAGER"
    PRODUCT_MANAGER = "PRODUCT_MANAGER"
    SALES_MANAGER = "SALES_MANAGER"
    HR_MANAGER = "HR_MANAGER"
    MARKETING_MANAGER = "MARKETING_MANAGER"
    FRONTEND_DEVELOPER = "FRONTEND_DEVELOPER"
    BACKEND_DEVELOPER = "BACKEND_DEVELOPER"
    FULLSTACK_DEVELOPER = "FULLSTACK_DEVELOPER"
    MOBILE_DEVELOPER = "MOBILE_DEVELOPER"
    DEVOPS_ENGINEER = "DEVOPS_ENGINEER"
    QA_ENGINEER = "QA_ENGINEER"
    DATA_SCIENTIST = "DATA_SCIENTIST"
    UI_UX_DESIGNER = "UI_UX_DESIGNER"
    SYSTEM_ADMINISTRATOR = "SYSTEM_ADMINISTRATOR"
    SECURITY_ENGINEER = "SECURITY_ENGINEER"
    SALES_REPRESENTATIVE = "SALES_REPRESENTATIVE"
    BUSINESS_ANALYST = "BUSINESS_ANALYST"
    MARKETING_SPECIALIST = "MARKETING_SPECIALIST"
    HR_SPECIALIST = "HR_SPECIALIST"
    ACCOUNTANT = "ACCOUNTANT"
    INTERN = "INTERN"
    JUNIOR_DEVELOPER = "JUNIOR_DEVELOPER"
    TRAINEE = "TRAINEE"
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"


# CEO and CTO pass every role check.
ADMIN_ROLES: frozenset[Role] = frozenset({Role.CEO, Role.CTO})

MANAGER_ROLES: frozenset[Role] = frozenset(
    {
        Role.CEO,
        Role.CTO,
        Role.CFO,
        Role.COO,
        Role.ENGINEERING_MANAGER,
        Role.PRODUCT_MANAGER,
        Role.SALES_MANAGER,
        Role.HR_MANAGER,
        Role.MARKETING_MANAGER,
    }
)

ALL_ROLES: frozenset[Role] = frozenset(Role)


def parse_role(raw: str | None) -> Role | None:
    if raw is None:
        return None
    normalized = raw.strip().upper().replace(" ", "_").replace("-", "_")
    if not normalized:
        return None
    try:
        return Role(normalized)
    except ValueError:
        return None


def has_required_role(user_roles: Iterable[Role], required: Iterable[Role]) -> bool:
    user_role_set = set(user_roles)
    if user_role_set & ADMIN_ROLES:
        return True
    return any(role in user_role_set for role in required)


def is_admin(user_roles: Iterable[Role]) -> bool:
    return bool(set(user_roles) & ADMIN_ROLES)


def is_manager(user_roles: Iterable[Role]) -> bool:
    return bool(set(user_roles) & MANAGER_ROLES)
