from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from resource_portal.constants import EMPLOYEE_STATUS_VALUES
from resource_portal.core.roles import parse_role


def _validate_role(value: str | None) -> str | None:
    if value is None:
        return value
    role = parse_role(value)
    if role is None:
        raise ValueError("invalid_role")
    return role.value


def _validate_status(value: str | None) -> str | None:
    if value is None:
        return value
    normalized = value.strip().upper()
    if normalized not in EMPLOYEE_STATUS_VALUES:
        raise ValueError("invalid_status")
    return normalized


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    role: str = "EMPLOYEE"
    department: str | None = None
    manager_id: int | None = None
    status: str = "ACTIVE"
    joining_date: datetime | None = None
    phone: str | None = None
    address: str | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        return _validate_role(value)

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _validate_status(value)


class EmployeeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    role: str | None = None
    department: str | None = None
    manager_id: int | None = None
    status: str | None = None
    joining_date: datetime | None = None
    phone: str | None = None
    address: str | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        return _validate_role(value)

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return _validate_status(value)


class EmployeeOut(BaseModel):
    employee_id: int
    name: str
    email: str
    role: str
    department: str | None
    manager_id: int | None
    status: str
    joining_date: datetime | None
    phone: str | None
    address: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmployeeDependencies(BaseModel):
    employee_id: int
    active_assignments: int
    custodian_of_resources: int
    open_access_requests: int
    pending_approvals: int

    @property
    def has_dependencies(self) -> bool:
        return any(
            [
                self.active_assignments,
                self.custodian_of_resources,
                self.open_access_requests,
                self.pending_approvals,
            ]
        )


class EmployeeReassign(BaseModel):
    target_employee_id: int


class EmployeeReassignResult(BaseModel):
    source_employee_id: int
    target_employee_id: int
    resources: int = 0
    assignments_moved: int = 0
    assignments_released: int = 0
    subordinates: int = 0
    approvals: int = 0


class OnboardingRequest(BaseModel):
    resource_ids: list[int] | None = None
    notes: str | None = None


class OnboardingFailure(BaseModel):
    resource_id: int
    code: str
    message: str | None = None


class OnboardingResult(BaseModel):
    employee_id: int
    assigned: list[int] = Field(default_factory=list)
    already_held: list[int] = Field(default_factory=list)
    failed: list[OnboardingFailure] = Field(default_factory=list)
