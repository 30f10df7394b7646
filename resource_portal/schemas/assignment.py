from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resource_portal.constants import ASSIGNMENT_STATUS_VALUES, ASSIGNMENT_TYPE_VALUES


class AssignmentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resource_id: int
    employee_id: int
    item_id: int | None = None
    assignment_type: str | None = None
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None

    @field_validator("assignment_type")
    @classmethod
    def validate_assignment_type(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in ASSIGNMENT_TYPE_VALUES:
            raise ValueError("invalid_assignment_type")
        return value


class QuickAssign(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resource_id: int
    employee_id: int
    notes: str | None = None


class PostApprovalAssign(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resource_id: int
    employee_id: int
    approval_workflow_id: int | None = None
    assignment_type: str | None = None
    notes: str | None = None

    @field_validator("assignment_type")
    @classmethod
    def validate_assignment_type(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in ASSIGNMENT_TYPE_VALUES:
            raise ValueError("invalid_assignment_type")
        return value


class AssignmentTransition(BaseModel):
    new_status: str
    notes: str | None = None

    @field_validator("new_status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        if value not in ASSIGNMENT_STATUS_VALUES:
            raise ValueError("invalid_status")
        return value


class AssignmentRevoke(BaseModel):
    reason: str | None = None


class AssignmentOut(BaseModel):
    assignment_id: int
    resource_id: int
    item_id: int | None
    employee_id: int
    assignment_type: str
    status: str
    quantity: int
    assigned_by_id: int | None
    access_request_id: int | None
    approval_workflow_id: int | None
    notes: str | None
    assigned_at: datetime
    returned_at: datetime | None

    class Config:
        from_attributes = True


class AssignmentResult(BaseModel):
    assignment: AssignmentOut
    created: bool
    message: str
