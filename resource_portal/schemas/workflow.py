from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from resource_portal.constants import PERMISSION_LEVEL_VALUES, WORKFLOW_TYPE_VALUES


class AccessRequestCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employee_id: int | None = None
    resource_id: int | None = None
    hardware_request: str | None = Field(default=None, max_length=255)
    approver_id: int | None = None
    permission_level: str = "READ"
    justification: str | None = None

    @field_validator("permission_level")
    @classmethod
    def validate_permission_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in PERMISSION_LEVEL_VALUES:
            raise ValueError("invalid_permission_level")
        return value

    @field_validator("hardware_request")
    @classmethod
    def strip_hardware_request(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.strip() or None

    @model_validator(mode="after")
    def _validate_target(self):
        if self.resource_id is None and not self.hardware_request:
            raise ValueError("Provide at least one of resource_id or hardware_request.")
        return self


class AccessRevoke(BaseModel):
    reason: str | None = None


class AccessRequestOut(BaseModel):
    access_id: int
    employee_id: int
    resource_id: int | None
    hardware_request: str | None
    permission_level: str
    justification: str | None
    status: str
    approver_id: int | None
    requested_at: datetime
    approved_at: datetime | None
    granted_at: datetime | None
    revoked_at: datetime | None

    class Config:
        from_attributes = True


class WorkflowCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workflow_type: str
    approver_id: int | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    comments: str | None = None

    @field_validator("workflow_type")
    @classmethod
    def validate_workflow_type(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in WORKFLOW_TYPE_VALUES:
            raise ValueError("invalid_workflow_type")
        return value


class WorkflowDecision(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: Literal["approve", "reject"]
    comments: str | None = Field(default=None, max_length=2000)


class WorkflowOut(BaseModel):
    workflow_id: int
    workflow_type: str
    status: str
    requester_id: int
    approver_id: int | None
    data: dict[str, Any] | None
    comments: str | None
    operational_category: str
    priority: str
    access_request_id: int | None
    created_at: datetime
    updated_at: datetime
    decided_at: datetime | None

    class Config:
        from_attributes = True


class WorkflowDecisionResult(BaseModel):
    workflow: WorkflowOut
    access_request: AccessRequestOut | None = None
    assignment_id: int | None = None
    created_resource_id: int | None = None
    fulfilment: str | None = None


class WorkflowStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    my_requests: int
    total_processed: int
    by_category: dict[str, int]
