from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class AuditLogOut(BaseModel):
    audit_id: int
    actor_employee_id: int | None
    actor_email: str | None
    action: str
    entity_type: str
    entity_id: str
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime
    request_id: str | None

    class Config:
        from_attributes = True


class TimelineEntryOut(BaseModel):
    activity_id: int
    entity_type: str
    entity_id: str
    activity_type: str
    title: str
    description: str | None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_json", "metadata"),
    )
    performed_by_id: int | None
    performed_by_email: str | None
    resource_id: int | None
    employee_id: int | None
    workflow_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True
