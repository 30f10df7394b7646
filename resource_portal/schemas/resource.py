from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from resource_portal.constants import ITEM_STATUS_VALUES, RESOURCE_STATUS_VALUES, RESOURCE_TYPE_VALUES
from resource_portal.core.assignment_machine import normalize_resource_type
from resource_portal.schemas.assignment import AssignmentOut
from resource_portal.schemas.common import Pagination


class PropertyDefinition(BaseModel):
    key: str
    label: str = ""
    data_type: str = "STRING"
    is_required: bool = False
    description: str | None = None


class ResourceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    custodian_id: int
    description: str | None = None
    quantity: int | None = None
    metadata: dict[str, Any] | None = None

    # typed catalog
    resource_type_id: int | None = None
    resource_category_id: int | None = None
    selected_properties: list[PropertyDefinition] | None = None

    # legacy shape
    type: str | None = None
    category: str | None = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: str | None) -> str | None:
        if value is None:
            return value
        normalized = normalize_resource_type(value)
        if normalized not in RESOURCE_TYPE_VALUES:
            raise ValueError("invalid_resource_type")
        return normalized

    @model_validator(mode="after")
    def _validate_shape(self):
        if self.resource_type_id is None and self.type is None:
            raise ValueError("Provide resource_type_id or type.")
        if self.quantity is not None and (self.quantity == 0 or self.quantity < -1):
            raise ValueError("quantity must be at least 1, or -1 for unlimited cloud resources.")
        return self


class ResourceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    custodian_id: int | None = None
    status: str | None = None
    quantity: int | None = None
    metadata: dict[str, Any] | None = None
    resource_category_id: int | None = None
    category: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in RESOURCE_STATUS_VALUES:
            raise ValueError("invalid_status")
        return value


class PropertySchemaUpdate(BaseModel):
    properties: list[PropertyDefinition]


class Availability(BaseModel):
    mode: Literal["item", "license", "quantity"]
    total: int | None
    assigned: int
    available: int | None
    unlimited: bool = False
    maintenance: int = 0
    lost: int = 0
    damaged: int = 0


class LicenseCount(BaseModel):
    total: int
    used: int
    available: int


class ItemCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    properties: dict[str, Any] = Field(default_factory=dict)
    status: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in ITEM_STATUS_VALUES:
            raise ValueError("invalid_status")
        return value


class ItemUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    properties: dict[str, Any]


class ItemStatusUpdate(BaseModel):
    status: str
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        if value not in ITEM_STATUS_VALUES:
            raise ValueError("invalid_status")
        return value


class ItemOut(BaseModel):
    item_id: int
    resource_id: int
    status: str
    properties: dict[str, Any] | None
    serial_number: str | None
    hostname: str | None
    ip_address: str | None
    mac_address: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ItemAssignability(BaseModel):
    item_id: int
    can_assign: bool
    reason: str | None = None


class ResourceOut(BaseModel):
    resource_id: int
    name: str
    type: str
    resource_type_id: int | None
    resource_category_id: int | None
    category: str | None
    description: str | None
    owner: str | None
    custodian_id: int
    status: str
    quantity: int | None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_json", "metadata"),
    )
    property_schema: list[PropertyDefinition] | None
    schema_locked: bool
    created_at: datetime
    updated_at: datetime
    availability: Availability | None = None

    class Config:
        from_attributes = True


class ResourceDetail(ResourceOut):
    items: list[ItemOut] = Field(default_factory=list)
    active_assignments: list[AssignmentOut] = Field(default_factory=list)


class ResourceList(BaseModel):
    resources: list[ResourceOut]
    pagination: Pagination
