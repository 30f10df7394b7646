from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from resource_portal.constants import PROPERTY_TYPE_VALUES

PROPERTY_KEY_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


class ResourceTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str | None = None


class ResourceTypeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None


class ResourceTypeOut(BaseModel):
    resource_type_id: int
    name: str
    description: str | None
    is_system: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    resource_type_id: int
    name: str = Field(min_length=1, max_length=128)
    description: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None


class CategoryOut(BaseModel):
    category_id: int
    resource_type_id: int
    name: str
    description: str | None
    is_system: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PropertyCreate(BaseModel):
    key: str = Field(min_length=1, max_length=128)
    label: str = Field(min_length=1, max_length=255)
    data_type: str
    description: str | None = None

    @field_validator("key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        value = value.strip()
        if not PROPERTY_KEY_PATTERN.match(value):
            raise ValueError("invalid_property_key")
        return value

    @field_validator("data_type")
    @classmethod
    def validate_data_type(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in PROPERTY_TYPE_VALUES:
            raise ValueError("invalid_data_type")
        return value


class PropertyUpdate(BaseModel):
    label: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class PropertyOut(BaseModel):
    property_id: int
    key: str
    label: str
    data_type: str
    description: str | None
    is_system: bool
    created_at: datetime

    class Config:
        from_attributes = True
