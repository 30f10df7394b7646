from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resource_portal.constants import (
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_VALUES,
    ASSIGNMENT_TYPE_INDIVIDUAL,
    ASSIGNMENT_TYPE_VALUES,
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_VALUES,
    RESOURCE_STATUS_ACTIVE,
    RESOURCE_STATUS_VALUES,
    RESOURCE_TYPE_VALUES,
)
from resource_portal.db.base import Base


class Resource(Base):
    __tablename__ = "rp_resource"

    resource_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(Enum(*RESOURCE_TYPE_VALUES, name="rp_resource_type_enum"), nullable=False)
    resource_type_id: Mapped[int | None] = mapped_column(ForeignKey("rp_resource_type.resource_type_id"))
    resource_category_id: Mapped[int | None] = mapped_column(ForeignKey("rp_resource_category.category_id"))
    category: Mapped[str | None] = mapped_column(String(128))
    description: Mapped[str | None] = mapped_column(Text)
    owner: Mapped[str | None] = mapped_column(String(128))
    custodian_id: Mapped[int] = mapped_column(ForeignKey("rp_employee.employee_id"), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*RESOURCE_STATUS_VALUES, name="rp_resource_status_enum"),
        nullable=False,
        default=RESOURCE_STATUS_ACTIVE,
    )
    quantity: Mapped[int | None] = mapped_column(Integer)
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON)
    property_schema: Mapped[list | None] = mapped_column(JSON, default=list)
    schema_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    items: Mapped[list[ResourceItem]] = relationship("ResourceItem", back_populates="resource", passive_deletes=True)
    assignments: Mapped[list[ResourceAssignment]] = relationship("ResourceAssignment", back_populates="resource", passive_deletes=True)


class ResourceItem(Base):
    __tablename__ = "rp_resource_item"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("rp_resource.resource_id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        Enum(*ITEM_STATUS_VALUES, name="rp_item_status_enum"),
        nullable=False,
        default=ITEM_STATUS_AVAILABLE,
    )
    properties: Mapped[dict | None] = mapped_column(JSON, default=dict)
    serial_number: Mapped[str | None] = mapped_column(String(128), index=True)
    hostname: Mapped[str | None] = mapped_column(String(255))
    ip_address: Mapped[str | None] = mapped_column(String(64))
    mac_address: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    resource: Mapped[Resource] = relationship("Resource", back_populates="items")


class ResourceAssignment(Base):
    __tablename__ = "rp_resource_assignment"

    assignment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("rp_resource.resource_id"), nullable=False, index=True)
    item_id: Mapped[int | None] = mapped_column(ForeignKey("rp_resource_item.item_id"), index=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("rp_employee.employee_id"), nullable=False, index=True)
    assignment_type: Mapped[str] = mapped_column(
        Enum(*ASSIGNMENT_TYPE_VALUES, name="rp_assignment_type_enum"),
        nullable=False,
        default=ASSIGNMENT_TYPE_INDIVIDUAL,
    )
    status: Mapped[str] = mapped_column(
        Enum(*ASSIGNMENT_STATUS_VALUES, name="rp_assignment_status_enum"),
        nullable=False,
        default=ASSIGNMENT_STATUS_ACTIVE,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    assigned_by_id: Mapped[int | None] = mapped_column(ForeignKey("rp_employee.employee_id"))
    access_request_id: Mapped[int | None] = mapped_column(ForeignKey("rp_access_request.access_id", ondelete="SET NULL"))
    approval_workflow_id: Mapped[int | None] = mapped_column(
        ForeignKey("rp_approval_workflow.workflow_id", ondelete="SET NULL")
    )
    notes: Mapped[str | None] = mapped_column(Text)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    returned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    resource: Mapped[Resource] = relationship("Resource", back_populates="assignments")
    item: Mapped[ResourceItem | None] = relationship("ResourceItem")
