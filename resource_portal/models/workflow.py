from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from resource_portal.constants import (
    ACCESS_STATUS_REQUESTED,
    ACCESS_STATUS_VALUES,
    OPERATIONAL_CATEGORY_VALUES,
    PRIORITY_LOW,
    PRIORITY_VALUES,
    WORKFLOW_STATUS_PENDING,
    WORKFLOW_STATUS_VALUES,
    WORKFLOW_TYPE_VALUES,
)
from resource_portal.db.base import Base


class AccessRequest(Base):
    __tablename__ = "rp_access_request"

    access_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("rp_employee.employee_id"), nullable=False, index=True)
    resource_id: Mapped[int | None] = mapped_column(ForeignKey("rp_resource.resource_id", ondelete="SET NULL"), index=True)
    hardware_request: Mapped[str | None] = mapped_column(String(255))
    permission_level: Mapped[str] = mapped_column(String(16), nullable=False, default="READ")
    justification: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        Enum(*ACCESS_STATUS_VALUES, name="rp_access_status_enum"),
        nullable=False,
        default=ACCESS_STATUS_REQUESTED,
        index=True,
    )
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("rp_employee.employee_id"))
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    granted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class ApprovalWorkflow(Base):
    __tablename__ = "rp_approval_workflow"

    workflow_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_type: Mapped[str] = mapped_column(Enum(*WORKFLOW_TYPE_VALUES, name="rp_workflow_type_enum"), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*WORKFLOW_STATUS_VALUES, name="rp_workflow_status_enum"),
        nullable=False,
        default=WORKFLOW_STATUS_PENDING,
        index=True,
    )
    requester_id: Mapped[int] = mapped_column(ForeignKey("rp_employee.employee_id"), nullable=False, index=True)
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("rp_employee.employee_id"), index=True)
    data: Mapped[dict | None] = mapped_column(JSON)
    comments: Mapped[str | None] = mapped_column(Text)
    operational_category: Mapped[str] = mapped_column(
        Enum(*OPERATIONAL_CATEGORY_VALUES, name="rp_operational_category_enum"),
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(
        Enum(*PRIORITY_VALUES, name="rp_workflow_priority_enum"),
        nullable=False,
        default=PRIORITY_LOW,
    )
    access_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("rp_access_request.access_id", ondelete="CASCADE"),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
