from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resource_portal.constants import EMPLOYEE_STATUS_ACTIVE, EMPLOYEE_STATUS_VALUES
from resource_portal.db.base import Base


class Employee(Base):
    __tablename__ = "rp_employee"

    employee_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(64), nullable=False, default="EMPLOYEE")
    department: Mapped[str | None] = mapped_column(String(128))
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("rp_employee.employee_id", ondelete="SET NULL"))
    status: Mapped[str] = mapped_column(
        Enum(*EMPLOYEE_STATUS_VALUES, name="rp_employee_status_enum"),
        nullable=False,
        default=EMPLOYEE_STATUS_ACTIVE,
    )
    joining_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    phone: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    manager: Mapped[Employee | None] = relationship("Employee", remote_side=[employee_id])
