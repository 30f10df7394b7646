from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resource_portal.constants import PROPERTY_TYPE_VALUES
from resource_portal.db.base import Base


class ResourceTypeEntity(Base):
    __tablename__ = "rp_resource_type"

    resource_type_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    categories: Mapped[list[ResourceCategory]] = relationship("ResourceCategory", back_populates="resource_type", passive_deletes=True)


class ResourceCategory(Base):
    __tablename__ = "rp_resource_category"
    __table_args__ = (UniqueConstraint("resource_type_id", "name", name="uq_rp_category_type_name"),)

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_type_id: Mapped[int] = mapped_column(ForeignKey("rp_resource_type.resource_type_id"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    resource_type: Mapped[ResourceTypeEntity] = relationship("ResourceTypeEntity", back_populates="categories")


class PropertyCatalog(Base):
    __tablename__ = "rp_property_catalog"

    property_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    data_type: Mapped[str] = mapped_column(Enum(*PROPERTY_TYPE_VALUES, name="rp_property_type_enum"), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
