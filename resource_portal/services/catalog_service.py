from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import ENTITY_CATALOG, SYSTEM_PROPERTIES, SYSTEM_RESOURCE_TYPES
from resource_portal.models.catalog import PropertyCatalog, ResourceCategory, ResourceTypeEntity
from resource_portal.models.resource import Resource
from resource_portal.request_context import RequestContext
from resource_portal.schemas.catalog import (
    CategoryCreate,
    CategoryUpdate,
    PropertyCreate,
    PropertyUpdate,
    ResourceTypeCreate,
    ResourceTypeUpdate,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services.audit_service import write_audit_log

logger = logging.getLogger("portal.catalog")


async def seed_system_catalog(session: AsyncSession) -> dict[str, int]:
    """Insert missing system types, categories and properties. Safe to rerun."""
    created = {"types": 0, "categories": 0, "properties": 0}

    existing_types = {
        row.name: row for row in (await session.execute(select(ResourceTypeEntity))).scalars().all()
    }
    for type_name, category_names in SYSTEM_RESOURCE_TYPES.items():
        resource_type = existing_types.get(type_name)
        if resource_type is None:
            resource_type = ResourceTypeEntity(
                name=type_name,
                description=f"{type_name} resources",
                is_system=True,
            )
            session.add(resource_type)
            await session.flush()
            created["types"] += 1

        existing_categories = set(
            (
                await session.execute(
                    select(ResourceCategory.name).where(
                        ResourceCategory.resource_type_id == resource_type.resource_type_id
                    )
                )
            ).scalars().all()
        )
        for category_name in category_names:
            if category_name in existing_categories:
                continue
            session.add(
                ResourceCategory(
                    resource_type_id=resource_type.resource_type_id,
                    name=category_name,
                    is_system=True,
                )
            )
            created["categories"] += 1

    existing_keys = set((await session.execute(select(PropertyCatalog.key))).scalars().all())
    for key, label, data_type, description in SYSTEM_PROPERTIES:
        if key in existing_keys:
            continue
        session.add(PropertyCatalog(key=key, label=label, data_type=data_type, description=description, is_system=True))
        created["properties"] += 1

    await session.flush()
    if any(created.values()):
        logger.info("system_catalog_seeded", extra=created)
    return created


async def list_resource_types(session: AsyncSession) -> list[ResourceTypeEntity]:
    result = await session.execute(
        select(ResourceTypeEntity).order_by(ResourceTypeEntity.is_system.desc(), ResourceTypeEntity.name.asc())
    )
    return list(result.scalars().all())


async def get_resource_type_or_404(session: AsyncSession, resource_type_id: int) -> ResourceTypeEntity:
    row = (
        await session.execute(
            select(ResourceTypeEntity).where(ResourceTypeEntity.resource_type_id == resource_type_id)
        )
    ).scalars().one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="resource_type_not_found")
    return row


async def _type_name_taken(session: AsyncSession, name: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(ResourceTypeEntity.resource_type_id).where(func.lower(ResourceTypeEntity.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(ResourceTypeEntity.resource_type_id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar() is not None


async def create_resource_type(
    session: AsyncSession,
    payload: ResourceTypeCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceTypeEntity:
    name = payload.name.strip()
    if await _type_name_taken(session, name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="resource_type_exists")
    row = ResourceTypeEntity(name=name, description=payload.description, is_system=False)
    session.add(row)
    await session.flush()
    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_TYPE_CREATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"type:{row.resource_type_id}",
        before=None,
        after={"name": row.name, "description": row.description},
        context=context,
    )
    return row


async def update_resource_type(
    session: AsyncSession,
    row: ResourceTypeEntity,
    payload: ResourceTypeUpdate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceTypeEntity:
    data = payload.model_dump(exclude_unset=True)
    if row.is_system and "name" in data and data["name"] != row.name:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="system_type_locked")
    if data.get("name"):
        data["name"] = data["name"].strip()
        if await _type_name_taken(session, data["name"], exclude_id=row.resource_type_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="resource_type_exists")
    before = {"name": row.name, "description": row.description}
    for key, value in data.items():
        setattr(row, key, value)
    session.add(row)
    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_TYPE_UPDATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"type:{row.resource_type_id}",
        before=before,
        after=data,
        context=context,
    )
    return row


async def delete_resource_type(
    session: AsyncSession,
    row: ResourceTypeEntity,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    if row.is_system:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="system_type_locked")
    in_use = (
        await session.execute(
            select(func.count(Resource.resource_id)).where(Resource.resource_type_id == row.resource_type_id)
        )
    ).scalar() or 0
    if in_use:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="resource_type_in_use")

    categories = (
        await session.execute(
            select(ResourceCategory).where(ResourceCategory.resource_type_id == row.resource_type_id)
        )
    ).scalars().all()
    for category in categories:
        await session.delete(category)
    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_TYPE_DELETE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"type:{row.resource_type_id}",
        before={"name": row.name, "categories": [category.name for category in categories]},
        after=None,
        context=context,
    )
    await session.flush()
    await session.delete(row)


async def list_categories(session: AsyncSession, resource_type_id: int | None = None) -> list[ResourceCategory]:
    stmt = select(ResourceCategory)
    if resource_type_id is not None:
        stmt = stmt.where(ResourceCategory.resource_type_id == resource_type_id)
    result = await session.execute(stmt.order_by(ResourceCategory.name.asc()))
    return list(result.scalars().all())


async def get_category_or_404(session: AsyncSession, category_id: int) -> ResourceCategory:
    row = (
        await session.execute(select(ResourceCategory).where(ResourceCategory.category_id == category_id))
    ).scalars().one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="category_not_found")
    return row


async def _category_name_taken(
    session: AsyncSession, resource_type_id: int, name: str, *, exclude_id: int | None = None
) -> bool:
    stmt = select(ResourceCategory.category_id).where(
        ResourceCategory.resource_type_id == resource_type_id,
        func.lower(ResourceCategory.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(ResourceCategory.category_id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar() is not None


async def create_category(
    session: AsyncSession,
    payload: CategoryCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceCategory:
    await get_resource_type_or_404(session, payload.resource_type_id)
    name = payload.name.strip()
    if await _category_name_taken(session, payload.resource_type_id, name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="category_exists")
    row = ResourceCategory(
        resource_type_id=payload.resource_type_id,
        name=name,
        description=payload.description,
        is_system=False,
    )
    session.add(row)
    await session.flush()
    await write_audit_log(
        session,
        actor=actor,
        action="CATEGORY_CREATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"category:{row.category_id}",
        before=None,
        after={"name": row.name, "resource_type_id": row.resource_type_id},
        context=context,
    )
    return row


async def update_category(
    session: AsyncSession,
    row: ResourceCategory,
    payload: CategoryUpdate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceCategory:
    data = payload.model_dump(exclude_unset=True)
    if row.is_system and "name" in data and data["name"] != row.name:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="system_category_locked")
    if data.get("name"):
        data["name"] = data["name"].strip()
        if await _category_name_taken(session, row.resource_type_id, data["name"], exclude_id=row.category_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="category_exists")
    before = {"name": row.name, "description": row.description}
    for key, value in data.items():
        setattr(row, key, value)
    session.add(row)
    await write_audit_log(
        session,
        actor=actor,
        action="CATEGORY_UPDATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"category:{row.category_id}",
        before=before,
        after=data,
        context=context,
    )
    return row


async def delete_category(
    session: AsyncSession,
    row: ResourceCategory,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    if row.is_system:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="system_category_locked")
    in_use = (
        await session.execute(
            select(func.count(Resource.resource_id)).where(Resource.resource_category_id == row.category_id)
        )
    ).scalar() or 0
    if in_use:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="category_in_use")
    await write_audit_log(
        session,
        actor=actor,
        action="CATEGORY_DELETE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"category:{row.category_id}",
        before={"name": row.name, "resource_type_id": row.resource_type_id},
        after=None,
        context=context,
    )
    await session.delete(row)


async def list_properties(session: AsyncSession) -> list[PropertyCatalog]:
    result = await session.execute(
        select(PropertyCatalog).order_by(PropertyCatalog.is_system.desc(), PropertyCatalog.key.asc())
    )
    return list(result.scalars().all())


async def get_property_or_404(session: AsyncSession, property_id: int) -> PropertyCatalog:
    row = (
        await session.execute(select(PropertyCatalog).where(PropertyCatalog.property_id == property_id))
    ).scalars().one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="property_not_found")
    return row


async def create_property(
    session: AsyncSession,
    payload: PropertyCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> PropertyCatalog:
    exists = (
        await session.execute(select(PropertyCatalog.property_id).where(PropertyCatalog.key == payload.key))
    ).scalar()
    if exists is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="property_exists")
    row = PropertyCatalog(
        key=payload.key,
        label=payload.label.strip(),
        data_type=payload.data_type,
        description=payload.description,
        is_system=False,
    )
    session.add(row)
    await session.flush()
    await write_audit_log(
        session,
        actor=actor,
        action="PROPERTY_CREATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"property:{row.key}",
        before=None,
        after={"key": row.key, "label": row.label, "data_type": row.data_type},
        context=context,
    )
    return row


async def update_property(
    session: AsyncSession,
    row: PropertyCatalog,
    payload: PropertyUpdate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> PropertyCatalog:
    data = payload.model_dump(exclude_unset=True)
    before = {"label": row.label, "description": row.description}
    for key, value in data.items():
        setattr(row, key, value)
    session.add(row)
    await write_audit_log(
        session,
        actor=actor,
        action="PROPERTY_UPDATE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"property:{row.key}",
        before=before,
        after=data,
        context=context,
    )
    return row


async def delete_property(
    session: AsyncSession,
    row: PropertyCatalog,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    if row.is_system:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="system_property_locked")
    await write_audit_log(
        session,
        actor=actor,
        action="PROPERTY_DELETE",
        entity_type=ENTITY_CATALOG,
        entity_id=f"property:{row.key}",
        before={"key": row.key, "label": row.label, "data_type": row.data_type},
        after=None,
        context=context,
    )
    await session.delete(row)
