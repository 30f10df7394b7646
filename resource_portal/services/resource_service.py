"""Resource catalog rules: property schemas, items and availability accounting.

Routers own the transaction; functions here add, flush and raise
``HTTPException`` with snake_case codes but never commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import (
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_TYPE_POOLED,
    ENTITY_RESOURCE,
    ITEM_EXTRACTED_FIELDS,
    ITEM_STATUS_ASSIGNED,
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_DAMAGED,
    ITEM_STATUS_LOST,
    ITEM_STATUS_MAINTENANCE,
    MANDATORY_PROPERTIES,
    PROPERTY_TYPE_BOOLEAN,
    PROPERTY_TYPE_DATE,
    PROPERTY_TYPE_NUMBER,
    PROPERTY_TYPE_STRING,
    PROPERTY_TYPE_VALUES,
    RESOURCE_STATUS_ACTIVE,
    RESOURCE_TYPE_CLOUD,
    RESOURCE_TYPE_PHYSICAL,
    RESOURCE_TYPE_SOFTWARE,
    TYPE_NAME_TO_RESOURCE_TYPE,
    ACTIVITY_CREATED,
    ACTIVITY_DELETED,
    ACTIVITY_SCHEMA_LOCKED,
    ACTIVITY_STATUS_CHANGED,
    ACTIVITY_UPDATED,
)
from resource_portal.core.config import settings
from resource_portal.models.catalog import PropertyCatalog, ResourceCategory, ResourceTypeEntity
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource, ResourceAssignment, ResourceItem
from resource_portal.request_context import RequestContext
from resource_portal.schemas.resource import (
    Availability,
    ItemCreate,
    LicenseCount,
    PropertyDefinition,
    ResourceCreate,
    ResourceUpdate,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.timeline_service import log_timeline_activity

logger = logging.getLogger("portal.resources")

UNLIMITED_QUANTITY = -1


@dataclass
class SchemaValidationResult:
    missing_keys: list[str] = field(default_factory=list)
    extra_keys: list[str] = field(default_factory=list)
    type_errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not (self.missing_keys or self.extra_keys or self.type_errors)

    def messages(self) -> list[str]:
        errors: list[str] = []
        if self.missing_keys:
            errors.append(f"Missing required properties: {', '.join(self.missing_keys)}")
        if self.extra_keys:
            errors.append(f"Unknown properties not in schema: {', '.join(self.extra_keys)}")
        errors.extend(error["message"] for error in self.type_errors)
        return errors


def resource_type_for_name(name: str | None) -> str:
    if not name:
        return RESOURCE_TYPE_PHYSICAL
    return TYPE_NAME_TO_RESOURCE_TYPE.get(name.strip().lower(), RESOURCE_TYPE_PHYSICAL)


def _is_iso_date(value: str) -> bool:
    text = value.strip()
    if not text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        pass
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def is_valid_property_value(value: Any, data_type: str) -> bool:
    if data_type == PROPERTY_TYPE_STRING:
        return isinstance(value, str)
    if data_type == PROPERTY_TYPE_NUMBER:
        if isinstance(value, bool):
            return False
        if isinstance(value, float):
            return value == value
        return isinstance(value, int)
    if data_type == PROPERTY_TYPE_BOOLEAN:
        return isinstance(value, bool)
    if data_type == PROPERTY_TYPE_DATE:
        if isinstance(value, (date, datetime)):
            return True
        return isinstance(value, str) and _is_iso_date(value)
    return False


def validate_properties_against_schema(
    properties: dict[str, Any],
    schema: Sequence[PropertyDefinition],
) -> SchemaValidationResult:
    schema_keys = {definition.key for definition in schema}
    result = SchemaValidationResult()
    result.missing_keys = [
        definition.key for definition in schema if definition.is_required and definition.key not in properties
    ]
    result.extra_keys = [key for key in properties if key not in schema_keys]
    for definition in schema:
        value = properties.get(definition.key)
        if value is None:
            continue
        if not is_valid_property_value(value, definition.data_type):
            result.type_errors.append(
                {
                    "key": definition.key,
                    "message": (
                        f'Property "{definition.key}" has invalid type. '
                        f"Expected {definition.data_type}, got {type(value).__name__}"
                    ),
                    "expected_type": definition.data_type,
                }
            )
    return result


def validate_property_definitions(definitions: Sequence[PropertyDefinition]) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []
    seen: set[str] = set()
    for definition in definitions:
        key = (definition.key or "").strip()
        if not key:
            errors.append({"key": "", "message": "Property key is required"})
            continue
        if key in seen:
            errors.append({"key": key, "message": f'Duplicate property key: "{key}"'})
        seen.add(key)
        if not (definition.label or "").strip():
            errors.append({"key": key, "message": f'Property "{key}" is missing a label'})
        if definition.data_type not in PROPERTY_TYPE_VALUES:
            errors.append({"key": key, "message": f'Property "{key}" has invalid data type "{definition.data_type}"'})
    return errors


def parse_schema(raw: Iterable[dict] | None) -> list[PropertyDefinition]:
    return [PropertyDefinition.model_validate(entry) for entry in (raw or [])]


def extract_item_fields(properties: dict[str, Any]) -> dict[str, str | None]:
    extracted: dict[str, str | None] = {}
    for key, column in ITEM_EXTRACTED_FIELDS.items():
        value = properties.get(key)
        extracted[column] = str(value) if value is not None else None
    return extracted


def compute_availability(
    resource_type: str,
    quantity: int | None,
    item_counts: dict[str, int],
    active_assignments: int,
) -> Availability:
    """Summarise how much of a resource can still be handed out.

    PHYSICAL resources, and SOFTWARE resources that track individual
    installations as items, are counted per item. Other SOFTWARE counts
    licence seats (``quantity`` or 1). CLOUD counts seats against
    ``quantity`` where ``None`` or ``-1`` means unlimited.
    """
    total_items = sum(item_counts.values())
    if resource_type == RESOURCE_TYPE_PHYSICAL or (resource_type == RESOURCE_TYPE_SOFTWARE and total_items):
        return Availability(
            mode="item",
            total=total_items,
            assigned=item_counts.get(ITEM_STATUS_ASSIGNED, 0),
            available=item_counts.get(ITEM_STATUS_AVAILABLE, 0),
            maintenance=item_counts.get(ITEM_STATUS_MAINTENANCE, 0),
            lost=item_counts.get(ITEM_STATUS_LOST, 0),
            damaged=item_counts.get(ITEM_STATUS_DAMAGED, 0),
        )
    if resource_type == RESOURCE_TYPE_CLOUD:
        if quantity is None or quantity == UNLIMITED_QUANTITY:
            return Availability(mode="quantity", total=None, assigned=active_assignments, available=None, unlimited=True)
        return Availability(
            mode="quantity",
            total=quantity,
            assigned=active_assignments,
            available=max(0, quantity - active_assignments),
        )
    total = quantity or 1
    return Availability(
        mode="license",
        total=total,
        assigned=active_assignments,
        available=max(0, total - active_assignments),
    )


async def get_resource_or_404(session: AsyncSession, resource_id: int, *, lock: bool = False) -> Resource:
    stmt = select(Resource).where(Resource.resource_id == resource_id)
    if lock:
        stmt = stmt.with_for_update()
    resource = (await session.execute(stmt)).scalars().one_or_none()
    if not resource:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="resource_not_found")
    return resource


async def get_item_or_404(session: AsyncSession, item_id: int) -> ResourceItem:
    item = (await session.execute(select(ResourceItem).where(ResourceItem.item_id == item_id))).scalars().one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="item_not_found")
    return item


async def get_employee(session: AsyncSession, employee_id: int) -> Employee | None:
    return (
        await session.execute(select(Employee).where(Employee.employee_id == employee_id))
    ).scalars().one_or_none()


async def item_status_counts(session: AsyncSession, resource_ids: Sequence[int]) -> dict[int, dict[str, int]]:
    counts: dict[int, dict[str, int]] = {resource_id: {} for resource_id in resource_ids}
    if not resource_ids:
        return counts
    result = await session.execute(
        select(ResourceItem.resource_id, ResourceItem.status, func.count(ResourceItem.item_id))
        .where(ResourceItem.resource_id.in_(resource_ids))
        .group_by(ResourceItem.resource_id, ResourceItem.status)
    )
    for resource_id, item_status, count in result.all():
        counts[resource_id][item_status] = count
    return counts


async def active_assignment_counts(
    session: AsyncSession,
    resource_ids: Sequence[int],
    *,
    assignment_type: str | None = None,
) -> dict[int, int]:
    """Seats in use per resource: the summed quantity of ACTIVE assignments."""
    counts: dict[int, int] = {resource_id: 0 for resource_id in resource_ids}
    if not resource_ids:
        return counts
    stmt = (
        select(ResourceAssignment.resource_id, func.coalesce(func.sum(ResourceAssignment.quantity), 0))
        .where(
            ResourceAssignment.resource_id.in_(resource_ids),
            ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
        )
        .group_by(ResourceAssignment.resource_id)
    )
    if assignment_type is not None:
        stmt = stmt.where(ResourceAssignment.assignment_type == assignment_type)
    for resource_id, count in (await session.execute(stmt)).all():
        counts[resource_id] = int(count)
    return counts


async def availability_for_many(session: AsyncSession, resources: Sequence[Resource]) -> dict[int, Availability]:
    resource_ids = [resource.resource_id for resource in resources]
    items = await item_status_counts(session, resource_ids)
    active = await active_assignment_counts(session, resource_ids)
    return {
        resource.resource_id: compute_availability(
            resource.type,
            resource.quantity,
            items[resource.resource_id],
            active[resource.resource_id],
        )
        for resource in resources
    }


async def availability_for(session: AsyncSession, resource: Resource) -> Availability:
    return (await availability_for_many(session, [resource]))[resource.resource_id]


async def license_count(session: AsyncSession, resource: Resource) -> LicenseCount:
    used = (await active_assignment_counts(session, [resource.resource_id], assignment_type=ASSIGNMENT_TYPE_POOLED))[
        resource.resource_id
    ]
    total = resource.quantity or 1
    return LicenseCount(total=total, used=used, available=max(0, total - used))


async def _apply_mandatory_properties(
    session: AsyncSession,
    resource_type: str,
    definitions: list[PropertyDefinition],
) -> list[PropertyDefinition]:
    mandatory = MANDATORY_PROPERTIES.get(resource_type, ())
    if not mandatory:
        return definitions
    by_key = {definition.key: definition for definition in definitions}
    missing = [key for key in mandatory if key not in by_key]
    catalog: dict[str, PropertyCatalog] = {}
    if missing:
        result = await session.execute(select(PropertyCatalog).where(PropertyCatalog.key.in_(missing)))
        catalog = {entry.key: entry for entry in result.scalars().all()}
    merged = list(definitions)
    for key in mandatory:
        if key in by_key:
            by_key[key].is_required = True
            continue
        entry = catalog.get(key)
        merged.append(
            PropertyDefinition(
                key=key,
                label=entry.label if entry else key,
                data_type=entry.data_type if entry else PROPERTY_TYPE_STRING,
                is_required=True,
                description=entry.description if entry else None,
            )
        )
    return merged


def check_quantity(resource_type: str, quantity: int | None) -> None:
    """Only CLOUD resources may be unlimited; every other quantity must be positive."""
    if quantity is None:
        return
    if quantity == UNLIMITED_QUANTITY:
        if resource_type != RESOURCE_TYPE_CLOUD:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_quantity")
        return
    if quantity < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_quantity")


def _schema_error(errors: list[dict[str, str]]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "invalid_property_schema", "errors": errors},
    )


def _snapshot(resource: Resource) -> dict[str, Any]:
    return {
        "name": resource.name,
        "type": resource.type,
        "resource_type_id": resource.resource_type_id,
        "resource_category_id": resource.resource_category_id,
        "category": resource.category,
        "custodian_id": resource.custodian_id,
        "status": resource.status,
        "quantity": resource.quantity,
    }


async def create_resource(
    session: AsyncSession,
    payload: ResourceCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> Resource:
    custodian = await get_employee(session, payload.custodian_id)
    if not custodian:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="custodian_not_found")

    category_name: str | None = payload.category
    schema: list[PropertyDefinition] = []
    type_name: str | None = None

    if payload.resource_type_id is not None:
        resource_type_row = (
            await session.execute(
                select(ResourceTypeEntity).where(ResourceTypeEntity.resource_type_id == payload.resource_type_id)
            )
        ).scalars().one_or_none()
        if not resource_type_row:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_resource_type")
        if payload.resource_category_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="category_required")
        category = (
            await session.execute(
                select(ResourceCategory).where(ResourceCategory.category_id == payload.resource_category_id)
            )
        ).scalars().one_or_none()
        if not category:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_category")
        if category.resource_type_id != resource_type_row.resource_type_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="category_type_mismatch")
        if not payload.selected_properties:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="properties_required")

        errors = validate_property_definitions(payload.selected_properties)
        if errors:
            raise _schema_error(errors)

        legacy_type = resource_type_for_name(resource_type_row.name)
        schema = await _apply_mandatory_properties(session, legacy_type, list(payload.selected_properties))
        category_name = category.name
        type_name = resource_type_row.name
    else:
        legacy_type = payload.type
        if legacy_type == RESOURCE_TYPE_CLOUD and payload.quantity is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="cloud_quantity_required")

    check_quantity(legacy_type, payload.quantity)
    quantity = payload.quantity
    if quantity is None and legacy_type in (RESOURCE_TYPE_SOFTWARE, RESOURCE_TYPE_CLOUD):
        quantity = 1

    resource = Resource(
        name=payload.name.strip(),
        type=legacy_type,
        resource_type_id=payload.resource_type_id,
        resource_category_id=payload.resource_category_id,
        category=category_name,
        description=payload.description,
        owner=settings.organisation_name,
        custodian_id=custodian.employee_id,
        status=RESOURCE_STATUS_ACTIVE,
        quantity=quantity,
        metadata_json=payload.metadata,
        property_schema=[definition.model_dump() for definition in schema],
        schema_locked=False,
    )
    session.add(resource)
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_CREATE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before=None,
        after={**_snapshot(resource), "property_keys": [definition.key for definition in schema]},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_CREATED,
        title=f'Resource "{resource.name}" created',
        description=(
            f"New {type_name or legacy_type.lower()} resource created in "
            f"{category_name or 'general'} category with {len(schema)} properties"
        ),
        metadata={
            "resource_type": legacy_type,
            "category": category_name,
            "custodian": custodian.name,
            "property_keys": [definition.key for definition in schema],
        },
        resource_id=resource.resource_id,
    )
    logger.info(
        "resource_created",
        extra={"resource_id": resource.resource_id, "type": legacy_type, "actor": actor.email},
    )
    return resource


async def list_resources(
    session: AsyncSession,
    *,
    page: int,
    limit: int,
    resource_type: str | None = None,
    category: str | None = None,
    category_id: int | None = None,
    resource_status: str | None = None,
    search: str | None = None,
    assigned_to: int | None = None,
) -> tuple[list[Resource], int]:
    stmt = select(Resource)
    if resource_type:
        stmt = stmt.where(Resource.type == resource_type)
    if category:
        stmt = stmt.where(Resource.category == category)
    if category_id is not None:
        stmt = stmt.where(Resource.resource_category_id == category_id)
    if resource_status:
        stmt = stmt.where(Resource.status == resource_status)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Resource.name).like(pattern),
                func.lower(Resource.description).like(pattern),
                func.lower(Resource.category).like(pattern),
            )
        )
    if assigned_to is not None:
        holders = select(ResourceAssignment.resource_id).where(
            ResourceAssignment.employee_id == assigned_to,
            ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
        )
        stmt = stmt.where(Resource.resource_id.in_(holders))

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    result = await session.execute(
        stmt.order_by(Resource.name.asc(), Resource.resource_id.asc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_resource(
    session: AsyncSession,
    resource: Resource,
    payload: ResourceUpdate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> Resource:
    changes = payload.model_dump(exclude_unset=True)
    before = _snapshot(resource)

    if "custodian_id" in changes and changes["custodian_id"] is not None:
        if not await get_employee(session, changes["custodian_id"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="custodian_not_found")
        resource.custodian_id = changes["custodian_id"]

    if changes.get("resource_category_id") is not None:
        category = (
            await session.execute(
                select(ResourceCategory).where(ResourceCategory.category_id == changes["resource_category_id"])
            )
        ).scalars().one_or_none()
        if not category:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_category")
        if resource.resource_type_id is not None:
            matches = category.resource_type_id == resource.resource_type_id
        else:
            category_type = (
                await session.execute(
                    select(ResourceTypeEntity).where(ResourceTypeEntity.resource_type_id == category.resource_type_id)
                )
            ).scalars().one_or_none()
            # legacy resources only carry the coarse type
            matches = category_type is not None and resource_type_for_name(category_type.name) == resource.type
        if not matches:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="category_type_mismatch")
        resource.resource_category_id = category.category_id
        resource.category = category.name
    elif "category" in changes:
        if resource.resource_type_id is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="use_resource_category_id")
        resource.category = changes["category"]

    if "quantity" in changes:
        quantity = changes["quantity"]
        check_quantity(resource.type, quantity)
        if quantity is not None and quantity != UNLIMITED_QUANTITY:
            in_use = (await active_assignment_counts(session, [resource.resource_id]))[resource.resource_id]
            if quantity < in_use:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="quantity_below_usage")
        resource.quantity = quantity

    if changes.get("name") is not None:
        resource.name = changes["name"].strip()
    if "description" in changes:
        resource.description = changes["description"]
    if changes.get("status") is not None:
        resource.status = changes["status"]
    if "metadata" in changes:
        resource.metadata_json = changes["metadata"]

    session.add(resource)
    after = _snapshot(resource)
    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_UPDATE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before=before,
        after=after,
        context=context,
        changes_only=True,
    )
    changed = sorted(key for key in after if after[key] != before[key])
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_UPDATED,
        title=f'Resource "{resource.name}" updated',
        description=f"Changed: {', '.join(changed)}" if changed else "No field changes",
        metadata={"changed_fields": changed},
        resource_id=resource.resource_id,
    )
    return resource


async def _item_count(session: AsyncSession, resource_id: int) -> int:
    return (
        await session.execute(select(func.count(ResourceItem.item_id)).where(ResourceItem.resource_id == resource_id))
    ).scalar() or 0


async def update_property_schema(
    session: AsyncSession,
    resource: Resource,
    definitions: list[PropertyDefinition],
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> Resource:
    if resource.schema_locked or await _item_count(session, resource.resource_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="schema_locked")
    errors = validate_property_definitions(definitions)
    if errors:
        raise _schema_error(errors)

    schema = await _apply_mandatory_properties(session, resource.type, list(definitions))
    before = {"property_keys": [entry.get("key") for entry in resource.property_schema or []]}
    resource.property_schema = [definition.model_dump() for definition in schema]
    session.add(resource)

    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_SCHEMA_UPDATE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before=before,
        after={"property_keys": [definition.key for definition in schema]},
        context=context,
    )
    return resource


async def delete_resource(
    session: AsyncSession,
    resource: Resource,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    if await _item_count(session, resource.resource_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="resource_has_items")
    active = (await active_assignment_counts(session, [resource.resource_id]))[resource.resource_id]
    if active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="resource_has_active_assignments")

    before = _snapshot(resource)
    await session.execute(delete(ResourceAssignment).where(ResourceAssignment.resource_id == resource.resource_id))
    await write_audit_log(
        session,
        actor=actor,
        action="RESOURCE_DELETE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before=before,
        after=None,
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_DELETED,
        title=f'Resource "{resource.name}" deleted',
        metadata=before,
    )
    await session.delete(resource)


def _validate_item_properties(resource: Resource, properties: dict[str, Any]) -> None:
    schema = parse_schema(resource.property_schema)
    result = validate_properties_against_schema(properties, schema)
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "property_validation_failed",
                "errors": result.messages(),
                "missing_keys": result.missing_keys,
                "extra_keys": result.extra_keys,
            },
        )


async def create_item(
    session: AsyncSession,
    resource: Resource,
    payload: ItemCreate,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceItem:
    item_status = payload.status or ITEM_STATUS_AVAILABLE
    if item_status == ITEM_STATUS_ASSIGNED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="item_status_requires_assignment")
    _validate_item_properties(resource, payload.properties)

    is_first_item = not await _item_count(session, resource.resource_id)
    item = ResourceItem(
        resource_id=resource.resource_id,
        status=item_status,
        properties=payload.properties,
        **extract_item_fields(payload.properties),
    )
    session.add(item)
    await session.flush()

    if is_first_item and not resource.schema_locked:
        resource.schema_locked = True
        session.add(resource)
        await write_audit_log(
            session,
            actor=actor,
            action="RESOURCE_SCHEMA_LOCK",
            entity_type=ENTITY_RESOURCE,
            entity_id=str(resource.resource_id),
            before={"schema_locked": False},
            after={"schema_locked": True},
            context=context,
        )
        await log_timeline_activity(
            session,
            actor=actor,
            entity_type=ENTITY_RESOURCE,
            entity_id=resource.resource_id,
            activity_type=ACTIVITY_SCHEMA_LOCKED,
            title=f"{resource.name} property schema locked",
            description="The first item was added; the property schema can no longer change",
            resource_id=resource.resource_id,
        )

    await write_audit_log(
        session,
        actor=actor,
        action="ITEM_CREATE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before=None,
        after={"item_id": item.item_id, "properties": payload.properties, "status": item.status},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_CREATED,
        title=f"New {resource.name} item added",
        description=f"Resource item created with {len(payload.properties)} properties",
        metadata={"item_id": item.item_id, "is_first_item": is_first_item},
        resource_id=resource.resource_id,
    )
    return item


async def item_has_active_assignment(session: AsyncSession, item_id: int) -> bool:
    count = (
        await session.execute(
            select(func.count(ResourceAssignment.assignment_id)).where(
                ResourceAssignment.item_id == item_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            )
        )
    ).scalar() or 0
    return count > 0


async def update_item(
    session: AsyncSession,
    resource: Resource,
    item: ResourceItem,
    properties: dict[str, Any],
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceItem:
    _validate_item_properties(resource, properties)
    before = {"properties": item.properties}
    item.properties = properties
    for column, value in extract_item_fields(properties).items():
        setattr(item, column, value)
    session.add(item)
    await write_audit_log(
        session,
        actor=actor,
        action="ITEM_UPDATE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before={"item_id": item.item_id, **before},
        after={"item_id": item.item_id, "properties": properties},
        context=context,
    )
    return item


async def update_item_status(
    session: AsyncSession,
    resource: Resource,
    item: ResourceItem,
    new_status: str,
    notes: str | None,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> ResourceItem:
    if new_status == ITEM_STATUS_ASSIGNED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="item_status_requires_assignment")
    if await item_has_active_assignment(session, item.item_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="item_has_active_assignment")

    old_status = item.status
    item.status = new_status
    session.add(item)
    await write_audit_log(
        session,
        actor=actor,
        action="ITEM_STATUS_CHANGE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before={"item_id": item.item_id, "status": old_status},
        after={"item_id": item.item_id, "status": new_status},
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_STATUS_CHANGED,
        title=f"{resource.name} item status changed",
        description=f"Item status changed from {old_status} to {new_status}" + (f": {notes}" if notes else ""),
        metadata={"item_id": item.item_id, "old_status": old_status, "new_status": new_status, "notes": notes},
        resource_id=resource.resource_id,
    )
    return item


async def delete_item(
    session: AsyncSession,
    resource: Resource,
    item: ResourceItem,
    *,
    actor: UserContext,
    context: RequestContext | None,
) -> None:
    if await item_has_active_assignment(session, item.item_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="item_has_active_assignment")

    label = item.serial_number or item.hostname or str(item.item_id)
    await write_audit_log(
        session,
        actor=actor,
        action="ITEM_DELETE",
        entity_type=ENTITY_RESOURCE,
        entity_id=str(resource.resource_id),
        before={"item_id": item.item_id, "properties": item.properties},
        after=None,
        context=context,
    )
    await log_timeline_activity(
        session,
        actor=actor,
        entity_type=ENTITY_RESOURCE,
        entity_id=resource.resource_id,
        activity_type=ACTIVITY_DELETED,
        title=f"{resource.name} item removed",
        description=f"Resource item {label} removed from inventory",
        metadata={"item_id": item.item_id},
        resource_id=resource.resource_id,
    )
    await session.execute(
        update(ResourceAssignment).where(ResourceAssignment.item_id == item.item_id).values(item_id=None)
    )
    await session.delete(item)
