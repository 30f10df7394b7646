from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.constants import ASSIGNMENT_STATUS_ACTIVE
from resource_portal.core.config import settings
from resource_portal.core.roles import is_admin
from resource_portal.db.session import get_session
from resource_portal.models.resource import Resource, ResourceAssignment, ResourceItem
from resource_portal.rbac import require_admin, require_employee
from resource_portal.request_context import get_request_context
from resource_portal.schemas.assignment import AssignmentOut
from resource_portal.schemas.common import Pagination
from resource_portal.schemas.resource import (
    Availability,
    ItemAssignability,
    ItemCreate,
    ItemOut,
    ItemStatusUpdate,
    ItemUpdate,
    LicenseCount,
    PropertySchemaUpdate,
    ResourceCreate,
    ResourceDetail,
    ResourceList,
    ResourceOut,
    ResourceUpdate,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services import resource_service
from resource_portal.services.assignment_service import can_assign_item, shared_resource_users

router = APIRouter(prefix="/resources", tags=["resources"])


async def _visible_resource(session: AsyncSession, resource_id: int, user: UserContext) -> Resource:
    resource = await resource_service.get_resource_or_404(session, resource_id)
    if is_admin(user.roles):
        return resource
    holding = (
        await session.execute(
            select(ResourceAssignment.assignment_id).where(
                ResourceAssignment.resource_id == resource_id,
                ResourceAssignment.employee_id == user.employee_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            ).limit(1)
        )
    ).scalar()
    if holding is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_permissions")
    return resource


async def _item_for(session: AsyncSession, resource: Resource, item_id: int) -> ResourceItem:
    item = await resource_service.get_item_or_404(session, item_id)
    if item.resource_id != resource.resource_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="item_not_found")
    return item


async def _detail(session: AsyncSession, resource: Resource) -> ResourceDetail:
    items = (
        await session.execute(
            select(ResourceItem)
            .where(ResourceItem.resource_id == resource.resource_id)
            .order_by(ResourceItem.created_at.asc(), ResourceItem.item_id.asc())
        )
    ).scalars().all()
    assignments = (
        await session.execute(
            select(ResourceAssignment)
            .where(
                ResourceAssignment.resource_id == resource.resource_id,
                ResourceAssignment.status == ASSIGNMENT_STATUS_ACTIVE,
            )
            .order_by(ResourceAssignment.assigned_at.asc())
        )
    ).scalars().all()
    base = ResourceOut.model_validate(resource)
    base.availability = await resource_service.availability_for(session, resource)
    return ResourceDetail(
        **base.model_dump(),
        items=[ItemOut.model_validate(item) for item in items],
        active_assignments=[AssignmentOut.model_validate(assignment) for assignment in assignments],
    )


@router.post("", response_model=ResourceDetail, status_code=status.HTTP_201_CREATED)
async def create_resource(
    payload: ResourceCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.create_resource(session, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return await _detail(session, resource)


@router.get("", response_model=ResourceList)
async def list_resources(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    type: str | None = None,
    category: str | None = None,
    category_id: int | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = None,
    assigned_to: int | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    if not is_admin(user.roles):
        if user.employee_id is None:
            return ResourceList(resources=[], pagination=Pagination.build(page=page, limit=limit, total_items=0))
        assigned_to = user.employee_id

    resources, total = await resource_service.list_resources(
        session,
        page=page,
        limit=limit,
        resource_type=type.upper() if type else None,
        category=category,
        category_id=category_id,
        resource_status=status_filter.upper() if status_filter else None,
        search=search,
        assigned_to=assigned_to,
    )
    availability = await resource_service.availability_for_many(session, resources)
    rows = []
    for resource in resources:
        row = ResourceOut.model_validate(resource)
        row.availability = availability[resource.resource_id]
        rows.append(row)
    return ResourceList(resources=rows, pagination=Pagination.build(page=page, limit=limit, total_items=total))


@router.get("/{resource_id}", response_model=ResourceDetail)
async def get_resource(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    resource = await _visible_resource(session, resource_id, user)
    return await _detail(session, resource)


@router.patch("/{resource_id}", response_model=ResourceDetail)
async def update_resource(
    resource_id: int,
    payload: ResourceUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    await resource_service.update_resource(session, resource, payload, actor=user, context=get_request_context(request))
    await session.commit()
    await session.refresh(resource)
    return await _detail(session, resource)


@router.put("/{resource_id}/schema", response_model=ResourceDetail)
async def update_schema(
    resource_id: int,
    payload: PropertySchemaUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    await resource_service.update_property_schema(
        session,
        resource,
        payload.properties,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    return await _detail(session, resource)


@router.delete("/{resource_id}", response_model=dict)
async def delete_resource(
    resource_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    await resource_service.delete_resource(session, resource, actor=user, context=get_request_context(request))
    await session.commit()
    return {"deleted": True, "resource_id": resource_id}


@router.get("/{resource_id}/availability", response_model=Availability)
async def get_availability(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    return await resource_service.availability_for(session, resource)


@router.get("/{resource_id}/licenses", response_model=LicenseCount)
async def get_license_count(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    return await resource_service.license_count(session, resource)


@router.get("/{resource_id}/shared-users", response_model=list[AssignmentOut])
async def get_shared_users(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    await resource_service.get_resource_or_404(session, resource_id)
    return [AssignmentOut.model_validate(row) for row in await shared_resource_users(session, resource_id)]


@router.get("/{resource_id}/items", response_model=list[ItemOut])
async def list_items(
    resource_id: int,
    status_filter: str | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    await resource_service.get_resource_or_404(session, resource_id)
    stmt = select(ResourceItem).where(ResourceItem.resource_id == resource_id)
    if status_filter:
        stmt = stmt.where(ResourceItem.status == status_filter.upper())
    result = await session.execute(stmt.order_by(ResourceItem.created_at.asc(), ResourceItem.item_id.asc()))
    return [ItemOut.model_validate(item) for item in result.scalars().all()]


@router.post("/{resource_id}/items", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    resource_id: int,
    payload: ItemCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    item = await resource_service.create_item(session, resource, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return ItemOut.model_validate(item)


@router.patch("/{resource_id}/items/{item_id}", response_model=ItemOut)
async def update_item(
    resource_id: int,
    item_id: int,
    payload: ItemUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    item = await _item_for(session, resource, item_id)
    await resource_service.update_item(
        session,
        resource,
        item,
        payload.properties,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    await session.refresh(item)
    return ItemOut.model_validate(item)


@router.post("/{resource_id}/items/{item_id}/status", response_model=ItemOut)
async def update_item_status(
    resource_id: int,
    item_id: int,
    payload: ItemStatusUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    item = await _item_for(session, resource, item_id)
    await resource_service.update_item_status(
        session,
        resource,
        item,
        payload.status,
        payload.notes,
        actor=user,
        context=get_request_context(request),
    )
    await session.commit()
    await session.refresh(item)
    return ItemOut.model_validate(item)


@router.get("/{resource_id}/items/{item_id}/assignable", response_model=ItemAssignability)
async def item_assignable(
    resource_id: int,
    item_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    await _item_for(session, resource, item_id)
    return await can_assign_item(session, item_id)


@router.delete("/{resource_id}/items/{item_id}", response_model=dict)
async def delete_item(
    resource_id: int,
    item_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_admin()),
):
    resource = await resource_service.get_resource_or_404(session, resource_id, lock=True)
    item = await _item_for(session, resource, item_id)
    await resource_service.delete_item(session, resource, item, actor=user, context=get_request_context(request))
    await session.commit()
    return {"deleted": True, "item_id": item_id}
