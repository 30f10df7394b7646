from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from resource_portal.db.session import get_session
from resource_portal.rbac import require_catalog_admin, require_employee
from resource_portal.request_context import get_request_context
from resource_portal.schemas.catalog import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    PropertyCreate,
    PropertyOut,
    PropertyUpdate,
    ResourceTypeCreate,
    ResourceTypeOut,
    ResourceTypeUpdate,
)
from resource_portal.schemas.user import UserContext
from resource_portal.services import catalog_service

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/types", response_model=list[ResourceTypeOut])
async def list_types(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    return await catalog_service.list_resource_types(session)


@router.post("/types", response_model=ResourceTypeOut, status_code=status.HTTP_201_CREATED)
async def create_type(
    payload: ResourceTypeCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.create_resource_type(session, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return ResourceTypeOut.model_validate(row)


@router.patch("/types/{resource_type_id}", response_model=ResourceTypeOut)
async def update_type(
    resource_type_id: int,
    payload: ResourceTypeUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_resource_type_or_404(session, resource_type_id)
    await catalog_service.update_resource_type(session, row, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return ResourceTypeOut.model_validate(row)


@router.delete("/types/{resource_type_id}", response_model=dict)
async def delete_type(
    resource_type_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_resource_type_or_404(session, resource_type_id)
    await catalog_service.delete_resource_type(session, row, actor=user, context=get_request_context(request))
    await session.commit()
    return {"deleted": True, "resource_type_id": resource_type_id}


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories(
    resource_type_id: int | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    return await catalog_service.list_categories(session, resource_type_id)


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.create_category(session, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return CategoryOut.model_validate(row)


@router.patch("/categories/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_category_or_404(session, category_id)
    await catalog_service.update_category(session, row, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return CategoryOut.model_validate(row)


@router.delete("/categories/{category_id}", response_model=dict)
async def delete_category(
    category_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_category_or_404(session, category_id)
    await catalog_service.delete_category(session, row, actor=user, context=get_request_context(request))
    await session.commit()
    return {"deleted": True, "category_id": category_id}


@router.get("/properties", response_model=list[PropertyOut])
async def list_properties(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_employee()),
):
    return await catalog_service.list_properties(session)


@router.post("/properties", response_model=PropertyOut, status_code=status.HTTP_201_CREATED)
async def create_property(
    payload: PropertyCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.create_property(session, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return PropertyOut.model_validate(row)


@router.patch("/properties/{property_id}", response_model=PropertyOut)
async def update_property(
    property_id: int,
    payload: PropertyUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_property_or_404(session, property_id)
    await catalog_service.update_property(session, row, payload, actor=user, context=get_request_context(request))
    await session.commit()
    return PropertyOut.model_validate(row)


@router.delete("/properties/{property_id}", response_model=dict)
async def delete_property(
    property_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    row = await catalog_service.get_property_or_404(session, property_id)
    await catalog_service.delete_property(session, row, actor=user, context=get_request_context(request))
    await session.commit()
    return {"deleted": True, "property_id": property_id}


@router.post("/seed", response_model=dict)
async def seed(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_catalog_admin()),
):
    created = await catalog_service.seed_system_catalog(session)
    await session.commit()
    return created
