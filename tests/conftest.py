import os

os.environ.setdefault("RP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RP_ENVIRONMENT", "test")
os.environ.setdefault("RP_DEFAULT_USER_EMAIL", "nobody@example.com")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from resource_portal.core.roles import Role, parse_role
from resource_portal.db.session import get_session
from resource_portal.main import app
from resource_portal.models import Base
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource, ResourceItem
from resource_portal.schemas.user import UserContext


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
async def client(session_factory):
    async def _override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.pop(get_session, None)


@pytest.fixture()
def make_employee(db_session):
    counter = {"n": 0}

    async def _make(role: str = "EMPLOYEE", **fields) -> Employee:
        counter["n"] += 1
        n = counter["n"]
        employee = Employee(
            name=fields.pop("name", f"Employee {n}"),
            email=fields.pop("email", f"employee{n}@example.com"),
            role=role,
            **fields,
        )
        db_session.add(employee)
        await db_session.flush()
        return employee

    return _make


@pytest.fixture()
def make_resource(db_session):
    async def _make(type: str = "PHYSICAL", *, custodian: Employee, items: int = 0, **fields) -> Resource:
        resource = Resource(
            name=fields.pop("name", f"{type.title()} resource"),
            type=type,
            custodian_id=custodian.employee_id,
            property_schema=[],
            **fields,
        )
        db_session.add(resource)
        await db_session.flush()
        for _ in range(items):
            db_session.add(ResourceItem(resource_id=resource.resource_id, properties={}))
        await db_session.flush()
        return resource

    return _make


def actor_for(employee: Employee) -> UserContext:
    return UserContext(
        user_id=str(employee.employee_id),
        email=employee.email,
        roles=[parse_role(employee.role) or Role.EMPLOYEE],
        employee_id=employee.employee_id,
        full_name=employee.name,
    )


def headers_for(employee: Employee) -> dict[str, str]:
    return {"x-user-email": employee.email}
