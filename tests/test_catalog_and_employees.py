import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from conftest import actor_for
from resource_portal.constants import SYSTEM_PROPERTIES, SYSTEM_RESOURCE_TYPES
from resource_portal.core.config import settings
from resource_portal.models.audit import ActivityTimeline, AuditLog
from resource_portal.models.catalog import ResourceCategory
from resource_portal.models.employee import Employee
from resource_portal.models.resource import ResourceAssignment, ResourceItem
from resource_portal.models.workflow import ApprovalWorkflow
from resource_portal.schemas.catalog import CategoryCreate, PropertyCreate, ResourceTypeCreate, ResourceTypeUpdate
from resource_portal.schemas.employee import EmployeeCreate, EmployeeUpdate
from resource_portal.services import catalog_service, employee_service, onboarding_service


async def test_seed_is_idempotent(db_session):
    first = await catalog_service.seed_system_catalog(db_session)
    assert first == {
        "types": len(SYSTEM_RESOURCE_TYPES),
        "categories": sum(len(names) for names in SYSTEM_RESOURCE_TYPES.values()),
        "properties": len(SYSTEM_PROPERTIES),
    }
    second = await catalog_service.seed_system_catalog(db_session)
    assert second == {"types": 0, "categories": 0, "properties": 0}

    categories = (await db_session.execute(select(func.count(ResourceCategory.category_id)))).scalar()
    assert categories == 14


async def test_system_rows_are_locked(db_session, make_employee):
    admin = actor_for(await make_employee("CTO"))
    await catalog_service.seed_system_catalog(db_session)
    hardware = next(row for row in await catalog_service.list_resource_types(db_session) if row.name == "Hardware")

    with pytest.raises(HTTPException) as exc:
        await catalog_service.delete_resource_type(db_session, hardware, actor=admin, context=None)
    assert exc.value.detail == "system_type_locked"

    with pytest.raises(HTTPException) as exc:
        await catalog_service.update_resource_type(
            db_session, hardware, ResourceTypeUpdate(name="Kit"), actor=admin, context=None
        )
    assert exc.value.detail == "system_type_locked"

    # description edits are allowed on system types
    await catalog_service.update_resource_type(
        db_session, hardware, ResourceTypeUpdate(description="Laptops and friends"), actor=admin, context=None
    )
    assert hardware.description == "Laptops and friends"

    serial = next(row for row in await catalog_service.list_properties(db_session) if row.key == "serialNumber")
    with pytest.raises(HTTPException) as exc:
        await catalog_service.delete_property(db_session, serial, actor=admin, context=None)
    assert exc.value.detail == "system_property_locked"


async def test_custom_type_with_categories(db_session, make_employee):
    admin = actor_for(await make_employee("CTO"))
    furniture = await catalog_service.create_resource_type(
        db_session, ResourceTypeCreate(name="Furniture"), actor=admin, context=None
    )
    with pytest.raises(HTTPException) as exc:
        await catalog_service.create_resource_type(
            db_session, ResourceTypeCreate(name="furniture"), actor=admin, context=None
        )
    assert exc.value.detail == "resource_type_exists"

    desk = await catalog_service.create_category(
        db_session,
        CategoryCreate(resource_type_id=furniture.resource_type_id, name="Desk"),
        actor=admin,
        context=None,
    )
    with pytest.raises(HTTPException) as exc:
        await catalog_service.create_category(
            db_session,
            CategoryCreate(resource_type_id=furniture.resource_type_id, name="Desk"),
            actor=admin,
            context=None,
        )
    assert exc.value.detail == "category_exists"

    categories = await catalog_service.list_categories(db_session, furniture.resource_type_id)
    assert [row.category_id for row in categories] == [desk.category_id]

    await catalog_service.delete_resource_type(db_session, furniture, actor=admin, context=None)
    await db_session.flush()
    assert await catalog_service.list_categories(db_session, furniture.resource_type_id) == []


async def test_custom_property(db_session, make_employee):
    admin = actor_for(await make_employee("CTO"))
    row = await catalog_service.create_property(
        db_session, PropertyCreate(key="rackUnit", label="Rack unit", data_type="number"), actor=admin, context=None
    )
    assert row.data_type == "NUMBER"
    assert not row.is_system
    with pytest.raises(HTTPException) as exc:
        await catalog_service.create_property(
            db_session, PropertyCreate(key="rackUnit", label="Again", data_type="STRING"), actor=admin, context=None
        )
    assert exc.value.detail == "property_exists"
    await catalog_service.delete_property(db_session, row, actor=admin, context=None)


async def test_create_employee_normalises_email(db_session, make_employee):
    admin = actor_for(await make_employee("CTO"))
    employee = await employee_service.create_employee(
        db_session,
        EmployeeCreate(name="  Priya Raman ", email="Priya.Raman@Example.com", role="backend developer"),
        actor=admin,
        context=None,
    )
    assert employee.email == "priya.raman@example.com"
    assert employee.name == "Priya Raman"
    assert employee.role == "BACKEND_DEVELOPER"

    with pytest.raises(HTTPException) as exc:
        await employee_service.create_employee(
            db_session,
            EmployeeCreate(name="Duplicate", email="priya.raman@example.com"),
            actor=admin,
            context=None,
        )
    assert exc.value.status_code == 409
    assert exc.value.detail == "email_exists"

    with pytest.raises(HTTPException) as exc:
        await employee_service.create_employee(
            db_session,
            EmployeeCreate(name="Orphan", email="orphan@example.com", manager_id=9999),
            actor=admin,
            context=None,
        )
    assert exc.value.detail == "manager_not_found"


async def test_self_service_update_is_limited(db_session, make_employee):
    employee = await make_employee()
    actor = actor_for(employee)

    await employee_service.update_employee(
        db_session, employee, EmployeeUpdate(phone="+44 20 7946 0000"), actor=actor, is_admin=False, context=None
    )
    assert employee.phone == "+44 20 7946 0000"

    with pytest.raises(HTTPException) as exc:
        await employee_service.update_employee(
            db_session, employee, EmployeeUpdate(role="CTO"), actor=actor, is_admin=False, context=None
        )
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        await employee_service.update_employee(
            db_session,
            employee,
            EmployeeUpdate(manager_id=employee.employee_id),
            actor=actor,
            is_admin=True,
            context=None,
        )
    assert exc.value.detail == "self_manager"


async def test_list_employees_filters_and_pages(db_session, make_employee):
    await make_employee("CTO", name="Alice", department="Engineering")
    await make_employee(name="Bob", department="Engineering")
    await make_employee(name="Carol", department="Finance")

    rows, total = await employee_service.list_employees(db_session, page=1, limit=1, department="Engineering")
    assert total == 2
    assert [row.name for row in rows] == ["Alice"]

    rows, total = await employee_service.list_employees(db_session, page=1, limit=10, search="car")
    assert (total, rows[0].name) == (1, "Carol")


async def test_delete_refused_while_dependencies_exist(db_session, make_employee, make_resource):
    admin = await make_employee("CTO")
    holder = await make_employee()
    laptop = await make_resource("PHYSICAL", custodian=admin, items=1)
    assignment = ResourceAssignment(
        resource_id=laptop.resource_id,
        employee_id=holder.employee_id,
        assignment_type="INDIVIDUAL",
        status="ACTIVE",
    )
    db_session.add(assignment)
    await db_session.flush()

    dependencies = await employee_service.employee_dependencies(db_session, holder.employee_id)
    assert dependencies.active_assignments == 1
    assert dependencies.has_dependencies

    with pytest.raises(HTTPException) as exc:
        await employee_service.delete_employee(db_session, holder, actor=actor_for(admin), context=None)
    assert exc.value.status_code == 409
    assert exc.value.detail["code"] == "employee_has_dependencies"
    assert exc.value.detail["dependencies"]["active_assignments"] == 1

    custodian_deps = await employee_service.employee_dependencies(db_session, admin.employee_id)
    assert custodian_deps.custodian_of_resources == 1


async def test_delete_employee_without_dependencies(db_session, make_employee):
    admin = await make_employee("CTO")
    leaver = await make_employee()
    leaver_id = leaver.employee_id

    await employee_service.delete_employee(db_session, leaver, actor=actor_for(admin), context=None)
    await db_session.flush()

    assert (
        await db_session.execute(select(Employee).where(Employee.employee_id == leaver_id))
    ).scalars().one_or_none() is None


async def test_reassign_hands_over_everything(db_session, make_employee, make_resource):
    admin = await make_employee("CTO")
    leaver = await make_employee("ENGINEERING_MANAGER", name="Leaver")
    successor = await make_employee("ENGINEERING_MANAGER", name="Successor")
    report = await make_employee(manager_id=leaver.employee_id)
    actor = actor_for(admin)

    laptop = await make_resource("PHYSICAL", custodian=leaver, items=1)
    suite = await make_resource("SOFTWARE", custodian=admin, quantity=5, name="Design suite")
    bucket = await make_resource("CLOUD", custodian=admin, quantity=5, name="Bucket")
    (item,) = (await db_session.execute(select(ResourceItem))).scalars().all()
    item.status = "ASSIGNED"
    kept = ResourceAssignment(
        resource_id=laptop.resource_id,
        employee_id=leaver.employee_id,
        item_id=item.item_id,
        assignment_type="INDIVIDUAL",
        status="ACTIVE",
    )
    seat = ResourceAssignment(
        resource_id=suite.resource_id, employee_id=leaver.employee_id, assignment_type="POOLED", status="ACTIVE"
    )
    duplicate = ResourceAssignment(
        resource_id=bucket.resource_id, employee_id=leaver.employee_id, assignment_type="SHARED", status="ACTIVE"
    )
    existing = ResourceAssignment(
        resource_id=bucket.resource_id, employee_id=successor.employee_id, assignment_type="SHARED", status="ACTIVE"
    )
    workflow = ApprovalWorkflow(
        workflow_type="ACCESS_REQUEST",
        requester_id=report.employee_id,
        approver_id=leaver.employee_id,
        operational_category="SECURITY_ACCESS",
        data={},
    )
    db_session.add_all([kept, seat, duplicate, existing, workflow])
    await db_session.flush()

    result = await employee_service.reassign_employee(db_session, leaver, successor, actor=actor, context=None)
    await db_session.flush()

    assert (result.resources, result.assignments_moved, result.assignments_released) == (1, 2, 1)
    assert (result.subordinates, result.approvals) == (1, 1)
    assert laptop.custodian_id == successor.employee_id
    assert kept.employee_id == successor.employee_id
    assert kept.notes == "Reassigned from Leaver to Successor"
    assert item.status == "ASSIGNED"
    assert seat.employee_id == successor.employee_id
    assert duplicate.status == "RETURNED"
    assert existing.status == "ACTIVE"
    assert report.manager_id == successor.employee_id
    assert workflow.approver_id == successor.employee_id

    dependencies = await employee_service.employee_dependencies(db_session, leaver.employee_id)
    assert not dependencies.has_dependencies

    audit = (
        await db_session.execute(select(AuditLog).where(AuditLog.action == "EMPLOYEE_REASSIGN"))
    ).scalars().one()
    assert audit.entity_id == str(leaver.employee_id)
    assert audit.after_json["assignments_moved"] == 2
    feed = (
        await db_session.execute(
            select(ActivityTimeline.entity_id).where(
                ActivityTimeline.entity_type == "EMPLOYEE", ActivityTimeline.activity_type == "REASSIGNED"
            )
        )
    ).scalars().all()
    assert sorted(feed) == sorted([str(leaver.employee_id), str(successor.employee_id)])


async def test_reassign_rejects_self_and_inactive_target(db_session, make_employee):
    admin = actor_for(await make_employee("CTO"))
    leaver = await make_employee()
    retired = await make_employee(status="RESIGNED")

    with pytest.raises(HTTPException) as exc:
        await employee_service.reassign_employee(db_session, leaver, leaver, actor=admin, context=None)
    assert exc.value.detail == "same_employee"

    with pytest.raises(HTTPException) as exc:
        await employee_service.reassign_employee(db_session, leaver, retired, actor=admin, context=None)
    assert exc.value.detail == "target_not_active"


async def test_reassign_lifts_the_successor_out_of_the_leavers_team(db_session, make_employee):
    director = await make_employee("CTO")
    leaver = await make_employee("ENGINEERING_MANAGER", manager_id=director.employee_id)
    successor = await make_employee(manager_id=leaver.employee_id)

    result = await employee_service.reassign_employee(
        db_session, leaver, successor, actor=actor_for(director), context=None
    )
    assert result.subordinates == 1
    assert successor.manager_id == director.employee_id


async def test_onboarding_assigns_the_starter_kit(db_session, make_employee, make_resource):
    admin = await make_employee("CTO")
    hire = await make_employee(name="New Hire")
    laptop = await make_resource("PHYSICAL", custodian=admin, items=1)
    bucket = await make_resource("CLOUD", custodian=admin, quantity=5)
    empty = await make_resource("PHYSICAL", custodian=admin, name="Phones")

    result = await onboarding_service.onboard_employee(
        db_session,
        hire,
        [laptop.resource_id, bucket.resource_id, empty.resource_id, laptop.resource_id],
        notes=None,
        actor=actor_for(admin),
        context=None,
    )
    await db_session.flush()

    assert result.assigned == [laptop.resource_id, bucket.resource_id]
    assert [(failure.resource_id, failure.code) for failure in result.failed] == [(empty.resource_id, "no_items_added")]
    held = (
        await db_session.execute(
            select(ResourceAssignment).where(ResourceAssignment.employee_id == hire.employee_id)
        )
    ).scalars().all()
    assert {row.notes for row in held} == {"Assigned during onboarding"}

    again = await onboarding_service.onboard_employee(
        db_session, hire, [bucket.resource_id], notes=None, actor=actor_for(admin), context=None
    )
    assert again.already_held == [bucket.resource_id]


async def test_onboarding_needs_a_resource_list(db_session, make_employee, monkeypatch):
    admin = actor_for(await make_employee("CTO"))
    hire = await make_employee()
    monkeypatch.setattr(settings, "onboarding_resource_ids_csv", "")

    with pytest.raises(HTTPException) as exc:
        await onboarding_service.onboard_employee(db_session, hire, None, notes=None, actor=admin, context=None)
    assert exc.value.detail == "onboarding_resources_not_configured"
