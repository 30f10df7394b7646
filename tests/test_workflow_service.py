import pytest
from fastapi import HTTPException
from sqlalchemy import select

from conftest import actor_for
from resource_portal.models.audit import ActivityTimeline, AuditLog
from resource_portal.models.resource import Resource, ResourceAssignment
from resource_portal.models.workflow import AccessRequest, ApprovalWorkflow
from resource_portal.schemas.workflow import AccessRequestCreate
from resource_portal.services import access_service, employee_service, workflow_service


async def _request(session, employee, **payload):
    return await access_service.create_access_request(
        session,
        AccessRequestCreate(**payload),
        employee_id=employee.employee_id,
        actor=actor_for(employee),
        context=None,
    )


async def test_manager_is_the_default_approver(db_session, make_employee, make_resource):
    await make_employee("CTO")
    manager = await make_employee("ENGINEERING_MANAGER")
    employee = await make_employee(manager_id=manager.employee_id)
    bucket = await make_resource("CLOUD", custodian=manager, quantity=5, name="Analytics bucket")

    access, workflow = await _request(db_session, employee, resource_id=bucket.resource_id, justification="reports")

    assert access.status == "REQUESTED"
    assert access.approver_id == manager.employee_id
    assert workflow.workflow_type == "ACCESS_REQUEST"
    assert workflow.operational_category == "SECURITY_ACCESS"
    assert workflow.access_request_id == access.access_id
    assert workflow.data["resource_name"] == "Analytics bucket"
    assert workflow.data["resource_type"] == "CLOUD"


async def test_approver_falls_back_to_cto_then_ceo(db_session, make_employee):
    employee = await make_employee()
    with pytest.raises(HTTPException) as exc:
        await _request(db_session, employee, hardware_request="Standing desk")
    assert exc.value.detail == "no_approver_available"

    ceo = await make_employee("CEO")
    access, _ = await _request(db_session, employee, hardware_request="Standing desk")
    assert access.approver_id == ceo.employee_id

    cto = await make_employee("CTO")
    access, workflow = await _request(db_session, employee, hardware_request="Monitor arm")
    assert access.approver_id == cto.employee_id
    assert workflow.data["resource_type"] == "HARDWARE"


async def test_inactive_manager_is_skipped(db_session, make_employee):
    cto = await make_employee("CTO")
    manager = await make_employee("HR_MANAGER", status="ON_LEAVE")
    employee = await make_employee(manager_id=manager.employee_id)
    access, _ = await _request(db_session, employee, hardware_request="Headset")
    assert access.approver_id == cto.employee_id


async def test_mixed_request_type(db_session, make_employee, make_resource):
    cto = await make_employee("CTO")
    employee = await make_employee()
    laptop = await make_resource("PHYSICAL", custodian=cto, items=1)
    _, workflow = await _request(
        db_session, employee, resource_id=laptop.resource_id, hardware_request="Docking station"
    )
    assert workflow.data["resource_type"] == "MIXED"


async def test_approving_grants_access(db_session, make_employee, make_resource):
    cto = await make_employee("CTO")
    employee = await make_employee()
    bucket = await make_resource("CLOUD", custodian=cto, quantity=5)
    access, workflow = await _request(db_session, employee, resource_id=bucket.resource_id)

    outcome = await workflow_service.decide_workflow(
        db_session, workflow, action="approve", comments="ok", actor=actor_for(cto), context=None
    )

    assert workflow.status == "APPROVED"
    assert access.status == "GRANTED"
    assert access.approved_at is not None and access.granted_at is not None
    assert outcome.fulfilment == "granted"
    assignment = (
        await db_session.execute(select(ResourceAssignment).where(ResourceAssignment.access_request_id == access.access_id))
    ).scalars().one()
    assert assignment.assignment_id == outcome.assignment_id
    assert assignment.approval_workflow_id == workflow.workflow_id
    actions = (await db_session.execute(select(AuditLog.action))).scalars().all()
    assert "WORKFLOW_APPROVE" in actions


async def test_approval_without_stock_is_deferred(db_session, make_employee, make_resource):
    cto = await make_employee("CTO")
    employee = await make_employee()
    laptop = await make_resource("PHYSICAL", custodian=cto, name="Empty laptop pool")
    access, workflow = await _request(db_session, employee, resource_id=laptop.resource_id)

    outcome = await workflow_service.decide_workflow(
        db_session, workflow, action="approve", comments=None, actor=actor_for(cto), context=None
    )

    assert workflow.status == "APPROVED"
    assert access.status == "APPROVED"
    assert outcome.fulfilment == "deferred"
    assert outcome.assignment_id is None
    deferred = (
        await db_session.execute(
            select(ActivityTimeline).where(
                ActivityTimeline.entity_type == "ACCESS",
                ActivityTimeline.entity_id == str(access.access_id),
            )
        )
    ).scalars().all()
    assert any("no_items_added" in (entry.description or "") for entry in deferred)


async def test_hardware_request_creates_a_resource(db_session, make_employee):
    cto = await make_employee("CTO")
    employee = await make_employee()
    access, workflow = await _request(db_session, employee, hardware_request="Ergonomic keyboard")

    outcome = await workflow_service.decide_workflow(
        db_session, workflow, action="approve", comments=None, actor=actor_for(cto), context=None
    )

    assert access.status == "GRANTED"
    resource = (
        await db_session.execute(select(Resource).where(Resource.resource_id == outcome.created_resource_id))
    ).scalars().one()
    assert resource.type == "PHYSICAL"
    assert resource.name == "Ergonomic keyboard"
    assert resource.custodian_id == cto.employee_id
    assert resource.schema_locked
    assignment = (
        await db_session.execute(select(ResourceAssignment).where(ResourceAssignment.assignment_id == outcome.assignment_id))
    ).scalars().one()
    assert assignment.employee_id == employee.employee_id
    assert assignment.item_id is not None


async def test_rejecting_revokes_the_request(db_session, make_employee, make_resource):
    cto = await make_employee("CTO")
    employee = await make_employee()
    bucket = await make_resource("CLOUD", custodian=cto, quantity=5)
    access, workflow = await _request(db_session, employee, resource_id=bucket.resource_id)

    await workflow_service.decide_workflow(
        db_session, workflow, action="reject", comments="not needed", actor=actor_for(cto), context=None
    )
    assert workflow.status == "REJECTED"
    assert workflow.comments == "not needed"
    assert access.status == "REVOKED"
    assert access.revoked_at is not None

    with pytest.raises(HTTPException) as exc:
        await workflow_service.decide_workflow(
            db_session, workflow, action="approve", comments=None, actor=actor_for(cto), context=None
        )
    assert exc.value.status_code == 409
    assert exc.value.detail == "workflow_not_pending"


async def test_only_the_approver_or_an_admin_decides(db_session, make_employee, make_resource):
    await make_employee("CTO")
    manager = await make_employee("SALES_MANAGER")
    other_manager = await make_employee("HR_MANAGER")
    employee = await make_employee(manager_id=manager.employee_id)
    _, workflow = await _request(db_session, employee, hardware_request="Phone")

    with pytest.raises(HTTPException) as exc:
        await workflow_service.decide_workflow(
            db_session, workflow, action="approve", comments=None, actor=actor_for(other_manager), context=None
        )
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException):
        await workflow_service.decide_workflow(
            db_session, workflow, action="approve", comments=None, actor=actor_for(employee), context=None
        )
    assert workflow.status == "PENDING"


async def test_cancel_by_requester(db_session, make_employee):
    cto = await make_employee("CTO")
    employee = await make_employee()
    access, workflow = await _request(db_session, employee, hardware_request="Mouse")
    await db_session.flush()
    assert (await employee_service.employee_dependencies(db_session, employee.employee_id)).open_access_requests == 1

    with pytest.raises(HTTPException) as exc:
        await workflow_service.cancel_workflow(db_session, workflow, actor=actor_for(cto), context=None)
    assert exc.value.detail == "not_workflow_requester"

    await workflow_service.cancel_workflow(db_session, workflow, actor=actor_for(employee), context=None)
    await db_session.flush()
    assert workflow.status == "CANCELLED"
    assert access.status == "REVOKED"
    assert access.revoked_at is not None

    dependencies = await employee_service.employee_dependencies(db_session, employee.employee_id)
    assert dependencies.open_access_requests == 0
    assert not dependencies.has_dependencies

    withdrawn = (
        await db_session.execute(
            select(ActivityTimeline).where(
                ActivityTimeline.entity_type == "ACCESS",
                ActivityTimeline.entity_id == str(access.access_id),
                ActivityTimeline.activity_type == "ACCESS_REVOKED",
            )
        )
    ).scalars().all()
    assert len(withdrawn) == 1
    audit = (
        await db_session.execute(select(AuditLog).where(AuditLog.action == "WORKFLOW_CANCEL"))
    ).scalars().one()
    assert audit.after_json["access_status"] == "REVOKED"


async def test_pending_list_and_stats(db_session, make_employee):
    cto = await make_employee("CTO")
    employee = await make_employee()
    _, first = await _request(db_session, employee, hardware_request="Webcam")
    await _request(db_session, employee, hardware_request="Microphone")
    await workflow_service.decide_workflow(
        db_session, first, action="reject", comments=None, actor=actor_for(cto), context=None
    )

    pending = await workflow_service.pending_for_approver(db_session, cto.employee_id)
    assert len(pending) == 1

    stats = await workflow_service.workflow_stats(db_session, employee_id=employee.employee_id, admin=False)
    assert stats["pending"] == 1
    assert stats["rejected"] == 1
    assert stats["my_requests"] == 2
    assert stats["total_processed"] == 1
    assert stats["by_category"] == {"SECURITY_ACCESS": 2}

    mine = await workflow_service.list_workflows(db_session, requester_id=employee.employee_id, workflow_status="pending")
    assert [row.workflow_id for row in mine] == [pending[0].workflow_id]


async def test_revoke_access_returns_its_assignments(db_session, make_employee, make_resource):
    cto = await make_employee("CTO")
    employee = await make_employee()
    bucket = await make_resource("CLOUD", custodian=cto, quantity=5)
    access, workflow = await _request(db_session, employee, resource_id=bucket.resource_id)
    outcome = await workflow_service.decide_workflow(
        db_session, workflow, action="approve", comments=None, actor=actor_for(cto), context=None
    )

    revoked = await access_service.revoke_access(db_session, access, "left project", actor=actor_for(cto), context=None)

    assert revoked == [outcome.assignment_id]
    assert access.status == "REVOKED"
    assignment = (
        await db_session.execute(select(ResourceAssignment).where(ResourceAssignment.assignment_id == outcome.assignment_id))
    ).scalars().one()
    assert assignment.status == "RETURNED"
    assert assignment.notes.endswith("Revoked: left project")

    with pytest.raises(HTTPException) as exc:
        await access_service.revoke_access(db_session, access, None, actor=actor_for(cto), context=None)
    assert exc.value.detail == "access_not_revocable"


async def test_delete_pending_request_removes_its_workflow(db_session, make_employee):
    await make_employee("CTO")
    employee = await make_employee()
    stranger = await make_employee()
    access, workflow = await _request(db_session, employee, hardware_request="Chair")
    workflow_id = workflow.workflow_id

    with pytest.raises(HTTPException) as exc:
        await access_service.delete_access_request(
            db_session, access, actor=actor_for(stranger), is_admin=False, context=None
        )
    assert exc.value.status_code == 403

    await access_service.delete_access_request(db_session, access, actor=actor_for(employee), is_admin=False, context=None)
    await db_session.flush()

    assert (
        await db_session.execute(select(AccessRequest).where(AccessRequest.access_id == access.access_id))
    ).scalars().one_or_none() is None
    assert (
        await db_session.execute(select(ApprovalWorkflow.workflow_id).where(ApprovalWorkflow.workflow_id == workflow_id))
    ).scalar() is None
