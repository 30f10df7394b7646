import pytest

from conftest import headers_for
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource


@pytest.fixture()
async def people(db_session):
    cto = Employee(name="Chief Tech", email="cto@example.com", role="CTO")
    db_session.add(cto)
    await db_session.flush()
    member = Employee(name="Team Member", email="member@example.com", role="BACKEND_DEVELOPER")
    colleague = Employee(name="Other Member", email="colleague@example.com", role="EMPLOYEE")
    db_session.add_all([member, colleague])
    await db_session.commit()
    return {"cto": cto, "member": member, "colleague": colleague}


async def test_health_echoes_request_id(client):
    response = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"] == "trace-123"

    generated = await client.get("/health")
    assert len(generated.headers["X-Request-ID"]) == 32


async def test_me_for_known_and_unknown_users(client, people):
    response = await client.get("/auth/me", headers=headers_for(people["member"]))
    assert response.status_code == 200
    body = response.json()
    assert body["employee_id"] == people["member"].employee_id
    assert body["roles"] == ["BACKEND_DEVELOPER"]

    response = await client.get("/auth/me/capabilities", headers={"x-user-email": "visitor@example.com"})
    assert response.json() == {"is_admin": False, "is_manager": False, "has_employee_record": False}

    response = await client.get("/auth/me/capabilities", headers=headers_for(people["cto"]))
    assert response.json()["is_admin"] is True


async def test_employees_only_see_themselves(client, people):
    response = await client.get("/employees", headers=headers_for(people["member"]))
    assert response.status_code == 200
    assert [row["email"] for row in response.json()["employees"]] == ["member@example.com"]

    response = await client.get("/employees", headers=headers_for(people["cto"]))
    assert response.json()["pagination"]["total_items"] == 3


async def test_non_admin_cannot_create_resources(client, people):
    response = await client.post(
        "/resources",
        json={"name": "Laptop pool", "custodian_id": people["member"].employee_id, "type": "PHYSICAL"},
        headers=headers_for(people["member"]),
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "insufficient_permissions"


async def test_invalid_payload_is_rejected(client, people):
    response = await client.post(
        "/resources",
        json={"name": "Mystery", "custodian_id": people["cto"].employee_id},
        headers=headers_for(people["cto"]),
    )
    assert response.status_code == 422


async def test_resource_item_and_quick_assign(client, people):
    admin = headers_for(people["cto"])
    response = await client.post(
        "/resources",
        json={"name": "Laptop pool", "custodian_id": people["cto"].employee_id, "type": "hardware"},
        headers=admin,
    )
    assert response.status_code == 201
    resource_id = response.json()["resource_id"]
    assert response.json()["availability"]["total"] == 0

    response = await client.post(f"/resources/{resource_id}/items", json={"properties": {}}, headers=admin)
    assert response.status_code == 201
    item_id = response.json()["item_id"]

    response = await client.post(
        "/assignments/quick",
        json={"resource_id": resource_id, "employee_id": people["member"].employee_id},
        headers=admin,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["created"] is True
    assert body["assignment"]["item_id"] == item_id
    assert body["assignment"]["assignment_type"] == "INDIVIDUAL"

    again = await client.post(
        "/assignments/quick",
        json={"resource_id": resource_id, "employee_id": people["member"].employee_id},
        headers=admin,
    )
    assert again.json()["created"] is False

    detail = (await client.get(f"/resources/{resource_id}", headers=admin)).json()
    assert detail["schema_locked"] is True
    assert (detail["availability"]["assigned"], detail["availability"]["available"]) == (1, 0)
    assert detail["items"][0]["status"] == "ASSIGNED"

    mine = (await client.get("/resources", headers=headers_for(people["member"]))).json()
    assert [row["resource_id"] for row in mine["resources"]] == [resource_id]
    theirs = (await client.get("/resources", headers=headers_for(people["colleague"]))).json()
    assert theirs["resources"] == []

    response = await client.get(f"/resources/{resource_id}", headers=headers_for(people["colleague"]))
    assert response.status_code == 403


async def test_no_stock_is_a_conflict(client, people):
    admin = headers_for(people["cto"])
    resource_id = (
        await client.post(
            "/resources",
            json={"name": "Phones", "custodian_id": people["cto"].employee_id, "type": "PHYSICAL"},
            headers=admin,
        )
    ).json()["resource_id"]

    response = await client.post(
        "/assignments/quick",
        json={"resource_id": resource_id, "employee_id": people["member"].employee_id},
        headers=admin,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "no_items_added"


async def test_access_request_approval_flow(client, people, db_session):
    bucket = Resource(
        name="Analytics bucket",
        type="CLOUD",
        custodian_id=people["cto"].employee_id,
        quantity=10,
        property_schema=[],
    )
    db_session.add(bucket)
    await db_session.commit()

    member = headers_for(people["member"])
    response = await client.post(
        "/access",
        json={"resource_id": bucket.resource_id, "justification": "Quarterly reporting"},
        headers=member,
    )
    assert response.status_code == 201
    workflow = response.json()["workflow"]
    access = response.json()["access_request"]
    assert workflow["approver_id"] == people["cto"].employee_id
    assert access["status"] == "REQUESTED"

    pending = (await client.get("/approvals/pending", headers=headers_for(people["cto"]))).json()
    assert [row["workflow_id"] for row in pending] == [workflow["workflow_id"]]

    response = await client.post(
        f"/approvals/{workflow['workflow_id']}/decision",
        json={"action": "approve"},
        headers=member,
    )
    assert response.status_code == 403

    response = await client.post(
        f"/approvals/{workflow['workflow_id']}/decision",
        json={"action": "approve", "comments": "Go ahead"},
        headers=headers_for(people["cto"]),
    )
    assert response.status_code == 200
    decision = response.json()
    assert decision["workflow"]["status"] == "APPROVED"
    assert decision["access_request"]["status"] == "GRANTED"
    assert decision["fulfilment"] == "granted"
    assert decision["assignment_id"] is not None

    audit = await client.get("/audit", params={"entity_type": "approval_workflow"}, headers=headers_for(people["cto"]))
    assert audit.status_code == 200
    actions = [entry["action"] for entry in audit.json()["entries"]]
    assert set(actions) == {"WORKFLOW_CREATE", "WORKFLOW_APPROVE"}

    response = await client.get("/audit", headers=member)
    assert response.status_code == 403


async def test_timeline_visibility(client, people):
    own = people["member"].employee_id
    response = await client.get(f"/timeline/employee/{own}", headers=headers_for(people["member"]))
    assert response.status_code == 200

    response = await client.get(
        f"/timeline/employee/{people['colleague'].employee_id}", headers=headers_for(people["member"])
    )
    assert response.status_code == 403

    response = await client.get("/timeline/spaceship/1", headers=headers_for(people["cto"]))
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid_entity_type"


async def _bucket(db_session, custodian):
    bucket = Resource(
        name="Shared drive",
        type="CLOUD",
        custodian_id=custodian.employee_id,
        quantity=5,
        property_schema=[],
    )
    db_session.add(bucket)
    await db_session.commit()
    return bucket


async def test_assignment_listing_is_scoped_for_employees(client, people, db_session):
    bucket = await _bucket(db_session, people["cto"])
    admin = headers_for(people["cto"])
    ids = {}
    for key in ("member", "colleague"):
        response = await client.post(
            "/assignments",
            json={"resource_id": bucket.resource_id, "employee_id": people[key].employee_id},
            headers=admin,
        )
        assert response.status_code == 201
        ids[key] = response.json()["assignment_id"]

    member = headers_for(people["member"])
    own = (await client.get("/assignments", headers=member)).json()
    assert [row["assignment_id"] for row in own] == [ids["member"]]

    # asking for someone else's assignments still returns only your own
    response = await client.get(
        "/assignments", params={"employee_id": people["colleague"].employee_id}, headers=member
    )
    assert [row["assignment_id"] for row in response.json()] == [ids["member"]]

    response = await client.get(f"/assignments/{ids['colleague']}", headers=member)
    assert response.status_code == 403

    everyone = (await client.get("/assignments", headers=admin)).json()
    assert {row["assignment_id"] for row in everyone} == set(ids.values())
    filtered = (
        await client.get("/assignments", params={"employee_id": people["colleague"].employee_id}, headers=admin)
    ).json()
    assert [row["assignment_id"] for row in filtered] == [ids["colleague"]]


async def test_resource_detail_follows_active_holding(client, people, db_session):
    bucket = await _bucket(db_session, people["cto"])
    admin = headers_for(people["cto"])
    member = headers_for(people["member"])

    response = await client.get(f"/resources/{bucket.resource_id}", headers=member)
    assert response.status_code == 403
    assert response.json()["detail"] == "insufficient_permissions"
    assert (await client.get("/resources/999999", headers=member)).status_code == 404

    assignment_id = (
        await client.post(
            "/assignments",
            json={"resource_id": bucket.resource_id, "employee_id": people["member"].employee_id},
            headers=admin,
        )
    ).json()["assignment_id"]
    response = await client.get(f"/resources/{bucket.resource_id}", headers=member)
    assert response.status_code == 200
    assert response.json()["availability"]["assigned"] == 1

    response = await client.post(
        f"/assignments/{assignment_id}/revoke", json={"reason": "project finished"}, headers=admin
    )
    assert response.json()["status"] == "RETURNED"
    response = await client.get(f"/resources/{bucket.resource_id}", headers=member)
    assert response.status_code == 403


async def test_unlimited_quantity_is_cloud_only(client, people):
    admin = headers_for(people["cto"])
    response = await client.post(
        "/resources",
        json={"name": "IDE", "custodian_id": people["cto"].employee_id, "type": "SOFTWARE", "quantity": -1},
        headers=admin,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid_quantity"

    response = await client.post(
        "/resources",
        json={"name": "IDE", "custodian_id": people["cto"].employee_id, "type": "SOFTWARE", "quantity": 0},
        headers=admin,
    )
    assert response.status_code == 422

    response = await client.post(
        "/resources",
        json={"name": "Object store", "custodian_id": people["cto"].employee_id, "type": "CLOUD", "quantity": -1},
        headers=admin,
    )
    assert response.status_code == 201
    assert response.json()["availability"]["unlimited"] is True


async def test_reassign_and_onboard_over_http(client, people, db_session):
    admin = headers_for(people["cto"])
    bucket = await _bucket(db_session, people["member"])

    response = await client.post(
        f"/employees/{people['member'].employee_id}/reassign",
        json={"target_employee_id": people["colleague"].employee_id},
        headers=headers_for(people["member"]),
    )
    assert response.status_code == 403

    response = await client.post(
        f"/employees/{people['member'].employee_id}/reassign",
        json={"target_employee_id": people["colleague"].employee_id},
        headers=admin,
    )
    assert response.status_code == 200
    assert response.json()["resources"] == 1

    detail = (await client.get(f"/resources/{bucket.resource_id}", headers=admin)).json()
    assert detail["custodian_id"] == people["colleague"].employee_id

    response = await client.post(
        f"/employees/{people['member'].employee_id}/onboarding",
        json={"resource_ids": [bucket.resource_id, 424242]},
        headers=admin,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["assigned"] == [bucket.resource_id]
    assert body["failed"] == [{"resource_id": 424242, "code": "resource_not_found", "message": None}]
