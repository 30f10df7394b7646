from datetime import date, datetime, timezone
from decimal import Decimal

from conftest import actor_for, headers_for
from resource_portal.request_context import RequestContext
from resource_portal.services.audit_service import (
    diff_snapshots,
    list_audit_entries,
    to_jsonable,
    write_audit_log,
)


def test_snapshots_become_json_types():
    value = {
        "when": datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
        "day": date(2026, 3, 1),
        "cost": Decimal("12.50"),
        "tags": {"b", "a"},
        "nested": [{"at": date(2026, 1, 2)}],
        4: "numeric key",
    }
    assert to_jsonable(value) == {
        "when": "2026-03-01T09:30:00+00:00",
        "day": "2026-03-01",
        "cost": 12.5,
        "tags": ["a", "b"],
        "nested": [{"at": "2026-01-02"}],
        "4": "numeric key",
    }


def test_diff_keeps_only_moved_fields():
    before, after = diff_snapshots(
        {"name": "Laptop", "quantity": 3, "location": "HQ"},
        {"name": "Laptop", "quantity": 5, "custodian_id": 2},
    )
    assert before == {"quantity": 3, "location": "HQ", "custodian_id": None}
    assert after == {"quantity": 5, "location": None, "custodian_id": 2}
    assert diff_snapshots(None, None) == ({}, {})


async def test_write_records_changes_and_context(db_session, make_employee):
    admin = await make_employee("CTO")
    context = RequestContext(request_id="req-1", ip="10.1.1.1", user_agent="pytest")
    entry = await write_audit_log(
        db_session,
        actor=actor_for(admin),
        action="RESOURCE_UPDATE",
        entity_type="RESOURCE",
        entity_id=7,
        before={"name": "Old", "quantity": 1},
        after={"name": "New", "quantity": 1},
        context=context,
        changes_only=True,
    )
    await db_session.flush()
    assert entry.entity_id == "7"
    assert entry.before_json == {"name": "Old"}
    assert entry.after_json == {"name": "New"}
    assert entry.actor_email == admin.email
    assert entry.request_id == "req-1"
    assert entry.ip == "10.1.1.1"


async def test_write_falls_back_to_header_identity(db_session):
    context = RequestContext(request_id="req-2", identity_email="visitor@example.com")
    entry = await write_audit_log(
        db_session,
        actor=None,
        action="EMPLOYEE_SEED",
        entity_type="EMPLOYEE",
        entity_id="1",
        before=None,
        after={"joined": date(2026, 5, 4)},
        context=context,
    )
    await db_session.flush()
    assert entry.actor_employee_id is None
    assert entry.actor_email == "visitor@example.com"
    assert entry.before_json is None
    assert entry.after_json == {"joined": "2026-05-04"}


async def test_listing_filters(db_session):
    for n, (email, request_id) in enumerate(
        [("a@example.com", "req-a"), ("b@example.com", "req-b"), ("a@example.com", "req-c")]
    ):
        await write_audit_log(
            db_session,
            actor=None,
            action="RESOURCE_CREATE",
            entity_type="RESOURCE",
            entity_id=str(n),
            before=None,
            after={"n": n},
            context=RequestContext(request_id=request_id, identity_email=email),
        )
    await db_session.flush()

    entries, total = await list_audit_entries(db_session, page=1, limit=10, actor_email=" A@example.com")
    assert total == 2
    assert {entry.entity_id for entry in entries} == {"0", "2"}

    entries, total = await list_audit_entries(db_session, page=1, limit=10, request_id="req-b")
    assert total == 1
    assert entries[0].actor_email == "b@example.com"

    entries, total = await list_audit_entries(db_session, page=2, limit=2, entity_type="resource")
    assert total == 3
    assert len(entries) == 1
    assert (await list_audit_entries(db_session, page=1, limit=10, action="resource_delete"))[1] == 0


async def test_audit_entries_can_be_traced_by_request_id(client, make_employee, db_session):
    admin = await make_employee("CTO", email="admin@example.com")
    await db_session.commit()
    response = await client.post(
        "/resources",
        json={"name": "Traced laptops", "custodian_id": admin.employee_id, "type": "hardware"},
        headers={**headers_for(admin), "X-Request-ID": "trace-audit-1"},
    )
    assert response.status_code == 201
    resource_id = response.json()["resource_id"]

    response = await client.get("/audit", params={"request_id": "trace-audit-1"}, headers=headers_for(admin))
    assert response.status_code == 200
    entries = response.json()["entries"]
    assert [entry["action"] for entry in entries] == ["RESOURCE_CREATE"]
    assert entries[0]["actor_email"] == "admin@example.com"
    assert entries[0]["entity_id"] == str(resource_id)
