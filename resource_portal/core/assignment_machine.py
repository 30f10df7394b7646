from __future__ import annotations

from resource_portal.constants import (
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_DAMAGED,
    ASSIGNMENT_STATUS_LOST,
    ASSIGNMENT_STATUS_RETURNED,
    ASSIGNMENT_STATUS_VALUES,
    ASSIGNMENT_TYPE_INDIVIDUAL,
    ASSIGNMENT_TYPE_POOLED,
    ASSIGNMENT_TYPE_SHARED,
    ASSIGNMENT_TYPE_VALUES,
    ITEM_STATUS_ASSIGNED,
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_DAMAGED,
    ITEM_STATUS_LOST,
    RESOURCE_TYPE_CLOUD,
    RESOURCE_TYPE_HARDWARE,
    RESOURCE_TYPE_PHYSICAL,
    RESOURCE_TYPE_SOFTWARE,
)


TERMINAL_STATUSES: frozenset[str] = frozenset({ASSIGNMENT_STATUS_RETURNED, ASSIGNMENT_STATUS_LOST})

STATUS_GRAPH: dict[str, frozenset[str]] = {
    ASSIGNMENT_STATUS_ACTIVE: frozenset(
        {ASSIGNMENT_STATUS_RETURNED, ASSIGNMENT_STATUS_LOST, ASSIGNMENT_STATUS_DAMAGED}
    ),
    ASSIGNMENT_STATUS_DAMAGED: frozenset({ASSIGNMENT_STATUS_RETURNED}),
    ASSIGNMENT_STATUS_RETURNED: frozenset(),
    ASSIGNMENT_STATUS_LOST: frozenset(),
}

# Item status that follows an assignment moving into the key status.
ITEM_STATUS_AFTER: dict[str, str] = {
    ASSIGNMENT_STATUS_RETURNED: ITEM_STATUS_AVAILABLE,
    ASSIGNMENT_STATUS_LOST: ITEM_STATUS_LOST,
    ASSIGNMENT_STATUS_DAMAGED: ITEM_STATUS_DAMAGED,
}

CLOSING_STATUSES: frozenset[str] = frozenset(ITEM_STATUS_AFTER)

# Item status an assignment in the key status leaves on its item.
ITEM_STATUS_HELD: dict[str, str] = {
    ASSIGNMENT_STATUS_ACTIVE: ITEM_STATUS_ASSIGNED,
    ASSIGNMENT_STATUS_DAMAGED: ITEM_STATUS_DAMAGED,
}


def normalize_resource_type(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().upper()
    if not normalized:
        return None
    if normalized == RESOURCE_TYPE_HARDWARE:
        return RESOURCE_TYPE_PHYSICAL
    return normalized


def determine_assignment_type(resource_type: str | None, requested: str | None = None) -> str:
    normalized = normalize_resource_type(resource_type)
    if normalized == RESOURCE_TYPE_PHYSICAL:
        return ASSIGNMENT_TYPE_INDIVIDUAL
    if normalized == RESOURCE_TYPE_SOFTWARE:
        return ASSIGNMENT_TYPE_POOLED if requested == ASSIGNMENT_TYPE_POOLED else ASSIGNMENT_TYPE_INDIVIDUAL
    if normalized == RESOURCE_TYPE_CLOUD:
        return ASSIGNMENT_TYPE_SHARED
    if requested in ASSIGNMENT_TYPE_VALUES:
        return requested
    return ASSIGNMENT_TYPE_INDIVIDUAL


def is_item_based(resource_type: str | None, assignment_type: str) -> bool:
    normalized = normalize_resource_type(resource_type)
    if normalized == RESOURCE_TYPE_PHYSICAL:
        return True
    return normalized == RESOURCE_TYPE_SOFTWARE and assignment_type == ASSIGNMENT_TYPE_INDIVIDUAL


def allowed_next_statuses(current: str | None) -> frozenset[str]:
    if current is None:
        return frozenset()
    return STATUS_GRAPH.get(current, frozenset())


def can_transition(current: str | None, new_status: str | None) -> bool:
    if new_status not in ASSIGNMENT_STATUS_VALUES:
        return False
    if current == new_status:
        return False
    return new_status in allowed_next_statuses(current)


def item_status_after(new_status: str) -> str | None:
    return ITEM_STATUS_AFTER.get(new_status)


def item_status_held(assignment_status: str | None) -> str | None:
    if assignment_status is None:
        return None
    return ITEM_STATUS_HELD.get(assignment_status)


def should_update_item(previous_status: str | None, current_item_status: str | None) -> bool:
    """An item follows the assignment only while it still shows what the assignment left on it."""
    held = item_status_held(previous_status)
    return held is not None and current_item_status == held


def append_note(existing: str | None, note: str | None) -> str | None:
    note = (note or "").strip()
    if not note:
        return existing
    if not existing:
        return note
    return f"{existing}\n{note}"


def revoke_note(reason: str | None) -> str:
    reason = (reason or "").strip()
    if reason:
        return f"Revoked: {reason}"
    return "Assignment revoked by administrator"


def assignment_description(resource_type: str | None, assignment_type: str) -> str:
    normalized = normalize_resource_type(resource_type)
    if normalized == RESOURCE_TYPE_CLOUD:
        return "Cloud resource access granted (shared)"
    if normalized == RESOURCE_TYPE_SOFTWARE:
        if assignment_type == ASSIGNMENT_TYPE_POOLED:
            return "Software license assigned from pool"
        return "Software license assigned (individual)"
    if assignment_type == ASSIGNMENT_TYPE_SHARED:
        return "Resource access granted (shared)"
    return "Hardware item assigned"
