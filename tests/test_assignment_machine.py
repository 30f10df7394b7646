from __future__ import annotations

import unittest

from resource_portal.constants import (
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_DAMAGED,
    ASSIGNMENT_STATUS_LOST,
    ASSIGNMENT_STATUS_RETURNED,
    ASSIGNMENT_STATUS_VALUES,
    ASSIGNMENT_TYPE_INDIVIDUAL,
    ASSIGNMENT_TYPE_POOLED,
    ASSIGNMENT_TYPE_SHARED,
    ITEM_STATUS_ASSIGNED,
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_DAMAGED,
    ITEM_STATUS_LOST,
    ITEM_STATUS_MAINTENANCE,
)
from resource_portal.core.assignment_machine import (
    STATUS_GRAPH,
    TERMINAL_STATUSES,
    append_note,
    assignment_description,
    can_transition,
    determine_assignment_type,
    is_item_based,
    item_status_after,
    normalize_resource_type,
    revoke_note,
    should_update_item,
)


class AssignmentStatusGraphTests(unittest.TestCase):
    def test_graph_covers_every_status(self) -> None:
        self.assertSetEqual(set(STATUS_GRAPH.keys()), set(ASSIGNMENT_STATUS_VALUES))

    def test_terminal_statuses_have_no_outgoing_edges(self) -> None:
        for status in TERMINAL_STATUSES:
            self.assertEqual(STATUS_GRAPH[status], frozenset())

    def test_active_can_close_three_ways(self) -> None:
        for target in (ASSIGNMENT_STATUS_RETURNED, ASSIGNMENT_STATUS_LOST, ASSIGNMENT_STATUS_DAMAGED):
            self.assertTrue(can_transition(ASSIGNMENT_STATUS_ACTIVE, target))

    def test_damaged_can_only_be_returned(self) -> None:
        self.assertTrue(can_transition(ASSIGNMENT_STATUS_DAMAGED, ASSIGNMENT_STATUS_RETURNED))
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_DAMAGED, ASSIGNMENT_STATUS_LOST))
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_DAMAGED, ASSIGNMENT_STATUS_ACTIVE))

    def test_rejects_reopening_and_noops(self) -> None:
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_RETURNED, ASSIGNMENT_STATUS_ACTIVE))
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_LOST, ASSIGNMENT_STATUS_RETURNED))
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_ACTIVE, ASSIGNMENT_STATUS_ACTIVE))
        self.assertFalse(can_transition(ASSIGNMENT_STATUS_ACTIVE, "ARCHIVED"))
        self.assertFalse(can_transition(None, ASSIGNMENT_STATUS_RETURNED))

    def test_item_follows_the_assignment(self) -> None:
        self.assertEqual(item_status_after(ASSIGNMENT_STATUS_RETURNED), ITEM_STATUS_AVAILABLE)
        self.assertEqual(item_status_after(ASSIGNMENT_STATUS_LOST), ITEM_STATUS_LOST)
        self.assertEqual(item_status_after(ASSIGNMENT_STATUS_DAMAGED), ITEM_STATUS_DAMAGED)
        self.assertIsNone(item_status_after(ASSIGNMENT_STATUS_ACTIVE))

    def test_item_only_follows_while_unchanged(self) -> None:
        self.assertTrue(should_update_item(ASSIGNMENT_STATUS_ACTIVE, ITEM_STATUS_ASSIGNED))
        self.assertTrue(should_update_item(ASSIGNMENT_STATUS_DAMAGED, ITEM_STATUS_DAMAGED))
        # repaired and handed to someone else in the meantime
        self.assertFalse(should_update_item(ASSIGNMENT_STATUS_DAMAGED, ITEM_STATUS_ASSIGNED))
        self.assertFalse(should_update_item(ASSIGNMENT_STATUS_DAMAGED, ITEM_STATUS_MAINTENANCE))
        self.assertFalse(should_update_item(ASSIGNMENT_STATUS_RETURNED, ITEM_STATUS_AVAILABLE))
        self.assertFalse(should_update_item(None, ITEM_STATUS_ASSIGNED))


class AssignmentTypeTests(unittest.TestCase):
    def test_hardware_is_an_alias_for_physical(self) -> None:
        self.assertEqual(normalize_resource_type(" hardware "), "PHYSICAL")
        self.assertIsNone(normalize_resource_type("  "))

    def test_type_follows_the_resource(self) -> None:
        self.assertEqual(determine_assignment_type("PHYSICAL", ASSIGNMENT_TYPE_SHARED), ASSIGNMENT_TYPE_INDIVIDUAL)
        self.assertEqual(determine_assignment_type("HARDWARE"), ASSIGNMENT_TYPE_INDIVIDUAL)
        self.assertEqual(determine_assignment_type("SOFTWARE"), ASSIGNMENT_TYPE_INDIVIDUAL)
        self.assertEqual(determine_assignment_type("SOFTWARE", ASSIGNMENT_TYPE_POOLED), ASSIGNMENT_TYPE_POOLED)
        self.assertEqual(determine_assignment_type("CLOUD", ASSIGNMENT_TYPE_INDIVIDUAL), ASSIGNMENT_TYPE_SHARED)

    def test_unknown_type_keeps_a_valid_request(self) -> None:
        self.assertEqual(determine_assignment_type("OTHER", ASSIGNMENT_TYPE_SHARED), ASSIGNMENT_TYPE_SHARED)
        self.assertEqual(determine_assignment_type("OTHER", "BOGUS"), ASSIGNMENT_TYPE_INDIVIDUAL)
        self.assertEqual(determine_assignment_type(None), ASSIGNMENT_TYPE_INDIVIDUAL)

    def test_item_based_resources(self) -> None:
        self.assertTrue(is_item_based("PHYSICAL", ASSIGNMENT_TYPE_INDIVIDUAL))
        self.assertTrue(is_item_based("SOFTWARE", ASSIGNMENT_TYPE_INDIVIDUAL))
        self.assertFalse(is_item_based("SOFTWARE", ASSIGNMENT_TYPE_POOLED))
        self.assertFalse(is_item_based("CLOUD", ASSIGNMENT_TYPE_SHARED))


class AssignmentNoteTests(unittest.TestCase):
    def test_append_note(self) -> None:
        self.assertEqual(append_note(None, "first"), "first")
        self.assertEqual(append_note("first", " second "), "first\nsecond")
        self.assertEqual(append_note("first", "   "), "first")
        self.assertIsNone(append_note(None, None))

    def test_revoke_note(self) -> None:
        self.assertEqual(revoke_note("left the team"), "Revoked: left the team")
        self.assertEqual(revoke_note(None), "Assignment revoked by administrator")
        self.assertEqual(revoke_note("  "), "Assignment revoked by administrator")

    def test_descriptions(self) -> None:
        self.assertEqual(assignment_description("CLOUD", ASSIGNMENT_TYPE_SHARED), "Cloud resource access granted (shared)")
        self.assertEqual(assignment_description("SOFTWARE", ASSIGNMENT_TYPE_POOLED), "Software license assigned from pool")
        self.assertEqual(
            assignment_description("SOFTWARE", ASSIGNMENT_TYPE_INDIVIDUAL), "Software license assigned (individual)"
        )
        self.assertEqual(assignment_description("PHYSICAL", ASSIGNMENT_TYPE_INDIVIDUAL), "Hardware item assigned")


if __name__ == "__main__":
    unittest.main()
