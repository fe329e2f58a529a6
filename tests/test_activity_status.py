"""Status/assignment transition rules."""

from schoolops.models import Activity
from schoolops.services.activity_status import apply_status_update


def make_activity(**overrides) -> Activity:
    fields = dict(
        id="cabcdefghijklmnopqrstuvwx",
        category_id="unplanned",
        subcategory="Leak",
        location="Room 4",
        status="Unassigned",
    )
    fields.update(overrides)
    return Activity(**fields)


def test_unassigned_status_clears_assignee_and_instructions():
    activity = make_activity(
        status="Assigned",
        assigned_to_user_id="cuser00000000000000000001",
        assignment_instructions="Bring a ladder",
    )

    change = apply_status_update(activity, status="Unassigned")

    assert activity.status == "Unassigned"
    assert activity.assigned_to_user_id is None
    assert activity.assignment_instructions is None
    assert change.assignee_changed


def test_unassigned_wins_over_assignee_in_same_update():
    activity = make_activity(status="Open")

    apply_status_update(activity, status="Unassigned", assign_to_user_id="cuser00000000000000000001")

    assert activity.assigned_to_user_id is None
    assert activity.status == "Unassigned"


def test_reopening_resolved_activity_clears_resolution_notes():
    activity = make_activity(status="Resolved", resolution_notes="Replaced washer")

    apply_status_update(activity, status="Open")

    assert activity.status == "Open"
    assert activity.resolution_notes is None


def test_explicit_notes_applied_after_reopen():
    activity = make_activity(status="Resolved", resolution_notes="old")

    apply_status_update(activity, status="Open", resolution_notes="new")

    assert activity.resolution_notes == "new"


def test_other_transitions_keep_resolution_notes():
    activity = make_activity(status="Resolved", resolution_notes="Replaced washer")

    apply_status_update(activity, status="Completed")

    assert activity.resolution_notes == "Replaced washer"


def test_assigning_unassigned_activity_promotes_to_open():
    activity = make_activity(status="Unassigned")

    change = apply_status_update(activity, assign_to_user_id="cuser00000000000000000001")

    assert activity.status == "Open"
    assert activity.assigned_to_user_id == "cuser00000000000000000001"
    assert change.status_changed


def test_assigning_in_progress_activity_keeps_status():
    activity = make_activity(status="In Progress", assigned_to_user_id="cuser00000000000000000001")

    apply_status_update(activity, assign_to_user_id="cuser00000000000000000002")

    assert activity.status == "In Progress"


def test_instructions_applied():
    activity = make_activity(status="Open")

    change = apply_status_update(activity, instructions="Use the blue toolbox")

    assert activity.assignment_instructions == "Use the blue toolbox"
    assert not change.status_changed
    assert change.changed_fields == ["assignment_instructions"]


def test_unassign_moves_open_activity_back_to_unassigned():
    activity = make_activity(
        status="Open",
        assigned_to_user_id="cuser00000000000000000001",
        assignment_instructions="Bring a ladder",
    )

    change = apply_status_update(activity, unassign=True)

    assert activity.status == "Unassigned"
    assert activity.assigned_to_user_id is None
    assert activity.assignment_instructions is None
    assert change.assignee_changed and change.status_changed


def test_unassign_keeps_resolved_status():
    activity = make_activity(status="Resolved", assigned_to_user_id="cuser00000000000000000001")

    apply_status_update(activity, unassign=True)

    assert activity.status == "Resolved"
    assert activity.assigned_to_user_id is None
