"""Status and assignment transitions for activities."""

from dataclasses import dataclass, field
from typing import Optional

from schoolops.models.activities import Activity, ActivityStatus


@dataclass
class StatusChange:
    """What a status update actually changed, for events and notifications."""

    previous_status: str
    new_status: str
    previous_assignee: Optional[str]
    new_assignee: Optional[str]
    changed_fields: list[str] = field(default_factory=list)

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.new_status

    @property
    def assignee_changed(self) -> bool:
        return self.previous_assignee != self.new_assignee


def apply_status_update(
    activity: Activity,
    status: Optional[str] = None,
    resolution_notes: Optional[str] = None,
    assign_to_user_id: Optional[str] = None,
    instructions: Optional[str] = None,
    unassign: bool = False,
) -> StatusChange:
    """
    Apply a status_update payload to `activity` in place.

    Rules, in order:
    1. a given status is applied; Resolved -> Open clears resolution notes
    2. explicit resolution notes / instructions are applied
    3. a given assignee is applied; an Unassigned activity becomes Open.
       `unassign` (an explicit null assignee) clears assignee and
       instructions; an Open activity without an explicit status
       moves back to Unassigned
    4. a requested Unassigned status clears assignee and instructions
    """
    current = activity.status
    change = StatusChange(
        previous_status=current,
        new_status=current,
        previous_assignee=activity.assigned_to_user_id,
        new_assignee=activity.assigned_to_user_id,
    )
    status = ActivityStatus(status).value if status is not None else None

    if status is not None:
        activity.status = status
        change.changed_fields.append("status")
        if current == ActivityStatus.RESOLVED.value and status == ActivityStatus.OPEN.value:
            activity.resolution_notes = None
            change.changed_fields.append("resolution_notes")

    if resolution_notes is not None:
        activity.resolution_notes = resolution_notes
        change.changed_fields.append("resolution_notes")

    if instructions is not None:
        activity.assignment_instructions = instructions
        change.changed_fields.append("assignment_instructions")

    if assign_to_user_id is not None:
        activity.assigned_to_user_id = assign_to_user_id
        change.changed_fields.append("assigned_to_user_id")
        if current == ActivityStatus.UNASSIGNED.value:
            activity.status = ActivityStatus.OPEN.value
            change.changed_fields.append("status")
    elif unassign:
        activity.assigned_to_user_id = None
        activity.assignment_instructions = None
        change.changed_fields.extend(["assigned_to_user_id", "assignment_instructions"])
        if status is None and current == ActivityStatus.OPEN.value:
            activity.status = ActivityStatus.UNASSIGNED.value
            change.changed_fields.append("status")

    if status == ActivityStatus.UNASSIGNED.value:
        activity.assigned_to_user_id = None
        activity.assignment_instructions = None
        change.changed_fields.extend(["assigned_to_user_id", "assignment_instructions"])

    change.new_status = activity.status
    change.new_assignee = activity.assigned_to_user_id
    change.changed_fields = list(dict.fromkeys(change.changed_fields))
    return change
