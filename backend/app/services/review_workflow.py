"""
Review Workflow - stepping through the warning queue.

advance_review() is a pure transition:
    (warnings, current_index, action) -> (warnings', current_index')
It never mutates its inputs, so a reviewer session can be replayed in tests
without any presentation layer. Confirm and dismiss auto-advance to the next
pending warning after the current one, wrapping to the start of the queue.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from app.models.roster import RequestKind, RosterState, StructuredWarning, WarningStatus
from app.services.player_grouping import MAX_GROUP_SIZE, get_player_group, plan_merge
from app.services.warning_ledger import WarningLedger, is_actionable, review_sort
from app.utils.name_matching import names_match


class ReviewAction(str, Enum):
    confirm = "confirm"
    dismiss = "dismiss"
    next = "next"
    previous = "previous"
    dismiss_all = "dismiss-all"


@dataclass
class ReviewStep:
    warnings: List[StructuredWarning]
    queue: List[StructuredWarning]
    current_index: int
    finished: bool
    error: Optional[str] = None


def next_pending_index(queue: List[StructuredWarning], start: int) -> Optional[int]:
    for i in range(start + 1, len(queue)):
        if queue[i].status == WarningStatus.pending:
            return i
    for i in range(0, min(start, len(queue))):
        if queue[i].status == WarningStatus.pending:
            return i
    return None


def advance_review(
    warnings: List[StructuredWarning],
    current_index: int,
    action: ReviewAction,
    corrected_name: Optional[str] = None,
) -> ReviewStep:
    updated = [warning.model_copy() for warning in warnings]
    queue = review_sort(updated)
    if not queue:
        return ReviewStep(warnings=updated, queue=queue, current_index=0, finished=True)

    index = max(0, min(current_index, len(queue) - 1))
    current = queue[index]
    error = None

    if action == ReviewAction.confirm:
        name = corrected_name.strip() if corrected_name and corrected_name.strip() else current.matched_name
        if name:
            current.matched_name = name
            current.status = WarningStatus.accepted
            following = next_pending_index(queue, index)
            if following is not None:
                index = following
        else:
            error = f"Warning {current.id} has no suggested match; a corrected name is required"
    elif action == ReviewAction.dismiss:
        current.status = WarningStatus.rejected
        following = next_pending_index(queue, index)
        if following is not None:
            index = following
    elif action == ReviewAction.next:
        index = min(index + 1, len(queue) - 1)
    elif action == ReviewAction.previous:
        index = max(index - 1, 0)
    elif action == ReviewAction.dismiss_all:
        for warning in queue:
            if warning.status == WarningStatus.pending:
                warning.status = WarningStatus.rejected

    finished = all(warning.status != WarningStatus.pending for warning in queue)
    return ReviewStep(warnings=updated, queue=queue, current_index=index, finished=finished, error=error)


# ============================================================================
# Impact preview
# ============================================================================


@dataclass
class RequestImpact:
    type: str  # mutual | one-way | avoid | not-in-roster
    description: str
    details: Optional[str] = None
    existing_group: Optional[str] = None
    target_player_id: Optional[str] = None
    notes: List[str] = field(default_factory=list)


def preview_impact(
    state: RosterState, warning_id: str, corrected_name: Optional[str] = None
) -> Optional[RequestImpact]:
    """What confirming a warning would do to grouping. None for unknown ids."""
    ledger = WarningLedger(state)
    warning = ledger.get(warning_id)
    if warning is None or not is_actionable(warning):
        return None

    target_name = corrected_name.strip() if corrected_name and corrected_name.strip() else warning.matched_name
    requester = state.player_by_id(warning.player_id) if warning.player_id else None
    target = None
    if target_name and requester is not None:
        target = next(
            (p for p in state.players if p.id != requester.id and names_match(p.name, target_name)),
            None,
        )

    if requester is None or target is None:
        return RequestImpact(type="not-in-roster", description="Player not found in roster")

    if warning.kind == RequestKind.avoid:
        return RequestImpact(
            type="avoid",
            description="Avoid request",
            details=f"{requester.name} and {target.name} will be kept off the same team",
            target_player_id=target.id,
        )

    in_data = any(names_match(request, requester.name) for request in target.teammate_requests)
    complementary = next(
        (
            other
            for other in ledger.actionable()
            if other.id != warning.id
            and other.player_id == target.id
            and other.kind == RequestKind.teammate
            and (names_match(other.matched_name, requester.name) or names_match(other.requested_name, requester.name))
        ),
        None,
    )

    if not in_data and complementary is None:
        details = f"Only {requester.name} requested {target.name}"
        if target.teammate_requests:
            details = f"{target.name} requested different players: {', '.join(target.teammate_requests)}"
        return RequestImpact(type="one-way", description="One-way request", details=details, target_player_id=target.id)

    requester_group = get_player_group(state, requester.id)
    target_group = get_player_group(state, target.id)
    existing_group = None

    if requester_group is not None and target_group is not None and requester_group.id == target_group.id:
        existing_group = "Already in the same group"
        details = "Both players are already grouped together"
    elif requester_group is not None and target_group is not None:
        outcome = plan_merge(requester_group, target_group)
        details = outcome.reason if not outcome.allowed else "Confirming may merge their groups"
    elif requester_group is not None or target_group is not None:
        group = requester_group or target_group
        size = len(group.player_ids)
        if size >= MAX_GROUP_SIZE:
            details = f"Cannot add to group: already at max size ({MAX_GROUP_SIZE})"
        else:
            details = f"Will add to existing group ({size + 1}/{MAX_GROUP_SIZE})"
    else:
        details = "Will create new group (2 players)"

    notes = []
    if complementary is not None and not in_data:
        notes.append(f"Detected from warning {complementary.id} ({complementary.status.value})")
        if complementary.status != WarningStatus.accepted:
            notes.append("The reciprocal request must also be accepted before a group forms")

    return RequestImpact(
        type="mutual",
        description="Mutual request",
        details=details,
        existing_group=existing_group,
        target_player_id=target.id,
        notes=notes,
    )
