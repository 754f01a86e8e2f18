"""
Assignment Coordinator - the only code path that changes team membership.

move_player():
1. Resolve the movement unit (the player's whole group, or just the player)
2. Run the hard avoid check for every unit member against the destination
3. On any conflict: return the conflicting pair, state untouched
4. Otherwise remove every member from its team / the unassigned pool,
   append to the destination, recompute stats for every touched team

All validation happens before the first mutation, so a partially applied
group move is never observable.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.models.roster import RosterState, Team
from app.services.constraint_validation import ConflictDescription, ConstraintNotice, check_unit
from app.services.player_grouping import movement_unit
from app.services.team_stats import recompute_all_team_stats

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    allowed: bool
    player_id: str
    target_team_id: Optional[str]
    moved_player_ids: List[str] = field(default_factory=list)
    source_team_ids: List[str] = field(default_factory=list)
    conflict: Optional[ConflictDescription] = None
    notices: List[ConstraintNotice] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class MoveProposal:
    """A suggested move from an external generator."""

    player_id: str
    source_team_id: Optional[str]
    target_team_id: Optional[str]


@dataclass
class ProposalOutcome:
    proposal: MoveProposal
    status: str  # applied | rejected | stale | error
    result: Optional[MoveResult] = None
    reason: Optional[str] = None


def create_team(state: RosterState, name: Optional[str] = None) -> Team:
    team = Team(id=f"team-{state.next_team_seq}", name=name or f"Team {state.next_team_seq}")
    state.next_team_seq += 1
    state.teams.append(team)
    return team


def move_player(state: RosterState, player_id: str, target_team_id: Optional[str]) -> MoveResult:
    """
    Move a player (and its group) to ``target_team_id``; None means the
    unassigned pool. Soft-rule notices ride along on success.
    """
    player = state.player_by_id(player_id)
    if player is None:
        return MoveResult(
            allowed=False, player_id=player_id, target_team_id=target_team_id, error=f"Player {player_id} not found"
        )

    unit_ids = movement_unit(state, player_id)
    check = check_unit(state, unit_ids, target_team_id)
    if not check.allowed:
        if check.violation is not None:
            logger.info(
                "Move of %s to %s blocked: %s", player_id, target_team_id, check.violation.message
            )
        return MoveResult(
            allowed=False,
            player_id=player_id,
            target_team_id=target_team_id,
            conflict=check.violation,
            error=check.error,
        )

    # -- validation complete; mutate --
    players = state.players_by_id()
    unit = set(unit_ids)
    source_team_ids: List[str] = []
    for member_id in unit_ids:
        source = players[member_id].team_id
        if source is not None and source not in source_team_ids:
            source_team_ids.append(source)

    for team in state.teams:
        if unit & set(team.player_ids):
            team.player_ids = [pid for pid in team.player_ids if pid not in unit]
    state.unassigned_ids = [pid for pid in state.unassigned_ids if pid not in unit]

    if target_team_id is None:
        state.unassigned_ids.extend(unit_ids)
    else:
        state.team_by_id(target_team_id).player_ids.extend(unit_ids)

    for member_id in unit_ids:
        players[member_id].team_id = target_team_id

    touched = list(source_team_ids)
    if target_team_id is not None and target_team_id not in touched:
        touched.append(target_team_id)
    recompute_all_team_stats(state, touched)

    logger.info(
        "Moved %s to %s (unit of %d, from %s)",
        player_id,
        target_team_id or "unassigned",
        len(unit_ids),
        ", ".join(source_team_ids) or "unassigned",
    )
    return MoveResult(
        allowed=True,
        player_id=player_id,
        target_team_id=target_team_id,
        moved_player_ids=list(unit_ids),
        source_team_ids=source_team_ids,
        notices=check.notices,
    )


def apply_proposals(state: RosterState, proposals: List[MoveProposal]) -> List[ProposalOutcome]:
    """
    Replay externally generated moves through move_player(), in order.

    Each proposal is atomic on its own. A proposal whose source no longer
    matches the player's current team is skipped as stale.
    """
    outcomes: List[ProposalOutcome] = []
    for proposal in proposals:
        player = state.player_by_id(proposal.player_id)
        if player is None:
            outcomes.append(
                ProposalOutcome(proposal=proposal, status="error", reason=f"Player {proposal.player_id} not found")
            )
            continue
        if player.team_id != proposal.source_team_id:
            outcomes.append(
                ProposalOutcome(
                    proposal=proposal,
                    status="stale",
                    reason=f"{player.name} is no longer on {proposal.source_team_id or 'the unassigned list'}",
                )
            )
            continue

        result = move_player(state, proposal.player_id, proposal.target_team_id)
        if result.allowed:
            outcomes.append(ProposalOutcome(proposal=proposal, status="applied", result=result))
        elif result.conflict is not None:
            outcomes.append(
                ProposalOutcome(proposal=proposal, status="rejected", result=result, reason=result.conflict.message)
            )
        else:
            outcomes.append(ProposalOutcome(proposal=proposal, status="error", result=result, reason=result.error))

    applied = sum(1 for o in outcomes if o.status == "applied")
    logger.info("Applied %d of %d proposed moves", applied, len(proposals))
    return outcomes


def sync_unassigned_pool(state: RosterState) -> None:
    """Put every player without a team into the unassigned pool (roster order)."""
    assigned = {pid for team in state.teams for pid in team.player_ids}
    pool = [pid for pid in state.unassigned_ids if pid not in assigned]
    for player in state.players:
        if player.id not in assigned:
            player.team_id = None
            if player.id not in pool:
                pool.append(player.id)
    state.unassigned_ids = pool
