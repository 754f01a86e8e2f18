"""
Constraint Validation - legality of team moves.

Hard rule (blocking):
  Avoid conflict. A move is refused when a moving player's avoid list names
  a current member of the destination, or a current member's avoid list
  names the moving player. For a group move every member is checked and a
  single conflict blocks the whole unit.

Soft rules (reported, never blocking):
  - team size above max_team_size
  - female / male counts below the configured minimums
  - mixed-gender team when the league does not allow it

Read-only: nothing in this module mutates RosterState.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.models.roster import Gender, LeagueConfig, Player, RequestKind, RosterState, Team
from app.services.player_grouping import movement_unit
from app.services.warning_ledger import WarningLedger, decision_key
from app.utils.name_matching import names_match

NOTICE_CAPACITY = "capacity"
NOTICE_DEMOGRAPHIC = "demographic"
NOTICE_MIXED_GENDER = "mixed-gender"


@dataclass
class ConflictDescription:
    """An avoid-rule violation between a moving player and a team member."""

    team_id: str
    team_name: str
    moving_player_id: str
    moving_player_name: str
    conflicting_player_id: str
    conflicting_player_name: str
    direction: str  # "avoids" | "avoided-by"
    message: str


@dataclass
class ConstraintNotice:
    kind: str
    team_id: str
    team_name: str
    message: str
    current: int
    limit: int


@dataclass
class MoveCheck:
    allowed: bool
    unit_ids: List[str] = field(default_factory=list)
    violation: Optional[ConflictDescription] = None
    notices: List[ConstraintNotice] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class TeamViolations:
    team_id: str
    hard_violations: List[ConflictDescription] = field(default_factory=list)
    soft_violations: List[ConstraintNotice] = field(default_factory=list)


# ============================================================================
# Avoid rule
# ============================================================================


def avoid_names_by_player(state: RosterState) -> Dict[str, List[str]]:
    """
    Raw avoid requests plus the canonical name of any accepted avoid warning,
    so "Bobby" resolved to "Robert Smith" blocks Robert Smith as well.
    """
    accepted = WarningLedger(state).accepted_matches(RequestKind.avoid)
    names: Dict[str, List[str]] = {}
    for player in state.players:
        player_names = list(player.avoid_requests)
        for request in player.avoid_requests:
            canonical = accepted.get(decision_key(player.id, RequestKind.avoid, request))
            if canonical and canonical not in player_names:
                player_names.append(canonical)
        names[player.id] = player_names
    return names


def _avoids(avoid_names: Dict[str, List[str]], player: Player, other: Player) -> bool:
    return any(names_match(name, other.name) for name in avoid_names.get(player.id, []))


def find_avoid_conflict(
    mover: Player,
    team: Team,
    residents: List[Player],
    avoid_names: Dict[str, List[str]],
) -> Optional[ConflictDescription]:
    """First avoid conflict between ``mover`` and the team's residents, if any."""
    for member in residents:
        if _avoids(avoid_names, mover, member):
            return ConflictDescription(
                team_id=team.id,
                team_name=team.name,
                moving_player_id=mover.id,
                moving_player_name=mover.name,
                conflicting_player_id=member.id,
                conflicting_player_name=member.name,
                direction="avoids",
                message=f"{mover.name} asked to avoid {member.name}, who is on {team.name}",
            )

    for member in residents:
        if _avoids(avoid_names, member, mover):
            return ConflictDescription(
                team_id=team.id,
                team_name=team.name,
                moving_player_id=mover.id,
                moving_player_name=mover.name,
                conflicting_player_id=member.id,
                conflicting_player_name=member.name,
                direction="avoided-by",
                message=f"{member.name} on {team.name} asked to avoid {mover.name}",
            )
    return None


# ============================================================================
# Soft rules
# ============================================================================


def soft_rule_notices(team: Team, members: List[Player], config: LeagueConfig) -> List[ConstraintNotice]:
    """
    Capacity, gender-minimum and mixed-gender notices for a team roster.

    Empty teams are exempt: a team with nobody on it has no shortfall to
    report yet, and emptying a team by moving its players out is not flagged.
    """
    if not members:
        return []

    notices: List[ConstraintNotice] = []
    size = len(members)
    females = sum(1 for p in members if p.gender == Gender.female)
    males = sum(1 for p in members if p.gender == Gender.male)

    if size > config.max_team_size:
        notices.append(
            ConstraintNotice(
                kind=NOTICE_CAPACITY,
                team_id=team.id,
                team_name=team.name,
                message=f"{team.name} has {size} players (max {config.max_team_size})",
                current=size,
                limit=config.max_team_size,
            )
        )
    if females < config.min_females:
        notices.append(
            ConstraintNotice(
                kind=NOTICE_DEMOGRAPHIC,
                team_id=team.id,
                team_name=team.name,
                message=f"{team.name} has {females} female players (min {config.min_females})",
                current=females,
                limit=config.min_females,
            )
        )
    if males < config.min_males:
        notices.append(
            ConstraintNotice(
                kind=NOTICE_DEMOGRAPHIC,
                team_id=team.id,
                team_name=team.name,
                message=f"{team.name} has {males} male players (min {config.min_males})",
                current=males,
                limit=config.min_males,
            )
        )
    if not config.allow_mixed_gender and females and males:
        notices.append(
            ConstraintNotice(
                kind=NOTICE_MIXED_GENDER,
                team_id=team.id,
                team_name=team.name,
                message=f"{team.name} mixes genders but the league does not allow mixed teams",
                current=min(females, males),
                limit=0,
            )
        )
    return notices


def team_violations(team: Team, state: RosterState) -> TeamViolations:
    """Hard and soft violations currently present on a team (display only)."""
    players = state.players_by_id()
    members = [players[pid] for pid in team.player_ids if pid in players]
    avoid_names = avoid_names_by_player(state)

    report = TeamViolations(team_id=team.id)
    for player in members:
        for other in members:
            if other.id != player.id and _avoids(avoid_names, player, other):
                report.hard_violations.append(
                    ConflictDescription(
                        team_id=team.id,
                        team_name=team.name,
                        moving_player_id=player.id,
                        moving_player_name=player.name,
                        conflicting_player_id=other.id,
                        conflicting_player_name=other.name,
                        direction="avoids",
                        message=f"{player.name} asked to avoid {other.name}",
                    )
                )
    report.soft_violations = soft_rule_notices(team, members, state.config)
    return report


# ============================================================================
# Move checks
# ============================================================================


def projected_notices(state: RosterState, unit_ids: List[str], target_team_id: Optional[str]) -> List[ConstraintNotice]:
    """Soft notices for destination and source teams as they would be after the move."""
    players = state.players_by_id()
    unit = set(unit_ids)
    notices: List[ConstraintNotice] = []

    touched = []
    if target_team_id is not None:
        touched.append(target_team_id)
    for player_id in unit_ids:
        source = players[player_id].team_id if player_id in players else None
        if source is not None and source not in touched:
            touched.append(source)

    for team_id in touched:
        team = state.team_by_id(team_id)
        if team is None:
            continue
        member_ids = [pid for pid in team.player_ids if pid not in unit]
        if team_id == target_team_id:
            member_ids.extend(unit_ids)
        members = [players[pid] for pid in member_ids if pid in players]
        notices.extend(soft_rule_notices(team, members, state.config))
    return notices


def check_unit(state: RosterState, unit_ids: List[str], target_team_id: Optional[str]) -> MoveCheck:
    """Hard check for every member of a movement unit against the destination."""
    players = state.players_by_id()

    if target_team_id is None:
        return MoveCheck(
            allowed=True,
            unit_ids=list(unit_ids),
            notices=projected_notices(state, unit_ids, None),
        )

    team = state.team_by_id(target_team_id)
    if team is None:
        return MoveCheck(allowed=False, unit_ids=list(unit_ids), error=f"Team {target_team_id} not found")

    unit = set(unit_ids)
    residents = [players[pid] for pid in team.player_ids if pid not in unit and pid in players]
    avoid_names = avoid_names_by_player(state)

    for player_id in unit_ids:
        conflict = find_avoid_conflict(players[player_id], team, residents, avoid_names)
        if conflict is not None:
            return MoveCheck(allowed=False, unit_ids=list(unit_ids), violation=conflict)

    return MoveCheck(
        allowed=True,
        unit_ids=list(unit_ids),
        notices=projected_notices(state, unit_ids, target_team_id),
    )


def can_move(state: RosterState, player_id: str, target_team_id: Optional[str]) -> MoveCheck:
    """Would moving ``player_id`` (and its group) to ``target_team_id`` be legal?"""
    if state.player_by_id(player_id) is None:
        return MoveCheck(allowed=False, error=f"Player {player_id} not found")
    return check_unit(state, movement_unit(state, player_id), target_team_id)
