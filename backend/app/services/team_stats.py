"""
Team statistics - derived aggregates only.

Team.average_skill / gender_breakdown / handler_count are never edited by
hand; recompute_team_stats() rebuilds them from the member list after every
committed mutation.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set, Tuple

from app.models.roster import Player, RosterState, Team
from app.services.constraint_validation import avoid_names_by_player
from app.services.player_grouping import build_mutual_adjacency, resolve_teammate_requests
from app.utils.name_matching import names_match


@dataclass
class RosterSummary:
    total_players: int
    assigned_players: int
    unassigned_players: int
    group_count: int
    grouped_players: int
    mutual_requests_honored: int
    mutual_requests_broken: int
    avoid_requests_violated: int


def recompute_team_stats(team: Team, players: Dict[str, Player]) -> Team:
    members = [players[pid] for pid in team.player_ids if pid in players]

    breakdown = {"M": 0, "F": 0, "Other": 0}
    for player in members:
        breakdown[player.gender.value] += 1

    team.average_skill = (
        round(sum(p.effective_skill for p in members) / len(members), 2) if members else 0.0
    )
    team.gender_breakdown = breakdown
    team.handler_count = sum(1 for p in members if p.is_handler)
    return team


def recompute_all_team_stats(state: RosterState, team_ids: Optional[Iterable[str]] = None) -> None:
    players = state.players_by_id()
    wanted = set(team_ids) if team_ids is not None else None
    for team in state.teams:
        if wanted is None or team.id in wanted:
            recompute_team_stats(team, players)


def roster_summary(state: RosterState) -> RosterSummary:
    """
    Request-satisfaction counters for dashboards.

    A group counts once: honored when every member is on the same team,
    broken otherwise. Mutual pairs outside any group (overflow clusters)
    count per pair.
    """
    players = state.players_by_id()
    assigned = sum(1 for p in state.players if p.team_id is not None)

    honored = 0
    broken = 0
    grouped: Set[str] = set()
    for group in state.groups:
        grouped.update(group.player_ids)
        team_ids = {players[pid].team_id for pid in group.player_ids if pid in players}
        if len(team_ids) == 1 and None not in team_ids:
            honored += 1
        else:
            broken += 1

    adjacency = build_mutual_adjacency(state, resolve_teammate_requests(state))
    loose_pairs: Set[Tuple[str, str]] = set()
    for player_id, neighbors in adjacency.items():
        for other_id in neighbors:
            if player_id in grouped or other_id in grouped:
                continue
            loose_pairs.add((min(player_id, other_id), max(player_id, other_id)))
    for player_a, player_b in loose_pairs:
        team_a = players[player_a].team_id
        if team_a is not None and team_a == players[player_b].team_id:
            honored += 1
        else:
            broken += 1

    # one per (avoider, avoided) pair on the same team, matching team_violations
    avoid_names = avoid_names_by_player(state)
    violated = 0
    for team in state.teams:
        members = [players[pid] for pid in team.player_ids if pid in players]
        for player in members:
            names = avoid_names.get(player.id, [])
            for other in members:
                if other.id != player.id and any(names_match(name, other.name) for name in names):
                    violated += 1

    return RosterSummary(
        total_players=len(state.players),
        assigned_players=assigned,
        unassigned_players=len(state.players) - assigned,
        group_count=len(state.groups),
        grouped_players=len(grouped),
        mutual_requests_honored=honored,
        mutual_requests_broken=broken,
        avoid_requests_violated=violated,
    )
