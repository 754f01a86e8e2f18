"""
Player Grouping - clusters of mutually-requesting players (2-4) that must be
placed on the same team as a unit.

Groups are recomputed from scratch on every pass:

1. Resolve each player's teammate requests to player ids. An accepted ledger
   warning supplies the canonical name; a pending or rejected warning
   supplies nothing; a request with no warning resolves only by exact
   (case-insensitive) name equality.
2. Build an undirected adjacency of mutual pairs, minus pairs a reviewer
   explicitly split apart.
3. Walk connected components in roster order.
   - 2..4 members: materialize. A component touching existing groups keeps
     the identity of the oldest one (merge); the others are dissolved.
   - more than 4: never materialized or truncated. Existing groups that
     sit wholly inside the component and are still connected are kept
     unchanged; the overflow (and any refused merge) is reported.

Group ids are never reused. Labels are assigned once, when a group is
created, using the lowest free label.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from app.models.roster import (
    Player,
    PlayerGroup,
    RequestKind,
    RosterState,
    UnfulfilledReason,
    UnfulfilledRequest,
    WarningStatus,
)
from app.services.warning_ledger import WarningLedger, decision_key
from app.utils.name_matching import normalize_name

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 2
MAX_GROUP_SIZE = 4

GROUP_COLORS = [
    "#3B82F6",  # Blue
    "#EF4444",  # Red
    "#10B981",  # Green
    "#F59E0B",  # Yellow
    "#8B5CF6",  # Purple
    "#F97316",  # Orange
    "#06B6D4",  # Cyan
    "#84CC16",  # Lime
    "#EC4899",  # Pink
    "#6B7280",  # Gray
    "#14B8A6",  # Teal
    "#F43F5E",  # Rose
]


# ============================================================================
# Labels
# ============================================================================


def group_label(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA, 27 -> AB ..."""
    label = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        label = chr(65 + remainder) + label
    return label


def label_index(label: str) -> int:
    index = 0
    for char in label:
        index = index * 26 + (ord(char) - 64)
    return index - 1


def _lowest_free_label(used: Set[str]) -> Tuple[str, int]:
    index = 0
    while group_label(index) in used:
        index += 1
    return group_label(index), index


def _group_seq(group: PlayerGroup) -> int:
    try:
        return int(group.id.rsplit("-", 1)[-1])
    except ValueError:
        return 0


def pair_key(player_a: str, player_b: str) -> Tuple[str, str]:
    return (player_a, player_b) if player_a <= player_b else (player_b, player_a)


# ============================================================================
# Results
# ============================================================================


@dataclass
class MergeOutcome:
    allowed: bool
    group_ids: List[str]
    combined_size: int
    reason: str


@dataclass
class ClusterOverflow:
    """A mutual cluster too large to become a group."""

    player_ids: List[str]
    size: int
    kept_group_ids: List[str]
    reason: str


@dataclass
class GroupingResult:
    groups: List[PlayerGroup]
    created: List[str] = field(default_factory=list)
    dissolved: List[str] = field(default_factory=list)
    merges: List[MergeOutcome] = field(default_factory=list)
    refused_merges: List[MergeOutcome] = field(default_factory=list)
    overflow: List[ClusterOverflow] = field(default_factory=list)
    mutual_pairs: List[Tuple[str, str]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class RequestResolution:
    resolved: Dict[str, List[str]]  # player_id -> requested player ids
    unresolved: Dict[str, List[str]]  # player_id -> raw request text


# ============================================================================
# Request resolution and adjacency
# ============================================================================


def resolve_teammate_requests(state: RosterState) -> RequestResolution:
    decisions = WarningLedger(state).decisions()

    name_index: Dict[str, List[str]] = {}
    for player in state.players:
        name_index.setdefault(normalize_name(player.name), []).append(player.id)

    resolved: Dict[str, List[str]] = {}
    unresolved: Dict[str, List[str]] = {}

    for player in state.players:
        ids: List[str] = []
        missing: List[str] = []
        for request in player.teammate_requests:
            warning = decisions.get(decision_key(player.id, RequestKind.teammate, request))
            if warning is None:
                target_name: Optional[str] = request
            elif warning.status == WarningStatus.accepted:
                target_name = warning.matched_name
            else:
                target_name = None

            targets = []
            if target_name:
                targets = [pid for pid in name_index.get(normalize_name(target_name), []) if pid != player.id]

            # Duplicate roster names cannot be resolved to one identity
            if len(targets) == 1:
                if targets[0] not in ids:
                    ids.append(targets[0])
            else:
                missing.append(request)

        resolved[player.id] = ids
        unresolved[player.id] = missing

    return RequestResolution(resolved=resolved, unresolved=unresolved)


def build_mutual_adjacency(state: RosterState, resolution: RequestResolution) -> Dict[str, Set[str]]:
    split = {pair_key(a, b) for a, b in state.split_pairs}
    adjacency: Dict[str, Set[str]] = {player.id: set() for player in state.players}

    for player_id, requested_ids in resolution.resolved.items():
        for other_id in requested_ids:
            if player_id not in resolution.resolved.get(other_id, []):
                continue
            if pair_key(player_id, other_id) in split:
                continue
            adjacency[player_id].add(other_id)
            adjacency[other_id].add(player_id)

    return adjacency


def _components(order: List[str], adjacency: Dict[str, Set[str]]) -> List[List[str]]:
    position = {player_id: i for i, player_id in enumerate(order)}
    seen: Set[str] = set()
    components: List[List[str]] = []

    for start in order:
        if start in seen or not adjacency.get(start):
            continue
        component = []
        queue = deque([start])
        seen.add(start)
        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in sorted(adjacency[current], key=lambda pid: position[pid]):
                if neighbor not in seen:
                    seen.add(neighbor)
                    queue.append(neighbor)
        components.append(sorted(component, key=lambda pid: position[pid]))

    return components


def _is_connected(member_ids: List[str], adjacency: Dict[str, Set[str]]) -> bool:
    if not member_ids:
        return False
    members = set(member_ids)
    seen = {member_ids[0]}
    queue = deque([member_ids[0]])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, set()) & members:
            if neighbor not in seen:
                seen.add(neighbor)
                queue.append(neighbor)
    return seen == members


# ============================================================================
# Recompute
# ============================================================================


def plan_merge(group_a: PlayerGroup, group_b: PlayerGroup) -> MergeOutcome:
    """Capacity check for combining two groups."""
    combined = len(set(group_a.player_ids) | set(group_b.player_ids))
    if combined > MAX_GROUP_SIZE:
        return MergeOutcome(
            allowed=False,
            group_ids=[group_a.id, group_b.id],
            combined_size=combined,
            reason=f"Cannot merge groups {group_a.label} and {group_b.label}: "
            f"combined size ({combined}) exceeds max ({MAX_GROUP_SIZE})",
        )
    return MergeOutcome(
        allowed=True,
        group_ids=[group_a.id, group_b.id],
        combined_size=combined,
        reason=f"Groups {group_a.label} and {group_b.label} can be merged ({combined}/{MAX_GROUP_SIZE})",
    )


def recompute_groups(state: RosterState) -> GroupingResult:
    """
    Rebuild every PlayerGroup from roster data and accepted ledger entries.

    Idempotent: running it twice on the same state yields the same groups.
    """
    order = [player.id for player in state.players]
    resolution = resolve_teammate_requests(state)
    adjacency = build_mutual_adjacency(state, resolution)

    existing_by_player: Dict[str, PlayerGroup] = {}
    for group in state.groups:
        for player_id in group.player_ids:
            existing_by_player[player_id] = group

    result = GroupingResult(groups=[])
    kept: List[PlayerGroup] = []
    claimed: Set[str] = set()
    pending_new: List[List[str]] = []
    overflow_players: Set[str] = set()

    for component in _components(order, adjacency):
        touched: List[PlayerGroup] = []
        for player_id in component:
            group = existing_by_player.get(player_id)
            if group is not None and group.id not in claimed and all(g.id != group.id for g in touched):
                touched.append(group)
        touched.sort(key=_group_seq)

        if len(component) <= MAX_GROUP_SIZE:
            if not touched:
                pending_new.append(component)
                continue

            survivor = touched[0]
            claimed.update(group.id for group in touched)
            kept.append(survivor.model_copy(update={"player_ids": list(component)}))
            if len(touched) > 1:
                result.merges.append(
                    MergeOutcome(
                        allowed=True,
                        group_ids=[group.id for group in touched],
                        combined_size=len(component),
                        reason=f"Merged into group {survivor.label}",
                    )
                )
                result.dissolved.extend(group.id for group in touched[1:])
            continue

        # Oversized cluster: keep intact groups, never truncate
        overflow_players.update(component)
        component_set = set(component)
        intact = [
            group
            for group in touched
            if set(group.player_ids) <= component_set and _is_connected(group.player_ids, adjacency)
        ]
        claimed.update(group.id for group in touched)
        kept.extend(group.model_copy() for group in intact)
        intact_ids = {group.id for group in intact}
        result.dissolved.extend(group.id for group in touched if group.id not in intact_ids)

        reason = f"Mutual cluster of {len(component)} players exceeds max group size ({MAX_GROUP_SIZE})"
        if len(touched) >= 2:
            refusal = MergeOutcome(
                allowed=False,
                group_ids=[group.id for group in touched],
                combined_size=len(component),
                reason=f"Cannot merge groups {', '.join(g.label for g in touched)}: "
                f"combined size ({len(component)}) exceeds max ({MAX_GROUP_SIZE})",
            )
            result.refused_merges.append(refusal)
            logger.warning(refusal.reason)
        else:
            logger.warning(reason)

        result.overflow.append(
            ClusterOverflow(
                player_ids=list(component),
                size=len(component),
                kept_group_ids=[group.id for group in intact],
                reason=reason,
            )
        )

    # Groups no component claimed have lost their mutual links
    result.dissolved.extend(group.id for group in state.groups if group.id not in claimed)

    used_labels = {group.label for group in kept}
    for member_ids in pending_new:
        label, index = _lowest_free_label(used_labels)
        used_labels.add(label)
        group = PlayerGroup(
            id=f"group-{state.next_group_seq}",
            label=label,
            color=GROUP_COLORS[index % len(GROUP_COLORS)],
            player_ids=list(member_ids),
        )
        state.next_group_seq += 1
        kept.append(group)
        result.created.append(group.id)

    kept.sort(key=lambda group: label_index(group.label))
    state.groups = kept
    result.groups = kept

    membership = {player_id: group.id for group in kept for player_id in group.player_ids}
    for player in state.players:
        player.group_id = membership.get(player.id)

    result.mutual_pairs = sorted(
        {pair_key(a, b) for a, neighbors in adjacency.items() for b in neighbors}
    )
    _derive_unfulfilled(state, resolution, adjacency, membership, overflow_players)

    if result.created or result.dissolved:
        logger.info(
            "Groups recomputed: %d groups (%d created, %d dissolved, %d overflow clusters)",
            len(kept),
            len(result.created),
            len(result.dissolved),
            len(result.overflow),
        )
    return result


def _derive_unfulfilled(
    state: RosterState,
    resolution: RequestResolution,
    adjacency: Dict[str, Set[str]],
    membership: Dict[str, str],
    overflow_players: Set[str],
) -> None:
    split = {pair_key(a, b) for a, b in state.split_pairs}
    names = {player.id: player.name for player in state.players}

    for player in state.players:
        unfulfilled: List[UnfulfilledRequest] = []
        for request in resolution.unresolved.get(player.id, []):
            unfulfilled.append(UnfulfilledRequest(name=request, reason=UnfulfilledReason.unresolved))

        for other_id in resolution.resolved.get(player.id, []):
            if pair_key(player.id, other_id) in split:
                continue
            same_group = membership.get(player.id) is not None and membership.get(player.id) == membership.get(other_id)
            if same_group:
                continue
            if other_id in adjacency.get(player.id, set()) and player.id in overflow_players:
                reason = UnfulfilledReason.group_full
            else:
                reason = UnfulfilledReason.non_reciprocal
            unfulfilled.append(UnfulfilledRequest(name=names[other_id], reason=reason, player_id=other_id))

        player.unfulfilled_requests = unfulfilled


# ============================================================================
# Explicit reviewer actions
# ============================================================================


def dissolve_group(state: RosterState, group_id: str) -> GroupingResult:
    """Break a group up for good: its member pairs are recorded as split."""
    group = state.group_by_id(group_id)
    if group is None:
        logger.warning("Group %s not found", group_id)
        return GroupingResult(groups=list(state.groups), error=f"Group {group_id} not found")

    members = group.player_ids
    for i, player_a in enumerate(members):
        for player_b in members[i + 1:]:
            _record_split(state, player_a, player_b)
    logger.info("Dissolving group %s (%s)", group.id, group.label)
    return recompute_groups(state)


def remove_from_group(state: RosterState, player_id: str) -> GroupingResult:
    group = get_player_group(state, player_id)
    if group is None:
        return GroupingResult(groups=list(state.groups), error=f"Player {player_id} is not in a group")

    for other_id in group.player_ids:
        if other_id != player_id:
            _record_split(state, player_id, other_id)
    return recompute_groups(state)


def _record_split(state: RosterState, player_a: str, player_b: str) -> None:
    key = pair_key(player_a, player_b)
    if key not in {pair_key(a, b) for a, b in state.split_pairs}:
        state.split_pairs.append(key)


# ============================================================================
# Lookups
# ============================================================================


def get_player_group(state: RosterState, player_id: str) -> Optional[PlayerGroup]:
    for group in state.groups:
        if player_id in group.player_ids:
            return group
    return None


def movement_unit(state: RosterState, player_id: str) -> List[str]:
    """Players that must move with ``player_id``: its whole group, or itself."""
    group = get_player_group(state, player_id)
    if group is None:
        return [player_id]
    return list(group.player_ids)


def get_groupmates(state: RosterState, player_id: str) -> List[Player]:
    group = get_player_group(state, player_id)
    if group is None:
        return []
    players = state.players_by_id()
    return [players[pid] for pid in group.player_ids if pid != player_id and pid in players]
