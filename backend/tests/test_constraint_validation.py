"""
Constraint validation tests.

Validates:
- Avoid conflicts block in both directions and name the conflicting player
- A group move is blocked when any member conflicts
- Accepted avoid warnings block the canonical name
- Soft rules (capacity, demographics, mixed gender) never block
"""

from app.models.roster import Gender, LeagueConfig, Player, RequestKind, RosterState, Team
from app.services.constraint_validation import (
    NOTICE_CAPACITY,
    NOTICE_DEMOGRAPHIC,
    NOTICE_MIXED_GENDER,
    can_move,
    soft_rule_notices,
    team_violations,
)
from app.services.player_grouping import recompute_groups
from app.services.warning_ledger import WarningLedger
from app.utils.name_matching import match_name


def _setup(config=None):
    """Alice avoids Bob; Bob sits on Team 1."""
    state = RosterState(
        players=[
            Player(id="alice", name="Alice", gender=Gender.female, avoid_requests=["Bob"]),
            Player(id="bob", name="Bob", gender=Gender.male, team_id="team-1"),
            Player(id="carol", name="Carol", gender=Gender.female),
        ],
        teams=[Team(id="team-1", name="Team 1", player_ids=["bob"]), Team(id="team-2", name="Team 2")],
        unassigned_ids=["alice", "carol"],
        config=config or LeagueConfig(),
    )
    return state


def test_mover_avoids_resident():
    state = _setup()
    check = can_move(state, "alice", "team-1")

    assert not check.allowed
    assert check.violation.conflicting_player_name == "Bob"
    assert check.violation.direction == "avoids"
    assert "Bob" in check.violation.message


def test_resident_avoids_mover():
    state = _setup()
    state.players[0].avoid_requests = []
    state.player_by_id("bob").avoid_requests = ["alice"]

    check = can_move(state, "alice", "team-1")
    assert not check.allowed
    assert check.violation.direction == "avoided-by"
    assert check.violation.conflicting_player_id == "bob"


def test_clear_destination_is_allowed():
    state = _setup()
    check = can_move(state, "alice", "team-2")
    assert check.allowed
    assert check.violation is None
    assert check.unit_ids == ["alice"]


def test_unassigned_is_always_allowed():
    state = _setup()
    assert can_move(state, "bob", None).allowed


def test_unknown_player_or_team():
    state = _setup()
    assert can_move(state, "nobody", "team-1").error == "Player nobody not found"
    assert can_move(state, "alice", "team-9").error == "Team team-9 not found"


def test_group_member_conflict_blocks_whole_unit():
    state = _setup()
    state.player_by_id("carol").teammate_requests = ["Alice"]
    state.player_by_id("alice").teammate_requests = ["Carol"]
    recompute_groups(state)

    check = can_move(state, "carol", "team-1")
    assert not check.allowed
    assert sorted(check.unit_ids) == ["alice", "carol"]
    assert check.violation.moving_player_id == "alice"


def test_accepted_avoid_warning_blocks_canonical_name():
    state = _setup()
    alice = state.player_by_id("alice")
    alice.avoid_requests = ["Bobby"]
    ledger = WarningLedger(state)
    warning = ledger.record_match(alice, "Bobby", RequestKind.avoid, match_name("Bobby", ["Bob", "Carol"]))

    ledger.resolve(warning.id, "Bob")
    check = can_move(state, "alice", "team-1")
    assert not check.allowed
    assert check.violation.conflicting_player_name == "Bob"


def test_capacity_is_a_notice_not_a_block():
    state = _setup(LeagueConfig(max_team_size=1))
    check = can_move(state, "carol", "team-1")

    assert check.allowed
    capacity = [n for n in check.notices if n.kind == NOTICE_CAPACITY]
    assert len(capacity) == 1
    assert capacity[0].current == 2
    assert capacity[0].limit == 1


def test_soft_rules():
    config = LeagueConfig(min_females=2, min_males=1, allow_mixed_gender=False)
    team = Team(id="team-1", name="Team 1")
    members = [Player(id="a", name="A", gender=Gender.female), Player(id="b", name="B", gender=Gender.male)]

    kinds = [n.kind for n in soft_rule_notices(team, members, config)]
    assert kinds == [NOTICE_DEMOGRAPHIC, NOTICE_MIXED_GENDER]


def test_team_violations_reports_existing_conflicts():
    state = _setup()
    state.teams[0].player_ids.append("alice")
    state.player_by_id("alice").team_id = "team-1"

    report = team_violations(state.teams[0], state)
    assert [(v.moving_player_id, v.conflicting_player_id) for v in report.hard_violations] == [("alice", "bob")]
    assert report.soft_violations == []


def test_empty_team_is_exempt_from_soft_rules():
    config = LeagueConfig(min_females=2, min_males=2)
    state = RosterState(
        players=[Player(id="ann", name="Ann", gender=Gender.female, team_id="team-1")],
        teams=[Team(id="team-1", name="Team 1", player_ids=["ann"]), Team(id="team-2", name="Team 2")],
        config=config,
    )

    assert soft_rule_notices(state.teams[1], [], config) == []
    assert team_violations(state.teams[1], state).soft_violations == []

    # moving the last player out leaves team 1 empty; only team 2 is reported
    check = can_move(state, "ann", "team-2")
    assert check.allowed
    assert {n.team_id for n in check.notices} == {"team-2"}
