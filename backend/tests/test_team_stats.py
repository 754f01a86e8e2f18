"""
Team statistics and roster summary tests.

Validates:
- Team averages use the skill override when present
- Avoid violations count accepted canonical names, same as team_violations
"""

from app.models.roster import Gender, Player, RequestKind, RosterState, Team
from app.services.constraint_validation import team_violations
from app.services.team_stats import recompute_team_stats, roster_summary
from app.services.warning_ledger import WarningLedger
from app.utils.name_matching import match_name


def _setup():
    """Alice and Bob share Team 1; Alice's avoid request is a nickname."""
    return RosterState(
        players=[
            Player(id="alice", name="Alice", gender=Gender.female, team_id="team-1", avoid_requests=["Bobby"]),
            Player(id="bob", name="Bob", gender=Gender.male, team_id="team-1", skill_rating=4, skill_override=8),
        ],
        teams=[Team(id="team-1", name="Team 1", player_ids=["alice", "bob"])],
    )


def test_team_average_uses_override():
    state = _setup()
    team = recompute_team_stats(state.teams[0], state.players_by_id())
    assert team.gender_breakdown["M"] == 1
    assert team.gender_breakdown["F"] == 1
    assert team.average_skill == 6.5


def test_summary_counts_accepted_avoid_names():
    state = _setup()
    assert roster_summary(state).avoid_requests_violated == 0

    alice = state.player_by_id("alice")
    ledger = WarningLedger(state)
    warning = ledger.record_match(alice, "Bobby", RequestKind.avoid, match_name("Bobby", ["Bob"]))
    ledger.resolve(warning.id, "Bob")

    summary = roster_summary(state)
    assert summary.avoid_requests_violated == 1
    assert summary.avoid_requests_violated == len(team_violations(state.teams[0], state).hard_violations)
