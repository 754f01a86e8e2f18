"""
Roster import tests.

Validates:
- Header columns located by substring
- Malformed cells are defaulted and reported, never fatal
- Duplicate names tolerated
- Requests matched, exact confirmations auto-accepted, groups formed
"""

import pytest

from app.models.roster import Gender, WarningCategory, WarningStatus
from app.services.roster_import import RosterImportError, import_roster, locate_columns, parse_roster_csv
from app.utils.roster_validation import (
    RosterValidationError,
    validate_gender,
    validate_league_config,
    validate_requests,
    validate_skill_rating,
)

CSV = """Player Name,Gender,Skill Rating,Exec Skill Rating,Teammate Requests,Avoid Requests,Email,Handler
Ann Lee,F,7,,chrissmith,,ann@example.com,yes
Chris Smith,M,12,8,Ann Lee,Dana Fox,,no
Dana Fox,X,abc,,,,not-an-email,
Eve Hill,Female,4,,Bob; Zed Quinn,,,
Ann Lee,F,5,,,,,
"""


def test_locate_columns():
    columns = locate_columns(["Player Name", "Gender", "Skill Rating", "Exec Skill Rating", "Teammate Requests"])
    assert columns["name"] == "Player Name"
    assert columns["skill_override"] == "Exec Skill Rating"
    assert columns["skill_rating"] == "Skill Rating"
    assert columns["teammate_requests"] == "Teammate Requests"


def test_parse_requires_name_column():
    with pytest.raises(RosterImportError):
        parse_roster_csv("Gender,Skill\nF,5\n")


def test_parse_requires_rows():
    with pytest.raises(RosterImportError):
        parse_roster_csv("Name,Gender\n,\n")


def test_import_roster_end_to_end():
    report = import_roster(parse_roster_csv(CSV), auto_accept_exact=True)
    state = report.state

    assert report.players_imported == 5
    assert [p.id for p in state.players] == ["ann-lee", "chris-smith", "dana-fox", "eve-hill", "ann-lee-2"]
    assert report.duplicate_names == ["Ann Lee"]

    ann, chris, dana, eve, _ = state.players
    assert ann.is_handler is True
    assert ann.email == "ann@example.com"
    assert chris.skill_rating == 10.0  # clamped
    assert chris.skill_override == 8.0
    assert chris.is_handler is False
    assert dana.gender == Gender.other  # defaulted
    assert dana.skill_rating == 5.0  # defaulted
    assert dana.email is None
    assert eve.gender == Gender.female
    assert eve.teammate_requests == ["Bob", "Zed Quinn"]
    assert report.defaulted_fields == 3

    # every player starts unassigned
    assert state.unassigned_ids == [p.id for p in state.players]


def test_import_records_and_auto_accepts_matches():
    report = import_roster(parse_roster_csv(CSV), auto_accept_exact=True)
    state = report.state

    concatenated = next(w for w in state.warnings if w.requested_name == "chrissmith")
    assert concatenated.category == WarningCategory.match_exact
    assert concatenated.status == WarningStatus.accepted
    assert report.auto_accepted == 1

    # "Ann Lee" is a duplicate name, so Chris's request cannot resolve and no group forms
    assert state.groups == []
    assert state.warnings[-1].category == WarningCategory.info
    assert state.warnings[-1].message.startswith("Imported 5 players")


def test_import_without_auto_accept_leaves_pending():
    report = import_roster(parse_roster_csv(CSV), auto_accept_exact=False)
    concatenated = next(w for w in report.state.warnings if w.requested_name == "chrissmith")
    assert concatenated.status == WarningStatus.pending
    assert report.auto_accepted == 0


def test_import_forms_group_from_accepted_match():
    rows = parse_roster_csv("Name,Teammate\nAnn Lee,chrissmith\nChris Smith,Ann Lee\n")
    report = import_roster(rows, auto_accept_exact=True)
    assert report.groups_formed == 1
    assert sorted(report.state.groups[0].player_ids) == ["ann-lee", "chris-smith"]


def test_rows_without_names_are_skipped():
    report = import_roster([{"name": "  "}, {"name": "Ann Lee"}])
    assert report.rows_skipped == 1
    assert report.players_imported == 1


def test_import_with_no_rows_fails():
    with pytest.raises(RosterImportError):
        import_roster([])
    with pytest.raises(RosterImportError):
        import_roster([{"name": ""}])


def test_validators():
    assert validate_gender("male") == Gender.male
    assert validate_gender(None) == Gender.other
    with pytest.raises(RosterValidationError):
        validate_gender("X")

    assert validate_skill_rating("0") == 1.0
    assert validate_skill_rating(15) == 10.0
    with pytest.raises(RosterValidationError):
        validate_skill_rating("nan")
    with pytest.raises(RosterValidationError):
        validate_skill_rating(True)

    assert validate_requests("A; B, -, n/a, ") == ["A", "B"]
    assert len(validate_requests(",".join(f"P{i}" for i in range(15)))) == 10

    config = validate_league_config({"max_team_size": 99, "min_females": -3, "target_teams": 1})
    assert config.max_team_size == 30
    assert config.min_females == 0
    assert config.target_teams == 2


def test_league_config_defaults_malformed_values():
    defaults = validate_league_config({})

    config = validate_league_config({"max_team_size": "inf", "min_males": "1e400", "allow_mixed_gender": "false"})
    assert config.max_team_size == defaults.max_team_size
    assert config.min_males == defaults.min_males
    assert config.allow_mixed_gender is False

    assert validate_league_config({"allow_mixed_gender": "no"}).allow_mixed_gender is False
    assert validate_league_config({"allow_mixed_gender": "maybe"}).allow_mixed_gender == defaults.allow_mixed_gender
    assert validate_league_config({"allow_mixed_gender": False}).allow_mixed_gender is False
