"""
Warning ledger tests.

Validates:
- Matcher outcomes map to the right category (clean exact matches leave no record)
- Review queue order: match-review, match-exact, not-found
- Resolve/dismiss lifecycle, corrected names, idempotent re-resolve
- Lookup failures are reported, not raised
"""

from app.models.roster import Player, RequestKind, RosterState, WarningCategory, WarningStatus
from app.services.warning_ledger import WarningLedger, decision_key
from app.utils.name_matching import match_name

ROSTER = ["Ann Lee", "Chris Smith", "Bob Smith", "Bob Jones"]


def _setup():
    state = RosterState(players=[Player(id=f"p{i}", name=name) for i, name in enumerate(ROSTER, start=1)])
    return state, WarningLedger(state), state.players[0]


def _record(ledger, player, requested, kind=RequestKind.teammate):
    return ledger.record_match(player, requested, kind, match_name(requested, ROSTER, exclude=player.name))


def test_clean_exact_match_leaves_no_record():
    state, ledger, ann = _setup()
    assert _record(ledger, ann, "Chris Smith") is None
    assert state.warnings == []


def test_categories_and_messages():
    state, ledger, ann = _setup()

    high = _record(ledger, ann, "chrissmith")
    assert high.category == WarningCategory.match_exact
    assert high.matched_name == "Chris Smith"
    assert high.suggested_name == "Chris Smith"
    assert high.status == WarningStatus.pending
    assert high.message == 'Player "Ann Lee": Teammate request "chrissmith" matched to "Chris Smith" (' + high.reason + ")"

    ambiguous = _record(ledger, ann, "Bob")
    assert ambiguous.category == WarningCategory.match_review
    assert ambiguous.message.endswith(", please verify")

    missing = _record(ledger, ann, "Zzyzx", RequestKind.avoid)
    assert missing.category == WarningCategory.not_found
    assert missing.matched_name is None
    assert missing.kind == RequestKind.avoid
    assert missing.message == 'Player "Ann Lee": Avoid request "Zzyzx" not found in roster'


def test_warning_ids_are_sequential():
    state, ledger, ann = _setup()
    info = ledger.add_info("Imported 4 players")
    first = _record(ledger, ann, "chrissmith")
    second = _record(ledger, ann, "Zzyzx")
    assert [info.id, first.id, second.id] == ["warn-0001", "warn-0002", "warn-0003"]
    assert state.next_warning_seq == 4


def test_review_queue_order():
    state, ledger, ann = _setup()
    missing = _record(ledger, ann, "Zzyzx")
    high = _record(ledger, ann, "chrissmith")
    ambiguous = _record(ledger, ann, "Bob")
    ledger.add_info("informational notes are never queued")

    assert [w.id for w in ledger.review_queue()] == [ambiguous.id, high.id, missing.id]


def test_resolve_with_corrected_name():
    state, ledger, ann = _setup()
    warning = _record(ledger, ann, "Bob")

    result = ledger.resolve(warning.id, "Bob Jones")
    assert result.ok and result.changed
    assert warning.status == WarningStatus.accepted
    assert warning.matched_name == "Bob Jones"
    assert warning.suggested_name == "Bob Smith"


def test_re_resolve_same_name_is_noop():
    state, ledger, ann = _setup()
    warning = _record(ledger, ann, "chrissmith")

    assert ledger.resolve(warning.id).changed
    again = ledger.resolve(warning.id)
    assert again.ok
    assert not again.changed
    assert len(state.warnings) == 1


def test_resolve_not_found_requires_name():
    state, ledger, ann = _setup()
    warning = _record(ledger, ann, "Zzyzx")

    result = ledger.resolve(warning.id)
    assert not result.ok
    assert "corrected name is required" in result.error
    assert warning.status == WarningStatus.pending

    assert ledger.resolve(warning.id, "Chris Smith").ok
    assert warning.matched_name == "Chris Smith"


def test_unknown_and_info_ids_are_reported():
    state, ledger, ann = _setup()
    info = ledger.add_info("note")

    missing = ledger.resolve("warn-9999")
    assert not missing.ok
    assert missing.error == "Warning warn-9999 not found"

    assert not ledger.dismiss(info.id).ok
    assert info.status == WarningStatus.pending


def test_dismiss_all_and_counts():
    state, ledger, ann = _setup()
    high = _record(ledger, ann, "chrissmith")
    _record(ledger, ann, "Bob")
    _record(ledger, ann, "Zzyzx")
    ledger.resolve(high.id)

    assert ledger.dismiss_all() == 2
    assert ledger.dismiss_all() == 0

    counts = ledger.counts()
    assert counts.total == 3
    assert counts.accepted == 1
    assert counts.rejected == 2
    assert counts.pending == 0
    assert counts.by_category == {"match-exact": 1, "match-review": 1, "not-found": 1}


def test_auto_accept_exact_only_touches_match_exact():
    state, ledger, ann = _setup()
    high = _record(ledger, ann, "chrissmith")
    ambiguous = _record(ledger, ann, "Bob")

    assert ledger.auto_accept_exact() == 1
    assert high.status == WarningStatus.accepted
    assert ambiguous.status == WarningStatus.pending


def test_decision_table_prefers_accepted_record():
    state, ledger, ann = _setup()
    first = _record(ledger, ann, "Bob")
    second = _record(ledger, ann, "bob")
    ledger.dismiss(first.id)
    ledger.resolve(second.id, "Bob Jones")

    key = decision_key(ann.id, RequestKind.teammate, "Bob")
    assert ledger.decisions()[key].id == second.id
    assert ledger.accepted_matches(RequestKind.teammate) == {key: "Bob Jones"}
    assert ledger.accepted_matches(RequestKind.avoid) == {}
