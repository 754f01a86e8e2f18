"""Roster import - CSV text to a reconciled RosterState.

Handles a header-driven export, one row per player:
  Name  Gender  Skill Rating  Exec Skill Rating  Teammate Requests  Avoid Requests  Email  Handler

Columns are located by substring so "Player Name" or "Teammate Request(s)"
both work. Malformed cells are defaulted and reported as info warnings;
only a missing name column or an empty file stops the import.
"""

import csv
import io
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from app.models.roster import Gender, LeagueConfig, Player, RequestKind, RosterState
from app.services.assignment_coordinator import sync_unassigned_pool
from app.services.player_grouping import recompute_groups
from app.services.warning_ledger import WarningLedger
from app.utils.name_matching import match_name, normalize_name
from app.utils.roster_validation import (
    DEFAULT_SKILL_RATING,
    RosterValidationError,
    validate_email,
    validate_gender,
    validate_handler_flag,
    validate_league_config,
    validate_optional_rating,
    validate_player_name,
    validate_requests,
    validate_skill_rating,
)

logger = logging.getLogger(__name__)

AUTO_ACCEPT_EXACT = os.getenv("AUTO_ACCEPT_EXACT_MATCHES", "true").lower() in ("true", "1", "yes")

# field -> header substrings, checked in order; first matching column wins
COLUMN_PATTERNS: Dict[str, tuple] = {
    "name": ("name",),
    "gender": ("gender", "sex"),
    "skill_override": ("override", "exec"),
    "skill_rating": ("skill", "rating"),
    "teammate_requests": ("teammate",),
    "avoid_requests": ("avoid",),
    "email": ("email", "e-mail"),
    "is_handler": ("handler",),
}


class RosterImportError(ValueError):
    """The file cannot be imported at all (no name column, no rows)."""


@dataclass
class ImportReport:
    state: RosterState
    players_imported: int = 0
    rows_skipped: int = 0
    defaulted_fields: int = 0
    duplicate_names: List[str] = field(default_factory=list)
    warnings_recorded: int = 0
    auto_accepted: int = 0
    groups_formed: int = 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def locate_columns(headers: List[str]) -> Dict[str, str]:
    """Map field names to the actual header text. Each header is used once."""
    located: Dict[str, str] = {}
    used = set()
    for field_name, patterns in COLUMN_PATTERNS.items():
        for header in headers:
            if header in used:
                continue
            lowered = header.strip().lower()
            if any(pattern in lowered for pattern in patterns):
                located[field_name] = header
                used.add(header)
                break
    return located


def parse_roster_csv(text: str) -> List[Dict[str, Any]]:
    """Parse CSV text into rows keyed by field name."""
    reader = csv.DictReader(io.StringIO(text.lstrip("﻿")))
    headers = [h for h in (reader.fieldnames or []) if h is not None]
    columns = locate_columns(headers)
    if "name" not in columns:
        raise RosterImportError("CSV must include a name column")

    rows = []
    for raw in reader:
        row = {field_name: raw.get(header) for field_name, header in columns.items()}
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        rows.append(row)

    if not rows:
        raise RosterImportError("CSV contains no player rows")
    logger.info("Parsed %d roster rows (columns: %s)", len(rows), ", ".join(sorted(columns)))
    return rows


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "player"


def _coerce(
    ledger: WarningLedger,
    report: ImportReport,
    row_label: str,
    validator: Callable[[Any], Any],
    value: Any,
    default: Any,
) -> Any:
    try:
        return validator(value)
    except RosterValidationError as e:
        logger.warning("%s: %s, using default %r", row_label, e, default)
        ledger.add_info(f"{row_label}: {e}; using default")
        report.defaulted_fields += 1
        return default


def import_roster(
    rows: List[Dict[str, Any]],
    config: Optional[Any] = None,
    auto_accept_exact: Optional[bool] = None,
) -> ImportReport:
    """
    Build a fresh RosterState from parsed rows.

    1. Coerce each row into a Player (defaults on bad cells)
    2. Match every teammate / avoid request against the other players
    3. Record warnings, apply the auto-accept policy
    4. Form groups and fill the unassigned pool
    """
    if not rows:
        raise RosterImportError("No player rows to import")
    if auto_accept_exact is None:
        auto_accept_exact = AUTO_ACCEPT_EXACT

    state = RosterState(config=validate_league_config(config) if config is not None else LeagueConfig())
    ledger = WarningLedger(state)
    report = ImportReport(state=state)

    slug_counts: Dict[str, int] = {}
    seen_names: Dict[str, str] = {}

    for index, row in enumerate(rows, start=1):
        label = f"Row {index}"
        try:
            name = validate_player_name(row.get("name"))
        except RosterValidationError as e:
            logger.warning("%s skipped: %s", label, e)
            ledger.add_info(f"{label} skipped: {e}")
            report.rows_skipped += 1
            continue

        label = f'Player "{name}"'
        key = normalize_name(name)
        if key in seen_names:
            report.duplicate_names.append(name)
            ledger.add_info(f"{label}: duplicate name in roster; requests naming it cannot be resolved")

        slug = _slug(name)
        slug_counts[slug] = slug_counts.get(slug, 0) + 1
        player_id = slug if slug_counts[slug] == 1 else f"{slug}-{slug_counts[slug]}"

        player = Player(
            id=player_id,
            name=name,
            gender=_coerce(ledger, report, label, validate_gender, row.get("gender"), Gender.other),
            skill_rating=_coerce(
                ledger, report, label, validate_skill_rating, row.get("skill_rating") or DEFAULT_SKILL_RATING,
                DEFAULT_SKILL_RATING,
            ),
            skill_override=_coerce(ledger, report, label, validate_optional_rating, row.get("skill_override"), None),
            teammate_requests=validate_requests(row.get("teammate_requests")),
            avoid_requests=validate_requests(row.get("avoid_requests")),
            email=_coerce(ledger, report, label, validate_email, row.get("email"), None),
            is_handler=_coerce(ledger, report, label, validate_handler_flag, row.get("is_handler"), None),
        )
        seen_names.setdefault(key, player.id)
        state.players.append(player)

    if not state.players:
        raise RosterImportError("No valid player rows to import")

    names = [p.name for p in state.players]
    for player in state.players:
        for kind, requests in (
            (RequestKind.teammate, player.teammate_requests),
            (RequestKind.avoid, player.avoid_requests),
        ):
            for requested in requests:
                match = match_name(requested, names, exclude=player.name)
                if ledger.record_match(player, requested, kind, match) is not None:
                    report.warnings_recorded += 1

    if auto_accept_exact:
        report.auto_accepted = ledger.auto_accept_exact()

    grouping = recompute_groups(state)
    sync_unassigned_pool(state)

    report.players_imported = len(state.players)
    report.groups_formed = len(grouping.groups)
    ledger.add_info(
        f"Imported {report.players_imported} players, formed {report.groups_formed} groups, "
        f"{len(ledger.pending())} requests need review"
    )
    logger.info(
        "Imported %d players (%d skipped, %d defaulted fields, %d warnings, %d auto-accepted)",
        report.players_imported,
        report.rows_skipped,
        report.defaulted_fields,
        report.warnings_recorded,
        report.auto_accepted,
    )
    return report
