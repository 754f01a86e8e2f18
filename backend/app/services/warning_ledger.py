"""
Warning Ledger - reviewable match/no-match records with a status lifecycle.

Each warning moves pending -> accepted (optionally with a corrected name) or
pending -> rejected. Both are terminal but may be re-resolved; doing so never
creates a second downstream effect because group resolution reads the
ledger as a keyed decision table, not as an event stream.

Warnings are never deleted, so the ledger doubles as the audit trail.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.models.roster import (
    MatchConfidence,
    Player,
    RequestKind,
    RosterState,
    StructuredWarning,
    WarningCategory,
    WarningStatus,
)
from app.utils.name_matching import NameMatch, normalize_name

logger = logging.getLogger(__name__)

# Review order: ambiguous matches first, then confirmations, then misses
REVIEW_PRIORITY: Dict[WarningCategory, int] = {
    WarningCategory.match_review: 0,
    WarningCategory.match_exact: 1,
    WarningCategory.not_found: 2,
}

# (player_id, request kind, normalized requested text)
DecisionKey = Tuple[str, RequestKind, str]


@dataclass
class LedgerResult:
    """Outcome of a resolve/dismiss call. Lookup failures are reported, not raised."""

    ok: bool
    warning: Optional[StructuredWarning] = None
    changed: bool = False
    error: Optional[str] = None


@dataclass
class WarningCounts:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)
    pending_by_category: Dict[str, int] = field(default_factory=dict)


def category_for_match(match: NameMatch) -> WarningCategory:
    if match.ambiguous:
        return WarningCategory.match_review
    if match.confidence in (MatchConfidence.exact, MatchConfidence.high):
        return WarningCategory.match_exact
    if match.confidence == MatchConfidence.medium:
        return WarningCategory.match_review
    return WarningCategory.not_found


def is_actionable(warning: StructuredWarning) -> bool:
    return warning.category != WarningCategory.info and bool(warning.player_name)


def decision_key(player_id: str, kind: RequestKind, requested: str) -> DecisionKey:
    return (player_id, kind, normalize_name(requested))


def review_sort(warnings: List[StructuredWarning]) -> List[StructuredWarning]:
    """Actionable warnings in review order (stable within a category)."""
    actionable = [w for w in warnings if is_actionable(w)]
    return sorted(actionable, key=lambda w: REVIEW_PRIORITY.get(w.category, len(REVIEW_PRIORITY)))


def _request_message(player_name: str, kind: RequestKind, requested: str, match: NameMatch) -> str:
    label = "Teammate" if kind == RequestKind.teammate else "Avoid"
    prefix = f'Player "{player_name}": {label} request "{requested}"'

    if match.matched is None:
        return f"{prefix} not found in roster"
    if match.confidence == MatchConfidence.low and not match.ambiguous:
        return f'{prefix} not found in roster. Did you mean "{match.matched}"?'

    message = f'{prefix} matched to "{match.matched}" ({match.reason})'
    if category_for_match(match) == WarningCategory.match_review:
        message += ", please verify"
    return message


class WarningLedger:
    """Owns the StructuredWarning records of a RosterState."""

    def __init__(self, state: RosterState):
        self.state = state

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _next_id(self) -> str:
        warning_id = f"warn-{self.state.next_warning_seq:04d}"
        self.state.next_warning_seq += 1
        return warning_id

    def add_info(self, message: str) -> StructuredWarning:
        warning = StructuredWarning(id=self._next_id(), category=WarningCategory.info, message=message)
        self.state.warnings.append(warning)
        return warning

    def record_match(
        self, player: Player, requested: str, kind: RequestKind, match: NameMatch
    ) -> Optional[StructuredWarning]:
        """
        Record a matcher outcome for one request.

        Clean exact matches are roster data, not review items, so they return
        None and leave no record.
        """
        if match.confidence == MatchConfidence.exact and not match.ambiguous:
            return None

        warning = StructuredWarning(
            id=self._next_id(),
            category=category_for_match(match),
            message=_request_message(player.name, kind, requested, match),
            kind=kind,
            player_id=player.id,
            player_name=player.name,
            requested_name=requested,
            matched_name=match.matched,
            suggested_name=match.matched,
            confidence=match.confidence,
            reason=match.reason,
        )
        self.state.warnings.append(warning)
        return warning

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, warning_id: str) -> Optional[StructuredWarning]:
        for warning in self.state.warnings:
            if warning.id == warning_id:
                return warning
        return None

    def actionable(self) -> List[StructuredWarning]:
        return [w for w in self.state.warnings if is_actionable(w)]

    def review_queue(self) -> List[StructuredWarning]:
        return review_sort(self.state.warnings)

    def pending(self) -> List[StructuredWarning]:
        return [w for w in self.review_queue() if w.status == WarningStatus.pending]

    def counts(self) -> WarningCounts:
        counts = WarningCounts()
        for warning in self.actionable():
            category = warning.category.value
            counts.total += 1
            counts.by_category[category] = counts.by_category.get(category, 0) + 1
            if warning.status == WarningStatus.pending:
                counts.pending += 1
                counts.pending_by_category[category] = counts.pending_by_category.get(category, 0) + 1
            elif warning.status == WarningStatus.accepted:
                counts.accepted += 1
            else:
                counts.rejected += 1
        return counts

    def decisions(self) -> Dict[DecisionKey, StructuredWarning]:
        """
        Decision table keyed by (player, kind, requested text).

        When the same request was recorded more than once an accepted record
        wins, otherwise the first record stands.
        """
        table: Dict[DecisionKey, StructuredWarning] = {}
        for warning in self.actionable():
            if not warning.player_id or warning.kind is None or warning.requested_name is None:
                continue
            key = decision_key(warning.player_id, warning.kind, warning.requested_name)
            existing = table.get(key)
            if existing is None or (
                existing.status != WarningStatus.accepted and warning.status == WarningStatus.accepted
            ):
                table[key] = warning
        return table

    def accepted_matches(self, kind: Optional[RequestKind] = None) -> Dict[DecisionKey, str]:
        """Accepted canonical names, one per request key."""
        return {
            key: warning.matched_name
            for key, warning in self.decisions().items()
            if warning.status == WarningStatus.accepted
            and warning.matched_name
            and (kind is None or key[1] == kind)
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _lookup(self, warning_id: str) -> Tuple[Optional[StructuredWarning], Optional[str]]:
        warning = self.get(warning_id)
        if warning is None:
            logger.warning("Warning %s not found in ledger", warning_id)
            return None, f"Warning {warning_id} not found"
        if not is_actionable(warning):
            return None, f"Warning {warning_id} is informational and cannot be resolved"
        return warning, None

    def resolve(self, warning_id: str, corrected_name: Optional[str] = None) -> LedgerResult:
        """
        Accept a warning, optionally overriding the suggested name.

        Re-resolving an accepted warning with the same name is a no-op
        (changed=False).
        """
        warning, error = self._lookup(warning_id)
        if warning is None:
            return LedgerResult(ok=False, error=error)

        name = corrected_name.strip() if corrected_name and corrected_name.strip() else warning.matched_name
        if not name:
            return LedgerResult(
                ok=False,
                warning=warning,
                error=f"Warning {warning_id} has no suggested match; a corrected name is required",
            )

        changed = warning.status != WarningStatus.accepted or warning.matched_name != name
        warning.matched_name = name
        warning.status = WarningStatus.accepted
        if changed:
            logger.info("Accepted %s: %r -> %r", warning.id, warning.requested_name, name)
        return LedgerResult(ok=True, warning=warning, changed=changed)

    def dismiss(self, warning_id: str) -> LedgerResult:
        warning, error = self._lookup(warning_id)
        if warning is None:
            return LedgerResult(ok=False, error=error)

        changed = warning.status != WarningStatus.rejected
        warning.status = WarningStatus.rejected
        return LedgerResult(ok=True, warning=warning, changed=changed)

    def dismiss_all(self) -> int:
        """Reject every pending actionable warning. Returns how many changed."""
        dismissed = 0
        for warning in self.actionable():
            if warning.status == WarningStatus.pending:
                warning.status = WarningStatus.rejected
                dismissed += 1
        if dismissed:
            logger.info("Dismissed %d pending warnings", dismissed)
        return dismissed

    def auto_accept_exact(self) -> int:
        """Policy: accept pending match-exact warnings. They stay in the ledger."""
        accepted = 0
        for warning in self.actionable():
            if (
                warning.category == WarningCategory.match_exact
                and warning.status == WarningStatus.pending
                and warning.matched_name
            ):
                warning.status = WarningStatus.accepted
                accepted += 1
        return accepted
