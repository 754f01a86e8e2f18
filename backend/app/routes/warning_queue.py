"""
API Routes for the Warning Review Queue

Every decision (resolve, dismiss, review step) re-runs group resolution so
the response reflects the groups the decision produced.
"""

import logging
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from app.database import get_session
from app.models.roster import StructuredWarning, WarningCategory, WarningStatus
from app.routes.groups import GroupingResponse, grouping_response
from app.services.player_grouping import recompute_groups
from app.services.review_workflow import ReviewAction, advance_review, preview_impact
from app.services.warning_ledger import LedgerResult, WarningLedger
from app.utils.workspace_guards import commit_state, get_state_or_404

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class WarningCountsResponse(BaseModel):
    total: int
    pending: int
    accepted: int
    rejected: int
    by_category: Dict[str, int]
    pending_by_category: Dict[str, int]


class WarningQueueResponse(BaseModel):
    """Actionable warnings in review order, plus informational notes"""

    warnings: List[StructuredWarning]
    info: List[StructuredWarning]
    counts: WarningCountsResponse


class ResolveRequest(BaseModel):
    corrected_name: Optional[str] = None


class WarningDecisionResponse(BaseModel):
    warning: StructuredWarning
    changed: bool
    grouping: GroupingResponse


class DismissAllResponse(BaseModel):
    dismissed: int
    grouping: GroupingResponse


class ReviewStepRequest(BaseModel):
    current_index: int = 0
    action: ReviewAction
    corrected_name: Optional[str] = None


class ReviewStepResponse(BaseModel):
    current_index: int
    current: Optional[StructuredWarning] = None
    finished: bool
    error: Optional[str] = None
    counts: WarningCountsResponse


class ImpactResponse(BaseModel):
    type: str
    description: str
    details: Optional[str] = None
    existing_group: Optional[str] = None
    target_player_id: Optional[str] = None
    notes: List[str] = []


def _counts(ledger: WarningLedger) -> WarningCountsResponse:
    return WarningCountsResponse(**asdict(ledger.counts()))


def _raise_for_ledger_error(ledger: WarningLedger, warning_id: str, result: LedgerResult) -> None:
    if result.ok:
        return
    if ledger.get(warning_id) is None:
        raise HTTPException(status_code=404, detail=result.error)
    raise HTTPException(status_code=400, detail=result.error)


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/workspaces/{workspace_id}/warnings", response_model=WarningQueueResponse)
def get_warning_queue(
    workspace_id: int,
    status: Optional[WarningStatus] = Query(None, description="Only warnings with this status"),
    category: Optional[WarningCategory] = Query(None, description="Only warnings in this category"),
    session: Session = Depends(get_session),
):
    """
    Review queue: match-review first, then match-exact, then not-found.
    Order within a category is insertion order.
    """
    state = get_state_or_404(session, workspace_id)
    ledger = WarningLedger(state)

    queue = ledger.review_queue()
    if status is not None:
        queue = [w for w in queue if w.status == status]
    if category is not None:
        queue = [w for w in queue if w.category == category]

    info = [w for w in state.warnings if w.category == WarningCategory.info]
    return WarningQueueResponse(warnings=queue, info=info, counts=_counts(ledger))


@router.post("/workspaces/{workspace_id}/warnings/{warning_id}/resolve", response_model=WarningDecisionResponse)
def resolve_warning(
    workspace_id: int, warning_id: str, request: ResolveRequest, session: Session = Depends(get_session)
):
    state = get_state_or_404(session, workspace_id)
    ledger = WarningLedger(state)

    result = ledger.resolve(warning_id, request.corrected_name)
    _raise_for_ledger_error(ledger, warning_id, result)

    grouping = recompute_groups(state)
    commit_state(session, workspace_id, state)
    return WarningDecisionResponse(warning=result.warning, changed=result.changed, grouping=grouping_response(grouping))


@router.post("/workspaces/{workspace_id}/warnings/{warning_id}/dismiss", response_model=WarningDecisionResponse)
def dismiss_warning(workspace_id: int, warning_id: str, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    ledger = WarningLedger(state)

    result = ledger.dismiss(warning_id)
    _raise_for_ledger_error(ledger, warning_id, result)

    grouping = recompute_groups(state)
    commit_state(session, workspace_id, state)
    return WarningDecisionResponse(warning=result.warning, changed=result.changed, grouping=grouping_response(grouping))


@router.post("/workspaces/{workspace_id}/warnings/dismiss-all", response_model=DismissAllResponse)
def dismiss_all_warnings(workspace_id: int, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    dismissed = WarningLedger(state).dismiss_all()
    grouping = recompute_groups(state)
    commit_state(session, workspace_id, state)
    return DismissAllResponse(dismissed=dismissed, grouping=grouping_response(grouping))


@router.post("/workspaces/{workspace_id}/warnings/review-step", response_model=ReviewStepResponse)
def review_step(workspace_id: int, request: ReviewStepRequest, session: Session = Depends(get_session)):
    """
    Apply one reviewer action to the queue at ``current_index``.

    Confirm and dismiss advance to the next pending warning, wrapping to the
    start of the queue; next/previous only move the cursor.
    """
    state = get_state_or_404(session, workspace_id)
    step = advance_review(state.warnings, request.current_index, request.action, request.corrected_name)
    if step.error:
        raise HTTPException(status_code=400, detail=step.error)

    state.warnings = step.warnings
    if request.action not in (ReviewAction.next, ReviewAction.previous):
        recompute_groups(state)
        commit_state(session, workspace_id, state)

    current = step.queue[step.current_index] if step.queue else None
    return ReviewStepResponse(
        current_index=step.current_index,
        current=current,
        finished=step.finished,
        counts=_counts(WarningLedger(state)),
    )


@router.get("/workspaces/{workspace_id}/warnings/{warning_id}/preview", response_model=ImpactResponse)
def preview_warning_impact(
    workspace_id: int,
    warning_id: str,
    corrected_name: Optional[str] = Query(None, description="Preview with this name instead of the suggestion"),
    session: Session = Depends(get_session),
):
    """What accepting the warning would do to grouping. Read-only."""
    state = get_state_or_404(session, workspace_id)
    impact = preview_impact(state, warning_id, corrected_name)
    if impact is None:
        raise HTTPException(status_code=404, detail="Warning not found")
    return ImpactResponse(**asdict(impact))
