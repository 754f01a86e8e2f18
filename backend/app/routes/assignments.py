"""
API Routes for Team Assignment

A blocked move is a normal outcome, not an HTTP error: the response carries
allowed=false plus the conflicting pair. Unknown players or teams are 404.
"""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from app.database import get_session
from app.services.assignment_coordinator import MoveProposal, apply_proposals, move_player
from app.services.constraint_validation import can_move, team_violations
from app.utils.workspace_guards import commit_state, get_state_or_404

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MoveRequest(BaseModel):
    player_id: str
    target_team_id: Optional[str] = None  # None = unassigned pool


class ConflictResponse(BaseModel):
    team_id: str
    team_name: str
    moving_player_id: str
    moving_player_name: str
    conflicting_player_id: str
    conflicting_player_name: str
    direction: str
    message: str


class NoticeResponse(BaseModel):
    kind: str
    team_id: str
    team_name: str
    message: str
    current: int
    limit: int


class MoveCheckResponse(BaseModel):
    allowed: bool
    unit_ids: List[str]
    violation: Optional[ConflictResponse] = None
    notices: List[NoticeResponse]


class MoveResponse(BaseModel):
    allowed: bool
    player_id: str
    target_team_id: Optional[str] = None
    moved_player_ids: List[str]
    source_team_ids: List[str]
    conflict: Optional[ConflictResponse] = None
    notices: List[NoticeResponse]


class ProposalItem(BaseModel):
    player_id: str
    source_team_id: Optional[str] = None
    target_team_id: Optional[str] = None


class ProposalBatchRequest(BaseModel):
    proposals: List[ProposalItem]


class ProposalOutcomeResponse(BaseModel):
    proposal: ProposalItem
    status: str  # applied | rejected | stale | error
    moved_player_ids: List[str] = []
    reason: Optional[str] = None


class ProposalBatchResponse(BaseModel):
    applied: int
    rejected: int
    stale: int
    errors: int
    outcomes: List[ProposalOutcomeResponse]


class TeamViolationsResponse(BaseModel):
    team_id: str
    hard_violations: List[ConflictResponse]
    soft_violations: List[NoticeResponse]


def _check_target(state, target_team_id: Optional[str]) -> None:
    if target_team_id is not None and state.team_by_id(target_team_id) is None:
        raise HTTPException(status_code=404, detail="Team not found")


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/workspaces/{workspace_id}/moves/check", response_model=MoveCheckResponse)
def check_move(workspace_id: int, request: MoveRequest, session: Session = Depends(get_session)):
    """Would the move be legal? Read-only."""
    state = get_state_or_404(session, workspace_id)
    if state.player_by_id(request.player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")
    _check_target(state, request.target_team_id)

    check = can_move(state, request.player_id, request.target_team_id)
    payload = asdict(check)
    payload.pop("error", None)
    return MoveCheckResponse(**payload)


@router.post("/workspaces/{workspace_id}/moves", response_model=MoveResponse)
def move_player_endpoint(workspace_id: int, request: MoveRequest, session: Session = Depends(get_session)):
    """
    Move a player, together with their whole group, to a team or back to the
    unassigned pool. Blocked moves leave the workspace unchanged.
    """
    state = get_state_or_404(session, workspace_id)
    if state.player_by_id(request.player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")
    _check_target(state, request.target_team_id)

    result = move_player(state, request.player_id, request.target_team_id)
    if result.allowed:
        commit_state(session, workspace_id, state)

    payload = asdict(result)
    payload.pop("error", None)
    return MoveResponse(**payload)


@router.post("/workspaces/{workspace_id}/moves/proposals", response_model=ProposalBatchResponse)
def apply_move_proposals(
    workspace_id: int, request: ProposalBatchRequest, session: Session = Depends(get_session)
):
    """
    Replay externally generated moves one at a time. Each is checked against
    the current state; stale or conflicting proposals are skipped.
    """
    state = get_state_or_404(session, workspace_id)
    proposals = [
        MoveProposal(player_id=p.player_id, source_team_id=p.source_team_id, target_team_id=p.target_team_id)
        for p in request.proposals
    ]
    outcomes = apply_proposals(state, proposals)
    if any(o.status == "applied" for o in outcomes):
        commit_state(session, workspace_id, state)

    items = [
        ProposalOutcomeResponse(
            proposal=ProposalItem(**asdict(o.proposal)),
            status=o.status,
            moved_player_ids=o.result.moved_player_ids if o.result is not None else [],
            reason=o.reason,
        )
        for o in outcomes
    ]
    return ProposalBatchResponse(
        applied=sum(1 for o in outcomes if o.status == "applied"),
        rejected=sum(1 for o in outcomes if o.status == "rejected"),
        stale=sum(1 for o in outcomes if o.status == "stale"),
        errors=sum(1 for o in outcomes if o.status == "error"),
        outcomes=items,
    )


@router.get("/workspaces/{workspace_id}/teams/{team_id}/violations", response_model=TeamViolationsResponse)
def get_team_violations(workspace_id: int, team_id: str, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    team = state.team_by_id(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return TeamViolationsResponse(**asdict(team_violations(team, state)))
