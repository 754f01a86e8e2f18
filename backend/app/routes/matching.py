"""
API Routes for Name Matching - probe the matcher without touching state
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.database import get_session
from app.models.roster import MatchConfidence
from app.utils.name_matching import NameMatch, match_name, suggest_names
from app.utils.workspace_guards import get_state_or_404

router = APIRouter()


class MatchProbeRequest(BaseModel):
    requested: str
    candidates: List[str]
    exclude: Optional[str] = None


class NameMatchResponse(BaseModel):
    matched: Optional[str] = None
    confidence: MatchConfidence
    reason: str
    score: float
    alternatives: List[str] = []
    ambiguous: bool = False


class SuggestRequest(BaseModel):
    partial: str
    candidates: List[str]
    limit: int = Field(5, ge=1, le=20)


def _to_response(match: NameMatch) -> NameMatchResponse:
    return NameMatchResponse(
        matched=match.matched,
        confidence=match.confidence,
        reason=match.reason,
        score=match.score,
        alternatives=match.alternatives,
        ambiguous=match.ambiguous,
    )


@router.post("/matching/match", response_model=NameMatchResponse)
def probe_match(request: MatchProbeRequest):
    return _to_response(match_name(request.requested, request.candidates, exclude=request.exclude))


@router.post("/matching/suggest", response_model=List[NameMatchResponse])
def probe_suggestions(request: SuggestRequest):
    return [_to_response(m) for m in suggest_names(request.partial, request.candidates, request.limit)]


@router.get("/workspaces/{workspace_id}/players/suggest", response_model=List[NameMatchResponse])
def suggest_roster_names(
    workspace_id: int,
    q: str = Query(..., min_length=1, description="Partial name as typed"),
    limit: int = Query(5, ge=1, le=20),
    session: Session = Depends(get_session),
):
    """Autocomplete against the workspace roster (used when correcting a warning)."""
    state = get_state_or_404(session, workspace_id)
    names = [p.name for p in state.players]
    return [_to_response(m) for m in suggest_names(q, names, limit)]
