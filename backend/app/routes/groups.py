"""
API Routes for Player Groups
"""

from dataclasses import asdict
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from app.database import get_session
from app.models.roster import PlayerGroup, RosterState
from app.services.player_grouping import GroupingResult, dissolve_group, recompute_groups, remove_from_group
from app.utils.workspace_guards import commit_state, get_state_or_404

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class GroupMember(BaseModel):
    player_id: str
    name: str
    team_id: Optional[str] = None


class GroupDetail(BaseModel):
    id: str
    label: str
    color: str
    size: int
    members: List[GroupMember]
    split_across_teams: bool


class MergeOutcomeResponse(BaseModel):
    allowed: bool
    group_ids: List[str]
    combined_size: int
    reason: str


class ClusterOverflowResponse(BaseModel):
    player_ids: List[str]
    size: int
    kept_group_ids: List[str]
    reason: str


class GroupingResponse(BaseModel):
    """Outcome of a grouping pass"""

    groups: List[PlayerGroup]
    created: List[str]
    dissolved: List[str]
    merges: List[MergeOutcomeResponse]
    refused_merges: List[MergeOutcomeResponse]
    overflow: List[ClusterOverflowResponse]
    mutual_pairs: List[Tuple[str, str]]


def grouping_response(result: GroupingResult) -> GroupingResponse:
    payload = asdict(result)
    payload.pop("error", None)
    return GroupingResponse(**payload)


def group_detail(state: RosterState, group: PlayerGroup) -> GroupDetail:
    players = state.players_by_id()
    members = [
        GroupMember(player_id=pid, name=players[pid].name, team_id=players[pid].team_id)
        for pid in group.player_ids
        if pid in players
    ]
    return GroupDetail(
        id=group.id,
        label=group.label,
        color=group.color,
        size=len(members),
        members=members,
        split_across_teams=len({m.team_id for m in members}) > 1,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/workspaces/{workspace_id}/groups", response_model=List[GroupDetail])
def list_groups(workspace_id: int, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    return [group_detail(state, group) for group in state.groups]


@router.post("/workspaces/{workspace_id}/groups/recompute", response_model=GroupingResponse)
def recompute_groups_endpoint(workspace_id: int, session: Session = Depends(get_session)):
    """
    Rebuild groups from current requests and ledger decisions.

    Idempotent: running it twice with no change in between returns the
    same groups with nothing created or dissolved.
    """
    state = get_state_or_404(session, workspace_id)
    result = recompute_groups(state)
    commit_state(session, workspace_id, state)
    return grouping_response(result)


@router.post("/workspaces/{workspace_id}/groups/{group_id}/dissolve", response_model=GroupingResponse)
def dissolve_group_endpoint(workspace_id: int, group_id: str, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    result = dissolve_group(state, group_id)
    if result.error:
        raise HTTPException(status_code=404, detail=result.error)
    commit_state(session, workspace_id, state)
    return grouping_response(result)


@router.delete("/workspaces/{workspace_id}/groups/members/{player_id}", response_model=GroupingResponse)
def remove_group_member(workspace_id: int, player_id: str, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    if state.player_by_id(player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")

    result = remove_from_group(state, player_id)
    if result.error:
        raise HTTPException(status_code=400, detail=result.error)
    commit_state(session, workspace_id, state)
    return grouping_response(result)
