"""
Workspace API Routes
Create/load roster workspaces, import a roster, manage teams.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from app.database import get_session
from app.models.roster import LeagueConfig, Player, RosterState, Team
from app.services.assignment_coordinator import create_team
from app.services.roster_import import RosterImportError, import_roster, parse_roster_csv
from app.services.team_stats import recompute_all_team_stats, roster_summary
from app.services.warning_ledger import WarningLedger
from app.services.workspace_store import create_workspace
from app.utils.roster_validation import validate_league_config
from app.utils.workspace_guards import commit_state, get_state_or_404, get_workspace_or_404

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class WorkspaceCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class WorkspaceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime
    state: RosterState


class RosterImportRequest(BaseModel):
    csv_text: str
    config: Optional[Dict[str, Any]] = None  # Defaults to the workspace's current config
    auto_accept_exact: Optional[bool] = None


class RosterImportResponse(BaseModel):
    workspace_id: int
    players_imported: int
    rows_skipped: int
    defaulted_fields: int
    duplicate_names: List[str]
    warnings_recorded: int
    auto_accepted: int
    groups_formed: int
    pending_review: int


class TeamCreateRequest(BaseModel):
    name: Optional[str] = None


class RosterSummaryResponse(BaseModel):
    total_players: int
    assigned_players: int
    unassigned_players: int
    group_count: int
    grouped_players: int
    mutual_requests_honored: int
    mutual_requests_broken: int
    avoid_requests_violated: int


def _workspace_response(workspace, state: RosterState) -> WorkspaceResponse:
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        version=workspace.version,
        created_at=workspace.created_at,
        updated_at=workspace.updated_at,
        state=state,
    )


# ============================================================================
# Workspace Endpoints
# ============================================================================


@router.post("/workspaces", response_model=WorkspaceResponse, status_code=201)
def create_workspace_endpoint(request: WorkspaceCreateRequest, session: Session = Depends(get_session)):
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Workspace name cannot be empty")

    state = RosterState(config=validate_league_config(request.config or {}))
    workspace = create_workspace(session, name, request.description, state)
    return _workspace_response(workspace, state)


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceResponse)
def get_workspace(workspace_id: int, session: Session = Depends(get_session)):
    workspace = get_workspace_or_404(session, workspace_id)
    state = get_state_or_404(session, workspace_id)
    return _workspace_response(workspace, state)


@router.put("/workspaces/{workspace_id}/config", response_model=LeagueConfig)
def update_league_config(workspace_id: int, config: Dict[str, Any], session: Session = Depends(get_session)):
    """Replace the league rules. Values are clamped, never rejected."""
    state = get_state_or_404(session, workspace_id)
    state.config = validate_league_config(config)
    commit_state(session, workspace_id, state)
    return state.config


@router.post("/workspaces/{workspace_id}/roster/import", response_model=RosterImportResponse)
def import_roster_endpoint(
    workspace_id: int, request: RosterImportRequest, session: Session = Depends(get_session)
):
    """
    Replace the workspace roster with an imported CSV.

    Teams, groups and warnings from the previous roster are discarded.
    Returns 400 only when the file has no name column or no player rows.
    """
    current = get_state_or_404(session, workspace_id)
    config = request.config if request.config is not None else current.config

    try:
        rows = parse_roster_csv(request.csv_text)
        report = import_roster(rows, config, request.auto_accept_exact)
    except RosterImportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    commit_state(session, workspace_id, report.state)
    logger.info("Workspace %s: imported %d players", workspace_id, report.players_imported)

    return RosterImportResponse(
        workspace_id=workspace_id,
        players_imported=report.players_imported,
        rows_skipped=report.rows_skipped,
        defaulted_fields=report.defaulted_fields,
        duplicate_names=report.duplicate_names,
        warnings_recorded=report.warnings_recorded,
        auto_accepted=report.auto_accepted,
        groups_formed=report.groups_formed,
        pending_review=len(WarningLedger(report.state).pending()),
    )


@router.get("/workspaces/{workspace_id}/players", response_model=List[Player])
def list_players(workspace_id: int, session: Session = Depends(get_session)):
    return get_state_or_404(session, workspace_id).players


@router.get("/workspaces/{workspace_id}/summary", response_model=RosterSummaryResponse)
def get_roster_summary(workspace_id: int, session: Session = Depends(get_session)):
    state = get_state_or_404(session, workspace_id)
    return RosterSummaryResponse(**asdict(roster_summary(state)))


# ============================================================================
# Team Endpoints
# ============================================================================


@router.post("/workspaces/{workspace_id}/teams", response_model=Team, status_code=201)
def create_team_endpoint(
    workspace_id: int, request: TeamCreateRequest, session: Session = Depends(get_session)
):
    state = get_state_or_404(session, workspace_id)
    name = request.name.strip() if request.name else None
    if name and any(t.name.lower() == name.lower() for t in state.teams):
        raise HTTPException(status_code=409, detail=f"Team '{name}' already exists")

    team = create_team(state, name)
    commit_state(session, workspace_id, state)
    return team


@router.get("/workspaces/{workspace_id}/teams", response_model=List[Team])
def list_teams(workspace_id: int, session: Session = Depends(get_session)):
    """Teams with freshly computed stats."""
    state = get_state_or_404(session, workspace_id)
    recompute_all_team_stats(state)
    return state.teams
