"""
Workspace Guards

Reusable lookups for route handlers:
- Workspace must exist (404)
- Snapshot must decode (500)
- Persist a mutated state back
"""

from fastapi import HTTPException
from sqlmodel import Session

from app.models.roster import RosterState
from app.models.workspace import Workspace
from app.services.workspace_store import PersistenceError, load_state, save_state


def get_workspace_or_404(session: Session, workspace_id: int) -> Workspace:
    workspace = session.get(Workspace, workspace_id)
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


def get_state_or_404(session: Session, workspace_id: int) -> RosterState:
    """
    Load the RosterState of a workspace.

    Raises:
        HTTPException 404: Workspace not found
        HTTPException 500: Stored snapshot is unreadable
    """
    try:
        state = load_state(session, workspace_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if state is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return state


def commit_state(session: Session, workspace_id: int, state: RosterState) -> Workspace:
    try:
        return save_state(session, workspace_id, state)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
