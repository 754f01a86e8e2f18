"""
Workspace persistence - RosterState <-> Workspace.state_json.

The only module that touches the database on the engine's behalf. Routes
load a state, run engine operations on it in memory, then save it back.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from sqlmodel import Session

from app.models.roster import RosterState
from app.models.workspace import Workspace

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A stored snapshot could not be decoded or written"""


def create_workspace(
    session: Session,
    name: str,
    description: Optional[str] = None,
    state: Optional[RosterState] = None,
) -> Workspace:
    workspace = Workspace(
        name=name,
        description=description,
        state_json=(state or RosterState()).model_dump_json(),
    )
    session.add(workspace)
    session.commit()
    session.refresh(workspace)
    logger.info("Created workspace %s (%s)", workspace.id, name)
    return workspace


def decode_state(workspace: Workspace) -> RosterState:
    try:
        return RosterState.model_validate_json(workspace.state_json or "{}")
    except ValidationError as e:
        logger.error("Workspace %s has an unreadable snapshot: %s", workspace.id, e)
        raise PersistenceError(f"Workspace {workspace.id} state could not be decoded") from e


def load_state(session: Session, workspace_id: int) -> Optional[RosterState]:
    """None when the workspace does not exist."""
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        return None
    return decode_state(workspace)


def save_state(session: Session, workspace_id: int, state: RosterState) -> Workspace:
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        raise PersistenceError(f"Workspace {workspace_id} not found")

    workspace.state_json = state.model_dump_json()
    workspace.version += 1
    workspace.updated_at = datetime.now(timezone.utc)
    session.add(workspace)
    session.commit()
    session.refresh(workspace)
    return workspace
