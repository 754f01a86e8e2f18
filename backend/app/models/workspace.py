from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel


class Workspace(SQLModel, table=True):
    """
    A saved roster workspace.

    The engine state (players, teams, groups, warnings, league config) is
    stored as a single JSON snapshot; the engine never reads this table
    directly, only the RosterState decoded from it.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = Field(default=None)
    state_json: str = Field(default="{}", sa_column=Column(Text, nullable=False))
    version: int = Field(default=1)  # Bumped on every save
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
