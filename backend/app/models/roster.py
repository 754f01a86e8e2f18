"""
Roster engine state - players, teams, groups, warnings and league rules.

These are in-memory models. The whole bundle (RosterState) is what the
engine operates on; persistence stores it as a JSON snapshot on the
Workspace table.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class Gender(str, Enum):
    male = "M"
    female = "F"
    other = "Other"


class WarningCategory(str, Enum):
    info = "info"
    match_exact = "match-exact"
    match_review = "match-review"
    not_found = "not-found"


class WarningStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class MatchConfidence(str, Enum):
    exact = "exact"
    high = "high"
    medium = "medium"
    low = "low"
    none = "none"


class RequestKind(str, Enum):
    teammate = "teammate"
    avoid = "avoid"


class UnfulfilledReason(str, Enum):
    non_reciprocal = "non-reciprocal"
    group_full = "group-full"
    unresolved = "unresolved"


class UnfulfilledRequest(BaseModel):
    name: str
    reason: UnfulfilledReason
    player_id: Optional[str] = None


class Player(BaseModel):
    id: str
    name: str
    gender: Gender = Gender.other
    skill_rating: float = 5.0
    skill_override: Optional[float] = None  # None means "no override rating"
    teammate_requests: List[str] = Field(default_factory=list)
    avoid_requests: List[str] = Field(default_factory=list)
    team_id: Optional[str] = None
    group_id: Optional[str] = None
    is_handler: Optional[bool] = None
    email: Optional[str] = None
    unfulfilled_requests: List[UnfulfilledRequest] = Field(default_factory=list)

    @property
    def effective_skill(self) -> float:
        return self.skill_override if self.skill_override is not None else self.skill_rating


class PlayerGroup(BaseModel):
    id: str
    label: str
    color: str
    player_ids: List[str]


class StructuredWarning(BaseModel):
    id: str
    category: WarningCategory
    message: str
    kind: Optional[RequestKind] = None
    player_id: Optional[str] = None
    player_name: Optional[str] = None  # The player making the request
    requested_name: Optional[str] = None  # Raw text as typed
    matched_name: Optional[str] = None  # Canonical name (reviewer correction wins)
    suggested_name: Optional[str] = None  # What the matcher originally proposed
    confidence: Optional[MatchConfidence] = None
    reason: Optional[str] = None
    status: WarningStatus = WarningStatus.pending


class Team(BaseModel):
    id: str
    name: str
    player_ids: List[str] = Field(default_factory=list)

    # Derived - recomputed by team_stats after every committed mutation
    average_skill: float = 0.0
    gender_breakdown: Dict[str, int] = Field(default_factory=lambda: {"M": 0, "F": 0, "Other": 0})
    handler_count: int = 0


class LeagueConfig(BaseModel):
    id: str = "default"
    name: str = "Default League"
    max_team_size: int = 12
    min_females: int = 0
    min_males: int = 0
    target_teams: Optional[int] = None
    allow_mixed_gender: bool = True


class RosterState(BaseModel):
    """The logical state bundle shared by every engine component."""

    players: List[Player] = Field(default_factory=list)
    teams: List[Team] = Field(default_factory=list)
    unassigned_ids: List[str] = Field(default_factory=list)
    groups: List[PlayerGroup] = Field(default_factory=list)
    warnings: List[StructuredWarning] = Field(default_factory=list)
    config: LeagueConfig = Field(default_factory=LeagueConfig)

    # Pairs a reviewer explicitly separated (dissolve / remove from group)
    split_pairs: List[Tuple[str, str]] = Field(default_factory=list)

    next_group_seq: int = 1
    next_warning_seq: int = 1
    next_team_seq: int = 1

    def player_by_id(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def team_by_id(self, team_id: str) -> Optional[Team]:
        for team in self.teams:
            if team.id == team_id:
                return team
        return None

    def group_by_id(self, group_id: str) -> Optional[PlayerGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def players_by_id(self) -> Dict[str, Player]:
        return {p.id: p for p in self.players}
