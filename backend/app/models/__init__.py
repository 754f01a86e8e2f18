from app.models.roster import (
    Gender,
    LeagueConfig,
    MatchConfidence,
    Player,
    PlayerGroup,
    RequestKind,
    RosterState,
    StructuredWarning,
    Team,
    UnfulfilledReason,
    UnfulfilledRequest,
    WarningCategory,
    WarningStatus,
)
from app.models.workspace import Workspace

__all__ = [
    "Workspace",
    "RosterState",
    "Player",
    "PlayerGroup",
    "Team",
    "LeagueConfig",
    "StructuredWarning",
    "Gender",
    "MatchConfidence",
    "RequestKind",
    "UnfulfilledReason",
    "UnfulfilledRequest",
    "WarningCategory",
    "WarningStatus",
]
