"""
Roster input validation.

Validators raise RosterValidationError on malformed input; callers in the
import pipeline catch it, default the field and keep going. Nothing here is
allowed to make an import fatal.
"""

import re
from typing import Any, Iterable, List, Optional

from app.models.roster import Gender, LeagueConfig

DEFAULT_SKILL_RATING = 5.0
MIN_SKILL_RATING = 1.0
MAX_SKILL_RATING = 10.0
MAX_NAME_LENGTH = 50
MAX_REQUEST_LENGTH = 50
MAX_REQUESTS_PER_LIST = 10

_TAG_RE = re.compile(r"<[^>]*>")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_REQUEST_SPLIT_RE = re.compile(r"[,;]")

_PLACEHOLDERS = ("", "-", "—", "–", "n/a", "none")


class RosterValidationError(ValueError):
    """Malformed player or league-config input"""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(message)


def sanitize_text(value: Any, max_length: int = 100) -> str:
    if not isinstance(value, str):
        return ""
    return _TAG_RE.sub("", value).strip()[:max_length]


def validate_player_name(value: Any) -> str:
    name = " ".join(sanitize_text(value, MAX_NAME_LENGTH).split())
    if not name:
        raise RosterValidationError("name", value, "Player name cannot be empty")
    return name


def validate_gender(value: Any) -> Gender:
    """M/MALE, F/FEMALE and OTHER are accepted; blank means Other."""
    text = sanitize_text(value, 20).upper()
    if text in ("M", "MALE"):
        return Gender.male
    if text in ("F", "FEMALE"):
        return Gender.female
    if text in ("", "OTHER"):
        return Gender.other
    raise RosterValidationError("gender", value, f'Unknown gender "{text}"')


def validate_skill_rating(value: Any, field: str = "skill_rating") -> float:
    """Parse a rating and clamp it into 1-10."""
    if isinstance(value, bool):
        raise RosterValidationError(field, value, f'Invalid skill rating "{value}"')
    try:
        rating = float(str(value).strip())
    except (TypeError, ValueError):
        raise RosterValidationError(field, value, f'Invalid skill rating "{value}"')
    if rating != rating:  # NaN
        raise RosterValidationError(field, value, f'Invalid skill rating "{value}"')
    return max(MIN_SKILL_RATING, min(MAX_SKILL_RATING, rating))


def validate_optional_rating(value: Any, field: str = "skill_override") -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().casefold() in _PLACEHOLDERS:
        return None
    return validate_skill_rating(value, field)


def validate_requests(value: Any) -> List[str]:
    """
    Split a request cell (or list) into clean names.

    Accepts "A, B; C" or ["A", "B"]. Blank and placeholder entries are
    dropped; at most MAX_REQUESTS_PER_LIST names are kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = _REQUEST_SPLIT_RE.split(value)
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return []

    requests = []
    for item in items:
        name = " ".join(sanitize_text(item, MAX_REQUEST_LENGTH).split())
        if name.casefold() in _PLACEHOLDERS:
            continue
        requests.append(name)
    return requests[:MAX_REQUESTS_PER_LIST]


def validate_email(value: Any) -> Optional[str]:
    text = sanitize_text(value, 254)
    if not text:
        return None
    if not _EMAIL_RE.match(text):
        raise RosterValidationError("email", value, f'Invalid email format "{text}"')
    return text


def validate_handler_flag(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    text = sanitize_text(value, 10).casefold()
    if text in ("", "-"):
        return None
    if text in ("y", "yes", "true", "1", "x"):
        return True
    if text in ("n", "no", "false", "0"):
        return False
    raise RosterValidationError("is_handler", value, f'Invalid handler flag "{text}"')


def _clamped_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(low, min(high, number))


def _flag(value: Any, default: bool) -> bool:
    try:
        parsed = validate_handler_flag(value)
    except RosterValidationError:
        return default
    return default if parsed is None else parsed


def validate_league_config(raw: Any) -> LeagueConfig:
    """
    Build a LeagueConfig from untrusted input, defaulting and clamping:
    max_team_size 2-30, minimums 0-15, target_teams 2-50.
    """
    defaults = LeagueConfig()
    if isinstance(raw, LeagueConfig):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        return defaults

    target_teams = raw.get("target_teams")
    return LeagueConfig(
        id=sanitize_text(raw.get("id"), 50) or defaults.id,
        name=sanitize_text(raw.get("name"), 50) or defaults.name,
        max_team_size=_clamped_int(raw.get("max_team_size"), defaults.max_team_size, 2, 30),
        min_females=_clamped_int(raw.get("min_females"), defaults.min_females, 0, 15),
        min_males=_clamped_int(raw.get("min_males"), defaults.min_males, 0, 15),
        target_teams=_clamped_int(target_teams, 2, 2, 50) if target_teams else None,
        allow_mixed_gender=_flag(raw.get("allow_mixed_gender"), defaults.allow_mixed_gender),
    )
