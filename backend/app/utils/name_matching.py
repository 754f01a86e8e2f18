"""
Name Matching - resolve free-text name requests to canonical roster names.

Rules are tried in priority order; the first rule that fires for ANY
candidate wins:

1. Case-insensitive exact equality            -> exact
2. Nickname family (Bob Smith <-> Robert Smith, Bob -> Robert Smith) -> high
3. Concatenated name ("chrissmith", "csmith")  -> high
4. Edit distance / Soundex                     -> high or medium
5. Substring, bare first/last name, initials   -> medium
6. Closest name above the similarity floor     -> low, otherwise none

Within a rule the best score wins. When several candidates share the best
score the confidence drops one tier and the match is flagged ambiguous so it
goes to review instead of being picked silently.

Output is a pure function of (requested, candidates, exclude): no caches,
no randomness, candidate order is the only tie-breaker.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Set

from rapidfuzz.distance import Levenshtein

from app.models.roster import MatchConfidence

HIGH_SIMILARITY = 0.85
MEDIUM_SIMILARITY = 0.70
SIMILARITY_FLOOR = 0.50
PARTIAL_MIN_RATIO = 0.5

_TIERS = [
    MatchConfidence.exact,
    MatchConfidence.high,
    MatchConfidence.medium,
    MatchConfidence.low,
]

# formal name -> nicknames and diminutives
NICKNAME_FAMILIES: Dict[str, tuple] = {
    "alexander": ("alex", "alec", "xander", "lex", "al", "sandy", "sasha"),
    "alexandra": ("alex", "alexa", "lexi", "lexie", "sandra", "allie", "ally", "sandy", "sasha"),
    "andrew": ("andy", "drew", "anders"),
    "anthony": ("tony", "ant", "toni", "anton"),
    "benjamin": ("ben", "benny", "benji"),
    "brianna": ("bri", "bree"),
    "bridget": ("bri", "bridge", "birdie"),
    "catherine": ("cat", "cathy", "kate", "katie", "kitty", "cate", "katherine"),
    "charles": ("charlie", "chuck", "chas"),
    "christopher": ("chris", "kit", "topher", "christie"),
    "daniel": ("dan", "danny", "dani"),
    "david": ("dave", "davey", "davy"),
    "deborah": ("deb", "debbie", "debby", "debs"),
    "edward": ("ed", "eddie", "ted", "ned"),
    "elizabeth": ("liz", "beth", "betsy", "eliza", "libby", "betty", "lizzie", "lizzy", "liza", "ellie", "lisa"),
    "frederick": ("fred", "freddy"),
    "gregory": ("greg", "gregg", "gregor"),
    "james": ("jim", "jimmy", "jamie", "jimbo"),
    "jennifer": ("jen", "jenny", "jenni", "jenna"),
    "jessica": ("jess", "jessie", "jessi"),
    "john": ("johnny", "jack", "jj"),
    "jonathan": ("jon", "johnny", "jonny", "nathan"),
    "joseph": ("joe", "joey", "jo"),
    "katherine": ("kate", "kathy", "katie", "kat", "catherine"),
    "kenneth": ("ken", "kenny"),
    "kimberly": ("kim", "kimmy", "kimber"),
    "margaret": ("maggie", "meg", "peggy", "marge"),
    "matthew": ("matt", "matty", "mat"),
    "michael": ("mike", "mick", "mickey", "mikey", "micky", "mitch"),
    "nicholas": ("nick", "nicky", "nico", "cole"),
    "patricia": ("pat", "patty", "patsy", "tricia", "trish", "patti"),
    "patrick": ("pat", "paddy"),
    "peter": ("pete", "petey"),
    "rebecca": ("becca", "becky", "reba"),
    "richard": ("rick", "dick", "rich", "richie", "ricky"),
    "robert": ("rob", "bob", "bobby", "robbie", "robby", "bert"),
    "ronald": ("ron", "ronnie", "ronny"),
    "samantha": ("sam", "sammy"),
    "samuel": ("sam", "sammy", "sami"),
    "stephanie": ("steph", "steffi", "stephy"),
    "steven": ("steve", "stevie", "stevo"),
    "theodore": ("ted", "teddy", "theo"),
    "thomas": ("tom", "tommy", "thom"),
    "timothy": ("tim", "timmy", "timo"),
    "victoria": ("vicky", "tori", "vic"),
    "william": ("will", "bill", "billy", "willie", "willy", "liam"),
    "zachary": ("zach", "zack", "zac"),
}


def _build_nickname_index(families: Dict[str, tuple]) -> Dict[str, FrozenSet[str]]:
    """variant -> set of formal names whose family contains it"""
    index: Dict[str, Set[str]] = {}
    for formal, nicknames in families.items():
        for variant in (formal,) + tuple(nicknames):
            index.setdefault(variant, set()).add(formal)
    return {variant: frozenset(formals) for variant, formals in index.items()}


_NICKNAME_INDEX = _build_nickname_index(NICKNAME_FAMILIES)

_TOKEN_RE = re.compile(r"[^\W_]+(?:['\-][^\W_]+)*")
_COMPACT_RE = re.compile(r"[\W_]+")


# ============================================================================
# Normalization helpers
# ============================================================================


def normalize_name(name: Optional[str]) -> str:
    """Casefold and collapse whitespace."""
    if not name:
        return ""
    return " ".join(name.casefold().split())


def names_match(name_a: Optional[str], name_b: Optional[str]) -> bool:
    """Case-insensitive canonical equality (used by the avoid rule)."""
    norm_a = normalize_name(name_a)
    return bool(norm_a) and norm_a == normalize_name(name_b)


def nickname_variants(first_name: str) -> List[str]:
    """All other names in the nickname families of ``first_name``, sorted."""
    key = first_name.casefold()
    formals = _NICKNAME_INDEX.get(key, frozenset())
    variants: Set[str] = set()
    for formal in formals:
        variants.add(formal)
        variants.update(NICKNAME_FAMILIES[formal])
    variants.discard(key)
    return sorted(variants)


def nicknames_related(name_a: str, name_b: str) -> bool:
    a = name_a.casefold()
    b = name_b.casefold()
    if a == b:
        return False
    return bool(_NICKNAME_INDEX.get(a, frozenset()) & _NICKNAME_INDEX.get(b, frozenset()))


def levenshtein_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """1 - (edit distance / longer length), in [0, 1]; two empty strings score 0."""
    if not a and not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


_SOUNDEX_CODES = {}
for _letters, _digit in (("bfpv", "1"), ("cgjkqsxz", "2"), ("dt", "3"), ("l", "4"), ("mn", "5"), ("r", "6")):
    for _letter in _letters:
        _SOUNDEX_CODES[_letter] = _digit


def soundex(word: str) -> str:
    letters = [c for c in word.casefold() if "a" <= c <= "z"]
    if not letters:
        return ""

    first = letters[0]
    digits: List[str] = []
    last_code = _SOUNDEX_CODES.get(first, "0")
    for letter in letters[1:]:
        code = _SOUNDEX_CODES.get(letter, "0")
        if code != last_code and code != "0":
            digits.append(code)
        # h and w do not separate letters with the same code
        if letter not in "hw":
            last_code = code
    return (first.upper() + "".join(digits) + "000")[:4]


# ============================================================================
# Matching
# ============================================================================


@dataclass
class NameMatch:
    """Best candidate for a requested name."""

    matched: Optional[str]
    confidence: MatchConfidence
    reason: str
    score: float = 0.0
    alternatives: List[str] = field(default_factory=list)
    ambiguous: bool = False


@dataclass(frozen=True)
class _Name:
    raw: str
    norm: str
    compact: str
    tokens: tuple


@dataclass(frozen=True)
class _Hit:
    score: float
    confidence: MatchConfidence
    reason: str


def _prepare(raw: str) -> _Name:
    norm = normalize_name(raw)
    return _Name(
        raw=raw.strip(),
        norm=norm,
        compact=_COMPACT_RE.sub("", norm),
        tokens=tuple(_TOKEN_RE.findall(norm)),
    )


def _percent(score: float) -> int:
    return int(round(score * 100))


def _rule_exact(req: _Name, cand: _Name) -> Optional[_Hit]:
    if req.norm != cand.norm:
        return None
    if req.raw == cand.raw:
        return _Hit(1.0, MatchConfidence.exact, "Exact match")
    return _Hit(1.0, MatchConfidence.exact, "Case-insensitive exact match")


def _rule_nickname(req: _Name, cand: _Name) -> Optional[_Hit]:
    if not req.tokens or not cand.tokens:
        return None
    if not nicknames_related(req.tokens[0], cand.tokens[0]):
        return None
    if len(req.tokens) == len(cand.tokens) and req.tokens[1:] == cand.tokens[1:]:
        return _Hit(0.9, MatchConfidence.high, f'Nickname match: "{req.raw}" -> "{cand.raw}"')
    if len(req.tokens) == 1:
        return _Hit(0.8, MatchConfidence.high, f'Nickname of first name: "{req.raw}" -> "{cand.raw}"')
    return None


def _rule_concatenated(req: _Name, cand: _Name) -> Optional[_Hit]:
    if not req.compact or len(cand.tokens) < 2:
        return None

    if req.compact == cand.compact:
        return _Hit(0.85, MatchConfidence.high, f'Concatenated name match: "{req.raw}" -> "{cand.raw}"')

    first = _COMPACT_RE.sub("", cand.tokens[0])
    last = _COMPACT_RE.sub("", cand.tokens[-1])
    if not first or not last:
        return None

    patterns = [first + last[0], first[0] + last]
    for variant in nickname_variants(first):
        patterns.append(variant + last)
        patterns.append(variant + last[0])

    if req.compact in patterns:
        return _Hit(0.82, MatchConfidence.high, f'Name concatenation match: "{req.raw}" -> "{cand.raw}"')
    return None


def _rule_similarity(req: _Name, cand: _Name) -> Optional[_Hit]:
    score = similarity(req.norm, cand.norm)
    if score >= HIGH_SIMILARITY:
        return _Hit(score, MatchConfidence.high, f"High similarity ({_percent(score)}%)")
    if score >= MEDIUM_SIMILARITY:
        return _Hit(score, MatchConfidence.medium, f"Moderate similarity ({_percent(score)}%)")

    if req.tokens and len(req.tokens) == len(cand.tokens):
        req_codes = [soundex(t) for t in req.tokens]
        cand_codes = [soundex(t) for t in cand.tokens]
        if all(req_codes) and req_codes == cand_codes:
            return _Hit(max(score, MEDIUM_SIMILARITY), MatchConfidence.medium, "Phonetic similarity")
    return None


def _rule_partial(req: _Name, cand: _Name) -> Optional[_Hit]:
    best: Optional[_Hit] = None

    def consider(hit: _Hit) -> None:
        nonlocal best
        if best is None or hit.score > best.score:
            best = hit

    if len(req.tokens) == 1 and len(cand.tokens) >= 2:
        token = req.tokens[0]
        if token == cand.tokens[0]:
            consider(_Hit(0.65, MatchConfidence.medium, "Partial name match (first name)"))
        elif token == cand.tokens[-1]:
            consider(_Hit(0.65, MatchConfidence.medium, "Partial name match (last name)"))

    if req.compact and cand.compact and (req.compact in cand.compact or cand.compact in req.compact):
        ratio = min(len(req.compact), len(cand.compact)) / max(len(req.compact), len(cand.compact))
        if ratio >= PARTIAL_MIN_RATIO:
            consider(_Hit(ratio * 0.7, MatchConfidence.medium, "Partial name match"))

    if len(req.compact) >= 2 and req.compact.isalpha() and len(cand.tokens) >= 2:
        initials = "".join(token[0] for token in cand.tokens)
        if req.compact == initials:
            consider(_Hit(0.6, MatchConfidence.medium, "Initials match"))

    return best


def _rule_closest(req: _Name, cand: _Name) -> Optional[_Hit]:
    score = max(similarity(req.norm, cand.norm), similarity(req.compact, cand.compact))
    if score >= SIMILARITY_FLOOR:
        return _Hit(score, MatchConfidence.low, f"Closest roster name ({_percent(score)}%)")
    return None


_RULES: List[Callable[[_Name, _Name], Optional[_Hit]]] = [
    _rule_exact,
    _rule_nickname,
    _rule_concatenated,
    _rule_similarity,
    _rule_partial,
    _rule_closest,
]


def downgrade(confidence: MatchConfidence) -> MatchConfidence:
    """One tier down; `low` is the floor for a match that has a suggestion."""
    if confidence not in _TIERS:
        return confidence
    index = min(_TIERS.index(confidence) + 1, len(_TIERS) - 1)
    return _TIERS[index]


def _candidate_pool(candidates: Sequence[str], exclude: Optional[str]) -> List[_Name]:
    excluded = normalize_name(exclude)
    pool = []
    for candidate in candidates:
        if not candidate or not candidate.strip():
            continue
        prepared = _prepare(candidate)
        if excluded and prepared.norm == excluded:
            continue
        pool.append(prepared)
    return pool


def match_name(requested: str, candidates: Sequence[str], exclude: Optional[str] = None) -> NameMatch:
    """
    Find the best canonical name for ``requested``.

    Args:
        requested: Raw request text as typed
        candidates: Canonical roster names, in roster order
        exclude: Requester's own name, never returned as a match

    Returns:
        NameMatch; ``matched`` is None when confidence is ``none``
    """
    req = _prepare(requested or "")
    if not req.norm:
        return NameMatch(matched=None, confidence=MatchConfidence.none, reason="Empty request")

    pool = _candidate_pool(candidates, exclude)

    # a bare first name that is literally on the roster beats its nickname family
    skip_bare_nickname = len(req.tokens) == 1 and any(
        cand.tokens and cand.tokens[0] == req.tokens[0] for cand in pool
    )

    for rule in _RULES:
        if rule is _rule_nickname and skip_bare_nickname:
            continue
        hits = []
        for cand in pool:
            hit = rule(req, cand)
            if hit is not None:
                hits.append((cand, hit))
        if hits:
            return _pick_best(hits)

    return NameMatch(
        matched=None,
        confidence=MatchConfidence.none,
        reason="No roster name is similar enough",
    )


def _pick_best(hits: List[tuple]) -> NameMatch:
    best_score = max(hit.score for _, hit in hits)
    tied = [(cand, hit) for cand, hit in hits if abs(hit.score - best_score) < 1e-9]

    cand, hit = tied[0]
    if len(tied) == 1:
        return NameMatch(matched=cand.raw, confidence=hit.confidence, reason=hit.reason, score=hit.score)

    others = [other.raw for other, _ in tied[1:]]
    quoted = ", ".join(f'"{name}"' for name in [cand.raw] + others)
    return NameMatch(
        matched=cand.raw,
        confidence=downgrade(hit.confidence),
        reason=f"{hit.reason}; ambiguous between {quoted}",
        score=hit.score,
        alternatives=others,
        ambiguous=True,
    )


def suggest_names(partial: str, candidates: Sequence[str], limit: int = 5) -> List[NameMatch]:
    """Autocomplete suggestions: every candidate scored on its own, best first."""
    req = _prepare(partial or "")
    if not req.norm:
        return []

    scored = []
    for position, cand in enumerate(_candidate_pool(candidates, None)):
        hit = None
        if cand.norm.startswith(req.norm) and cand.norm != req.norm:
            hit = _Hit(0.75, MatchConfidence.medium, "Prefix match")
        for rule in _RULES:
            rule_hit = rule(req, cand)
            if rule_hit is None:
                continue
            if hit is None or rule_hit.score > hit.score:
                hit = rule_hit
            break
        if hit is not None:
            scored.append((-hit.score, position, cand, hit))

    scored.sort(key=lambda item: (item[0], item[1]))
    return [
        NameMatch(matched=cand.raw, confidence=hit.confidence, reason=hit.reason, score=hit.score)
        for _, _, cand, hit in scored[:limit]
    ]
