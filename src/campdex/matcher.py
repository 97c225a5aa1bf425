"""Fuzzy scoring of a free-text query against a candidate name.

Several cheap lexical heuristics each contribute a bonus; the bonuses are
summed into one integer score, which is then bucketed into a coarse
label. A case-insensitive exact match short-circuits at EXACT_SCORE.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple

EXACT_SCORE = 100
NORMALIZED_SCORE = 95
PREFIX_SUBSTRING_SCORE = 90
SUBSTRING_SCORE = 80
ACRONYM_SCORE = 85
ACRONYM_PREFIX_MAX = 60
WORD_OVERLAP_MAX = 40
FUZZY_MAX = 35
ABBREVIATION_MAX = 25
DESCRIPTION_SCORE = 10

STOP_WORDS = frozenset({"the", "a", "an", "and", "or", "but", "for", "with", "pro", "plugin"})

_SEPARATORS = re.compile(r"[\s\-_]+")
_PARENTHETICAL = re.compile(r"\s*\([^)]*\)")
_VERSION = re.compile(r"\bv?\d+(?:\.\d+)*\b")
_SUFFIX_WORDS = re.compile(r"\b(?:pro|plugin|theme|extension)\b")


class MatchLabel(str, Enum):
    EXACT = "exact"
    STRONG = "strong"
    PARTIAL = "partial"
    WEAK = "weak"
    MINIMAL = "minimal"

    @property
    def rank(self) -> int:
        return _LABEL_RANK[self]

    def at_least(self, other: MatchLabel) -> bool:
        """True if this label is as good as or better than other."""
        return self.rank >= other.rank


_LABEL_RANK = {
    MatchLabel.MINIMAL: 0,
    MatchLabel.WEAK: 1,
    MatchLabel.PARTIAL: 2,
    MatchLabel.STRONG: 3,
    MatchLabel.EXACT: 4,
}

# (threshold, label), checked top-down
_LABEL_THRESHOLDS = [
    (90, MatchLabel.EXACT),
    (70, MatchLabel.STRONG),
    (40, MatchLabel.PARTIAL),
    (20, MatchLabel.WEAK),
]


class MatchResult(NamedTuple):
    score: int
    label: MatchLabel


def label_for(score: int) -> MatchLabel:
    """Bucket a score into a match label."""
    for threshold, label in _LABEL_THRESHOLDS:
        if score >= threshold:
            return label
    return MatchLabel.MINIMAL


def _words(text: str) -> list[str]:
    return [w for w in _SEPARATORS.split(text) if w]


def normalize_query(query: str) -> str:
    """Lower-case, split on separators, drop stop words and one-letter words."""
    words = _words(query.lower())
    return " ".join(w for w in words if w not in STOP_WORDS and len(w) > 1)


def normalize_name(name: str) -> str:
    """Lower-case and strip parentheticals, version numbers and suffix words.

    "BuddyPress Check-ins Pro (v2.1)" → "buddypress check ins"
    """
    text = _PARENTHETICAL.sub(" ", name.lower())
    text = _VERSION.sub(" ", text)
    text = _SUFFIX_WORDS.sub(" ", text)
    return " ".join(_words(text))


def acronyms(name: str) -> list[str]:
    """Acronyms of a name: one letter per word, and one per camel-case hump.

    "BuddyPress Business Profile" → ["bbp", "bpbp"]
    """
    words = _words(name.strip())
    if not words:
        return []
    plain = "".join(w[0] for w in words).lower()
    humped = "".join(
        w[0] + "".join(b for a, b in zip(w, w[1:]) if a.islower() and b.isupper()) for w in words
    ).lower()
    return [plain] if humped == plain else [plain, humped]


def levenshtein(a: str, b: str) -> int:
    """Character-level edit distance."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def _acronym_bonus(query: str, name: str) -> int:
    if len(query) < 2:
        return 0
    best = 0
    for acronym in acronyms(name):
        if query == acronym:
            return ACRONYM_SCORE
        if len(query) < len(acronym) and acronym.startswith(query):
            best = max(best, int(ACRONYM_PREFIX_MAX * len(query) / len(acronym)))
    return best


def _word_overlap_bonus(query_normalized: str, name_normalized: str) -> int:
    query_words = query_normalized.split()
    if not query_words:
        return 0
    name_words = name_normalized.split()

    matched = 0.0
    for qw in query_words:
        if len(qw) < 2:
            continue
        credit = 0.0
        for nw in name_words:
            if qw == nw:
                credit = 1.0
                break
            if len(qw) >= 3 and nw.startswith(qw):
                credit = max(credit, 0.8)
            elif len(qw) >= 4 and qw in nw:
                credit = max(credit, 0.5)
        matched += credit

    return min(WORD_OVERLAP_MAX, int(matched / len(query_words) * WORD_OVERLAP_MAX))


def _fuzzy_bonus(query: str, name: str) -> int:
    if len(query) < 3:
        return 0
    if abs(len(query) - len(name)) > len(query):
        return 0
    max_len = max(len(query), len(name))
    distance = levenshtein(query, name)
    if distance <= max_len * 0.2:
        return int(FUZZY_MAX * (1 - distance / max_len))
    return 0


def _abbreviation_bonus(query: str, name: str) -> int:
    if len(query) < 3:
        return 0
    for word in _words(name):
        if len(word) >= len(query) and word.startswith(query):
            return min(ABBREVIATION_MAX, int(ABBREVIATION_MAX * len(query) / len(word)))
    return 0


def _pattern_bonus(query: str, name: str) -> int:
    escaped = re.escape(query)
    patterns = [
        (rf"\b{escaped}\b", 30),
        (rf"\b{escaped}", 20),
        (r"[-\s_]".join(re.escape(part) for part in query.split(" ")), 25),
    ]
    for pattern, points in patterns:
        if re.search(pattern, name):
            return points
    return 0


def score(query: str, name: str, description: str = "") -> MatchResult:
    """Score how well query matches a candidate name (and description).

    Returns MatchResult(score, label). An empty query scores 0.
    """
    query = (query or "").strip()
    name = name or ""
    if not query:
        return MatchResult(0, MatchLabel.MINIMAL)

    query_lower = query.lower()
    name_lower = name.lower()

    if name_lower.strip() == query_lower:
        return MatchResult(EXACT_SCORE, MatchLabel.EXACT)

    query_normalized = normalize_query(query)
    name_normalized = normalize_name(name)

    total = 0
    if query_normalized and query_normalized == name_normalized:
        total += NORMALIZED_SCORE

    position = name_lower.find(query_lower)
    if position == 0:
        total += PREFIX_SUBSTRING_SCORE
    elif position > 0:
        total += SUBSTRING_SCORE

    total += _acronym_bonus(query_lower, name)
    total += _word_overlap_bonus(query_normalized, name_normalized)
    total += _fuzzy_bonus(query_lower, name_lower)
    total += _abbreviation_bonus(query_lower, name_lower)

    if description and query_lower in description.lower():
        total += DESCRIPTION_SCORE

    total += _pattern_bonus(query_lower, name_lower)

    return MatchResult(total, label_for(total))
