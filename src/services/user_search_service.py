"""
Fuzzy, typo-tolerant search over directory users.

Each user is flattened into dotted-path -> lowercase text, and the search terms are
ranked against the combined text of every field. Matching is approximate:

1. An exact substring match scores highest, with a bonus when it starts a word and
   a small penalty the further into the text it occurs.
2. Otherwise the term is compared with every window of as many words as the term
   has, using difflib similarity; windows at or above the threshold are typo matches.
3. When a term has no ranked match at all, a plain substring check over each
   flattened field is used instead (score 0).

Results of multiple terms are merged, deduplicated by user id (keeping the best
score) and sorted by score, highest first.
"""
import json
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from difflib import SequenceMatcher
from typing import Any

from schemas.user import UserView

# Synthetic field holding every searchable value
ALL_FIELD = "all"

EXCLUDED_KEYS = frozenset({"password", "token"})
# Never searched: internal ranking data
IGNORED_KEYS = frozenset({"search_score"})

DEFAULT_RESULT_LIMIT = 100
DEFAULT_TYPO_THRESHOLD = 0.7

EXACT_WORD_START_SCORE = 1.0
EXACT_INNER_SCORE = 0.9
TYPO_SCORE_WEIGHT = 0.8
FALLBACK_SCORE = 0.0
# Penalty per character of offset for exact matches, capped so it never reorders tiers
POSITION_PENALTY = 0.0001
MAX_POSITION_PENALTY = 0.05

# (term, text, threshold) -> score, or None when text does not match
Scorer = Callable[[str, str, float], float | None]


def _is_excluded(key: str, value: Any) -> bool:
    """Fields that must never be searchable: dates, secrets and non-data values."""
    return (
        "date" in key.lower()
        or key in EXCLUDED_KEYS
        or key in IGNORED_KEYS
        or isinstance(value, (datetime, date))
        or callable(value)
    )


def _primitive_text(value: Any) -> str:
    """Text of a leaf value; empty for values that are not searchable."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.lower()
    return ""


def _flatten_into(
    searchable: dict[str, str],
    current: Mapping[str, Any],
    prefix: str = "",
) -> dict[str, str]:
    for key, value in current.items():
        key = str(key)
        path = f"{prefix}.{key}" if prefix else key

        if _is_excluded(key, value):
            continue

        if isinstance(value, (list, tuple)):
            parts = []
            for item in value:
                if isinstance(item, Mapping):
                    parts.append(" ".join(_flatten_into({}, item).values()))
                else:
                    parts.append(_primitive_text(item))
            joined = " ".join(part for part in parts if part)
            if joined:
                searchable[path] = joined
        elif isinstance(value, Mapping):
            _flatten_into(searchable, value, path)
        else:
            text = _primitive_text(value)
            if text:
                searchable[path] = text
    return searchable


def flatten_record(record: Mapping[str, Any] | UserView) -> dict[str, str]:
    """
    Flatten a (nested) record into dotted-path -> lowercase searchable text.

    Skips keys containing "date", keys named password/token, date/datetime values
    and non-primitive leaves. Booleans and numbers are stringified; lists are
    joined with spaces. The "all" key joins every retained value.
    """
    if isinstance(record, UserView):
        record = record.model_dump()
    flattened = _flatten_into({}, record)
    flattened[ALL_FIELD] = " ".join(value for value in flattened.values() if value)
    return flattened


def _word_windows(words: list[str], width: int) -> list[str]:
    if len(words) <= width:
        return [" ".join(words)] if words else []
    return [" ".join(words[i:i + width]) for i in range(len(words) - width + 1)]


def fuzzy_score(term: str, text: str, threshold: float = DEFAULT_TYPO_THRESHOLD) -> float | None:
    """
    Score how well term matches text; None when it does not match.

    Both arguments are expected lowercase. Scores lie in (0, 1], higher is better.
    """
    if not term or not text:
        return None

    position = text.find(term)
    if position >= 0:
        at_word_start = position == 0 or not text[position - 1].isalnum()
        base = EXACT_WORD_START_SCORE if at_word_start else EXACT_INNER_SCORE
        return base - min(position * POSITION_PENALTY, MAX_POSITION_PENALTY)

    best = 0.0
    matcher = SequenceMatcher(autojunk=False)
    matcher.set_seq2(term)
    for window in _word_windows(text.split(), len(term.split())):
        matcher.set_seq1(window)
        # Cheap upper bounds first; ratio() is the expensive part
        if matcher.real_quick_ratio() < threshold or matcher.quick_ratio() < threshold:
            continue
        ratio = matcher.ratio()
        if ratio > best:
            best = ratio

    if best >= threshold:
        return best * TYPO_SCORE_WEIGHT
    return None


def _with_score(user: UserView, score: float) -> UserView:
    return user.model_copy(update={"search_score": score})


def _search_term(
    term: str,
    prepared: list[tuple[UserView, dict[str, str]]],
    limit: int,
    threshold: float,
    scorer: Scorer,
) -> list[UserView]:
    scored: list[tuple[float, UserView]] = []
    for user, searchable in prepared:
        score = scorer(term, searchable[ALL_FIELD], threshold)
        if score is not None:
            scored.append((score, user))

    if scored:
        # Stable sort keeps population order among equal scores
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [_with_score(user, score) for score, user in scored[:limit]]

    # Only when the ranked matcher found nothing: literal containment in any field
    return [
        _with_score(user, FALLBACK_SCORE)
        for user, searchable in prepared
        if any(term in value for value in searchable.values())
    ]


def _identity(user: UserView) -> str:
    return user.id or json.dumps(user.model_dump(mode="json"), sort_keys=True)


def normalize_terms(terms: str | Sequence[str] | None) -> list[str]:
    """Lowercase and trim search terms, dropping blank ones."""
    if terms is None:
        return []
    if isinstance(terms, str):
        terms = [terms]
    normalized = (str(term).strip().lower() for term in terms if term is not None)
    return [term for term in normalized if term]


def search_users(
    terms: str | Sequence[str] | None,
    population: Sequence[UserView],
    limit: int = DEFAULT_RESULT_LIMIT,
    threshold: float = DEFAULT_TYPO_THRESHOLD,
    scorer: Scorer = fuzzy_score,
) -> list[UserView]:
    """
    Rank population against one or more search terms.

    Args:
        terms: A search term or list of terms. Blank terms are ignored.
        population: Users to search.
        limit: Maximum number of ranked matches kept per term.
        threshold: Minimum similarity (0-1) for a typo match.
        scorer: Ranks a term against the combined text of a user. Terms it
            matches nowhere are looked up literally in each field instead.

    Returns:
        Matching users with search_score set, deduplicated by id (best score kept,
        first seen wins on ties) and sorted by score descending. Empty when there
        are no usable terms or no users.
    """
    normalized = normalize_terms(terms)
    if not normalized or not population:
        return []

    prepared = [(user, flatten_record(user)) for user in population]

    best: dict[str, UserView] = {}
    for term in normalized:
        for user in _search_term(term, prepared, limit, threshold, scorer):
            key = _identity(user)
            existing = best.get(key)
            if existing is None or (existing.search_score or 0) < (user.search_score or 0):
                best[key] = user

    return sorted(best.values(), key=lambda user: user.search_score or 0, reverse=True)
