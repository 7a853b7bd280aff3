"""
Question-Answer Matching Engine

Ranks knowledge base entries against a user question. Every entry's question
is scored with the hybrid token-overlap / fuzzy scorer in `similarity`, and
results come back ordered by descending score.

Key Features:
- Top-N ranking for grounding context (rank_matches)
- Single best match with a linear scan, no sort (find_best_match)
- Deterministic ordering: ties keep the entry store order
- Scoring failures are tagged with the offending entry, never skipped
- Hard upper bound on entries scored per call

Algorithm:
- Score each entry against its question text (0.0-1.0)
- Stable sort by descending score, then truncate to the requested limit
- The best-match path keeps the first strictly higher score, which is the
  same entry the stable sort would put first

Author: Quinn Evans
"""

from typing import Sequence

from config import DEFAULT_MAX_ENTRIES, AssistConfig, TokenWeights
from knowledge import (
    ABSENT,
    Found,
    InvalidArgument,
    KnowledgeEntry,
    ResourceExceeded,
    ScoredEntry,
    ScoringFailure,
)
from similarity import DEFAULT_WEIGHTS, normalize_text, score


def _check_query(query: str):
    if not isinstance(query, str) or not normalize_text(query):
        raise InvalidArgument("Query must be a non-blank string.")


def _check_size(entries: Sequence[KnowledgeEntry], max_entries: int):
    if len(entries) > max_entries:
        raise ResourceExceeded(len(entries), max_entries)


def _score_entries(query: str, entries: Sequence[KnowledgeEntry], weights: TokenWeights):
    for index, entry in enumerate(entries):
        try:
            value = score(query, entry.question, weights)
        except Exception as exc:
            raise ScoringFailure(index, entry, exc) from exc
        yield ScoredEntry(entry=entry, score=value, index=index)


def rank_matches(
    query: str,
    entries: Sequence[KnowledgeEntry],
    limit: int,
    *,
    weights: TokenWeights = DEFAULT_WEIGHTS,
    max_entries: int = DEFAULT_MAX_ENTRIES,
) -> list[ScoredEntry]:
    """
    Rank entries by relevance to the query.

    Args:
        query (str): User question
        entries (Sequence[KnowledgeEntry]): Entry store snapshot
        limit (int): Maximum number of results, must be positive
        weights (TokenWeights): Scorer weighting
        max_entries (int): Most entries this call will score

    Returns:
        list[ScoredEntry]: min(limit, len(entries)) results, descending by
            score, ties in their original order. Empty for no entries.

    Raises:
        InvalidArgument: Blank query or non-positive limit
        ResourceExceeded: More than max_entries entries
        ScoringFailure: An entry could not be scored
    """
    _check_query(query)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")
    _check_size(entries, max_entries)

    scored = list(_score_entries(query, entries, weights))
    # list.sort is stable, including with reverse=True
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:limit]


def find_best_match(
    query: str,
    entries: Sequence[KnowledgeEntry],
    *,
    weights: TokenWeights = DEFAULT_WEIGHTS,
    max_entries: int = DEFAULT_MAX_ENTRIES,
):
    """
    Return the single most relevant entry without sorting.

    Equivalent to the head of rank_matches(query, entries, 1) but runs in
    one O(n) pass.

    Returns:
        Found | Absent: Found(ScoredEntry) for non-empty entries, else ABSENT
    """
    _check_query(query)
    _check_size(entries, max_entries)

    best = None
    for candidate in _score_entries(query, entries, weights):
        if best is None or candidate.score > best.score:
            best = candidate
    return Found(best) if best is not None else ABSENT


def best_of(ranked: Sequence[ScoredEntry]):
    """Best match from an existing ranking, without scoring anything again."""
    return Found(ranked[0]) if ranked else ABSENT


class Matcher:
    """
    Configured ranking engine.

    Binds the scorer weights and per-call entry bound from an AssistConfig so
    callers only pass the query and the entries. Holds no per-query state.

    Attributes:
        weights (TokenWeights): Scorer weighting
        max_entries (int): Most entries scored per call
    """

    def __init__(self, config: AssistConfig = None):
        config = config or AssistConfig()
        self.weights = config.weights
        self.max_entries = config.max_entries

    def rank(self, query: str, entries: Sequence[KnowledgeEntry], limit: int) -> list[ScoredEntry]:
        return rank_matches(
            query, entries, limit, weights=self.weights, max_entries=self.max_entries
        )

    def best(self, query: str, entries: Sequence[KnowledgeEntry]):
        return find_best_match(
            query, entries, weights=self.weights, max_entries=self.max_entries
        )
