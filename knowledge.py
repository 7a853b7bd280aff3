"""
Knowledge Base Data Model

Shared types for the SheetAssist ranking core: knowledge entries loaded from
the curated spreadsheet, scored entries produced per query, and the tagged
best-match result used by the answer router.

Key Features:
- Immutable entries and snapshots (never mutated by the ranking core)
- Explicit BestMatch variants (Found / Absent) instead of None sentinels
- Error taxonomy that keeps "no match" distinct from failure

Author: Quinn Evans
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class KnowledgeEntry:
    """One question/answer pair from the knowledge base."""

    question: str
    answer: str
    metadata: Optional[dict] = field(default=None, compare=False)


@dataclass(frozen=True)
class ScoredEntry:
    """
    A knowledge entry paired with its relevance to one query.

    Attributes:
        entry (KnowledgeEntry): The scored entry
        score (float): Similarity in [0, 1], 1 is an exact match
        index (int): Position of the entry in the snapshot it came from
    """

    entry: KnowledgeEntry
    score: float
    index: int

    @property
    def question(self) -> str:
        return self.entry.question

    @property
    def answer(self) -> str:
        return self.entry.answer


@dataclass(frozen=True)
class Found:
    """Best match for a query when at least one entry was scored."""

    match: ScoredEntry
    found = True

    @property
    def score(self) -> float:
        return self.match.score

    @property
    def question(self) -> str:
        return self.match.question

    @property
    def answer(self) -> str:
        return self.match.answer


class Absent:
    """Best match when there were no entries to score."""

    found = False
    score = 0.0
    question = None
    answer = None

    def __repr__(self):
        return "ABSENT"

    def __eq__(self, other):
        return isinstance(other, Absent)

    def __hash__(self):
        return hash(Absent)


ABSENT = Absent()


@dataclass(frozen=True)
class EntrySnapshot:
    """Entries loaded from the store at one point in time plus a content digest."""

    entries: Tuple[KnowledgeEntry, ...] = ()
    version: str = ""

    def __len__(self):
        return len(self.entries)


EMPTY_SNAPSHOT = EntrySnapshot()


# ------------------------------------------------------------------ errors


class AssistError(Exception):
    """Base class for SheetAssist failures."""


class InvalidArgument(AssistError, ValueError):
    """Raised for a blank query, a non-positive limit or bad configuration."""


class ScoringFailure(AssistError):
    """
    Raised when a single entry cannot be scored.

    Attributes:
        index (int): Position of the offending entry in the input sequence
        entry: The offending entry as it was supplied
    """

    def __init__(self, index: int, entry, cause: Optional[BaseException] = None):
        self.index = index
        self.entry = entry
        question = getattr(entry, "question", None)
        message = f"Could not score entry #{index} (question={question!r})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ResourceExceeded(AssistError):
    """Raised when more entries are supplied than one call may score."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"Refusing to score {count} entries; the limit per call is {limit}. "
            "Page the entry store instead."
        )
