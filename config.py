"""
SheetAssist configuration.

Tunable options for matching and routing, read from environment variables
with typed defaults. Values are validated once at load time so the ranking
core can treat them as trusted constants.
"""

import math
import os
from dataclasses import dataclass, field

from knowledge import InvalidArgument

# Minimum score to answer straight from the knowledge base. Values between
# 0.4 and 0.6 behave well on paraphrased support questions; below 0.4 loosely
# related entries start answering, above 0.6 rephrasings miss.
DEFAULT_MATCH_THRESHOLD = 0.45
DEFAULT_CONTEXT_SIZE = 3
DEFAULT_OVERLAP_WEIGHT = 0.6
DEFAULT_FUZZY_WEIGHT = 0.4
DEFAULT_MAX_ENTRIES = 10_000
DEFAULT_CONTEXT_CHARS = 4000


@dataclass(frozen=True)
class TokenWeights:
    """Relative weight of the token-overlap and fuzzy terms of a score."""

    overlap: float = DEFAULT_OVERLAP_WEIGHT
    fuzzy: float = DEFAULT_FUZZY_WEIGHT

    def __post_init__(self):
        if not (math.isfinite(self.overlap) and math.isfinite(self.fuzzy)):
            raise InvalidArgument("Token weights must be finite numbers.")
        if self.overlap < 0 or self.fuzzy < 0:
            raise InvalidArgument("Token weights must not be negative.")
        if self.overlap + self.fuzzy <= 0:
            raise InvalidArgument("At least one token weight must be positive.")

    @property
    def total(self) -> float:
        return self.overlap + self.fuzzy


@dataclass(frozen=True)
class AssistConfig:
    """
    Matching and routing options.

    Attributes:
        match_threshold (float): Minimum best score to answer from the sheet
        context_size (int): Ranked entries handed to the generator on fallback
        weights (TokenWeights): Scorer weighting
        max_entries (int): Most entries one ranking call will score
        context_char_limit (int): Upper bound on grounding context length
    """

    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    context_size: int = DEFAULT_CONTEXT_SIZE
    weights: TokenWeights = field(default_factory=TokenWeights)
    max_entries: int = DEFAULT_MAX_ENTRIES
    context_char_limit: int = DEFAULT_CONTEXT_CHARS

    def __post_init__(self):
        if not math.isfinite(self.match_threshold) or not 0.0 <= self.match_threshold <= 1.0:
            raise InvalidArgument("match_threshold must be between 0 and 1.")
        for name in ("context_size", "max_entries", "context_char_limit"):
            if getattr(self, name) <= 0:
                raise InvalidArgument(f"{name} must be positive.")


def env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise InvalidArgument(f"{name}={raw!r} is not a valid {cast.__name__}") from exc


def load_config() -> AssistConfig:
    """Build the configuration from SHEETASSIST_* environment variables."""
    weights = TokenWeights(
        overlap=env_number("SHEETASSIST_OVERLAP_WEIGHT", DEFAULT_OVERLAP_WEIGHT, float),
        fuzzy=env_number("SHEETASSIST_FUZZY_WEIGHT", DEFAULT_FUZZY_WEIGHT, float),
    )
    return AssistConfig(
        match_threshold=env_number("SHEETASSIST_MATCH_THRESHOLD", DEFAULT_MATCH_THRESHOLD, float),
        context_size=env_number("SHEETASSIST_CONTEXT_SIZE", DEFAULT_CONTEXT_SIZE, int),
        weights=weights,
        max_entries=env_number("SHEETASSIST_MAX_ENTRIES", DEFAULT_MAX_ENTRIES, int),
        context_char_limit=env_number("SHEETASSIST_CONTEXT_CHARS", DEFAULT_CONTEXT_CHARS, int),
    )
