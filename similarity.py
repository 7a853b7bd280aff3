"""
Question Similarity Scoring

Scores how relevant a knowledge base question is to a user's query. The
score blends two signals so that both reworded questions and typos still
land close to their canonical entry:

- Token overlap: Jaccard ratio over stopword-filtered word sets
  (shared significant words / all significant words of both strings)
- Fuzzy similarity: RapidFuzz normalized Indel ratio of the cleaned strings

Both terms divide by the size of query and candidate together, so neither
very short nor very long entries are favored. The score is not symmetric in
general: a blank query is an error while a blank candidate scores 0.

Dependencies:
- rapidfuzz: High-performance fuzzy string matching library

Author: Quinn Evans
"""

import re
import unicodedata

from rapidfuzz import fuzz

from config import TokenWeights
from knowledge import InvalidArgument

DEFAULT_WEIGHTS = TokenWeights()

WORD_PATTERN = re.compile(r"\w+(?:'\w+)*")
WHITESPACE_PATTERN = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "a", "about", "am", "an", "and", "any", "are", "as", "at", "be",
        "been", "but", "by", "can", "could", "did", "do", "does", "for",
        "from", "get", "had", "has", "have", "how", "i", "i'm", "if", "in",
        "into", "is", "it", "its", "me", "my", "of", "on", "or", "our",
        "please", "should", "so", "some", "that", "the", "their", "then",
        "there", "these", "they", "this", "to", "us", "was", "we", "were",
        "what", "when", "where", "which", "who", "why", "will", "with",
        "would", "you", "your",
    }
)


def normalize_text(text: str) -> str:
    """Casefold, trim and collapse internal whitespace."""
    if not isinstance(text, str):
        raise TypeError(f"Expected text, got {type(text).__name__}")
    text = unicodedata.normalize("NFKC", text).casefold()
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    return WORD_PATTERN.findall(normalize_text(text))


def significant_tokens(tokens) -> frozenset:
    """
    Drop stopwords from a token sequence.

    Falls back to the full token set when every token is a stopword, so a
    question like "Who are you?" still has something to compare.
    """
    tokens = frozenset(tokens)
    significant = tokens - STOPWORDS
    return significant or tokens


def token_overlap(query_tokens: frozenset, candidate_tokens: frozenset) -> float:
    union = query_tokens | candidate_tokens
    if not union:
        return 0.0
    return len(query_tokens & candidate_tokens) / len(union)


def fuzzy_similarity(query: str, candidate: str) -> float:
    return fuzz.ratio(query, candidate) / 100.0


def score(query: str, candidate: str, weights: TokenWeights = DEFAULT_WEIGHTS) -> float:
    """
    Score a knowledge base question against a user query.

    Args:
        query (str): User question
        candidate (str): Knowledge base question
        weights (TokenWeights): Relative weight of overlap and fuzzy terms

    Returns:
        float: Similarity in [0, 1]; 1.0 for identical normalized strings,
            0.0 for a blank candidate

    Raises:
        InvalidArgument: If the query is blank
        TypeError: If either argument is not a string
    """
    normalized_query = normalize_text(query)
    if not normalized_query:
        raise InvalidArgument("Query must not be blank.")

    normalized_candidate = normalize_text(candidate)
    if not normalized_candidate:
        return 0.0
    if normalized_query == normalized_candidate:
        return 1.0

    query_tokens = WORD_PATTERN.findall(normalized_query)
    candidate_tokens = WORD_PATTERN.findall(normalized_candidate)

    overlap = token_overlap(significant_tokens(query_tokens), significant_tokens(candidate_tokens))
    # Compare punctuation-free text so "password?" and "password" agree
    fuzzy = fuzzy_similarity(
        " ".join(query_tokens) or normalized_query,
        " ".join(candidate_tokens) or normalized_candidate,
    )

    combined = (weights.overlap * overlap + weights.fuzzy * fuzzy) / weights.total
    return max(0.0, min(1.0, combined))
