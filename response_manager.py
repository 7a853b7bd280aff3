"""
Answer Routing

Decides whether a question is answered straight from the knowledge base or
by the language model, and reports which source was used.

Flow:
1. Take the latest user message as the query
2. Rank the current entry snapshot once (top context_size entries)
3. Best score >= match_threshold with a usable answer: reply from the sheet
4. Otherwise: ground the model on the ranked entries and reply with its answer

The router never dead-ends on "no match": an empty or unavailable knowledge
base still produces a model answer with honest provenance.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from config import AssistConfig
from entry_store import EntryStore, EntryStoreError
from exception_logger import exception_logger
from knowledge import (
    EMPTY_SNAPSHOT,
    EntrySnapshot,
    InvalidArgument,
    ResourceExceeded,
    ScoredEntry,
    ScoringFailure,
)
from matcher import Matcher, best_of
from similarity import normalize_text

SOURCE_KNOWLEDGE_BASE = "knowledge-base"
SOURCE_GENERATED = "generated"

KNOWLEDGE_BASE_PROMPT = (
    "You are a helpful support assistant. Base your answer on the most relevant "
    "entries from the knowledge base below. If the knowledge base does not contain "
    "the answer, respond with your best effort but be transparent that you used the "
    "language model.\n\nKnowledge Base:\n{context}"
)
NO_CONTEXT_PROMPT = (
    "You are a helpful support assistant. No relevant entries were found in the "
    "knowledge base, so answer the question using general knowledge. Make it clear "
    "to the user that the answer comes from the language model."
)


@dataclass(frozen=True)
class Provenance:
    source: str
    score: float
    question: Optional[str] = None

    def to_dict(self) -> dict:
        return {"type": self.source, "score": self.score, "question": self.question}


@dataclass(frozen=True)
class RoutedAnswer:
    reply: str
    provenance: Provenance


class RankingCache:
    """
    Bounded LRU cache of rankings.

    Keys combine the normalized query, the entry snapshot version and the
    limit, so a refreshed sheet never serves stale rankings.
    """

    def __init__(self, limit: int = 128):
        self.limit = limit
        self._items = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            ranked = self._items.get(key)
            if ranked is not None:
                # move to end to mark as recently used
                self._items.move_to_end(key)
            return ranked

    def put(self, key, ranked):
        with self._lock:
            self._items[key] = ranked
            self._items.move_to_end(key)
            while len(self._items) > self.limit:
                self._items.popitem(last=False)

    def __len__(self):
        return len(self._items)


def format_context(ranked: List[ScoredEntry], char_limit: int) -> str:
    """
    Render ranked entries as the grounding context.

    Lowest-ranked entries are dropped first until the text fits char_limit;
    a single oversized entry is cut at the limit.
    """
    blocks = [
        f"Entry {position} - Relevance: {item.score * 100:.0f}%\n"
        f"Question: {item.question}\nAnswer: {item.answer}"
        for position, item in enumerate(ranked, start=1)
    ]
    context = "\n\n".join(blocks)
    while len(context) > char_limit and len(blocks) > 1:
        blocks.pop()
        context = "\n\n".join(blocks)
    return context[:char_limit]


def build_system_prompt(ranked: List[ScoredEntry], char_limit: int) -> str:
    if not ranked:
        return NO_CONTEXT_PROMPT
    return KNOWLEDGE_BASE_PROMPT.format(context=format_context(ranked, char_limit))


def latest_user_message(messages: List[Dict[str, str]]) -> str:
    for message in reversed(messages or []):
        if message.get("role") == "user":
            return message.get("content", "")
    raise InvalidArgument("A user message is required.")


class ResponseManager:
    """
    Routes a conversation to the knowledge base or the language model.

    Attributes:
        entry_store (EntryStore): Source of knowledge entries
        llm: Generator exposing generate(messages) -> str
        config (AssistConfig): Threshold and context settings
        matcher (Matcher): Ranking engine
        cache (RankingCache): Optional ranking cache
        fail_closed (bool): Treat any scoring failure as "no sheet match"
            instead of dropping the bad entry and ranking the rest
    """

    def __init__(self, entry_store: EntryStore, llm, config: AssistConfig = None,
                 matcher: Matcher = None, cache: RankingCache = None, fail_closed: bool = True):
        self.entry_store = entry_store
        self.llm = llm
        self.config = config or AssistConfig()
        self.matcher = matcher or Matcher(self.config)
        self.cache = cache
        self.fail_closed = fail_closed

    def respond(self, messages: List[Dict[str, str]]) -> RoutedAnswer:
        """
        Answer the latest user message of a conversation.

        Raises:
            InvalidArgument: No user message, or a blank one
            GenerationError: The fallback generator failed
        """
        query = latest_user_message(messages)
        if not normalize_text(query):
            raise InvalidArgument("The user message must not be blank.")

        ranked = self.rank(query, self._load_snapshot())
        best = best_of(ranked)

        if best.found and best.score >= self.config.match_threshold and best.answer.strip():
            return RoutedAnswer(
                reply=best.answer,
                provenance=Provenance(SOURCE_KNOWLEDGE_BASE, best.score, best.question),
            )

        completion_messages = [
            {"role": "system", "content": build_system_prompt(ranked, self.config.context_char_limit)}
        ]
        completion_messages.extend(
            {"role": message["role"], "content": message["content"]} for message in messages
        )
        reply = self.llm.generate(completion_messages)
        return RoutedAnswer(
            reply=reply,
            provenance=Provenance(SOURCE_GENERATED, best.score, best.question),
        )

    def rank(self, query: str, snapshot: EntrySnapshot) -> List[ScoredEntry]:
        """
        Rank a snapshot for the query, degrading to an empty ranking when the
        entries cannot be ranked at all.
        """
        limit = self.config.context_size
        key = (normalize_text(query), snapshot.version, limit)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        entries = list(snapshot.entries)
        try:
            ranked = self._rank_entries(query, entries, limit)
        except ScoringFailure as exc:
            exception_logger.log_exception(exc, "router", "fail-closed: answering without the knowledge base")
            return []
        except ResourceExceeded as exc:
            exception_logger.log_exception(exc, "router", "knowledge base too large to rank")
            return []

        if self.cache is not None:
            self.cache.put(key, ranked)
        return ranked

    def _rank_entries(self, query: str, entries, limit: int) -> List[ScoredEntry]:
        if self.fail_closed:
            return self.matcher.rank(query, entries, limit)

        positions = list(range(len(entries)))
        while True:
            try:
                ranked = self.matcher.rank(query, entries, limit)
            except ScoringFailure as exc:
                exception_logger.log_exception(exc, "router", "dropping entry and ranking again")
                del entries[exc.index]
                del positions[exc.index]
                continue
            # report indexes relative to the snapshot, not the filtered list
            return [
                ScoredEntry(entry=item.entry, score=item.score, index=positions[item.index])
                for item in ranked
            ]

    def _load_snapshot(self) -> EntrySnapshot:
        try:
            return self.entry_store.load_snapshot()
        except EntryStoreError as exc:
            exception_logger.log_exception(exc, "entry_store", "continuing without knowledge base")
            return EMPTY_SNAPSHOT
