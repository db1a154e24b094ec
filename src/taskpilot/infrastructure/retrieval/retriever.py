"""
Session Retriever

Keyword retrieval over a session's stored Mode Events, used to inject relevant
history into THINK prompts.

Every entry is serialized to JSON text and scored against the query:
  1. Query is a case-insensitive substring of the entry → 1.0
  2. Otherwise the fraction of query tokens found in the entry, where a token
     counts as found if it occurs exactly or is a close spelling of an entry
     token (difflib ratio ≥ ``TOKEN_CUTOFF``)
Entries scoring at least ``threshold`` are ranked by score, ties in log order,
and the top K are returned.

The ``embedding`` strategy is an extension point and currently returns no
matches.
"""

import difflib
import json
import re
from typing import Awaitable, Callable

import structlog

from taskpilot.core.interfaces.persistence import SessionStoreProtocol
from taskpilot.core.interfaces.retrieval import RetrievalMatch

TOKEN_PATTERN = re.compile(r"\w+")
TOKEN_CUTOFF = 0.85
DEFAULT_TOP_K = 3
DEFAULT_THRESHOLD = 0.5


def _tokens(text: str) -> list[str]:
    return TOKEN_PATTERN.findall(text.lower())


def keyword_score(query: str, text: str) -> float:
    """Similarity of ``text`` to ``query`` in [0, 1]."""
    query_lower = query.lower().strip()
    if not query_lower:
        return 0.0
    text_lower = text.lower()
    if query_lower in text_lower:
        return 1.0

    query_tokens = _tokens(query_lower)
    if not query_tokens:
        return 0.0
    text_tokens = set(_tokens(text_lower))

    found = 0
    for token in query_tokens:
        if token in text_tokens or difflib.get_close_matches(
            token, text_tokens, n=1, cutoff=TOKEN_CUTOFF
        ):
            found += 1
    return found / len(query_tokens)


class SessionRetriever:
    """
    Retrieve the top-K session entries for a query.

    Args:
        session_store: Backing store of session entries
        top_k: Maximum number of matches returned
        strategy: ``keyword`` or ``embedding``
        threshold: Minimum keyword score for an entry to match
    """

    def __init__(
        self,
        session_store: SessionStoreProtocol,
        top_k: int = DEFAULT_TOP_K,
        strategy: str = "keyword",
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.session_store = session_store
        self.top_k = top_k
        self.strategy = strategy
        self.threshold = threshold
        self.strategies: dict[str, Callable[[str, str], Awaitable[list[RetrievalMatch]]]] = {
            "keyword": self.keyword_retrieve,
            "embedding": self.embedding_retrieve,
        }
        self.logger = structlog.get_logger().bind(component="retriever")

    async def retrieve(self, session_id: str, query: str) -> list[RetrievalMatch]:
        if not query or not query.strip():
            return []

        strategy_fn = self.strategies.get(self.strategy)
        if strategy_fn is None:
            self.logger.warning("unknown_retrieval_strategy", strategy=self.strategy)
            return []

        matches = await strategy_fn(session_id, query)
        self.logger.debug(
            "retrieval_done", session_id=session_id, strategy=self.strategy, matches=len(matches)
        )
        return matches

    async def keyword_retrieve(self, session_id: str, query: str) -> list[RetrievalMatch]:
        entries = await self.session_store.read_entries(session_id)
        scored: list[RetrievalMatch] = []
        for position, entry in enumerate(entries):
            text = json.dumps(entry, ensure_ascii=False, default=str)
            score = keyword_score(query, text)
            if score >= self.threshold:
                scored.append(RetrievalMatch(text=text, score=score, position=position, entry=entry))

        scored.sort(key=lambda match: (-match.score, match.position))
        return scored[: self.top_k]

    async def embedding_retrieve(self, session_id: str, query: str) -> list[RetrievalMatch]:
        return []
