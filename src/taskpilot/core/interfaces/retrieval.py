"""Retriever protocol used to inject session history into THINK prompts."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class RetrievalMatch:
    """
    One retrieved session entry.

    Attributes:
        text: The entry serialized as JSON text
        score: Similarity in [0, 1]
        position: Zero-based index of the entry in the session log
        entry: The stored entry itself
    """

    text: str
    score: float
    position: int
    entry: Any = None


class RetrieverProtocol(Protocol):
    async def retrieve(self, session_id: str, query: str) -> list[RetrievalMatch]:
        """Top-K matches for ``query``, best first. Empty when nothing matches."""
        ...
