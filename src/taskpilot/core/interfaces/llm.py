"""
LLM Provider Protocol

The core treats the model as a stateless chat completion: a list of
``{"role", "content"}`` messages in, raw text out. The text is never assumed
to be valid JSON; callers parse it with the tolerant extractor.
"""

from typing import Any, Protocol


class LLMProviderProtocol(Protocol):
    """Narrow chat-completion capability consumed by classifier, planner and loop."""

    async def chat(
        self, messages: list[dict[str, str]], options: dict[str, Any] | None = None
    ) -> str:
        """
        Complete a conversation.

        Args:
            messages: Ordered chat messages with ``role`` and ``content``
            options: Provider options such as ``temperature`` or ``max_tokens``

        Returns:
            The assistant's reply text

        Raises:
            LLMError: If the provider fails after its own retries
        """
        ...
