"""Ordered emission of Mode Events to the session log and an optional listener."""

import inspect
from typing import Any, Awaitable, Callable

from taskpilot.core.domain.events import Mode, ModeEvent
from taskpilot.core.interfaces.persistence import SessionStoreProtocol

EventListener = Callable[[ModeEvent], Awaitable[None] | None]


class EventSink:
    """
    Emit Mode Events for one run.

    Each event is appended to the session store first and handed to the
    listener second, so anything a listener observes is already in the log.
    Events are emitted strictly one at a time in call order.
    """

    def __init__(
        self,
        session_store: SessionStoreProtocol | None,
        session_id: str | None,
        listener: EventListener | None = None,
    ):
        self.session_store = session_store
        self.session_id = session_id
        self.listener = listener

    async def emit(self, mode: Mode, **payload: Any) -> ModeEvent:
        event = ModeEvent(mode=mode, payload=payload)
        if self.session_store is not None and self.session_id:
            await self.session_store.append_entry(self.session_id, event.to_dict())
        if self.listener is not None:
            outcome = self.listener(event)
            if inspect.isawaitable(outcome):
                await outcome
        return event
