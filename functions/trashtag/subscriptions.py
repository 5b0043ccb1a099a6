"""
Live store subscriptions exposed as cancellable event streams.

Store listeners fire on whatever thread performed the write (or on the
Firestore watch thread). `AsyncSubscription` hands them to an event loop so
SSE responses wait without holding a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder

from trashtag.store import DocumentStore, Query, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotEvent:
    payload: Any


class AsyncSubscription:
    """
    Buffers snapshots pushed by a store listener until a coroutine consumes
    them. Must be created on the event loop that reads it; pushes from other
    threads are scheduled onto that loop. close() releases the listener and
    must be called when the consumer goes away.
    """

    def __init__(self, register: Callable[[Callable[[Any], None]], Unsubscribe]):
        self._loop = asyncio.get_running_loop()
        self._events: "asyncio.Queue[Optional[SnapshotEvent]]" = asyncio.Queue()
        self._closed = threading.Event()
        self._unsubscribe = register(self._push)

    @classmethod
    def for_query(cls, store: DocumentStore, query: Query) -> "AsyncSubscription":
        return cls(lambda callback: store.subscribe(query, callback))

    @classmethod
    def for_document(
        cls, store: DocumentStore, collection: str, doc_id: str
    ) -> "AsyncSubscription":
        return cls(lambda callback: store.subscribe_document(collection, doc_id, callback))

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _push(self, payload: Any) -> None:
        if not self._closed.is_set():
            self._deliver(SnapshotEvent(payload))

    def _deliver(self, event: Optional[SnapshotEvent]) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._events.put_nowait, event)

    async def next(self, timeout: Optional[float] = None) -> Optional[SnapshotEvent]:
        """Next snapshot, or None on timeout or once closed."""
        if self.closed:
            return None
        try:
            event = await asyncio.wait_for(self._events.get(), timeout)
        except asyncio.TimeoutError:
            return None
        return None if self.closed else event

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._unsubscribe()
        # Wake a consumer blocked in next().
        self._deliver(None)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def format_sse(payload: Any) -> str:
    return f"data: {json.dumps(jsonable_encoder(payload))}\n\n"


async def event_stream(
    request: Request,
    subscription: AsyncSubscription,
    *,
    transform: Callable[[Any], Any] = lambda payload: payload,
    keepalive_seconds: float = 15.0,
    max_events: Optional[int] = None,
) -> AsyncIterator[str]:
    """Server-Sent Events body; the subscription is closed when the stream ends."""
    sent = 0
    try:
        while max_events is None or sent < max_events:
            event = await subscription.next(keepalive_seconds)
            if event is None:
                if subscription.closed or await request.is_disconnected():
                    break
                yield ": keep-alive\n\n"
                continue
            yield format_sse(transform(event.payload))
            sent += 1
    finally:
        subscription.close()
        logger.debug("Closed live subscription after %d events", sent)
