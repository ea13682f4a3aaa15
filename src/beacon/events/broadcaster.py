"""Topic-scoped event broadcaster for Beacon.

Observers are WebSocket connections. Each observer controls its own topic
membership; the server publishes events to a topic, to everyone in a
topic except the sender, or to all observers.

Delivery is best-effort and per observer: sends run concurrently, each
bounded by ``send_timeout``, and a slow or broken connection is logged
and skipped without delaying the others.

The membership table is guarded by an ``asyncio.Lock``. Publishers
snapshot the recipients under the lock and send outside it, so a
connection joining or leaving mid-publish never corrupts the table.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import orjson
from fastapi import WebSocket
from pydantic import ValidationError

from beacon.events.schemas import ALL, BroadcastEvent, InboundFrame, OutboundEvent

logger = logging.getLogger(__name__)

InboundHandler = Callable[["Observer", Any], Awaitable[None]]


class Observer:
    """One connected client of the broadcaster."""

    def __init__(
        self,
        websocket: WebSocket,
        broadcaster: Broadcaster,
        observer_id: str | None = None,
    ):
        self.observer_id = observer_id or str(uuid4())
        self.websocket = websocket
        self.broadcaster = broadcaster
        self._handlers: dict[str, InboundHandler] = {}

    @property
    def topics(self) -> frozenset[str]:
        return self.broadcaster.topics_of(self)

    async def join(self, topic: str) -> None:
        await self.broadcaster.join(self, topic)

    async def leave(self, topic: str) -> None:
        await self.broadcaster.leave(self, topic)

    def on(self, event_type: str, handler: InboundHandler) -> None:
        """Register the handler for an inbound event type."""
        self._handlers[event_type] = handler

    async def dispatch(self, event_type: str, payload: Any) -> bool:
        """Run the handler for one inbound event.

        Returns:
            False if no handler is registered for ``event_type``.
        """
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.warning(
                "Ignoring unknown event %r from observer %s", event_type, self.observer_id
            )
            return False

        try:
            await handler(self, payload)
        except Exception:
            logger.exception("Error handling %r from observer %s", event_type, self.observer_id)
        return True

    async def handle_text(self, message: str) -> None:
        """Decode one text frame and dispatch it.

        ``ping`` is answered with ``pong``; malformed frames are logged and
        ignored so the connection stays open.
        """
        if message == "ping":
            await self.websocket.send_text("pong")
            return

        try:
            frame = InboundFrame.model_validate(orjson.loads(message))
        except (orjson.JSONDecodeError, ValidationError):
            logger.warning("Ignoring malformed frame from observer %s", self.observer_id)
            return

        await self.dispatch(frame.type, frame.payload)


class Broadcaster:
    """Fans events out to connected observers by topic."""

    def __init__(self, heartbeat_interval: float = 30.0, send_timeout: float = 5.0):
        self.heartbeat_interval = heartbeat_interval
        self.send_timeout = send_timeout
        self._observers: dict[str, Observer] = {}
        self._members: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Connections and membership
    # -------------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> Observer:
        """Accept a WebSocket connection and register it as an observer."""
        await websocket.accept()
        observer = Observer(websocket, self)
        async with self._lock:
            self._observers[observer.observer_id] = observer
            self._memberships[observer.observer_id] = set()
        logger.info(
            "Observer %s connected (total: %d)", observer.observer_id, self.connection_count
        )
        return observer

    async def disconnect(self, observer: Observer) -> None:
        """Forget an observer and drop it from every topic."""
        async with self._lock:
            self._observers.pop(observer.observer_id, None)
            for topic in self._memberships.pop(observer.observer_id, set()):
                members = self._members.get(topic)
                if members is None:
                    continue
                members.discard(observer.observer_id)
                if not members:
                    del self._members[topic]
        logger.info(
            "Observer %s disconnected (remaining: %d)", observer.observer_id, self.connection_count
        )

    async def join(self, observer: Observer, topic: str) -> None:
        async with self._lock:
            memberships = self._memberships.get(observer.observer_id)
            if memberships is None:
                return
            memberships.add(topic)
            self._members.setdefault(topic, set()).add(observer.observer_id)
        logger.debug("Observer %s joined %s", observer.observer_id, topic)

    async def leave(self, observer: Observer, topic: str) -> None:
        async with self._lock:
            memberships = self._memberships.get(observer.observer_id)
            if memberships is None or topic not in memberships:
                return
            memberships.discard(topic)
            members = self._members[topic]
            members.discard(observer.observer_id)
            if not members:
                del self._members[topic]
        logger.debug("Observer %s left %s", observer.observer_id, topic)

    def topics_of(self, observer: Observer) -> frozenset[str]:
        return frozenset(self._memberships.get(observer.observer_id, ()))

    def members(self, topic: str) -> frozenset[str]:
        return frozenset(self._members.get(topic, ()))

    @property
    def connection_count(self) -> int:
        """Get current number of connections."""
        return len(self._observers)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(self, topic: str, event_type: str, payload: Any = None) -> int:
        """Deliver an event to the current members of ``topic``.

        ``ALL`` addresses every connected observer.

        Returns:
            Number of observers the event was delivered to.
        """
        event = BroadcastEvent(topic=topic, type=_event_name(event_type), payload=payload)
        async with self._lock:
            recipients = self._recipients(topic)
        return await self._deliver(event, recipients)

    async def publish_all(self, event_type: str, payload: Any = None) -> int:
        return await self.publish(ALL, event_type, payload)

    async def broadcast_to_others(
        self, topic: str, event_type: str, payload: Any, excluding: Observer
    ) -> int:
        """Deliver to the members of ``topic`` except ``excluding``."""
        event = BroadcastEvent(topic=topic, type=_event_name(event_type), payload=payload)
        async with self._lock:
            recipients = [
                o for o in self._recipients(topic) if o.observer_id != excluding.observer_id
            ]
        return await self._deliver(event, recipients)

    def _recipients(self, topic: str) -> list[Observer]:
        if topic == ALL:
            return list(self._observers.values())
        return [
            self._observers[observer_id]
            for observer_id in self._members.get(topic, ())
            if observer_id in self._observers
        ]

    async def _deliver(self, event: BroadcastEvent, recipients: Iterable[Observer]) -> int:
        recipients = list(recipients)
        if not recipients:
            return 0

        text = event.to_text()
        results = await asyncio.gather(*(self._send(o, text) for o in recipients))
        delivered = sum(results)
        logger.debug(
            "Published %s to %s (%d/%d delivered)",
            event.type,
            event.topic,
            delivered,
            len(recipients),
        )
        return delivered

    async def _send(self, observer: Observer, text: str) -> bool:
        try:
            await asyncio.wait_for(observer.websocket.send_text(text), timeout=self.send_timeout)
        except TimeoutError:
            logger.warning("Send to observer %s timed out", observer.observer_id)
            return False
        except Exception as e:
            logger.warning("Failed to send to observer %s: %s", observer.observer_id, e)
            return False
        return True

    # -------------------------------------------------------------------------
    # Heartbeat
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the heartbeat."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._heartbeat_loop())
        logger.info("Broadcaster heartbeat started (interval=%ss)", self.heartbeat_interval)

    async def stop(self) -> None:
        """Stop the heartbeat."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def send_heartbeat(self) -> int:
        """Send one ``system_status`` event to every observer."""
        return await self.publish_all(
            OutboundEvent.SYSTEM_STATUS,
            {
                "timestamp": datetime.now(UTC).isoformat(),
                "connected_clients": self.connection_count,
                "status": "operational",
            },
        )

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.heartbeat_interval)
                await self.send_heartbeat()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in heartbeat loop")


def _event_name(event_type: str | OutboundEvent) -> str:
    if isinstance(event_type, OutboundEvent):
        return event_type.value
    return event_type
