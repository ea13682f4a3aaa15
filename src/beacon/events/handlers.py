"""Default inbound event handlers for WebSocket observers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from beacon.events.broadcaster import Observer
from beacon.events.schemas import (
    GENERAL_UPDATES,
    InboundEvent,
    LocationUpdate,
    OutboundEvent,
    PriorityAlert,
    disaster_topic,
)

logger = logging.getLogger(__name__)


def _disaster_id(payload: Any) -> str | None:
    """Accept either a bare id or ``{"disaster_id": ...}``."""
    if isinstance(payload, dict):
        payload = payload.get("disaster_id")
    if isinstance(payload, (str, int)) and str(payload):
        return str(payload)
    return None


async def join_disaster(observer: Observer, payload: Any) -> None:
    disaster_id = _disaster_id(payload)
    if disaster_id is None:
        logger.warning("join_disaster without a disaster id from %s", observer.observer_id)
        return
    await observer.join(disaster_topic(disaster_id))


async def leave_disaster(observer: Observer, payload: Any) -> None:
    disaster_id = _disaster_id(payload)
    if disaster_id is None:
        logger.warning("leave_disaster without a disaster id from %s", observer.observer_id)
        return
    await observer.leave(disaster_topic(disaster_id))


async def subscribe_updates(observer: Observer, payload: Any) -> None:
    await observer.join(GENERAL_UPDATES)


async def unsubscribe_updates(observer: Observer, payload: Any) -> None:
    await observer.leave(GENERAL_UPDATES)


async def update_location(observer: Observer, payload: Any) -> None:
    """Relay a responder position to the other observers of the disaster."""
    update = LocationUpdate.model_validate(payload)
    await observer.broadcaster.broadcast_to_others(
        disaster_topic(update.disaster_id),
        OutboundEvent.RESPONDER_LOCATION_UPDATED,
        {
            "user_id": update.user_id,
            "lat": update.lat,
            "lng": update.lng,
            "timestamp": datetime.now(UTC).isoformat(),
        },
        excluding=observer,
    )


async def priority_alert(observer: Observer, payload: Any) -> None:
    """Relay a priority alert to every connected observer."""
    alert = PriorityAlert.model_validate(payload)
    await observer.broadcaster.publish_all(
        OutboundEvent.PRIORITY_ALERT_RECEIVED,
        {
            "disaster_id": alert.disaster_id,
            "message": alert.message,
            "urgency": alert.urgency,
            "location": alert.location,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


DEFAULT_HANDLERS = {
    InboundEvent.JOIN_DISASTER.value: join_disaster,
    InboundEvent.LEAVE_DISASTER.value: leave_disaster,
    InboundEvent.SUBSCRIBE_UPDATES.value: subscribe_updates,
    InboundEvent.UNSUBSCRIBE_UPDATES.value: unsubscribe_updates,
    InboundEvent.UPDATE_LOCATION.value: update_location,
    InboundEvent.PRIORITY_ALERT.value: priority_alert,
}


def register_default_handlers(observer: Observer) -> None:
    for event_type, handler in DEFAULT_HANDLERS.items():
        observer.on(event_type, handler)
