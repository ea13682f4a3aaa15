"""Event schemas for the Beacon broadcaster.

Topics are opaque strings: ``disaster_<id>`` per disaster and
``general_updates`` for the general feed. ``ALL`` is not a topic; it
addresses every connected observer regardless of membership.

Routing: ``disaster_updated``, ``priority_alert_received`` and
``system_status`` go to ``ALL``.
``resources_updated`` and ``social_media_updated`` go only to the
``disaster_<id>`` topic they concern, so a client subscribed to nothing
but ``general_updates`` does not receive them; join the disaster topic
to follow a disaster's resources and social feed.

Wire format sent to observers (JSON text frame):
{
    "type": "disaster_updated",
    "payload": {...},
    "timestamp": "2024-01-01T00:00:00+00:00"
}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, Field

ALL = "ALL"
GENERAL_UPDATES = "general_updates"


def disaster_topic(disaster_id: str) -> str:
    """Topic carrying events for one disaster."""
    return f"disaster_{disaster_id}"


class OutboundEvent(str, Enum):
    """Events the server sends to observers."""

    DISASTER_UPDATED = "disaster_updated"
    RESOURCES_UPDATED = "resources_updated"
    SOCIAL_MEDIA_UPDATED = "social_media_updated"
    RESPONDER_LOCATION_UPDATED = "responder_location_updated"
    PRIORITY_ALERT_RECEIVED = "priority_alert_received"
    SYSTEM_STATUS = "system_status"


class InboundEvent(str, Enum):
    """Events observers send to the server."""

    JOIN_DISASTER = "join_disaster"
    LEAVE_DISASTER = "leave_disaster"
    SUBSCRIBE_UPDATES = "subscribe_updates"
    UNSUBSCRIBE_UPDATES = "unsubscribe_updates"
    UPDATE_LOCATION = "update_location"
    PRIORITY_ALERT = "priority_alert"


@dataclass(frozen=True, slots=True)
class BroadcastEvent:
    """A fire-and-forget notification addressed to a topic (or ``ALL``)."""

    topic: str
    type: str
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_text(self) -> str:
        return orjson.dumps(
            {"type": self.type, "payload": self.payload, "timestamp": self.timestamp.isoformat()}
        ).decode()


# -----------------------------------------------------------------------------
# Inbound payloads
# -----------------------------------------------------------------------------


class LocationUpdate(BaseModel):
    disaster_id: str
    lat: float
    lng: float
    user_id: str | None = None


class PriorityAlert(BaseModel):
    disaster_id: str
    message: str
    urgency: str = "high"
    location: Any = None


class InboundFrame(BaseModel):
    """``{"type": <inbound event>, "payload": <data>}``"""

    type: str = Field(min_length=1)
    payload: Any = None
