"""Event broadcasting for Beacon.

This module provides:
- Broadcaster: topic-scoped fan-out to WebSocket observers with a heartbeat
- Observer: per-connection membership and inbound handler registry
- Default inbound handlers (join/leave, location relay, priority alerts)
"""

from beacon.events.broadcaster import Broadcaster, Observer
from beacon.events.handlers import register_default_handlers
from beacon.events.schemas import (
    ALL,
    GENERAL_UPDATES,
    BroadcastEvent,
    InboundEvent,
    OutboundEvent,
    disaster_topic,
)

__all__ = [
    "ALL",
    "GENERAL_UPDATES",
    "BroadcastEvent",
    "Broadcaster",
    "InboundEvent",
    "Observer",
    "OutboundEvent",
    "disaster_topic",
    "register_default_handlers",
]
