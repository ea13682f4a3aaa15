"""Tests for the /ws endpoint."""

from __future__ import annotations

import time
from collections.abc import Iterator

import orjson
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from beacon.api.routers import websocket
from beacon.events.broadcaster import Broadcaster


@pytest.fixture
def ws_broadcaster() -> Broadcaster:
    return Broadcaster(heartbeat_interval=60, send_timeout=1.0)


@pytest.fixture
def ws_client(ws_broadcaster: Broadcaster) -> Iterator[TestClient]:
    app = FastAPI()
    app.include_router(websocket.router)
    app.state.broadcaster = ws_broadcaster
    # One portal, so every connection shares an event loop.
    with TestClient(app) as client:
        yield client


def frame(event_type: str, payload: object = None) -> str:
    return orjson.dumps({"type": event_type, "payload": payload}).decode()


def sync(ws) -> None:
    """Wait until every earlier frame from this client was handled."""
    ws.send_text("ping")
    assert ws.receive_text() == "pong"


class TestWebSocketEndpoint:
    """Test the WebSocket event channel."""

    def test_ping_pong(self, ws_client: TestClient) -> None:
        """Literal ping is answered with pong."""
        with ws_client.websocket_connect("/ws") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

    def test_malformed_frame_keeps_connection(self, ws_client: TestClient) -> None:
        """Garbage is ignored and the connection stays usable."""
        with ws_client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            ws.send_text(frame("no_such_event"))
            sync(ws)

    def test_location_relayed_to_disaster_peers(
        self, ws_client: TestClient, ws_broadcaster: Broadcaster
    ) -> None:
        """A responder location reaches peers in the same disaster."""
        with ws_client.websocket_connect("/ws") as sender, ws_client.websocket_connect(
            "/ws"
        ) as peer:
            sender.send_text(frame("join_disaster", "42"))
            peer.send_text(frame("join_disaster", {"disaster_id": "42"}))
            sync(sender)
            sync(peer)
            assert len(ws_broadcaster.members("disaster_42")) == 2

            sender.send_text(
                frame("update_location", {"disaster_id": "42", "lat": 40.7, "lng": -74.0})
            )

            event = orjson.loads(peer.receive_text())
            assert event["type"] == "responder_location_updated"
            assert event["payload"]["lat"] == 40.7

    def test_disconnect_cleans_up(
        self, ws_client: TestClient, ws_broadcaster: Broadcaster
    ) -> None:
        """Closing the socket removes the observer and its memberships."""
        with ws_client.websocket_connect("/ws") as ws:
            ws.send_text(frame("subscribe_updates"))
            sync(ws)
            assert ws_broadcaster.connection_count == 1
            assert len(ws_broadcaster.members("general_updates")) == 1

        for _ in range(50):
            if ws_broadcaster.connection_count == 0:
                break
            time.sleep(0.01)
        assert ws_broadcaster.connection_count == 0
        assert ws_broadcaster.members("general_updates") == frozenset()
