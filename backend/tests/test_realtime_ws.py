"""
Realtime WebSocket Round Trip
==============================

Runs the real app under Starlette's TestClient so HTTP requests and the
socket share one event loop, then checks what the socket receives.
"""

import pytest
from fastapi.testclient import TestClient

from pinpoint.main import create_app


@pytest.fixture
def test_client(test_settings):
    with TestClient(create_app(test_settings)) as client:
        yield client


def authenticate(client):
    client.post(
        "/api/User", json={"name": "Ada", "username": "ada@example.com", "password": "pw"}
    )
    token = client.put("/api/Me", json={"username": "ada@example.com", "password": "pw"}).json()["cyToken"]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


def test_subscribe_ack_and_comment_events(test_client):
    headers = authenticate(test_client)

    with test_client.websocket_connect("/realtime") as ws:
        created = test_client.post("/api/Marker", json={"text": "seed"}, headers=headers).json()
        marker_id = created["marker"]["id"]

        # global marker event; the seed comment went to an empty room
        first = ws.receive_json()
        assert first["event"] == "saved"
        assert first["data"]["marker"]["id"] == marker_id
        assert "imageId" not in first["data"]["marker"]
        assert "comment" not in first["data"]

        ws.send_json({"event": "subscribeMarker", "markerId": marker_id})
        assert ws.receive_json() == {
            "event": "ack",
            "request": "subscribeMarker",
            "markerId": marker_id,
        }

        reply = test_client.post(
            f"/api/Marker/{marker_id}/Comment", json={"text": "reply"}, headers=headers
        ).json()["comment"]
        pushed = ws.receive_json()
        assert pushed["event"] == "saved"
        assert pushed["data"]["comment"]["id"] == reply["id"]
        assert pushed["data"]["comment"]["markerId"] == marker_id

        ws.send_json({"event": "unsubscribeMarker", "markerId": marker_id})
        assert ws.receive_json()["request"] == "unsubscribeMarker"


def test_invalid_messages(test_client):
    with test_client.websocket_connect("/realtime") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "subscribeMarker", "markerId": "nope"})
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "dance", "markerId": "00000000-0000-0000-0000-000000000000"})
        assert ws.receive_json()["event"] == "error"
