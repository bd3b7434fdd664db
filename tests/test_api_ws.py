"""Tests for FastAPI WebSocket /stream endpoint.

Tests verify:
- Initial message with the current log and state
- Telemetry frames show up as latest channel values
"""

import pytest
from fastapi.testclient import TestClient

from api import main as api_module
from fakes.fake_serial import FakeSerial
from serial_monitor_lib.transport import Transport


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global controller before each test."""
    api_module._controller = None
    yield
    if api_module._controller is not None:
        api_module._controller.disconnect()
    api_module._controller = None


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(api_module.app)


@pytest.fixture
def fake_serial():
    return FakeSerial()


@pytest.fixture
def monkeypatch_transport(monkeypatch, fake_serial):
    """Monkeypatch Transport.open to use FakeSerial."""
    def mock_open(port, config):
        return Transport(fake_serial, name=port)

    monkeypatch.setattr(Transport, "open", mock_open)


# =============================================================================
# WebSocket Tests
# =============================================================================

def test_websocket_initial_message(client, monkeypatch_transport):
    """First message carries the log so far and the connection state."""
    client.post("/connect?port=/dev/fake")

    with client.websocket_connect("/stream") as websocket:
        data = websocket.receive_json()

    assert "Connected" in data["text"]
    assert data["state"] == "connected"
    assert set(data["latest"]) == {"FL", "FR", "RL", "RR"}


def test_websocket_streams_frames(client, monkeypatch_transport, fake_serial):
    client.post("/connect?port=/dev/fake")
    fake_serial.start_streaming(rate_hz=50.0, values=lambda n: [n, n + 1, n + 2, n + 3])

    latest = None
    with client.websocket_connect("/stream") as websocket:
        for _ in range(50):
            data = websocket.receive_json()
            if data["latest"]["FL"] is not None:
                latest = data["latest"]
                break

    fake_serial.stop_streaming()

    assert latest is not None
    t, fl = latest["FL"]
    _, fr = latest["FR"]
    assert t >= 0.0
    assert fr == fl + 1


def test_websocket_when_disconnected(client):
    """With nothing connected, the stream still reports state."""
    with client.websocket_connect("/stream") as websocket:
        data = websocket.receive_json()

    assert data["state"] == "disconnected"
    assert data["text"] == ""
