from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from st_spotify import api
from st_spotify.application.exceptions import CredentialStoreError
from st_spotify.application.token_lifecycle import TokenLifecycleManager
from st_spotify.infrastructure.spotify_client import ProviderError, SpotifyAuthError
from st_spotify.infrastructure.token_storage import InMemoryCredentialStore
from tests.helpers import NOW, FakeClientFactory, FrozenClock, make_credential


class _Bridge:
    """Wires a lifecycle manager over in-memory fakes into the app."""

    def __init__(self) -> None:
        self.store = InMemoryCredentialStore()
        self.factory = FakeClientFactory()
        self.clock = FrozenClock()
        self.manager = TokenLifecycleManager(self.store, self.factory, clock=self.clock)
        self.client = TestClient(api.app)

    def logged_in(self, **overrides) -> "_Bridge":
        self.store.save(make_credential(**overrides))
        return self


@pytest.fixture()
def bridge():
    bridge = _Bridge()
    api.app.dependency_overrides[api.get_token_manager] = lambda: bridge.manager
    try:
        yield bridge
    finally:
        api.app.dependency_overrides.clear()


def test_ping(bridge):
    response = bridge.client.get("/ping")

    assert response.status_code == 200
    assert response.text == "pong"


def test_login_redirects_to_consent_page(bridge):
    response = bridge.client.get("/login", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"].startswith("https://accounts.example/authorize")
    assert "state=smartthings" in response.headers["location"]


def test_callback_without_code_is_bad_request(bridge):
    response = bridge.client.get("/callback")

    assert response.status_code == 400
    assert bridge.factory.calls == []
    assert bridge.store.saves == 0


def test_callback_stores_credential(bridge):
    bridge.factory.responses["authorization_code_grant"] = {
        "access_token": "A1",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "R1",
    }

    response = bridge.client.get("/callback", params={"code": "abc", "state": "smartthings"})

    assert response.status_code == 200
    assert response.text == "Logged in"
    assert bridge.store.load().refresh_token == "R1"


def test_callback_with_rejected_code_is_bad_request(bridge):
    bridge.factory.responses["authorization_code_grant"] = ProviderError("invalid_grant", status_code=400)

    response = bridge.client.get("/callback", params={"code": "stale"})

    assert response.status_code == 400
    assert bridge.store.saves == 0


def test_refresh_without_credential_is_unauthorized(bridge):
    response = bridge.client.get("/refresh")

    assert response.status_code == 401
    assert response.json() == {"detail": "Unauthorized"}


def test_refresh_reports_still_valid(bridge):
    bridge.logged_in(expires_at=NOW + timedelta(hours=1))

    response = bridge.client.get("/refresh")

    assert response.status_code == 200
    assert response.text == "Token is still valid. Expires at October 19, 2026 12:55 PM UTC"
    assert bridge.factory.calls == []


def test_refresh_when_expired(bridge):
    bridge.logged_in(expires_at=NOW - timedelta(minutes=1))
    bridge.factory.responses["refresh_access_token"] = {"access_token": "A2", "expires_in": 3600}

    response = bridge.client.get("/refresh")

    assert response.status_code == 200
    assert response.text == "Token refreshed"
    assert bridge.store.load().access_token == "A2"


def test_rejected_refresh_token_is_unauthorized(bridge):
    bridge.logged_in(expires_at=NOW)
    bridge.factory.responses["refresh_access_token"] = ProviderError("invalid_grant", status_code=400)

    response = bridge.client.get("/refresh")

    assert response.status_code == 401
    assert "/login" in response.json()["detail"]


def test_playlists_passes_provider_payload_through(bridge):
    bridge.logged_in()
    bridge.factory.responses["get_user_playlists"] = {"items": [{"name": "Morning"}], "total": 1}

    response = bridge.client.get("/playlists")

    assert response.status_code == 200
    assert response.json() == {"items": [{"name": "Morning"}], "total": 1}
    assert bridge.factory.calls[0][1] == "A1"


def test_devices_upstream_error_keeps_status(bridge):
    bridge.logged_in()
    bridge.factory.responses["get_my_devices"] = ProviderError("rate limited", status_code=429)

    response = bridge.client.get("/devices")

    assert response.status_code == 429
    assert response.json() == {"detail": "rate limited"}


def test_spotify_auth_failure_is_unauthorized(bridge):
    bridge.logged_in()
    bridge.factory.responses["get_my_devices"] = SpotifyAuthError("token revoked", status_code=401)

    response = bridge.client.get("/devices")

    assert response.status_code == 401


def test_transport_error_is_bad_gateway(bridge):
    bridge.logged_in()
    bridge.factory.responses["get_my_devices"] = ProviderError("connection reset")

    response = bridge.client.get("/devices")

    assert response.status_code == 502


@pytest.mark.parametrize(
    "params, detail",
    [
        ({"context_uri": "spotify:playlist:1"}, "Missing device_id"),
        ({"device_id": "d1"}, "Missing context_uri"),
    ],
)
def test_play_validates_parameters_before_calling_spotify(bridge, params, detail):
    bridge.logged_in()

    response = bridge.client.get("/play", params=params)

    assert response.status_code == 400
    assert response.json() == {"detail": detail}
    assert bridge.factory.calls == []


def test_play_starts_playback(bridge):
    bridge.logged_in()

    response = bridge.client.get("/play", params={"device_id": "d1", "context_uri": "spotify:playlist:1"})

    assert response.status_code == 200
    assert bridge.factory.calls == [
        ("play", "A1", (), {"device_id": "d1", "context_uri": "spotify:playlist:1"})
    ]


def test_pause_requires_device_id(bridge):
    bridge.logged_in()

    response = bridge.client.get("/pause")

    assert response.status_code == 400
    assert bridge.factory.calls == []


def test_pause(bridge):
    bridge.logged_in()

    response = bridge.client.get("/pause", params={"device_id": "d1"})

    assert response.status_code == 200
    assert bridge.factory.call_names() == ["pause"]


def test_unreadable_store_is_server_error(bridge):
    def broken_load():
        raise CredentialStoreError("Credential file is not valid JSON")

    bridge.store.load = broken_load

    response = bridge.client.get("/devices")

    assert response.status_code == 500


def test_smartthings_discovery(bridge):
    bridge.logged_in()
    bridge.factory.responses["get_my_devices"] = {
        "devices": [{"id": "d1", "name": "Kitchen", "type": "Speaker", "is_active": False}]
    }
    body = {
        "headers": {"schema": "st-schema", "version": "1.0", "interactionType": "discoveryRequest", "requestId": "req-1"},
        "authentication": {"tokenType": "Bearer", "token": "st-token"},
    }

    response = bridge.client.post("/smartthings", json=body)

    assert response.status_code == 200
    payload = response.json()
    assert payload["headers"]["interactionType"] == "discoveryResponse"
    assert payload["headers"]["requestId"] == "req-1"
    assert payload["devices"][0]["externalDeviceId"] == "d1"
    assert payload["devices"][0]["friendlyName"] == "Kitchen"


def test_smartthings_always_replies(bridge):
    response = bridge.client.post(
        "/smartthings",
        content=b"not json",
        headers={"content-type": "application/json", "X-Request-Id": "hdr-7"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["headers"]["requestId"] == "hdr-7"
    assert payload["globalError"]["errorEnum"] == "INVALID-INTERACTION-TYPE"


def test_smartthings_without_credential_reports_expired_token(bridge):
    body = {"headers": {"interactionType": "discoveryRequest", "requestId": "req-2"}}

    response = bridge.client.post("/smartthings", json=body)

    assert response.status_code == 200
    assert response.json()["globalError"]["errorEnum"] == "TOKEN-EXPIRED"
