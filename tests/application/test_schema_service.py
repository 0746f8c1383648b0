from datetime import timedelta

from st_spotify.application import schema_service
from st_spotify.application.token_lifecycle import TokenLifecycleManager
from st_spotify.infrastructure.spotify_client import ProviderError
from st_spotify.infrastructure.token_storage import InMemoryCredentialStore
from tests.helpers import NOW, FakeClientFactory, make_credential


def _discovery_body(request_id="req-1"):
    return {
        "headers": {
            "schema": "st-schema",
            "version": "1.0",
            "interactionType": "discoveryRequest",
            "requestId": request_id,
        },
        "authentication": {"tokenType": "Bearer", "token": "st-token"},
    }


def _manager(factory, clock, credential=None):
    store = InMemoryCredentialStore(credential if credential is not None else make_credential())
    return TokenLifecycleManager(store, factory, clock=clock)


def test_discovery_lists_spotify_devices(clock):
    factory = FakeClientFactory(
        {
            "get_my_devices": {
                "devices": [
                    {"id": "d1", "name": "Kitchen", "type": "Speaker", "is_active": False},
                    {"id": "d2", "name": "Laptop", "type": "Computer", "is_active": True},
                ]
            }
        }
    )

    reply = schema_service.handle_request(_discovery_body(), _manager(factory, clock))

    assert reply["headers"]["interactionType"] == "discoveryResponse"
    assert reply["headers"]["requestId"] == "req-1"
    assert [(d["externalDeviceId"], d["friendlyName"]) for d in reply["devices"]] == [
        ("d1", "Kitchen"),
        ("d2", "Laptop"),
    ]
    assert factory.calls == [("get_my_devices", "A1", (), {})]


def test_discovery_with_no_devices(clock):
    factory = FakeClientFactory({"get_my_devices": {"devices": []}})

    reply = schema_service.handle_request(_discovery_body(), _manager(factory, clock))

    assert reply["devices"] == []


def test_discovery_refreshes_expired_token_first(clock):
    factory = FakeClientFactory(
        {
            "refresh_access_token": {"access_token": "A2", "expires_in": 3600},
            "get_my_devices": {"devices": []},
        }
    )
    manager = _manager(factory, clock, make_credential(expires_at=NOW - timedelta(minutes=1)))

    schema_service.handle_request(_discovery_body(), manager)

    assert factory.call_names() == ["refresh_access_token", "get_my_devices"]
    assert factory.calls[1][1] == "A2"


def test_unsupported_interaction_makes_no_provider_call(fake_factory, clock):
    body = {"headers": {"interactionType": "commandRequest", "requestId": "c1"}, "devices": []}

    reply = schema_service.handle_request(body, _manager(fake_factory, clock))

    assert reply["headers"]["interactionType"] == "commandResponse"
    assert reply["globalError"] == {
        "errorEnum": "INVALID-INTERACTION-TYPE",
        "detail": "error. not supported interactionType commandRequest",
    }
    assert fake_factory.calls == []


def test_missing_credential_reports_token_expired(fake_factory, clock):
    manager = TokenLifecycleManager(InMemoryCredentialStore(), fake_factory, clock=clock)

    reply = schema_service.handle_request(_discovery_body(), manager)

    assert reply["globalError"]["errorEnum"] == "TOKEN-EXPIRED"
    assert reply["headers"]["requestId"] == "req-1"


def test_provider_failure_reports_bad_request(clock):
    factory = FakeClientFactory({"get_my_devices": ProviderError("Spotify down", status_code=503)})

    reply = schema_service.handle_request(_discovery_body(), _manager(factory, clock))

    assert reply["headers"]["interactionType"] == "discoveryResponse"
    assert reply["globalError"] == {"errorEnum": "BAD-REQUEST", "detail": "Spotify down"}


def test_unexpected_failure_still_replies(clock):
    factory = FakeClientFactory({"get_my_devices": RuntimeError("kaboom")})

    reply = schema_service.handle_request(_discovery_body("req-9"), _manager(factory, clock))

    assert reply["headers"]["requestId"] == "req-9"
    assert reply["globalError"] == {"errorEnum": "BAD-REQUEST", "detail": "Unexpected error: kaboom"}


def test_fallback_request_id_is_echoed(fake_factory, clock):
    reply = schema_service.handle_request(None, _manager(fake_factory, clock), fallback_request_id="hdr-1")

    assert reply["headers"]["requestId"] == "hdr-1"
    assert reply["globalError"]["errorEnum"] == "INVALID-INTERACTION-TYPE"
