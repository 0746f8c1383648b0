"""Shared fakes for the test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from st_spotify.domain.entities import Credential
from st_spotify.infrastructure.client_factory import SpotifyClientFactory

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


class FakeSpotifyClient:
    """Records calls made through the client factory instead of hitting Spotify."""

    def __init__(self, factory: "FakeClientFactory", access_token: str | None) -> None:
        self._factory = factory
        self.access_token = access_token

    def _record(self, name: str, *args, **kwargs):
        self._factory.calls.append((name, self.access_token, args, kwargs))
        result = self._factory.responses.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    def create_authorize_url(self, scopes, state=None):
        return f"https://accounts.example/authorize?scope={'+'.join(scopes)}&state={state}"

    def authorization_code_grant(self, code):
        return self._record("authorization_code_grant", code)

    def refresh_access_token(self, refresh_token):
        return self._record("refresh_access_token", refresh_token)

    def get_user_playlists(self, **kwargs):
        return self._record("get_user_playlists", **kwargs)

    def get_my_devices(self):
        return self._record("get_my_devices")

    def play(self, **kwargs):
        return self._record("play", **kwargs)

    def pause(self, **kwargs):
        return self._record("pause", **kwargs)


class FakeClientFactory(SpotifyClientFactory):
    def __init__(self, responses: dict | None = None) -> None:
        super().__init__(client_id="cid", client_secret="secret", redirect_uri="http://localhost/callback")
        self.responses = dict(responses or {})
        self.calls: list[tuple] = []

    def build_client(self, credential=None):
        return FakeSpotifyClient(self, credential.access_token if credential is not None else None)

    def call_names(self) -> list[str]:
        return [name for name, *_ in self.calls]


def make_credential(*, expires_at: datetime | None = None, **overrides) -> Credential:
    values = {
        "access_token": "A1",
        "token_type": "Bearer",
        "expires_at": expires_at or NOW + timedelta(hours=1),
        "refresh_token": "R1",
        "scope": "user-read-playback-state user-modify-playback-state",
    }
    values.update(overrides)
    return Credential(**values)
