"""Builds Spotify clients carrying the current access token."""

from __future__ import annotations

from typing import Any, Optional

from st_spotify.config import settings
from st_spotify.domain.entities import Credential
from st_spotify.infrastructure.spotify_client import SpotifyClient


class SpotifyClientFactory:
    def __init__(self, *, client_id: str, client_secret: Any, redirect_uri: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "SpotifyClientFactory":
        return cls(
            client_id=settings.SPOTIFY_CLIENT_ID,
            client_secret=settings.SPOTIFY_CLIENT_SECRET,
            redirect_uri=settings.SPOTIFY_REDIRECT_URL,
            timeout=settings.SPOTIFY_REQUEST_TIMEOUT,
        )

    def build_client(self, credential: Optional[Credential] = None) -> SpotifyClient:
        """Return a fresh client, authenticated when ``credential`` is given."""
        return SpotifyClient(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            access_token=credential.access_token if credential is not None else None,
            timeout=self.timeout,
        )


__all__ = ["SpotifyClientFactory"]
