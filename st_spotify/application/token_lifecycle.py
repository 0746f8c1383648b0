"""Owns the Spotify credential: authorization, lazy refresh and authorized clients."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from st_spotify.application.exceptions import AuthorizationError, RefreshError, UnauthorizedError
from st_spotify.domain.entities import Credential
from st_spotify.domain.token_storage import CredentialStore
from st_spotify.infrastructure.client_factory import SpotifyClientFactory
from st_spotify.infrastructure.log_utils import log_message
from st_spotify.infrastructure.spotify_client import ProviderError, SpotifyClient

AUTHORIZE_SCOPES = (
    "user-read-private",
    "user-read-email",
    "user-read-playback-state",
    "user-modify-playback-state",
)
AUTHORIZE_STATE = "smartthings"

# Token endpoint statuses that mean the grant itself was refused.
_REJECTED_GRANT_STATUSES = {400, 401}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenStatus:
    """Outcome of :meth:`TokenLifecycleManager.ensure_fresh_token`."""

    credential: Credential
    refreshed: bool

    @property
    def safe_expiry(self) -> datetime:
        return self.credential.safe_expiry


class TokenLifecycleManager:
    """Single owner of the persisted credential.

    Refreshes are serialised behind a lock so concurrent requests that find
    an expiring token perform a single refresh between them.
    """

    def __init__(
        self,
        store: CredentialStore,
        client_factory: SpotifyClientFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._client_factory = client_factory
        self._clock = clock
        self._refresh_lock = threading.Lock()

    def authorize_url(self) -> str:
        return self._client_factory.build_client().create_authorize_url(AUTHORIZE_SCOPES, AUTHORIZE_STATE)

    def current_credential(self) -> Optional[Credential]:
        return self._store.load()

    def complete_authorization(self, code: Optional[str]) -> Credential:
        """Exchange an authorization code and persist the resulting credential."""
        if not code:
            raise AuthorizationError("Missing authorization code")

        client = self._client_factory.build_client()
        try:
            payload = client.authorization_code_grant(code)
        except ProviderError as exc:
            if exc.status_code in _REJECTED_GRANT_STATUSES:
                log_message(f"Authorization code rejected by Spotify: {exc}", "WARN")
                raise AuthorizationError(str(exc)) from exc
            raise

        try:
            credential = Credential.from_token_response(payload, now=self._clock())
        except ValueError as exc:
            raise AuthorizationError(f"Incomplete token response: {exc}") from exc

        self._store.save(credential)
        log_message(
            f"Spotify authorization completed; token valid until {credential.expires_at.isoformat()}.",
            "INFO",
        )
        return credential

    def ensure_fresh_token(self) -> TokenStatus:
        """Return a usable credential, refreshing it once the safe-expiry margin is reached."""
        credential = self._require_credential()
        if not credential.needs_refresh(self._clock()):
            return TokenStatus(credential=credential, refreshed=False)

        with self._refresh_lock:
            # Another request may have refreshed while we waited for the lock.
            credential = self._require_credential()
            if not credential.needs_refresh(self._clock()):
                return TokenStatus(credential=credential, refreshed=False)

            refreshed = self._refresh(credential)
            return TokenStatus(credential=refreshed, refreshed=True)

    def authorized_client(self) -> SpotifyClient:
        status = self.ensure_fresh_token()
        return self._client_factory.build_client(status.credential)

    def _require_credential(self) -> Credential:
        credential = self._store.load()
        if credential is None:
            raise UnauthorizedError("No Spotify credential stored; log in via /login first")
        return credential

    def _refresh(self, credential: Credential) -> Credential:
        log_message("Access token expired or near expiry, refreshing.", "INFO")
        client = self._client_factory.build_client()
        try:
            payload = client.refresh_access_token(credential.refresh_token)
        except ProviderError as exc:
            if exc.status_code in _REJECTED_GRANT_STATUSES:
                log_message(f"Spotify rejected the refresh token: {exc}", "ERROR")
                raise RefreshError(str(exc)) from exc
            raise

        try:
            refreshed = Credential.from_token_response(
                payload,
                now=self._clock(),
                previous_refresh_token=credential.refresh_token,
            )
        except ValueError as exc:
            raise RefreshError(f"Incomplete refresh response: {exc}") from exc
        if not refreshed.scope:
            refreshed = replace(refreshed, scope=credential.scope)

        self._store.save(refreshed)
        if refreshed.refresh_token != credential.refresh_token:
            log_message("Spotify rotated the refresh token.", "INFO")
        log_message(
            f"Successfully refreshed Spotify access token; valid until {refreshed.expires_at.isoformat()}.",
            "INFO",
        )
        return refreshed


__all__ = [
    "AUTHORIZE_SCOPES",
    "AUTHORIZE_STATE",
    "TokenLifecycleManager",
    "TokenStatus",
    "utcnow",
]
