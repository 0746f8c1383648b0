"""Offline checks of the bridge's auth prerequisites.

Looks at the stored credential and the configured app settings only; no
network calls are made. Used by ``st-spotify status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping

from st_spotify.application.exceptions import CredentialStoreError
from st_spotify.domain.token_storage import CredentialStore
from st_spotify.utils.formatters import format_long_datetime


@dataclass(frozen=True)
class AuthStatus:
    """Represents the outcome of a credential check."""

    name: str
    state: str
    message: str


def _missing(values: Mapping[str, Any], keys: List[str]) -> List[str]:
    missing = []
    for key in keys:
        value = values.get(key)
        if hasattr(value, "get_secret_value"):
            value = value.get_secret_value()
        if not value:
            missing.append(key)
    return missing


def determine_spotify_app_status(values: Mapping[str, Any]) -> AuthStatus:
    """Check the Spotify developer application settings."""

    name = "Spotify app"
    missing = _missing(values, ["SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URL"])
    if missing:
        return AuthStatus(
            name=name,
            state="action_required",
            message=(
                f"Missing Spotify settings: {', '.join(missing)}. Create an app at "
                "https://developer.spotify.com/dashboard and add the values to .env."
            ),
        )
    return AuthStatus(
        name=name,
        state="ok",
        message=f"Client id and secret configured; redirect URL {values['SPOTIFY_REDIRECT_URL']}.",
    )


def determine_credential_status(store: CredentialStore, now: datetime) -> AuthStatus:
    """Report whether a Spotify credential is stored and when it needs refreshing."""

    name = "Spotify credential"
    try:
        credential = store.load()
    except CredentialStoreError as exc:
        return AuthStatus(
            name=name,
            state="action_required",
            message=f"{exc}. Delete the file and log in again via /login or `st-spotify login-url`.",
        )

    if credential is None:
        return AuthStatus(
            name=name,
            state="action_required",
            message=(
                "No credential stored. Open /login (or run `st-spotify login-url`), approve the app, "
                "then let the callback store the tokens."
            ),
        )

    if credential.needs_refresh(now):
        return AuthStatus(
            name=name,
            state="warning",
            message=(
                "Access token is expired or inside the refresh margin; it will be refreshed on the next "
                "request. Run `st-spotify refresh` to refresh it now."
            ),
        )

    return AuthStatus(
        name=name,
        state="ok",
        message=f"Access token valid; next refresh after {format_long_datetime(credential.safe_expiry)}.",
    )


def determine_smartthings_status(values: Mapping[str, Any]) -> AuthStatus:
    """Check the ST Schema connector settings."""

    name = "SmartThings"
    missing = _missing(values, ["ST_CLIENT_ID", "ST_CLIENT_SECRET"])
    if not missing:
        return AuthStatus(name=name, state="ok", message="Schema connector client id and secret configured.")
    return AuthStatus(
        name=name,
        state="warning",
        message=(
            f"Missing {', '.join(missing)}. Discovery still answers, but copy the values from the "
            "SmartThings Developer Workspace before registering the connector."
        ),
    )


def collect_statuses(
    values: Mapping[str, Any],
    store: CredentialStore,
    now: datetime,
) -> List[AuthStatus]:
    return [
        determine_spotify_app_status(values),
        determine_credential_status(store, now),
        determine_smartthings_status(values),
    ]


__all__ = [
    "AuthStatus",
    "collect_statuses",
    "determine_credential_status",
    "determine_smartthings_status",
    "determine_spotify_app_status",
]
