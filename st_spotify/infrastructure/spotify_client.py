"""
Spotify client covering the accounts service (OAuth authorization code flow)
and the handful of Web API endpoints the bridge exposes.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlencode

import requests

from st_spotify.infrastructure import log_utils

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


def _unwrap_secret(value: Any) -> Any:
    """Return the plain value for SecretStr instances."""
    if hasattr(value, "get_secret_value"):
        return value.get_secret_value()
    return value


def _error_reason(payload: Any, fallback: str) -> str:
    """Pull a readable message out of Spotify's two error body shapes."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("status") or fallback)
        if error:
            description = payload.get("error_description")
            return f"{error}: {description}" if description else str(error)
    return fallback


class ProviderError(RuntimeError):
    """Raised when a Spotify call fails."""

    def __init__(self, msg: str, *, status_code: Optional[int] = None, body: Any = None):
        super().__init__(msg)
        self.status_code = status_code
        self.body = body


class SpotifyAuthError(ProviderError):
    """Raised when Spotify refuses the access token (HTTP 401)."""


class SpotifyClient:
    """Minimal Spotify client; one instance per request, optionally holding an access token."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: Any,
        redirect_uri: str,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.access_token = access_token
        self.timeout = timeout

    # --- Accounts service ---
    def create_authorize_url(self, scopes: Iterable[str], state: Optional[str] = None) -> str:
        params: Dict[str, str] = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
        }
        scope = " ".join(s.strip() for s in scopes if s and s.strip())
        if scope:
            params["scope"] = scope
        if state:
            params["state"] = state
        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urlencode(params)}"

    def authorization_code_grant(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for an access/refresh token pair."""
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Exchange a refresh token for a new access token."""
        return self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )

    def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        grant_type = form.get("grant_type")
        try:
            response = requests.post(
                f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token",
                data=form,
                auth=(self.client_id, _unwrap_secret(self._client_secret)),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Spotify token request ({grant_type}) failed: {exc!r}") from exc

        payload = self._parse_json(response)
        if response.status_code >= 400:
            reason = _error_reason(payload, f"HTTP {response.status_code}")
            raise ProviderError(
                f"Spotify token request ({grant_type}) rejected: {reason}",
                status_code=response.status_code,
                body=payload,
            )
        if not isinstance(payload, dict):
            raise ProviderError(
                "Spotify token response was not a JSON object",
                status_code=response.status_code,
                body=payload,
            )
        return payload

    # --- Web API ---
    def get_user_playlists(self, *, limit: int = 20, offset: int = 0) -> Any:
        return self._request("GET", "/me/playlists", params={"limit": limit, "offset": offset})

    def get_my_devices(self) -> Any:
        return self._request("GET", "/me/player/devices")

    def play(self, *, device_id: str, context_uri: str) -> Any:
        return self._request(
            "PUT",
            "/me/player/play",
            params={"device_id": device_id},
            json={"context_uri": context_uri},
        )

    def pause(self, *, device_id: str) -> Any:
        return self._request("PUT", "/me/player/pause", params={"device_id": device_id})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if not self.access_token:
            raise SpotifyAuthError("No access token provided", status_code=401)

        url = f"{SPOTIFY_API_BASE_URL}{path}"
        log_utils.log_message(f"[spotify.api] {method} {path}", "DEBUG", tag="SPOT")

        try:
            response = requests.request(
                method=method,
                url=url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"{method} {path} failed: {exc!r}") from exc

        if response.status_code == 204:
            return None

        payload = self._parse_json(response)
        if response.status_code < 400:
            return payload

        reason = _error_reason(payload, f"HTTP {response.status_code}")
        error_cls = SpotifyAuthError if response.status_code == 401 else ProviderError
        raise error_cls(
            f"{method} {path} failed with {response.status_code}: {reason}",
            status_code=response.status_code,
            body=payload,
        )

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


__all__ = ["SpotifyClient", "ProviderError", "SpotifyAuthError"]
