"""Domain entities for the Spotify credential and playback devices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

# Fixed buffer subtracted from the recorded expiry before a token is reused.
SAFE_EXPIRY_MARGIN = timedelta(minutes=5)


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or epoch seconds) into an aware UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(float(value), tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid expires_at value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _scope_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set)):
        return " ".join(str(item) for item in value)
    return str(value)


@dataclass(frozen=True)
class Credential:
    """The single persisted Spotify access/refresh token pair."""

    access_token: str
    token_type: str
    expires_at: datetime
    refresh_token: str
    scope: str = ""

    @property
    def safe_expiry(self) -> datetime:
        """Moment after which the access token is no longer reused."""
        return self.expires_at - SAFE_EXPIRY_MARGIN

    def needs_refresh(self, now: datetime) -> bool:
        return now >= self.safe_expiry

    @staticmethod
    def from_token_response(
        payload: Mapping[str, Any],
        *,
        now: datetime,
        previous_refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Build a credential from a Spotify token endpoint response.

        Spotify returns ``access_token``, ``token_type``, ``expires_in``
        (seconds), ``scope`` and, except on some refreshes, ``refresh_token``.
        When the refresh token is omitted the previous one is carried forward.
        """

        access_token = payload.get("access_token")
        if not access_token:
            raise ValueError("Token response did not include an access_token")

        refresh_token = payload.get("refresh_token") or previous_refresh_token
        if not refresh_token:
            raise ValueError("Token response did not include a refresh_token")

        if payload.get("expires_in") is None:
            raise ValueError("Token response did not include expires_in")
        expires_in = float(payload["expires_in"])

        return Credential(
            access_token=str(access_token),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_at=_parse_timestamp(now) + timedelta(seconds=expires_in),
            refresh_token=str(refresh_token),
            scope=_scope_text(payload.get("scope")),
        )

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Credential":
        missing = [name for name in ("access_token", "expires_at", "refresh_token") if not data.get(name)]
        if missing:
            raise ValueError(f"Credential record is missing fields: {', '.join(missing)}")

        return Credential(
            access_token=str(data["access_token"]),
            token_type=str(data.get("token_type") or "Bearer"),
            expires_at=_parse_timestamp(data["expires_at"]),
            refresh_token=str(data["refresh_token"]),
            scope=_scope_text(data.get("scope")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat(),
            "refresh_token": self.refresh_token,
            "scope": self.scope,
        }


@dataclass(frozen=True)
class Device:
    """A Spotify Connect playback target as returned by ``/me/player/devices``."""

    # Spotify reports a null id for some restricted devices; kept as None.
    id: Optional[str]
    name: str
    type: str
    is_active: bool = False
    volume_percent: Optional[int] = None

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "Device":
        volume = payload.get("volume_percent")
        raw_id = payload.get("id")
        return Device(
            id=str(raw_id) if raw_id is not None else None,
            name=str(payload.get("name") or ""),
            type=str(payload.get("type") or ""),
            is_active=bool(payload.get("is_active", False)),
            volume_percent=int(volume) if volume is not None else None,
        )


__all__ = ["Credential", "Device", "SAFE_EXPIRY_MARGIN"]
