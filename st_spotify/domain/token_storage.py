"""Domain-level protocol for persisting the Spotify credential."""

from __future__ import annotations

from typing import Optional, Protocol

from st_spotify.domain.entities import Credential


class CredentialStore(Protocol):
    """Abstraction for durable single-record credential storage."""

    def load(self) -> Optional[Credential]:
        """Return the persisted credential, or ``None`` if never authorized."""

    def save(self, credential: Credential) -> None:
        """Replace the persisted credential with ``credential``."""


__all__ = ["CredentialStore"]
