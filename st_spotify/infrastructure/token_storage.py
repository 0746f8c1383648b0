"""Infrastructure implementations of credential persistence."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from st_spotify.application.exceptions import CredentialStoreError
from st_spotify.domain.entities import Credential
from st_spotify.domain.token_storage import CredentialStore
from st_spotify.infrastructure.log_utils import log_message


class JsonFileCredentialStore(CredentialStore):
    """Persist the credential as a JSON record in a single file.

    Writes go to a temporary sibling file which then replaces the target, so
    readers only ever see the previous or the new record. There is no file
    locking; concurrent writers from several processes are last-writer-wins.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Credential]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CredentialStoreError(f"Failed to read credential from {self._path}: {exc}") from exc
        except ValueError as exc:
            raise CredentialStoreError(f"Credential file {self._path} is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise CredentialStoreError(f"Credential file {self._path} does not hold a JSON object")

        try:
            return Credential.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise CredentialStoreError(f"Credential file {self._path} is malformed: {exc}") from exc

    def save(self, credential: Credential) -> None:
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(credential.to_dict(), handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise CredentialStoreError(f"Failed to write credential to {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)

        try:
            os.chmod(self._path, 0o600)
        except OSError as exc:  # pragma: no cover - depends on platform
            log_message(f"Could not set permissions on {self._path}: {exc}", "WARN")


class InMemoryCredentialStore(CredentialStore):
    """Keep the credential in memory; used for tests and throwaway runs."""

    def __init__(self, credential: Optional[Credential] = None) -> None:
        self._credential = credential
        self.saves = 0

    def load(self) -> Optional[Credential]:
        return self._credential

    def save(self, credential: Credential) -> None:
        self._credential = credential
        self.saves += 1


__all__ = ["JsonFileCredentialStore", "InMemoryCredentialStore"]
