"""
Centralised config for the SmartThings Spotify bridge.

Sensitive values are loaded from environment variables (or a ``.env`` file)
and exposed through a typed, validated singleton ``settings`` object.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Deployments keep a ``.env`` file next to the checkout, while development
    and CI usually rely on plain environment variables. Walk the parents
    looking for ``.env`` and fall back to the repository root (detected via
    common project markers) when it is missing.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

DEFAULT_TOKEN_FILE = Path.home() / ".config" / "st_spotify" / "spotify_token.json"
PROD_LOG_DIR = Path("/var/log/st_spotify")
LOG_FILE_NAME = "st_spotify.log"

T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated application settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- SPOTIFY APP (from environment) ---
    SPOTIFY_CLIENT_ID: str
    SPOTIFY_CLIENT_SECRET: SecretStr
    SPOTIFY_REDIRECT_URL: str
    SPOTIFY_REQUEST_TIMEOUT: float = 10.0

    # --- SMARTTHINGS SCHEMA CONNECTOR (from environment) ---
    ST_CLIENT_ID: str | None = None
    ST_CLIENT_SECRET: SecretStr | None = None

    # --- CREDENTIAL FILE ---
    TOKEN_FILE_PATH: Path = DEFAULT_TOKEN_FILE

    # --- HTTP SERVER ---
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # --- LOGGING ---
    ST_LOG_LEVEL: str = "INFO"
    ST_LOG_TO_CONSOLE: bool = True
    ST_LOG_DIR: Optional[Path] = None

    @property
    def log_path(self) -> Path:
        """
        Path for the main service log file.

        An explicit ``ST_LOG_DIR`` wins. Otherwise ``/var/log/st_spotify`` is
        used when writable, falling back to a directory in the user's home.
        """
        if self.ST_LOG_DIR is not None:
            return Path(self.ST_LOG_DIR) / LOG_FILE_NAME

        if PROD_LOG_DIR.exists() and os.access(PROD_LOG_DIR, os.W_OK):
            return PROD_LOG_DIR / LOG_FILE_NAME

        fallback_dir = Path.home() / "st_spotify_logs"
        return fallback_dir / LOG_FILE_NAME


# Create a single, importable instance of the settings for the entire application.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    When an override is read directly from :mod:`os.environ`, ``parser`` (or the
    inferred type from ``settings``) is used to coerce the string into the
    expected type.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = _coerce_secret(getattr(settings, name))
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        return _coerce_secret(getattr(settings, name))

    return default
