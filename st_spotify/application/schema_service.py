"""Dispatches ST Schema interactions to the Spotify account."""

from __future__ import annotations

from typing import Any, Dict, Optional

from st_spotify.application.exceptions import ApplicationError, RefreshError, UnauthorizedError
from st_spotify.application.token_lifecycle import TokenLifecycleManager
from st_spotify.domain.entities import Device
from st_spotify.domain.schema import (
    ERROR_BAD_REQUEST,
    ERROR_TOKEN_EXPIRED,
    DiscoveryRequest,
    Interaction,
    InteractionError,
    SchemaResponse,
    parse_interaction,
    translate,
    unsupported,
)
from st_spotify.infrastructure.log_utils import log_message
from st_spotify.infrastructure.spotify_client import ProviderError


def _error(interaction: Interaction, error_enum: str, detail: str) -> InteractionError:
    return InteractionError(
        request_id=interaction.request_id,
        interaction_type=interaction.interaction_type,
        error_enum=error_enum,
        detail=detail,
    )


def discover(interaction: DiscoveryRequest, manager: TokenLifecycleManager) -> SchemaResponse:
    payload = manager.authorized_client().get_my_devices() or {}
    devices = [Device.from_payload(raw) for raw in payload.get("devices") or []]
    unidentified = sum(1 for device in devices if device.id is None)
    if unidentified:
        log_message(f"Discovery request {interaction.request_id}: {unidentified} device(s) without a Spotify id.", "WARN")
    log_message(f"Discovery request {interaction.request_id}: {len(devices)} Spotify device(s).", "INFO")
    return translate(interaction.request_id, devices)


def handle_interaction(interaction: Interaction, manager: TokenLifecycleManager) -> SchemaResponse:
    """Serve one interaction, classifying known failures as ST Schema errors."""
    if not isinstance(interaction, DiscoveryRequest):
        log_message(f"Unsupported interaction type: {interaction.interaction_type}", "WARN")
        return unsupported(interaction)

    try:
        return discover(interaction, manager)
    except (UnauthorizedError, RefreshError) as exc:
        return _error(interaction, ERROR_TOKEN_EXPIRED, str(exc))
    except (ProviderError, ApplicationError) as exc:
        return _error(interaction, ERROR_BAD_REQUEST, str(exc))


def handle_request(
    body: Any,
    manager: TokenLifecycleManager,
    *,
    fallback_request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Turn a raw request body into the reply payload; always returns one."""
    interaction = parse_interaction(body, fallback_request_id)
    log_message(
        f"ST Schema request {interaction.request_id} ({interaction.interaction_type}) received.",
        "INFO",
    )
    try:
        result = handle_interaction(interaction, manager)
    except Exception as exc:
        log_message(f"ST Schema request {interaction.request_id} failed: {exc}", "ERROR", exc_info=True)
        result = _error(interaction, ERROR_BAD_REQUEST, f"Unexpected error: {exc}")
    return result.to_dict()


__all__ = ["discover", "handle_interaction", "handle_request"]
