"""SmartThings Schema (ST Schema) interaction models and the discovery translator.

Inbound payloads are parsed into one of a closed set of interaction types;
anything unrecognised becomes :class:`UnsupportedInteraction`. Responses are
either a :class:`DiscoveryResponse` or an :class:`InteractionError`, both of
which serialise to the partner wire format via ``to_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from st_spotify.domain.entities import Device

SCHEMA_NAME = "st-schema"
SCHEMA_VERSION = "1.0"
DEVICE_HANDLER_TYPE = "c2c-music-player"
MANUFACTURER_NAME = "Spotify"
HW_VERSION = "v1"
SW_VERSION = "1"

DISCOVERY_REQUEST = "discoveryRequest"
COMMAND_REQUEST = "commandRequest"
STATE_REFRESH_REQUEST = "stateRefreshRequest"
GRANT_CALLBACK_ACCESS = "grantCallbackAccess"

# Error enums defined by the ST Schema global error payload.
ERROR_INVALID_INTERACTION_TYPE = "INVALID-INTERACTION-TYPE"
ERROR_TOKEN_EXPIRED = "TOKEN-EXPIRED"
ERROR_BAD_REQUEST = "BAD-REQUEST"


def _headers(interaction_type: str, request_id: Optional[str]) -> Dict[str, Any]:
    return {
        "schema": SCHEMA_NAME,
        "version": SCHEMA_VERSION,
        "interactionType": interaction_type,
        "requestId": request_id,
    }


def response_type_for(interaction_type: Optional[str]) -> str:
    """Map a request interaction type to its response type."""
    known = {DISCOVERY_REQUEST, COMMAND_REQUEST, STATE_REFRESH_REQUEST}
    if interaction_type in known:
        return f"{interaction_type[: -len('Request')]}Response"
    if interaction_type == GRANT_CALLBACK_ACCESS:
        return "accessTokenResponse"
    return "interactionResultResponse"


# --- Inbound interactions ---

@dataclass(frozen=True)
class DiscoveryRequest:
    request_id: Optional[str]
    token: Optional[str] = None
    interaction_type: str = field(default=DISCOVERY_REQUEST, init=False)


@dataclass(frozen=True)
class DeviceCommand:
    component: str
    capability: str
    command: str
    arguments: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class DeviceCommands:
    external_device_id: str
    commands: List[DeviceCommand] = field(default_factory=list)


@dataclass(frozen=True)
class CommandRequest:
    request_id: Optional[str]
    token: Optional[str] = None
    devices: List[DeviceCommands] = field(default_factory=list)
    interaction_type: str = field(default=COMMAND_REQUEST, init=False)


@dataclass(frozen=True)
class StateRefreshRequest:
    request_id: Optional[str]
    token: Optional[str] = None
    device_ids: List[str] = field(default_factory=list)
    interaction_type: str = field(default=STATE_REFRESH_REQUEST, init=False)


@dataclass(frozen=True)
class GrantCallbackAccess:
    request_id: Optional[str]
    code: Optional[str] = None
    client_id: Optional[str] = None
    interaction_type: str = field(default=GRANT_CALLBACK_ACCESS, init=False)


@dataclass(frozen=True)
class UnsupportedInteraction:
    request_id: Optional[str]
    interaction_type: Optional[str] = None


Interaction = Union[
    DiscoveryRequest,
    CommandRequest,
    StateRefreshRequest,
    GrantCallbackAccess,
    UnsupportedInteraction,
]


def _token(body: Mapping[str, Any]) -> Optional[str]:
    authentication = body.get("authentication")
    if isinstance(authentication, Mapping):
        token = authentication.get("token")
        return str(token) if token else None
    return None


def _parse_command_devices(raw_devices: Any) -> List[DeviceCommands]:
    devices: List[DeviceCommands] = []
    for raw in raw_devices or []:
        if not isinstance(raw, Mapping):
            continue
        commands = [
            DeviceCommand(
                component=str(cmd.get("component", "main")),
                capability=str(cmd.get("capability", "")),
                command=str(cmd.get("command", "")),
                arguments=list(cmd.get("arguments") or []),
            )
            for cmd in raw.get("commands") or []
            if isinstance(cmd, Mapping)
        ]
        devices.append(DeviceCommands(external_device_id=str(raw.get("externalDeviceId", "")), commands=commands))
    return devices


def parse_interaction(body: Any, fallback_request_id: Optional[str] = None) -> Interaction:
    """Parse an ST Schema request body into its typed interaction."""

    if not isinstance(body, Mapping):
        return UnsupportedInteraction(request_id=fallback_request_id)

    headers = body.get("headers") if isinstance(body.get("headers"), Mapping) else {}
    interaction_type = headers.get("interactionType")
    request_id = headers.get("requestId") or fallback_request_id
    token = _token(body)

    if interaction_type == DISCOVERY_REQUEST:
        return DiscoveryRequest(request_id=request_id, token=token)

    if interaction_type == COMMAND_REQUEST:
        return CommandRequest(
            request_id=request_id,
            token=token,
            devices=_parse_command_devices(body.get("devices")),
        )

    if interaction_type == STATE_REFRESH_REQUEST:
        device_ids = [
            str(raw.get("externalDeviceId"))
            for raw in body.get("devices") or []
            if isinstance(raw, Mapping) and raw.get("externalDeviceId")
        ]
        return StateRefreshRequest(request_id=request_id, token=token, device_ids=device_ids)

    if interaction_type == GRANT_CALLBACK_ACCESS:
        callback = body.get("callbackAuthentication")
        callback = callback if isinstance(callback, Mapping) else {}
        return GrantCallbackAccess(
            request_id=request_id,
            code=callback.get("code"),
            client_id=callback.get("clientId"),
        )

    return UnsupportedInteraction(
        request_id=request_id,
        interaction_type=str(interaction_type) if interaction_type is not None else None,
    )


# --- Outbound responses ---

@dataclass(frozen=True)
class DeviceDescriptor:
    external_device_id: Optional[str]
    friendly_name: str
    model_name: str
    device_handler_type: str = DEVICE_HANDLER_TYPE
    manufacturer_name: str = MANUFACTURER_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalDeviceId": self.external_device_id,
            "friendlyName": self.friendly_name,
            "deviceHandlerType": self.device_handler_type,
            "manufacturerInfo": {
                "manufacturerName": self.manufacturer_name,
                "modelName": self.model_name,
                "hwVersion": HW_VERSION,
                "swVersion": SW_VERSION,
            },
        }


@dataclass(frozen=True)
class DiscoveryResponse:
    request_id: Optional[str]
    devices: List[DeviceDescriptor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": _headers("discoveryResponse", self.request_id),
            "devices": [device.to_dict() for device in self.devices],
        }


@dataclass(frozen=True)
class InteractionError:
    """ST Schema global error; sent whenever a request cannot be served."""

    request_id: Optional[str]
    interaction_type: Optional[str]
    error_enum: str
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": _headers(response_type_for(self.interaction_type), self.request_id),
            "globalError": {"errorEnum": self.error_enum, "detail": self.detail},
        }


SchemaResponse = Union[DiscoveryResponse, InteractionError]


def translate(request_id: Optional[str], devices: Iterable[Device]) -> DiscoveryResponse:
    """Map Spotify devices to a discovery response, one descriptor per device, in order."""
    return DiscoveryResponse(
        request_id=request_id,
        devices=[
            DeviceDescriptor(
                external_device_id=device.id,
                friendly_name=device.name,
                model_name=device.type,
            )
            for device in devices
        ],
    )


def unsupported(interaction: Interaction) -> InteractionError:
    interaction_type = interaction.interaction_type
    return InteractionError(
        request_id=interaction.request_id,
        interaction_type=interaction_type,
        error_enum=ERROR_INVALID_INTERACTION_TYPE,
        detail=f"error. not supported interactionType {interaction_type}",
    )


__all__ = [
    "CommandRequest",
    "DeviceCommand",
    "DeviceCommands",
    "DeviceDescriptor",
    "DiscoveryRequest",
    "DiscoveryResponse",
    "GrantCallbackAccess",
    "Interaction",
    "InteractionError",
    "SchemaResponse",
    "StateRefreshRequest",
    "UnsupportedInteraction",
    "parse_interaction",
    "response_type_for",
    "translate",
    "unsupported",
]
