# sosrelay/schemas/messages.py
"""
Live-session wire protocol.

Server → viewer messages form a closed union discriminated on `type`.
Every state-change message carries full Event/Device payloads, never diffs,
so replaying or re-delivering one is harmless.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from sosrelay.models import Actor, Device, SOSEvent


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WelcomeMessage(_Message):
    type: Literal["welcome"] = "welcome"
    user: Actor


class DeviceSnapshotMessage(_Message):
    type: Literal["device-snapshot"] = "device-snapshot"
    devices: List[Device]


class SOSCreatedMessage(_Message):
    type: Literal["sos"] = "sos"
    event: SOSEvent
    device: Device


class SOSResolvedMessage(_Message):
    type: Literal["sos_resolved"] = "sos_resolved"
    event_id: int
    event: SOSEvent
    device: Device


class SOSUnresolvedMessage(_Message):
    type: Literal["sos_unresolved"] = "sos_unresolved"
    event_id: int
    event: SOSEvent
    device: Device


class HistoryPoint(_Message):
    lat: float
    lng: float
    time: int


class HistoryMessage(_Message):
    type: Literal["history"] = "history"
    device_id: str
    points: List[HistoryPoint]


class ErrorMessage(_Message):
    type: Literal["error"] = "error"
    error: str


ServerMessage = Annotated[
    Union[
        WelcomeMessage,
        DeviceSnapshotMessage,
        SOSCreatedMessage,
        SOSResolvedMessage,
        SOSUnresolvedMessage,
        HistoryMessage,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

_server_message = TypeAdapter(ServerMessage)


class HistoryRequest(_Message):
    """The only message a viewer may send: {type: 'history', deviceId}."""
    type: Literal["history"]
    device_id: str = Field(min_length=1)


def encode_message(message: _Message) -> str:
    return message.model_dump_json(by_alias=True, exclude_none=True)


def decode_server_message(raw) -> ServerMessage:
    """Parse one server frame. Raises pydantic.ValidationError on unknown/malformed input."""
    return _server_message.validate_json(raw)


def decode_history_request(raw) -> Optional[HistoryRequest]:
    """Parse one inbound viewer frame. Returns None for anything that is not a history query."""
    try:
        return HistoryRequest.model_validate_json(raw)
    except ValueError:
        return None
