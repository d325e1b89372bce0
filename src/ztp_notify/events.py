"""Notification event definitions.

Events are pushed by the provisioning backend over the notification
WebSocket. Every message is a JSON envelope:

    {"type": "device_discovered", "payload": {"mac": "...", "ip": "..."}}

The payload shape is owned by the event kind and is not validated when
an envelope is decoded. Unknown ``type`` values still decode; they just
have no ``kind``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError


class EventKind(str, Enum):
    """All event kinds the backend publishes."""

    # Discovery
    DEVICE_DISCOVERED = "device_discovered"  # New DHCP lease seen

    # Device status
    DEVICE_ONLINE = "device_online"
    DEVICE_OFFLINE = "device_offline"

    # Config backups
    BACKUP_STARTED = "backup_started"
    BACKUP_COMPLETED = "backup_completed"
    BACKUP_FAILED = "backup_failed"

    # Config server (TFTP/HTTP file request)
    CONFIG_PULLED = "config_pulled"

    @classmethod
    def parse(cls, value: str | EventKind) -> EventKind | None:
        """Return the kind for a wire value, or None if it is not known."""
        try:
            return cls(value)
        except ValueError:
            return None


class MalformedEventError(ValueError):
    """Raised when a raw message cannot be decoded into an envelope."""


class NotificationEvent(BaseModel):
    """Decoded notification envelope.

    Fields cannot be reassigned once decoded. The payload itself is plain
    JSON data; the dispatcher hands every handler its own copy so that a
    handler mutating it cannot affect the others. ``type`` keeps the raw
    wire string so that unknown kinds survive decoding; ``kind`` maps it
    onto ``EventKind``.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    payload: Any = None

    @property
    def kind(self) -> EventKind | None:
        """The event kind, or None for types this client does not know."""
        return EventKind.parse(self.type)

    @property
    def is_known(self) -> bool:
        return self.kind is not None

    def payload_model(self) -> BaseModel | None:
        """Parse the payload into its typed model when one is defined.

        Returns None for kinds without a model or payloads that do not
        match it.
        """
        kind = self.kind
        model = PAYLOAD_MODELS.get(kind) if kind else None
        if model is None or not isinstance(self.payload, dict):
            return None
        try:
            return model.model_validate(self.payload)
        except ValidationError:
            return None

    def to_json(self) -> str:
        """Serialize to the wire format."""
        return json.dumps({"type": self.type, "payload": self.payload})

    @classmethod
    def create(
        cls,
        kind: EventKind | str,
        payload: BaseModel | dict[str, Any] | None = None,
    ) -> NotificationEvent:
        """Factory for outgoing events.

        Typed payload models are dumped without unset optional fields,
        matching what the backend puts on the wire.
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_none=True)
        event_type = kind.value if isinstance(kind, EventKind) else kind
        return cls(type=event_type, payload=payload if payload is not None else {})


def decode_event(raw: str | bytes | bytearray) -> NotificationEvent:
    """Decode a raw WebSocket message into a NotificationEvent.

    Raises:
        MalformedEventError: If the message is not a JSON object with a
            string ``type`` field.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise MalformedEventError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedEventError("JSON nested too deeply") from e

    if not isinstance(data, dict):
        raise MalformedEventError(f"Expected a JSON object, got {type(data).__name__}")

    event_type = data.get("type")
    if not isinstance(event_type, str):
        raise MalformedEventError("Missing or non-string 'type' field")

    return NotificationEvent(type=event_type, payload=data.get("payload"))


# =============================================================================
# Payload models
# =============================================================================


class DeviceDiscoveredPayload(BaseModel):
    """A device requested a DHCP lease."""

    mac: str
    ip: str
    hostname: str | None = None
    vendor: str | None = None


class ConfigPulledPayload(BaseModel):
    """A device fetched its generated config."""

    mac: str
    ip: str
    hostname: str | None = None
    filename: str
    protocol: str  # "tftp" | "http"


PAYLOAD_MODELS: dict[EventKind, type[BaseModel]] = {
    EventKind.DEVICE_DISCOVERED: DeviceDiscoveredPayload,
    EventKind.CONFIG_PULLED: ConfigPulledPayload,
}
