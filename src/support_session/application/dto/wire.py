"""Broker message shapes, normalized where frames and records enter the session."""
from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from support_session.application.exceptions import MalformedInbound
from support_session.application.ports.clock import as_utc
from support_session.domain.entities.message import Message
from support_session.domain.value_objects.enums import SenderKind

ESCALATION_MARKER = "[HUMAN_SUPPORT_REQUEST]"


class WireMessage(BaseModel):
    """Inbound frame or history record.

    Field names differ between producers (``sendFrom``/``senderId``,
    ``message``/``content``, ``date``/``timestamp``); all are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "messageId"))
    origin: int | None = Field(
        default=None, validation_alias=AliasChoices("sendFrom", "senderId", "origin"),
    )
    destination: int | None = Field(
        default=None, validation_alias=AliasChoices("sendTo", "receiverId", "destination"),
    )
    text: str | None = Field(
        default=None, validation_alias=AliasChoices("message", "content", "text"),
    )
    timestamp: datetime | None = Field(
        default=None, validation_alias=AliasChoices("date", "timestamp"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    def stable_id(self) -> str:
        """Server id if present, otherwise a digest that survives redelivery."""
        if self.id:
            return self.id
        ts = self.timestamp.isoformat() if self.timestamp else ""
        digest = hashlib.sha1(
            f"{self.origin}|{ts}|{self.text}".encode("utf-8"),
        ).hexdigest()
        return f"h-{digest[:16]}"

    def to_message(self, sender: SenderKind, fallback_ts: datetime) -> Message:
        return Message(
            id=self.stable_id(),
            content=self.text or "",
            sender=sender,
            timestamp=self.timestamp or fallback_ts,
            sender_id=self.origin,
            receiver_id=self.destination,
        )


def parse_wire_message(data: dict[str, Any]) -> WireMessage:
    """Validate a decoded frame; raises MalformedInbound when unusable."""
    try:
        wire = WireMessage.model_validate(data)
    except PydanticValidationError as exc:
        raise MalformedInbound(f"invalid frame: {exc.error_count()} error(s)") from exc
    if wire.origin is None:
        raise MalformedInbound("frame carries no sender")
    if not wire.text or not wire.text.strip():
        raise MalformedInbound("frame carries no text")
    return wire


def outbound_payload(
    origin: int,
    destination: int,
    text: str,
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "origin": origin,
        "destination": destination,
        "text": text,
        "timestamp": timestamp,
    }


def escalation_payload(
    origin: int,
    destination: int,
    summary: str,
    timestamp: datetime,
    contact: dict[str, Any],
) -> dict[str, Any]:
    payload = outbound_payload(
        origin, destination, f"{ESCALATION_MARKER} {summary}", timestamp,
    )
    payload["kind"] = "escalation"
    payload["participant_id"] = origin
    payload["contact"] = contact
    return payload
