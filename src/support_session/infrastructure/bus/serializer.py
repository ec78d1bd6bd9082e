from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from support_session.application.exceptions import MalformedInbound


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def encode_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, cls=_Encoder, ensure_ascii=False)


def decode_payload(raw: str | bytes) -> dict[str, Any]:
    """Parse a broker frame body into a flat dict.

    Producers may wrap the message as ``{"event": ..., "data": {...}}``.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedInbound(f"frame is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedInbound("frame is not a JSON object")
    if "event" in data and isinstance(data.get("data"), dict):
        return data["data"]
    return data
