"""Wire frames for the Tradovate real-time WebSocket

Inbound frames are a one-character type followed by optional JSON.
Outbound requests are four newline-separated lines:
endpoint url, request id, query string, JSON body.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .exceptions import FrameDecodeError

HEARTBEAT_FRAME = "[]"


class FrameType(str, Enum):
    OPEN = "o"
    HEARTBEAT = "h"
    ARRAY = "a"
    CLOSE = "c"


@dataclass(frozen=True)
class Frame:
    type: FrameType
    payload: Any


def decode_frame(raw: str | bytes) -> Frame:
    """Split a raw WebSocket message into its type and payload

    Raises:
        FrameDecodeError: On empty input, unknown type or invalid JSON
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {e}") from e

    if not raw:
        raise FrameDecodeError("Empty frame")

    try:
        frame_type = FrameType(raw[0])
    except ValueError as e:
        raise FrameDecodeError(f"Unknown frame type {raw[0]!r}") from e

    body = raw[1:]
    if not body:
        return Frame(frame_type, [])

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(
            f"Invalid JSON in {frame_type.name} frame: {body[:100]!r}"
        ) from e
    return Frame(frame_type, payload)


def encode_request(
    url: str,
    request_id: int,
    query: str | None = None,
    body: dict[str, Any] | None = None,
) -> str:
    payload = json.dumps(body or {}, separators=(",", ":"))
    return f"{url}\n{request_id}\n{query or ''}\n{payload}"


def encode_authorize(request_id: int, token: str) -> str:
    return encode_request("authorize", request_id, body={"token": token})
