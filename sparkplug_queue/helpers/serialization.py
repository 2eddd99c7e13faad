"""Payload (de-)serialization for the queue table."""

import json
from typing import Any

from sparkplug_queue.exceptions import InvalidMessage


def pack_payload(payload: Any) -> str:
    """
    Serialize a JSON-compatible payload to compact, lossless JSON text.

    Examples:
        >>> pack_payload({"v": 42})
        '{"v":42}'

    Raises:
        InvalidMessage: If the payload can't be represented as JSON (including
            NaN and infinite floats)
    """
    try:
        return json.dumps(payload, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise InvalidMessage(f"Payload is not JSON serializable: {e}") from e


def unpack_payload(data: str) -> Any:
    return json.loads(data)
