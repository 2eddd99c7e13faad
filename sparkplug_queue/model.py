from datetime import datetime
from typing import Any

from anystore.model import BaseModel
from pydantic import ConfigDict, field_validator

from sparkplug_queue.helpers.serialization import unpack_payload


class QueuedMessage(BaseModel):
    """A pending message, read from the queue store"""

    model_config = ConfigDict(frozen=True)

    id: int
    """Store assigned identifier, strictly increasing in insertion order"""
    topic: str
    """Topic the message should be published to"""
    payload: Any = None
    """Deserialized message payload"""
    qos: int = 0
    """Quality of service level"""
    retain: bool = False
    """Retain flag"""
    timestamp: datetime | None = None
    """Insertion time, assigned by the store"""

    @field_validator("retain", mode="before")
    @classmethod
    def ensure_bool(cls, value: Any) -> bool:
        return bool(value)

    @classmethod
    def from_row(cls, row: Any) -> "QueuedMessage":
        """Build a message from a `message_queue` result row"""
        data = dict(row._mapping)
        data["payload"] = unpack_payload(data["payload"])
        return cls(**data)
