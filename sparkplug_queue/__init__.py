"""Durable per-broker message queue backed by SQLite."""

from sparkplug_queue.exceptions import (
    NotInitialized,
    QueueError,
    StorageError,
)
from sparkplug_queue.model import QueuedMessage
from sparkplug_queue.queue import close_queues, get_async_queue, get_queue
from sparkplug_queue.storage import AsyncQueueStore, DrainBatch, QueueStore

__version__ = "0.1.0"

__all__ = [
    "AsyncQueueStore",
    "DrainBatch",
    "NotInitialized",
    "QueueError",
    "QueueStore",
    "QueuedMessage",
    "StorageError",
    "close_queues",
    "get_async_queue",
    "get_queue",
]
