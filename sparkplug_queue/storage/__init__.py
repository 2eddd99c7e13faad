"""Storage layer: the durable queue store and its asyncio facade.

Each store operates on a single SQLite database file per broker identity.
"""

from sparkplug_queue.storage.aio import AsyncQueueStore
from sparkplug_queue.storage.queue import DrainBatch, QueueStore

__all__ = ["AsyncQueueStore", "DrainBatch", "QueueStore"]
