"""AsyncQueueStore - non-blocking access to a QueueStore from asyncio code."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Iterable

from anystore.logging import get_logger
from sqlalchemy import Engine

from sparkplug_queue.model import QueuedMessage
from sparkplug_queue.storage.queue import DrainBatch, QueueStore

log = get_logger(__name__)


class AsyncQueueStore:
    """
    Asyncio facade for [QueueStore][sparkplug_queue.storage.queue.QueueStore].

    Every operation runs in a worker thread, so database I/O never stalls the
    event loop. Calls are still serialized by the lock of the wrapped store.

    Example:
        ```python
        async with AsyncQueueStore(QueueStore("b1")) as queue:
            await queue.enqueue("sensors/t1", {"v": 42})
            async with queue.drain() as batch:
                for message in batch:
                    if await publish(message):
                        batch.ack(message)
        ```
    """

    def __init__(self, store: QueueStore) -> None:
        self.store = store

    @property
    def broker_id(self) -> str:
        return self.store.broker_id

    @property
    def is_open(self) -> bool:
        return self.store.is_open

    async def initialize(self) -> Engine:
        return await asyncio.to_thread(self.store.initialize)

    async def length(self) -> int:
        return await asyncio.to_thread(self.store.length)

    async def enqueue(
        self, topic: str, payload: Any, qos: int = 0, retain: bool = False
    ) -> int:
        return await asyncio.to_thread(self.store.enqueue, topic, payload, qos, retain)

    async def list_messages(self, limit: int | None = None) -> list[QueuedMessage]:
        return await asyncio.to_thread(self.store.list_messages, limit)

    async def remove_oldest(self) -> None:
        await asyncio.to_thread(self.store.remove_oldest)

    async def remove_by_id(self, message_id: int) -> None:
        await asyncio.to_thread(self.store.remove_by_id, message_id)

    async def remove_by_ids(self, ids: Iterable[int]) -> None:
        await asyncio.to_thread(self.store.remove_by_ids, set(ids))

    @asynccontextmanager
    async def drain(
        self, limit: int | None = None
    ) -> AsyncGenerator[DrainBatch, None]:
        """Async counterpart of `QueueStore.drain()`"""
        batch = DrainBatch(await self.list_messages(limit))
        try:
            yield batch
        except BaseException:
            log.warning(
                "Drain interrupted, keeping unacknowledged messages.",
                broker=self.broker_id,
                acked=len(batch.acked),
                pending=len(batch.pending),
            )
            raise
        finally:
            if batch.acked:
                await self.remove_by_ids(batch.acked)

    async def close(self) -> None:
        await asyncio.to_thread(self.store.close)

    async def __aenter__(self) -> "AsyncQueueStore":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.store!r})>"
