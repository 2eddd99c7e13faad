"""Tests for AsyncQueueStore - asyncio facade for the queue store."""

import asyncio

import pytest

from sparkplug_queue.exceptions import NotInitialized
from sparkplug_queue.storage import AsyncQueueStore, QueueStore

BROKER = "b1"


def test_storage_aio_scenario(tmp_path):
    async def run():
        queue = AsyncQueueStore(QueueStore(BROKER, tmp_path))
        assert await queue.length() == 0
        assert await queue.list_messages() == []

        await queue.initialize()
        assert queue.is_open
        message_id = await queue.enqueue("sensors/t1", {"v": 42}, qos=1)
        assert message_id == 1
        assert await queue.length() == 1

        messages = await queue.list_messages(500)
        assert [(m.id, m.topic, m.payload, m.qos, m.retain) for m in messages] == [
            (1, "sensors/t1", {"v": 42}, 1, False)
        ]

        await queue.remove_by_id(1)
        assert await queue.length() == 0
        await queue.close()
        assert not queue.is_open

    asyncio.run(run())


def test_storage_aio_not_initialized(tmp_path):
    async def run():
        queue = AsyncQueueStore(QueueStore(BROKER, tmp_path))
        with pytest.raises(NotInitialized):
            await queue.enqueue("t", 1)
        with pytest.raises(NotInitialized):
            await queue.remove_oldest()
        with pytest.raises(NotInitialized):
            await queue.remove_by_id(1)
        await queue.remove_by_ids([1, 2])

    asyncio.run(run())


def test_storage_aio_concurrent_tasks(tmp_path):
    """Test concurrent tasks on one event loop get unique, ordered ids."""

    async def run():
        async with AsyncQueueStore(QueueStore(BROKER, tmp_path)) as queue:
            ids = await asyncio.gather(
                *(queue.enqueue("t", {"i": i}) for i in range(50))
            )
            assert sorted(ids) == list(range(1, 51))

            await queue.remove_oldest()
            await queue.remove_by_ids({2, 3})
            messages = await queue.list_messages()
            assert messages[0].id == 4
            assert await queue.length() == 47

    asyncio.run(run())


def test_storage_aio_drain(tmp_path):
    async def run():
        async with AsyncQueueStore(QueueStore(BROKER, tmp_path)) as queue:
            for i in range(4):
                await queue.enqueue("t", i)

            async with queue.drain(limit=2) as batch:
                for message in batch:
                    batch.ack(message)

            assert [m.payload for m in await queue.list_messages()] == [2, 3]

            with pytest.raises(RuntimeError):
                async with queue.drain() as batch:
                    batch.ack(batch.messages[0])
                    raise RuntimeError("broker offline")

            assert [m.payload for m in await queue.list_messages()] == [3]

    asyncio.run(run())
