from functools import cache
from pathlib import Path

from anystore.logging import get_logger

from sparkplug_queue.core.conventions import path
from sparkplug_queue.core.settings import Settings
from sparkplug_queue.storage import AsyncQueueStore, QueueStore

log = get_logger(__name__)

_STORES: list[QueueStore] = []


@cache
def _get_store(broker_id: str, data_dir: str) -> QueueStore:
    log.info("Loading queue store ...", broker=broker_id, data_dir=data_dir)
    store = QueueStore(broker_id, data_dir)
    _STORES.append(store)
    return store


def _resolve(broker_id: str | None, data_dir: str | Path | None) -> tuple[str, str]:
    settings = Settings()
    broker_id = path.check_broker_id(broker_id or settings.broker_id)
    data_dir = str(Path(data_dir or settings.data_dir).absolute())
    return broker_id, data_dir


def get_queue(
    broker_id: str | None = None, data_dir: str | Path | None = None
) -> QueueStore:
    """
    Get the process-wide [QueueStore][sparkplug_queue.storage.QueueStore] for
    a broker identity, initialized and ready to use. If `broker_id` or
    `data_dir` are not set, use the globally configured settings.

    A store that was closed in between is re-opened.

    Args:
        broker_id: Broker identity
        data_dir: Directory holding the queue database files

    Returns:
        queue store
    """
    store = _get_store(*_resolve(broker_id, data_dir))
    store.initialize()
    return store


def get_async_queue(
    broker_id: str | None = None, data_dir: str | Path | None = None
) -> AsyncQueueStore:
    """
    Get an [AsyncQueueStore][sparkplug_queue.storage.AsyncQueueStore] for the
    process-wide store of a broker identity. It needs to be initialized via
    `await queue.initialize()` (or `async with`) before use.
    """
    return AsyncQueueStore(_get_store(*_resolve(broker_id, data_dir)))


def close_queues() -> None:
    """Close all process-wide queue stores and reset the cache"""
    while _STORES:
        _STORES.pop().close()
    _get_store.cache_clear()
