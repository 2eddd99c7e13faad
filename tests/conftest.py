import pytest

from sparkplug_queue import close_queues
from sparkplug_queue.storage import QueueStore

BROKER = "b1"


@pytest.fixture(scope="function")
def store(tmp_path) -> QueueStore:
    store = QueueStore(BROKER, tmp_path)
    store.initialize()
    yield store
    store.close()


@pytest.fixture(autouse=True, scope="function")
def queues_clear():
    yield
    close_queues()
