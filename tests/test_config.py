from sparkplug_queue.core.settings import Settings


def test_config(monkeypatch):
    settings = Settings()
    assert settings.data_dir == "data"
    assert settings.default_limit == 500
    assert settings.broker_id == "default"

    monkeypatch.setenv("SPARKPLUG_QUEUE_DATA_DIR", "/tmp/queues")
    monkeypatch.setenv("SPARKPLUG_QUEUE_DEFAULT_LIMIT", "10")
    settings = Settings()
    assert settings.data_dir == "/tmp/queues"
    assert settings.default_limit == 10


def test_config_default_limit(monkeypatch, tmp_path):
    from sparkplug_queue.storage import QueueStore

    monkeypatch.setenv("SPARKPLUG_QUEUE_DEFAULT_LIMIT", "2")
    with QueueStore("b1", tmp_path) as store:
        for i in range(5):
            store.enqueue("t", i)
        assert len(store.list_messages()) == 2
        assert len(store.list_messages(4)) == 4
