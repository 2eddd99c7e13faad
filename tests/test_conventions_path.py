import doctest
from pathlib import Path

import pytest

from sparkplug_queue.core.conventions import path
from sparkplug_queue.exceptions import ImproperlyConfigured


def test_conventions_path():
    assert path.db_name("b1") == "mqtt-sparkplug-queue-b1.db"

    db = path.db_path("data", "b1")
    assert db.is_absolute()
    assert db == (Path("data") / "mqtt-sparkplug-queue-b1.db").absolute()

    uri = path.db_uri(db)
    assert uri.drivername == "sqlite"
    assert uri.database == str(db)


def test_conventions_path_uri_query_chars():
    """Test `?` and `#` in a file name stay part of the database path."""
    for broker_id in ("x?a", "x#a", "x?mode=ro"):
        db = path.db_path("data", broker_id)
        uri = path.db_uri(db)
        assert uri.database == str(db)
        assert not uri.query


def test_conventions_path_doctests():
    failed, attempted = doctest.testmod(path)
    assert attempted > 0
    assert failed == 0


def test_conventions_path_invalid():
    for broker_id in ("", "  ", " b1", "b1 ", " b1 ", "a/b", "a\\b", ".", ".."):
        with pytest.raises(ImproperlyConfigured):
            path.db_name(broker_id)
