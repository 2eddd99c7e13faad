"""
Path conventions for the queue store.

Every broker identity gets its own SQLite database file in the configured data
directory, so that restarting with the same identity resumes the same queue
and a damaged file only affects a single broker.

Layout
------

::

    data/                                       # settings.data_dir
        mqtt-sparkplug-queue-{broker_id}.db     # one queue per broker
        mqtt-sparkplug-queue-{other_id}.db
"""

from pathlib import Path

from sqlalchemy.engine import URL

from sparkplug_queue.exceptions import ImproperlyConfigured

PREFIX = "mqtt-sparkplug-queue"
"""File name prefix for queue databases"""

EXTENSION = "db"

TABLE = "message_queue"
"""Table name inside each queue database"""


def check_broker_id(broker_id: str) -> str:
    """
    Make sure the broker identifier can be used as part of a file name.

    Raises:
        ImproperlyConfigured: If the identifier is empty, has surrounding
            whitespace or contains path separators
    """
    broker_id = str(broker_id or "")
    if not broker_id.strip():
        raise ImproperlyConfigured("Broker identifier must not be empty")
    if broker_id != broker_id.strip():
        raise ImproperlyConfigured(
            f"Broker identifier has surrounding whitespace: `{broker_id}`"
        )
    if "/" in broker_id or "\\" in broker_id or broker_id in (".", ".."):
        raise ImproperlyConfigured(f"Invalid broker identifier: `{broker_id}`")
    return broker_id


def db_name(broker_id: str) -> str:
    """
    Get the database file name for a broker

    Examples:
        >>> db_name("b1")
        'mqtt-sparkplug-queue-b1.db'
    """
    return f"{PREFIX}-{check_broker_id(broker_id)}.{EXTENSION}"


def db_path(data_dir: str | Path, broker_id: str) -> Path:
    """Absolute path to the database file of a broker in `data_dir`"""
    return (Path(data_dir) / db_name(broker_id)).absolute()


def db_uri(path: str | Path) -> URL:
    """
    SQLAlchemy connection url for a sqlite database file. The file path is
    passed as is, characters like `?` or `#` are not parsed as url parts.
    """
    return URL.create("sqlite", database=str(path))
