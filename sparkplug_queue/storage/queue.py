"""QueueStore - durable FIFO message buffer for a single broker identity."""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable, Iterator

from anystore.logging import get_logger
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.exc import SQLAlchemyError

from sparkplug_queue.core.conventions import path
from sparkplug_queue.core.settings import Settings
from sparkplug_queue.exceptions import (
    InvalidMessage,
    NotInitialized,
    SchemaError,
    StorageCloseError,
    StorageReadError,
    StorageUnavailable,
    StorageWriteError,
)
from sparkplug_queue.helpers.serialization import pack_payload
from sparkplug_queue.model import QueuedMessage

log = get_logger(__name__)

# sqlite limits the number of bound parameters per statement
DELETE_CHUNK_SIZE = 500

metadata = MetaData()

message_queue = Table(
    path.TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("topic", Text, nullable=False),
    Column("payload", Text, nullable=False),
    Column("qos", Integer, server_default=text("0")),
    Column("retain", Boolean, server_default=text("0")),
    Column("timestamp", DateTime, server_default=text("CURRENT_TIMESTAMP")),
    CheckConstraint("length(topic) > 0", name="topic_not_empty"),
    sqlite_autoincrement=True,
)

# backing files with an open handle in this process
_HANDLES: dict[str, "QueueStore"] = {}
_HANDLES_LOCK = threading.Lock()


class DrainBatch:
    """
    A batch of pending messages handed out by
    [QueueStore.drain][sparkplug_queue.storage.queue.QueueStore.drain].

    Only messages acknowledged via `ack()` are removed from the queue when the
    drain context exits.
    """

    def __init__(self, messages: list[QueuedMessage]) -> None:
        self.messages = messages
        self.acked: set[int] = set()
        self._ids = {m.id for m in messages}

    def ack(self, message: QueuedMessage | int) -> None:
        """Mark a message (or message id) of this batch as delivered"""
        message_id = message.id if isinstance(message, QueuedMessage) else message
        if message_id not in self._ids:
            raise ValueError(f"Message `{message_id}` is not part of this batch")
        self.acked.add(message_id)

    @property
    def pending(self) -> list[QueuedMessage]:
        return [m for m in self.messages if m.id not in self.acked]

    def __iter__(self) -> Iterator[QueuedMessage]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)


class QueueStore:
    """
    Durable, at-least-once message queue for one broker identity.

    Messages are stored in the `message_queue` table of a SQLite database file
    that is named after the broker identity, so re-opening the store with the
    same identity resumes the same queue. Messages are ordered by their
    store assigned (auto increment) id, never by timestamp.

    All operations are serialized by a per-store lock, so id assignment and
    deletions are race free across threads.

    Layout: {data_dir}/mqtt-sparkplug-queue-{broker_id}.db

    Example:
        ```python
        store = QueueStore("b1")
        store.initialize()
        store.enqueue("sensors/t1", {"v": 42}, qos=1)

        with store.drain() as batch:
            for message in batch:
                if publish(message):
                    batch.ack(message)

        store.close()
        ```
    """

    def __init__(
        self,
        broker_id: str,
        data_dir: str | Path | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.broker_id = path.check_broker_id(broker_id)
        self.data_dir = Path(data_dir or self.settings.data_dir)
        self.path = path.db_path(self.data_dir, self.broker_id)
        self.uri = path.db_uri(self.path)
        self._engine: Engine | None = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def initialize(self) -> Engine:
        """
        Open the backing database, creating the data directory, the database
        file and the `message_queue` table if they don't exist yet. Existing
        data is never dropped or altered. Calling it on an open store returns
        the current handle.

        Raises:
            StorageUnavailable: If the directory or database file can't be
                created or opened, or another handle in this process already
                owns the file
            SchemaError: If the table can't be created

        Returns:
            The SQLAlchemy engine for the backing database
        """
        with self._lock:
            if self._engine is not None:
                return self._engine

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageUnavailable(
                    f"Can't create data directory `{self.path.parent}`: {e}"
                ) from e

            key = str(self.path)
            with _HANDLES_LOCK:
                owner = _HANDLES.get(key)
                if owner is not None and owner is not self:
                    raise StorageUnavailable(
                        f"Queue `{key}` is already opened by another handle"
                    )
                _HANDLES[key] = self

            try:
                self._engine = self._open()
            except BaseException:
                with _HANDLES_LOCK:
                    _HANDLES.pop(key, None)
                raise

            log.info(
                "Opened message queue.", broker=self.broker_id, uri=str(self.uri)
            )
            return self._engine

    def _open(self) -> Engine:
        engine = create_engine(
            self.uri,
            echo=self.settings.echo,
            connect_args={"check_same_thread": False},
        )
        try:
            with engine.connect():
                pass
        except SQLAlchemyError as e:
            engine.dispose()
            raise StorageUnavailable(f"Can't open `{self.uri}`: {e}") from e
        try:
            metadata.create_all(engine, checkfirst=True)
        except SQLAlchemyError as e:
            engine.dispose()
            raise SchemaError(f"Can't create schema in `{self.uri}`: {e}") from e
        return engine

    def _ensure_open(self) -> Engine:
        if self._engine is None:
            raise NotInitialized(
                f"Queue for broker `{self.broker_id}` is not initialized"
            )
        return self._engine

    def _count(self, engine: Engine) -> int:
        try:
            with engine.connect() as conn:
                q = select(func.count()).select_from(message_queue)
                return conn.execute(q).scalar_one()
        except SQLAlchemyError as e:
            raise StorageReadError(f"Can't count messages: {e}") from e

    def length(self) -> int:
        """Number of pending messages, `0` if the store isn't initialized"""
        with self._lock:
            if self._engine is None:
                return 0
            return self._count(self._engine)

    def enqueue(
        self, topic: str, payload: Any, qos: int = 0, retain: bool = False
    ) -> int:
        """
        Durably append a message to the queue.

        Args:
            topic: Non-empty topic name
            payload: Any JSON-compatible value
            qos: Quality of service level (non-negative int)
            retain: Retain flag

        Raises:
            NotInitialized: If the store isn't open
            InvalidMessage: For an empty topic, invalid qos or a payload that
                isn't JSON serializable
            StorageWriteError: If the row couldn't be written. The message
                must then be considered as not stored.

        Returns:
            The id assigned to the new message
        """
        with self._lock:
            engine = self._ensure_open()
            if not isinstance(topic, str) or not topic:
                raise InvalidMessage("Topic must be a non-empty string")
            if isinstance(qos, bool) or not isinstance(qos, int) or qos < 0:
                raise InvalidMessage(f"Invalid qos: `{qos}`")
            data = pack_payload(payload)
            stmt = insert(message_queue).values(
                topic=topic, payload=data, qos=qos, retain=bool(retain)
            )
            try:
                with engine.begin() as conn:
                    res = conn.execute(stmt)
                    message_id = res.inserted_primary_key[0]
            except SQLAlchemyError as e:
                raise StorageWriteError(f"Can't enqueue message: {e}") from e
        log.debug(
            "Enqueued message.", broker=self.broker_id, id=message_id, topic=topic
        )
        return message_id

    def list_messages(self, limit: int | None = None) -> list[QueuedMessage]:
        """
        Get up to `limit` pending messages in FIFO order without removing
        them. A missing or non-positive `limit` uses `settings.default_limit`.

        Returns:
            Messages ordered by id, empty if the store isn't initialized
        """
        if not limit or limit <= 0:
            limit = self.settings.default_limit
        q = select(message_queue).order_by(message_queue.c.id).limit(limit)
        with self._lock:
            if self._engine is None:
                return []
            try:
                with self._engine.connect() as conn:
                    return [QueuedMessage.from_row(r) for r in conn.execute(q)]
            except SQLAlchemyError as e:
                raise StorageReadError(f"Can't read messages: {e}") from e

    def remove_oldest(self) -> None:
        """Remove the message with the smallest id, if any"""
        oldest = (
            select(func.min(message_queue.c.id)).correlate(None).scalar_subquery()
        )
        stmt = delete(message_queue).where(message_queue.c.id == oldest)
        with self._lock:
            deleted = self._delete(self._ensure_open(), stmt)
        log.debug("Removed oldest message.", broker=self.broker_id, count=deleted)

    def remove_by_id(self, message_id: int) -> None:
        """Remove the message with the given id, no-op if it doesn't exist"""
        stmt = delete(message_queue).where(message_queue.c.id == message_id)
        with self._lock:
            self._delete(self._ensure_open(), stmt)
        log.debug("Removed message.", broker=self.broker_id, id=message_id)

    def remove_by_ids(self, ids: Iterable[int]) -> None:
        """
        Remove all messages with the given ids in one transaction. Unknown ids
        are ignored, and it is a no-op for an uninitialized store.
        """
        ids = sorted(set(ids))
        with self._lock:
            if not ids or self._engine is None:
                return
            chunks = [
                ids[i : i + DELETE_CHUNK_SIZE]
                for i in range(0, len(ids), DELETE_CHUNK_SIZE)
            ]
            stmts = [
                delete(message_queue).where(message_queue.c.id.in_(chunk))
                for chunk in chunks
            ]
            deleted = self._delete(self._engine, *stmts)
        log.debug("Removed messages.", broker=self.broker_id, count=deleted)

    def _delete(self, engine: Engine, *stmts) -> int:
        deleted = 0
        try:
            with engine.begin() as conn:
                for stmt in stmts:
                    deleted += conn.execute(stmt).rowcount
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Can't remove messages: {e}") from e
        return deleted

    @contextmanager
    def drain(self, limit: int | None = None) -> Generator[DrainBatch, None, None]:
        """
        Fetch a batch of pending messages for a delivery attempt. Messages
        acknowledged via `batch.ack()` are removed when the context exits,
        even if the delivery loop raised. Everything else stays in the queue.

        Usage:
            with store.drain(limit=100) as batch:
                for message in batch:
                    if publish(message):
                        batch.ack(message)
        """
        batch = DrainBatch(self.list_messages(limit))
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
                self.remove_by_ids(batch.acked)

    def close(self) -> None:
        """
        Release the backing database. The store can be re-opened with
        `initialize()`.

        Raises:
            StorageCloseError: If releasing fails. The store is closed anyway.
        """
        with self._lock:
            engine = self._engine
            if engine is None:
                return
            self._engine = None
            with _HANDLES_LOCK:
                if _HANDLES.get(str(self.path)) is self:
                    del _HANDLES[str(self.path)]
            try:
                engine.dispose()
            except SQLAlchemyError as e:
                raise StorageCloseError(f"Can't close `{self.uri}`: {e}") from e
        log.info(
            "Closed message queue.", broker=self.broker_id, uri=str(self.uri)
        )

    def __len__(self) -> int:
        return self.length()

    def __enter__(self) -> "QueueStore":
        self.initialize()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.broker_id}, {self.uri})>"
