class QueueError(Exception):
    """Base error for all queue store failures"""


class ImproperlyConfigured(QueueError):
    pass


class NotInitialized(QueueError):
    """The store was used before `initialize()` or after `close()`"""


class InvalidMessage(QueueError, ValueError):
    pass


class StorageError(QueueError):
    """Underlying storage (file system or database) failure"""


class StorageUnavailable(StorageError):
    pass


class SchemaError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StorageReadError(StorageError):
    pass


class StorageCloseError(StorageError):
    pass
