"""
Error taxonomy for the store.

Every failure leaves the store as one of these; callers tell them apart by
type. The originating sqlite3/pydantic exception is chained as __cause__.
"""


class StoreError(Exception):
    """Base class for all store errors."""
    pass


class StoreConnectionError(StoreError):
    """Opening the database or applying its schema failed. Fatal."""
    pass


class StoreStateError(StoreError):
    """An operation was issued on a store that is not open."""
    pass


class NotFoundError(StoreError):
    """A single-row lookup matched nothing."""
    pass


class ConstraintError(StoreError):
    """Uniqueness, referential integrity or field validation violation."""
    pass


class SerializationError(StoreError):
    """A vector or stored column could not be encoded or decoded."""
    pass


class CancellationError(StoreError):
    """The caller's CancelToken fired before the operation finished."""
    pass


class StorageError(StoreError):
    """Engine-level failure (I/O, locking, corruption)."""
    pass
