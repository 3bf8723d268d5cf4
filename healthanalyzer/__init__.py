"""
Persistent store for health entries, findings, summaries and metrics with
a vector similarity index for hybrid temporal and semantic retrieval.
"""

from .categories import CategoryRegistry
from .core.cancel import CancelToken
from .core.config import VERSION as __version__
from .core.errors import (
    CancellationError,
    ConstraintError,
    NotFoundError,
    SerializationError,
    StorageError,
    StoreConnectionError,
    StoreError,
    StoreStateError,
)
from .core.schema import Entry, Finding, Metric, SimilarResult, Summary
from .store import IStore, Store, StoreState, open_store

__all__ = [
    'CategoryRegistry',
    'CancelToken',
    'CancellationError',
    'ConstraintError',
    'NotFoundError',
    'SerializationError',
    'StorageError',
    'StoreConnectionError',
    'StoreError',
    'StoreStateError',
    'Entry',
    'Finding',
    'Metric',
    'SimilarResult',
    'Summary',
    'IStore',
    'Store',
    'StoreState',
    'open_store',
]
