"""
Vector index: float32 embedding codec and source-type scoped k-NN search.
"""

# Package initialization for vector module
from .codec import as_float32, serialize_float32, deserialize_float32
from .index import VectorIndex

__all__ = [
    'as_float32',
    'serialize_float32',
    'deserialize_float32',
    'VectorIndex',
]
