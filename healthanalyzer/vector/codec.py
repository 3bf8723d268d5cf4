"""
Embedding codec.

Vectors are stored as fixed-length little-endian float32 arrays. A vector of
any other length is rejected rather than truncated or padded.
"""

from typing import Sequence, Union

import numpy as np

from ..core.errors import SerializationError

VectorLike = Union[Sequence[float], np.ndarray]

FLOAT32_LE = np.dtype('<f4')


def as_float32(vector: VectorLike, dimension: int) -> np.ndarray:
    """
    Convert a vector to a contiguous float32 array of the expected dimension.

    Raises:
        SerializationError: wrong shape, wrong length, non-numeric or non-finite values
    """
    try:
        array = np.asarray(vector, dtype=FLOAT32_LE)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"vector is not numeric: {e}") from e

    if array.ndim != 1:
        raise SerializationError(f"vector must be one-dimensional, got shape {array.shape}")
    if array.shape[0] != dimension:
        raise SerializationError(
            f"Vector dimension {array.shape[0]} does not match expected dimension {dimension}"
        )
    if not np.all(np.isfinite(array)):
        raise SerializationError("vector contains NaN or infinite values")

    return np.ascontiguousarray(array)


def serialize_float32(vector: VectorLike, dimension: int) -> bytes:
    """Encode a vector as dimension * 4 little-endian float32 bytes."""
    return as_float32(vector, dimension).tobytes()


def deserialize_float32(blob: bytes, dimension: int) -> np.ndarray:
    """Decode a stored blob back into a float32 vector."""
    if blob is None or len(blob) != dimension * FLOAT32_LE.itemsize:
        size = 0 if blob is None else len(blob)
        raise SerializationError(
            f"stored vector has {size} bytes, expected {dimension * FLOAT32_LE.itemsize}"
        )
    return np.frombuffer(blob, dtype=FLOAT32_LE)
