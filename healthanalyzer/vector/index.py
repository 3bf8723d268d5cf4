"""
Vector index over SQLite-persisted embeddings.

Embeddings live in the vec_embeddings table, tagged by the id of the record
they describe and a source type ("entry", "summary", ...). Search is exact:
the vectors of one source type are streamed out of SQLite in chunks, each
chunk is searched with a faiss flat L2 index and the per-chunk winners are
merged. Distances are squared Euclidean; smaller means more similar.
"""

import heapq
from typing import List, Optional, Tuple

import faiss
import numpy as np

from .codec import VectorLike, as_float32, deserialize_float32, serialize_float32
from ..core.cancel import CancelToken
from ..core.config import VECTOR_SEARCH_BATCH_SIZE
from ..core.dao import ENTRY_COLUMNS, entry_from_row
from ..core.db import ConnectionPool, guarded
from ..core.errors import ConstraintError
from ..core.schema import SimilarResult
from ..util.logging import logger

# (distance, vec_embeddings.id, source_id)
Candidate = Tuple[float, int, str]


class VectorIndex:
    """k-nearest-neighbour search over embeddings scoped by source type."""

    def __init__(self, pool: ConnectionPool, dimension: int,
                 batch_size: int = VECTOR_SEARCH_BATCH_SIZE):
        """
        Args:
            pool: Connection pool of the owning store
            dimension: Length every stored and query vector must have
            batch_size: Number of stored vectors scored per chunk
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._pool = pool
        self.dimension = dimension
        self.batch_size = batch_size

    def save_embedding(self, source_id: str, source_type: str, vector: VectorLike,
                       cancel: Optional[CancelToken] = None) -> int:
        """
        Persist a vector for a source record.

        Returns:
            Synthetic row id of the stored vector

        Raises:
            SerializationError: vector length differs from the index dimension
            ConstraintError: empty source id or source type
        """
        if not source_id or not source_type:
            raise ConstraintError("source_id and source_type are required")
        blob = serialize_float32(vector, self.dimension)

        with self._pool.connection() as conn, guarded(conn, cancel):
            cursor = conn.execute(
                "INSERT INTO vec_embeddings (source_id, source_type, embedding) VALUES (?, ?, ?)",
                (source_id, source_type, blob)
            )
            rowid = cursor.lastrowid

        logger.log_vector_operation("added", source_id, {
            "source_type": source_type,
            "dimension": self.dimension,
        })
        return rowid

    def _search_chunk(self, query: np.ndarray, rows: list, k: int) -> List[Candidate]:
        matrix = np.vstack([
            deserialize_float32(row["embedding"], self.dimension) for row in rows
        ]).astype(np.float32, copy=False)

        index = faiss.IndexFlatL2(self.dimension)
        index.add(matrix)
        distances, positions = index.search(query, min(k, len(rows)))

        candidates = []
        for distance, position in zip(distances[0], positions[0]):
            if position < 0:
                continue
            row = rows[position]
            candidates.append((max(0.0, float(distance)), row["id"], row["source_id"]))
        return candidates

    def search_similar(self, query_vector: VectorLike, source_type: str, k: int,
                       cancel: Optional[CancelToken] = None) -> List[SimilarResult]:
        """
        Find the entries whose embeddings are closest to a query.

        Only vectors tagged with exactly `source_type` and owned by an existing
        entry are considered. Equal distances resolve by insertion order.

        Args:
            query_vector: Vector of the index dimension
            source_type: Source type to search within
            k: Maximum number of results
            cancel: Optional cancellation token

        Returns:
            Up to k SimilarResults, closest first; empty when nothing matches

        Raises:
            SerializationError: query length differs from the index dimension
        """
        query = as_float32(query_vector, self.dimension).astype(np.float32, copy=False).reshape(1, -1)
        if k <= 0:
            if cancel is not None:
                cancel.raise_if_cancelled()
            return []

        with self._pool.connection() as conn, guarded(conn, cancel):
            cursor = conn.execute(
                """SELECT v.id, v.source_id, v.embedding
                   FROM vec_embeddings v
                   WHERE v.source_type = ?
                     AND EXISTS (SELECT 1 FROM entries e WHERE e.id = v.source_id)
                   ORDER BY v.id""",
                (source_type,)
            )

            best: List[Candidate] = []
            scanned = 0
            while True:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                rows = cursor.fetchmany(self.batch_size)
                if not rows:
                    break
                scanned += len(rows)
                best = heapq.nsmallest(k, best + self._search_chunk(query, rows, k))

            if not best:
                return []

            source_ids = list({source_id for _, _, source_id in best})
            placeholders = ",".join("?" * len(source_ids))
            entries = {
                row["id"]: entry_from_row(row)
                for row in conn.execute(
                    f"SELECT {ENTRY_COLUMNS} FROM entries WHERE id IN ({placeholders})",
                    source_ids
                )
            }

        results = [
            SimilarResult(entry=entries[source_id], distance=distance)
            for distance, _, source_id in best
            if source_id in entries
        ]

        logger.log_vector_operation("search", source_type, {
            "k": k,
            "scanned": scanned,
            "returned": len(results),
        })
        return results
