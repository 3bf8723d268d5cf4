"""
Vector index tests: dimension checks, nearest-neighbour ordering and
source-type isolation.
"""

import math
import sqlite3
from datetime import date

import numpy as np
import pytest

from healthanalyzer import Entry, SerializationError, Store
from healthanalyzer.vector import serialize_float32

DIM = 1536


def make_vec(val, dim=DIM):
    """Constant vector with a small positional ripple so dimensions differ."""
    v = np.full(dim, val, dtype=np.float32)
    v += (np.sin(np.arange(dim) * 0.01) * 0.001).astype(np.float32)
    return v


@pytest.fixture
def entries(store):
    store.save_entry(Entry(id="e1", date=date(2026, 2, 28), category="sleep",
                           input_text="slept badly", analysis_text="Poor sleep"))
    store.save_entry(Entry(id="e2", date=date(2026, 2, 27), category="sleep",
                           input_text="slept well", analysis_text="Good sleep"))
    store.save_entry(Entry(id="e3", date=date(2026, 2, 26), category="food",
                           input_text="ate pasta", analysis_text="Carb heavy"))
    return store


def test_save_and_search_embeddings(entries):
    store = entries
    store.save_embedding("e1", "entry", make_vec(0.1))
    store.save_embedding("e2", "entry", make_vec(0.2))
    store.save_embedding("e3", "entry", make_vec(0.9))

    results = store.search_similar(make_vec(0.11), "entry", 2)

    assert len(results) == 2
    assert results[0].entry.id == "e1"
    assert results[0].entry.input_text == "slept badly"
    assert results[1].entry.id == "e2"
    assert results[0].distance < results[1].distance


def test_results_are_in_non_decreasing_distance_order(entries):
    store = entries
    for entry_id, val in [("e3", 0.9), ("e1", 0.1), ("e2", 0.2)]:
        store.save_embedding(entry_id, "entry", make_vec(val))

    results = store.search_similar(make_vec(0.0), "entry", 10)

    assert [r.entry.id for r in results] == ["e1", "e2", "e3"]
    distances = [r.distance for r in results]
    assert distances == sorted(distances)
    assert all(d >= 0 for d in distances)


def test_distance_is_squared_euclidean(entries):
    store = entries
    store.save_embedding("e1", "entry", make_vec(0.5))

    result = store.search_similar(make_vec(0.25), "entry", 1)[0]

    assert result.distance == pytest.approx(DIM * 0.25 ** 2, rel=1e-3)


def test_fewer_matches_than_k_returns_all(entries):
    store = entries
    store.save_embedding("e1", "entry", make_vec(0.1))

    assert len(store.search_similar(make_vec(0.1), "entry", 5)) == 1


def test_search_filters_by_source_type(entries):
    """Test that a different source type never sees entry vectors."""
    store = entries
    store.save_embedding("e1", "entry", make_vec(0.5))

    assert store.search_similar(make_vec(0.5), "summary", 5) == []


def test_search_never_returns_other_source_types(entries):
    store = entries
    store.save_embedding("e1", "entry", make_vec(0.1))
    store.save_embedding("e2", "note", make_vec(0.1))
    store.save_embedding("e3", "entry", make_vec(0.9))

    results = store.search_similar(make_vec(0.1), "entry", 10)

    assert [r.entry.id for r in results] == ["e1", "e3"]


def test_search_with_no_embeddings_is_empty(store):
    assert store.search_similar(make_vec(0.1), "entry", 3) == []


@pytest.mark.parametrize("k", [0, -3])
def test_non_positive_k_returns_nothing(entries, k):
    entries.save_embedding("e1", "entry", make_vec(0.1))

    assert entries.search_similar(make_vec(0.1), "entry", k) == []


def test_vectors_without_an_entry_are_skipped(entries):
    store = entries
    store.save_embedding("orphan", "entry", make_vec(0.1))
    store.save_embedding("e2", "entry", make_vec(0.5))

    results = store.search_similar(make_vec(0.1), "entry", 1)

    assert [r.entry.id for r in results] == ["e2"]


def test_equal_distances_keep_insertion_order(entries):
    store = entries
    store.save_embedding("e2", "entry", make_vec(0.3))
    store.save_embedding("e1", "entry", make_vec(0.3))

    results = store.search_similar(make_vec(0.3), "entry", 2)

    assert [r.entry.id for r in results] == ["e2", "e1"]


def test_chunked_scan_matches_single_pass(db_path):
    """Test that small search batches merge to the same top-k."""
    values = [0.05 * i for i in range(12)]
    rankings = []
    for batch_size in (1, 5, 1024):
        path = f"{db_path}.{batch_size}"
        with Store(path, search_batch_size=batch_size) as store:
            for i, val in enumerate(values):
                store.save_entry(Entry(id=f"e{i}", date=date(2026, 2, 1), category="sleep", input_text="x"))
                store.save_embedding(f"e{i}", "entry", make_vec(val))
            rankings.append([r.entry.id for r in store.search_similar(make_vec(0.31), "entry", 4)])

    assert rankings[0] == rankings[1] == rankings[2] == ["e6", "e7", "e5", "e8"]


@pytest.mark.parametrize("length", [DIM - 1, DIM + 1, 0])
def test_wrong_dimension_on_save_is_serialization_error(entries, length):
    with pytest.raises(SerializationError):
        entries.save_embedding("e1", "entry", [0.1] * length)

    assert entries.search_similar(make_vec(0.1), "entry", 5) == []


def test_wrong_dimension_on_search_is_serialization_error(entries):
    with pytest.raises(SerializationError):
        entries.search_similar([0.1] * 3, "entry", 5)


def test_non_finite_vector_is_serialization_error(entries):
    vec = make_vec(0.1)
    vec[7] = math.nan

    with pytest.raises(SerializationError):
        entries.save_embedding("e1", "entry", vec)


def test_embedding_can_be_a_plain_list(entries):
    entries.save_embedding("e1", "entry", [0.2] * DIM)

    results = entries.search_similar([0.2] * DIM, "entry", 1)

    assert results[0].entry.id == "e1"
    assert results[0].distance == pytest.approx(0.0, abs=1e-6)


def test_small_dimension_store(tmp_path):
    with Store(str(tmp_path / "small.db"), embedding_dimension=3) as store:
        store.save_entry(Entry(id="a", date=date(2026, 2, 1), category="sleep", input_text="x"))
        store.save_entry(Entry(id="b", date=date(2026, 2, 2), category="sleep", input_text="y"))
        store.save_embedding("a", "entry", [1.0, 0.0, 0.0])
        store.save_embedding("b", "entry", [0.0, 1.0, 0.0])

        results = store.search_similar([0.9, 0.1, 0.0], "entry", 2)

    assert [r.entry.id for r in results] == ["a", "b"]
    assert results[0].distance == pytest.approx(0.02, abs=1e-6)


def test_stored_blob_uses_float32_codec(tmp_path):
    path = str(tmp_path / "blob.db")
    with Store(path, embedding_dimension=3) as store:
        store.save_entry(Entry(id="e1", date=date(2026, 2, 28), category="sleep", input_text="x"))
        store.save_embedding("e1", "entry", [0.5, -1.25, 2.0])

    conn = sqlite3.connect(path)
    try:
        blob = conn.execute("SELECT embedding FROM vec_embeddings").fetchone()[0]
    finally:
        conn.close()

    assert blob == serialize_float32([0.5, -1.25, 2.0], 3)
