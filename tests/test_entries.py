"""
Entry persistence tests: round-trip, generated ids, range filtering and ordering.
"""

from datetime import date, datetime, timezone

import pytest

from healthanalyzer import ConstraintError, Entry, NotFoundError


def test_save_and_get_entry_by_id(store):
    """Test that every caller-supplied field survives a round trip."""
    entry = Entry(
        id="entry-1",
        date=date(2026, 2, 28),
        category="sleep",
        input_text="Slept 7 hours, woke up once",
        analysis_text="Adequate sleep duration with one interruption.",
    )

    store.save_entry(entry)
    got = store.get_entry_by_id("entry-1")

    assert got.id == entry.id
    assert got.date == entry.date
    assert got.category == entry.category
    assert got.input_text == entry.input_text
    assert got.analysis_text == entry.analysis_text
    assert got.created_at is not None
    assert got.created_at.tzinfo is not None


def test_save_entry_generates_id_and_timestamp(store):
    saved = store.save_entry(Entry(date=date(2026, 2, 28), category="sleep", input_text="Slept well"))

    assert saved.id
    assert saved.created_at is not None

    entries = store.get_entries_by_date_range("sleep", date(2026, 2, 28), date(2026, 2, 28))
    assert len(entries) == 1
    assert entries[0].id == saved.id


def test_generated_ids_are_unique(store):
    ids = {
        store.save_entry(Entry(date=date(2026, 2, 28), category="sleep", input_text=f"night {i}")).id
        for i in range(20)
    }
    assert len(ids) == 20


def test_supplied_created_at_is_preserved(store):
    created = datetime(2026, 2, 28, 7, 30, tzinfo=timezone.utc)
    store.save_entry(Entry(id="e1", date=date(2026, 2, 28), category="sleep",
                           input_text="slept", created_at=created))

    assert store.get_entry_by_id("e1").created_at == created


def test_naive_created_at_is_taken_as_utc(store):
    saved = store.save_entry(Entry(id="e1", date=date(2026, 2, 28), category="sleep",
                                   input_text="slept", created_at=datetime(2026, 2, 28, 7, 30)))

    assert saved.created_at == datetime(2026, 2, 28, 7, 30, tzinfo=timezone.utc)
    assert store.get_entry_by_id("e1").created_at == saved.created_at


def test_duplicate_entry_id_is_constraint_error(store):
    """Test that re-saving an id never overwrites the stored row."""
    store.save_entry(Entry(id="e1", date=date(2026, 2, 28), category="sleep", input_text="first"))

    with pytest.raises(ConstraintError):
        store.save_entry(Entry(id="e1", date=date(2026, 2, 27), category="food", input_text="second"))

    assert store.get_entry_by_id("e1").input_text == "first"


def test_get_entries_by_date_range(store):
    entries = [
        Entry(id="e1", date=date(2026, 2, 25), category="sleep", input_text="day 1"),
        Entry(id="e2", date=date(2026, 2, 26), category="sleep", input_text="day 2"),
        Entry(id="e3", date=date(2026, 2, 27), category="sleep", input_text="day 3"),
        Entry(id="e4", date=date(2026, 2, 27), category="food", input_text="food day 3"),
        Entry(id="e5", date=date(2026, 2, 28), category="sleep", input_text="day 4"),
    ]
    for e in entries:
        store.save_entry(e)

    got = store.get_entries_by_date_range("sleep", date(2026, 2, 26), date(2026, 2, 27))

    assert [e.id for e in got] == ["e3", "e2"]  # most recent first


def test_get_entries_excludes_other_categories(store):
    store.save_entry(Entry(id="e1", date=date(2026, 2, 27), category="sleep", input_text="sleep"))
    store.save_entry(Entry(id="e2", date=date(2026, 2, 27), category="food", input_text="food"))

    got = store.get_entries_by_date_range("food", date(2026, 2, 27), date(2026, 2, 27))

    assert [e.id for e in got] == ["e2"]


def test_category_match_is_exact(store):
    store.save_entry(Entry(id="e1", date=date(2026, 2, 27), category="Sleep", input_text="x"))
    store.save_entry(Entry(id="e2", date=date(2026, 2, 27), category="sleep-extra", input_text="y"))

    assert store.get_entries_by_date_range("sleep", date(2026, 2, 1), date(2026, 2, 28)) == []


def test_equal_dates_return_newest_insertion_first(store):
    for entry_id in ["b", "a", "c"]:
        store.save_entry(Entry(id=entry_id, date=date(2026, 2, 27), category="sleep", input_text=entry_id))

    got = store.get_entries_by_date_range("sleep", date(2026, 2, 27), date(2026, 2, 27))

    assert [e.id for e in got] == ["c", "a", "b"]


def test_empty_and_inverted_ranges_return_nothing(store):
    store.save_entry(Entry(id="e1", date=date(2026, 2, 27), category="sleep", input_text="x"))

    assert store.get_entries_by_date_range("sleep", date(2026, 3, 1), date(2026, 3, 31)) == []
    assert store.get_entries_by_date_range("sleep", date(2026, 2, 28), date(2026, 2, 1)) == []


def test_date_bounds_accept_iso_strings(store):
    store.save_entry(Entry(id="e1", date=date(2026, 2, 27), category="sleep", input_text="x"))

    got = store.get_entries_by_date_range("sleep", "2026-02-27", "2026-02-27")

    assert [e.id for e in got] == ["e1"]


def test_malformed_date_bound_is_constraint_error(store):
    with pytest.raises(ConstraintError):
        store.get_entries_by_date_range("sleep", "27/02/2026", "2026-02-28")


def test_get_entry_by_id_not_found(store):
    with pytest.raises(NotFoundError):
        store.get_entry_by_id("nonexistent")


@pytest.mark.parametrize("field,value", [("category", ""), ("category", "   "), ("id", " ")])
def test_blank_required_fields_are_rejected(store, field, value):
    entry = Entry(id="e1", date=date(2026, 2, 27), category="sleep", input_text="x")
    setattr(entry, field, value)

    with pytest.raises(ConstraintError):
        store.save_entry(entry)
