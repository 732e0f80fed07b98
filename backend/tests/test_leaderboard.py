from __future__ import annotations

import datetime as dt
from typing import Any, Optional

import pytest

from catch_core import (
    BucketKey,
    CatchEntry,
    PrizeSlot,
    allocate_all,
    competition_days,
    entries_on_day,
    top_overall,
    top_per_species,
)


def _entry(
    entry_id: str,
    value: float,
    submitted_at: Optional[dt.datetime] = None,
    species_id: Any = 1,
    division_id: Optional[str] = None,
    day: Optional[int] = None,
) -> CatchEntry:
    return CatchEntry(
        entry_id=entry_id,
        competitor_id=f"angler-{entry_id}",
        competitor_name=entry_id,
        competitor_category="adult",
        species_id=species_id,
        division_id=division_id,
        measurement_value=value,
        submitted_at=submitted_at,
        day=day,
    )


def _at(day: int, hour: int) -> dt.datetime:
    return dt.datetime(2025, 1, day, hour, 0, tzinfo=dt.timezone.utc)


def test_top_overall_spans_species_and_truncates() -> None:
    entries = [
        _entry("snapper", 4.0, _at(11, 9), species_id=1),
        _entry("kingfish", 12.0, _at(11, 10), species_id=2),
        _entry("gurnard", 0.8, _at(11, 11), species_id=3),
    ]

    assert [entry.entry_id for entry in top_overall(entries, 2)] == ["kingfish", "snapper"]
    assert len(top_overall(entries, 10)) == 3
    assert top_overall(entries, 0) == []


def test_top_per_species_ranks_each_species() -> None:
    entries = [
        _entry("s1", 4.0, _at(11, 9), species_id=1),
        _entry("s2", 5.0, _at(11, 9), species_id=1),
        _entry("s3", 1.0, _at(11, 9), species_id=1),
        _entry("k1", 12.0, _at(11, 10), species_id=2),
    ]

    leaders = top_per_species(entries, 2)

    assert list(leaders) == ["1", "2"]
    assert [entry.entry_id for entry in leaders["1"]] == ["s2", "s1"]
    assert [entry.entry_id for entry in leaders["2"]] == ["k1"]


def test_species_leaderboard_ignores_divisions() -> None:
    trailer = _entry("trailer", 5.0, _at(11, 10), division_id="trailer")
    kayak = _entry("kayak", 5.0, _at(11, 9), division_id="kayak")

    leaders = top_per_species([trailer, kayak], 5)
    allocations = allocate_all(
        [trailer, kayak],
        [
            PrizeSlot(species_id=1, division_id="trailer", category="combined", rank=1),
            PrizeSlot(species_id=1, division_id="kayak", category="combined", rank=1),
        ],
        "combined",
    )

    assert leaders["1"] == [kayak, trailer]
    assert allocations[BucketKey("1", "trailer", "combined")][0].entry == trailer
    assert allocations[BucketKey("1", "kayak", "combined")][0].entry == kayak


@pytest.mark.parametrize("n", [-1, 2.5, True])
def test_invalid_leaderboard_size_raises(n) -> None:
    with pytest.raises(ValueError):
        top_overall([], n)
    with pytest.raises(ValueError):
        top_per_species([], n)


def test_entries_on_day_by_date_and_day_number() -> None:
    entries = [
        _entry("sat", 1.0, _at(11, 9), day=1),
        _entry("sun", 2.0, _at(12, 9), day=2),
        _entry("unknown", 3.0, None, day=None),
    ]

    assert [entry.entry_id for entry in entries_on_day(entries, "2025-01-12")] == ["sun"]
    assert [entry.entry_id for entry in entries_on_day(entries, dt.date(2025, 1, 11))] == ["sat"]
    assert [entry.entry_id for entry in entries_on_day(entries, 2)] == ["sun"]
    assert competition_days(entries) == ["2025-01-11", "2025-01-12"]


def test_entries_on_day_rejects_garbage() -> None:
    with pytest.raises(ValueError, match="Invalid day filter"):
        entries_on_day([], "next tuesday")


def test_numeric_species_ids_sort_by_value() -> None:
    entries = [
        _entry("ten", 1.0, _at(11, 9), species_id=10),
        _entry("two", 1.0, _at(11, 9), species_id=2),
        _entry("one", 1.0, _at(11, 9), species_id=1),
    ]

    assert list(top_per_species(entries, 1)) == ["1", "2", "10"]


def test_day_follows_recorded_offset() -> None:
    auckland = dt.timezone(dt.timedelta(hours=13))
    dawn = _entry("dawn", 2.0, dt.datetime(2025, 1, 12, 7, 0, tzinfo=auckland))

    assert competition_days([dawn]) == ["2025-01-12"]
    assert entries_on_day([dawn], "2025-01-12") == [dawn]
    assert entries_on_day([dawn], "2025-01-11") == []
