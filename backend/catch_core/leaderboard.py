"""Leaderboard views built from normalised entries.

These ignore divisions, categories and prize configuration entirely, so a
species leader here may differ from the winner of a divisional prize.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Optional, Union

from .entry import CatchEntry, id_sort_key
from .ranking import rank


def _check_limit(n: int) -> None:
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise ValueError(f"Leaderboard size must be a non-negative integer, got {n!r}")


def top_overall(entries: Iterable[CatchEntry], n: int) -> List[CatchEntry]:
    _check_limit(n)
    return rank(entries)[:n]


def top_per_species(entries: Iterable[CatchEntry], n: int) -> Dict[Optional[str], List[CatchEntry]]:
    _check_limit(n)
    by_species: Dict[Optional[str], List[CatchEntry]] = {}
    for entry in entries:
        by_species.setdefault(entry.species_id, []).append(entry)
    return {
        species_id: rank(by_species[species_id])[:n]
        for species_id in sorted(by_species, key=id_sort_key)
    }


def _date_key(entry: CatchEntry) -> str:
    if entry.submitted_at is None:
        return ""
    return entry.submitted_at.date().isoformat()


def competition_days(entries: Iterable[CatchEntry]) -> List[str]:
    return sorted({key for key in (_date_key(entry) for entry in entries) if key})


def entries_on_day(entries: Iterable[CatchEntry], day: Union[int, str, dt.date]) -> List[CatchEntry]:
    """Restrict entries to one competition day.

    An ``int`` matches the competition day number carried on the row; a date
    (or ISO date string) matches the calendar date of the submission time
    in the offset it was recorded with.
    """

    if isinstance(day, bool):
        raise ValueError(f"Invalid day filter {day!r}")
    if isinstance(day, int):
        return [entry for entry in entries if entry.day == day]
    if isinstance(day, dt.datetime):
        wanted = day.date().isoformat()
    elif isinstance(day, dt.date):
        wanted = day.isoformat()
    else:
        try:
            wanted = dt.date.fromisoformat(str(day).strip()).isoformat()
        except ValueError as exc:
            raise ValueError(f"Invalid day filter {day!r}") from exc
    return [entry for entry in entries if _date_key(entry) == wanted]
