from __future__ import annotations

from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .entry import COMBINED, CatchEntry, id_sort_key, validate_prize_mode


class BucketKey(NamedTuple):
    species_id: Optional[str]
    division_id: Optional[str]
    category: str


def rank_key(entry: CatchEntry) -> Tuple[float, int, float, str]:
    """Sort key giving a strict total order over entries.

    Largest measurement first, then earliest submission (missing timestamps
    last), then ``entry_id`` ascending.
    """

    if entry.submitted_at is None:
        return (-entry.measurement_value, 1, 0.0, entry.entry_id)
    return (-entry.measurement_value, 0, entry.submitted_at.timestamp(), entry.entry_id)


def bucket_sort_key(key: BucketKey) -> Tuple[Tuple[int, int, str], Tuple[int, int, str], str]:
    """Presentation order for bucket keys: numeric ids by value, no division first."""

    return (id_sort_key(key.species_id), id_sort_key(key.division_id), key.category)


def rank(bucket: Iterable[CatchEntry]) -> List[CatchEntry]:
    return sorted(bucket, key=rank_key)


def partition(entries: Iterable[CatchEntry], mode: str) -> Dict[BucketKey, List[CatchEntry]]:
    """Group entries into ranking buckets.

    In ``combined`` mode adults and juniors share a bucket; in ``split`` mode
    they are separated. A ``None`` division is its own bucket.
    """

    validate_prize_mode(mode)
    buckets: Dict[BucketKey, List[CatchEntry]] = {}
    for entry in entries:
        category = COMBINED if mode == COMBINED else entry.competitor_category
        key = BucketKey(entry.species_id, entry.division_id, category)
        buckets.setdefault(key, []).append(entry)
    return buckets


def rank_buckets(buckets: Dict[BucketKey, Sequence[CatchEntry]]) -> Dict[BucketKey, List[CatchEntry]]:
    return {key: rank(buckets[key]) for key in sorted(buckets, key=bucket_sort_key)}
