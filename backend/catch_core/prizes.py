from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .entry import (
    CATEGORIES,
    COMBINED,
    OUTCOMES,
    CatchEntry,
    canonical_id,
    validate_measurement_mode,
    validate_prize_mode,
)
from .ranking import BucketKey, bucket_sort_key, partition, rank_buckets

AWARD_RULES = ("ranked", "first")
OUTCOME_FILTERS = ("any",) + OUTCOMES

_MINIMUM_FIELDS = {"weight": "min_weight_kg", "length": "min_length_cm"}


@dataclass(frozen=True)
class PrizeSlot:
    """A configured prize placing for one species/division/category.

    ``label`` and ``sponsor_name`` are display payload and are never read by
    the allocator. The optional qualification fields narrow which entries may
    take the slot; with their defaults a slot simply takes placing ``rank``.
    """

    species_id: Optional[str]
    division_id: Optional[str]
    category: str
    rank: int
    label: str = ""
    sponsor_name: str = ""
    outcome_filter: str = "any"
    min_value: Optional[float] = None
    award_rule: str = "ranked"
    sort_order: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "species_id", canonical_id(self.species_id))
        object.__setattr__(self, "division_id", canonical_id(self.division_id))
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown prize category {self.category!r}; expected one of {', '.join(CATEGORIES)}")
        if isinstance(self.rank, bool) or not isinstance(self.rank, int) or self.rank < 1:
            raise ValueError(f"Prize rank must be a positive integer, got {self.rank!r}")
        if self.outcome_filter not in OUTCOME_FILTERS:
            raise ValueError(f"Unknown outcome filter {self.outcome_filter!r}")
        if self.award_rule not in AWARD_RULES:
            raise ValueError(f"Unknown award rule {self.award_rule!r}")

    @property
    def key(self) -> BucketKey:
        return BucketKey(self.species_id, self.division_id, self.category)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], measurement_mode: Optional[str] = None) -> "PrizeSlot":
        """Build a slot from a prize configuration row.

        Prize rows may carry both a kilogram and a centimetre minimum; only the
        one matching ``measurement_mode`` applies. A generic ``min_value`` is
        taken as already being in the competition's unit.
        """

        rank_raw = row.get("rank", row.get("place"))
        try:
            rank_value = int(rank_raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid prize rank {rank_raw!r}") from exc

        min_raw = row.get("min_value")
        if min_raw is None:
            if measurement_mode is not None:
                min_raw = row.get(_MINIMUM_FIELDS[validate_measurement_mode(measurement_mode)])
            elif any(row.get(field) not in (None, "") for field in _MINIMUM_FIELDS.values()):
                raise ValueError("a measurement mode is required to read prize minimums")
        try:
            min_value = float(min_raw) if min_raw not in (None, "") else None
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid prize minimum {min_raw!r}") from exc

        return cls(
            species_id=row.get("species_id"),
            division_id=row.get("division_id"),
            category=row.get("category") or COMBINED,
            rank=rank_value,
            label=str(row.get("label") or ""),
            sponsor_name=str(row.get("sponsor_name") or row.get("sponsor") or ""),
            outcome_filter=row.get("outcome_filter") or "any",
            min_value=min_value,
            award_rule=row.get("award_rule") or "ranked",
            sort_order=int(row.get("sort_order") or 0),
        )

    def qualifies(self, entry: CatchEntry) -> bool:
        if self.outcome_filter != "any" and entry.outcome != self.outcome_filter:
            return False
        if self.min_value is not None and entry.measurement_value < self.min_value:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speciesId": self.species_id,
            "divisionId": self.division_id,
            "category": self.category,
            "rank": self.rank,
            "label": self.label,
            "sponsorName": self.sponsor_name,
        }


@dataclass(frozen=True)
class AllocationResult:
    slot: PrizeSlot
    entry: Optional[CatchEntry]

    @property
    def filled(self) -> bool:
        return self.entry is not None


def _first_catch_key(entry: CatchEntry):
    if entry.submitted_at is None:
        return (1, 0.0, -entry.measurement_value, entry.entry_id)
    return (0, entry.submitted_at.timestamp(), -entry.measurement_value, entry.entry_id)


def _candidates(ranked_bucket: Sequence[CatchEntry], slot: PrizeSlot) -> Sequence[CatchEntry]:
    if slot.outcome_filter == "any" and slot.min_value is None:
        candidates: Sequence[CatchEntry] = ranked_bucket
    else:
        candidates = [entry for entry in ranked_bucket if slot.qualifies(entry)]
    if slot.award_rule == "first":
        candidates = sorted(candidates, key=_first_catch_key)
    return candidates


def allocate(ranked_bucket: Sequence[CatchEntry], slots: Iterable[PrizeSlot]) -> List[AllocationResult]:
    """Match prize slots against an already-ranked bucket.

    Every slot yields exactly one result, ascending by rank; a placing with no
    qualifying entry yields ``entry=None``. Placings without a slot are not
    reported.
    """

    results: List[AllocationResult] = []
    for slot in sorted(slots, key=lambda s: (s.rank, s.sort_order)):
        candidates = _candidates(ranked_bucket, slot)
        entry = candidates[slot.rank - 1] if slot.rank <= len(candidates) else None
        results.append(AllocationResult(slot=slot, entry=entry))
    return results


def allocate_all(
    entries: Iterable[CatchEntry], slots: Iterable[PrizeSlot], prize_mode: str
) -> Dict[BucketKey, List[AllocationResult]]:
    validate_prize_mode(prize_mode)

    slots_by_key: Dict[BucketKey, List[PrizeSlot]] = {}
    for slot in slots:
        if prize_mode == COMBINED and slot.category != COMBINED:
            raise ValueError(f"Prize slot category {slot.category!r} is not valid in combined mode")
        if prize_mode != COMBINED and slot.category == COMBINED:
            raise ValueError("Prize slot category 'combined' is not valid in split mode")
        slots_by_key.setdefault(slot.key, []).append(slot)

    ranked = rank_buckets(partition(entries, prize_mode))
    return {
        key: allocate(ranked.get(key, []), slots_by_key[key])
        for key in sorted(slots_by_key, key=bucket_sort_key)
    }
