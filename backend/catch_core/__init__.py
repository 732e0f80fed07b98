"""Prize ranking and allocation engine for fishing competitions."""

from .entry import CatchEntry, RejectedEntry, normalize
from .ranking import BucketKey, partition, rank, rank_buckets
from .prizes import AllocationResult, PrizeSlot, allocate, allocate_all
from .leaderboard import competition_days, entries_on_day, top_overall, top_per_species
from .loader import DataStore

__all__ = [
    "CatchEntry",
    "RejectedEntry",
    "normalize",
    "BucketKey",
    "partition",
    "rank",
    "rank_buckets",
    "AllocationResult",
    "PrizeSlot",
    "allocate",
    "allocate_all",
    "competition_days",
    "entries_on_day",
    "top_overall",
    "top_per_species",
    "DataStore",
]
