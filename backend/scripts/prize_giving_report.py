"""CLI helper that prints the prize-giving sheet for a competition."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, List, Sequence

from catch_core import AllocationResult, BucketKey, allocate_all
from catch_core.loader import DataStore

UNITS = {"weight": "kg", "length": "cm"}


def _format_bucket(key: BucketKey, results: List[AllocationResult], unit: str) -> str:
    heading = f"Species {key.species_id}"
    if key.division_id is not None:
        heading += f" / division {key.division_id}"
    if key.category != "combined":
        heading += f" ({key.category})"
    lines = [heading]
    for result in results:
        slot = result.slot
        label = slot.label or f"Place {slot.rank}"
        sponsor = f" [{slot.sponsor_name}]" if slot.sponsor_name else ""
        if result.entry is None:
            winner = "-- unclaimed --"
        else:
            winner = f"{result.entry.competitor_name or result.entry.competitor_id} {result.entry.measurement_value:g}{unit}"
        lines.append(f"  {str(slot.rank).rjust(2)}. {label}{sponsor}: {winner}")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("competition_id")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    store = DataStore()
    try:
        loaded = store.load_competition_results(args.competition_id)
        competition = loaded["competition"]
        allocations: Dict[BucketKey, List[AllocationResult]] = allocate_all(
            loaded["entries"], loaded["slots"], competition["prizeMode"]
        )
    except (RuntimeError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    unit = UNITS[competition["measurementMode"]]
    print(f"{competition['name']} ({competition['measurementMode']}, {competition['prizeMode']})")
    for key, results in allocations.items():
        print()
        print(_format_bucket(key, results, unit))

    rejected = loaded["rejected"]
    if rejected:
        print()
        print(f"Rejected entries: {len(rejected)}")
        for item in rejected:
            print(f"  - {item.entry_id or '<no id>'} (row {item.index}): {item.reason}")

    return 1 if rejected else 0


if __name__ == "__main__":
    raise SystemExit(main())
