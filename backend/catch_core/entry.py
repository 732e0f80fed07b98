from __future__ import annotations

import datetime as dt
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

MEASUREMENT_MODES = ("weight", "length")
PRIZE_MODES = ("combined", "split")

ADULT = "adult"
JUNIOR = "junior"
COMBINED = "combined"
CATEGORIES = (COMBINED, ADULT, JUNIOR)

OUTCOMES = ("landed", "tagged_released")

# Rejection reason codes
MISSING_SPECIES = "missing_species"
MISSING_COMPETITOR = "missing_competitor"
INVALID_MEASUREMENT = "invalid_measurement"

_MEASUREMENT_FIELDS = {"weight": "weight_kg", "length": "length_cm"}

_FRACTION = re.compile(r"(?<=\d)\.(\d+)")


def validate_measurement_mode(mode: Any) -> str:
    if mode not in MEASUREMENT_MODES:
        raise ValueError(f"Unknown measurement mode {mode!r}; expected one of {', '.join(MEASUREMENT_MODES)}")
    return mode


def validate_prize_mode(mode: Any) -> str:
    if mode not in PRIZE_MODES:
        raise ValueError(f"Unknown prize mode {mode!r}; expected one of {', '.join(PRIZE_MODES)}")
    return mode


@dataclass(frozen=True)
class CatchEntry:
    """A single catch, normalised for ranking.

    ``measurement_value`` holds either kilograms or centimetres depending on
    the competition's measurement mode. ``submitted_at`` is ``None`` when the
    source row had no usable timestamp; such entries lose every time tie-break.
    """

    entry_id: str
    competitor_id: str
    competitor_name: str
    competitor_category: str
    species_id: Optional[str]
    division_id: Optional[str]
    measurement_value: float
    submitted_at: Optional[dt.datetime] = None
    outcome: Optional[str] = None
    species_name: str = ""
    day: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "species_id", canonical_id(self.species_id))
        object.__setattr__(self, "division_id", canonical_id(self.division_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "competitorId": self.competitor_id,
            "competitorName": self.competitor_name,
            "competitorCategory": self.competitor_category,
            "speciesId": self.species_id,
            "speciesName": self.species_name,
            "divisionId": self.division_id,
            "measurementValue": self.measurement_value,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "outcome": self.outcome,
            "day": self.day,
        }


@dataclass(frozen=True)
class RejectedEntry:
    index: int
    entry_id: Optional[str]
    reason: str
    raw: Mapping[str, Any]


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """Parse an ISO-8601 instant, returning ``None`` when it cannot be read.

    Naive values are taken to be UTC so every parsed instant is comparable.
    """

    if value is None:
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only reads 3 or 6 fractional digits
        text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def _coerce_measurement(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def canonical_id(value: Any) -> Optional[str]:
    """Ids are compared as stripped strings so 7 and "7" name the same species."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def id_sort_key(value: Any) -> Tuple[int, int, str]:
    """Order ids with ``None`` first, then numeric ids by value, then the rest."""

    text = canonical_id(value)
    if text is None:
        return (0, 0, "")
    if text.isdigit():
        return (1, int(text), "")
    return (2, 0, text)


def _coerce_category(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() == JUNIOR:
        return JUNIOR
    return ADULT


def _coerce_day(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize(
    raw: Iterable[Mapping[str, Any]], measurement_mode: str
) -> Tuple[List[CatchEntry], List[RejectedEntry]]:
    """Turn raw catch rows into ``CatchEntry`` values.

    Rows without a species, without a competitor, or whose selected
    measurement is missing, negative or non-numeric are returned in the
    rejected list (in input order) instead of being ranked.
    """

    validate_measurement_mode(measurement_mode)
    field = _MEASUREMENT_FIELDS[measurement_mode]

    entries: List[CatchEntry] = []
    rejected: List[RejectedEntry] = []

    for index, row in enumerate(raw):
        raw_id = row.get("id")
        entry_id = None if raw_id is None else str(raw_id)

        species_id = canonical_id(row.get("species_id"))
        if species_id is None:
            rejected.append(RejectedEntry(index, entry_id, MISSING_SPECIES, row))
            continue

        competitor_id = canonical_id(row.get("competitor_id"))
        if competitor_id is None:
            rejected.append(RejectedEntry(index, entry_id, MISSING_COMPETITOR, row))
            continue

        value = _coerce_measurement(row.get(field))
        if value is None:
            rejected.append(RejectedEntry(index, entry_id, INVALID_MEASUREMENT, row))
            continue

        submitted_at = parse_timestamp(row.get("priority_timestamp")) or parse_timestamp(row.get("created_at"))

        outcome = row.get("outcome")
        entries.append(
            CatchEntry(
                entry_id=entry_id if entry_id is not None else f"row-{index}",
                competitor_id=competitor_id,
                competitor_name=str(row.get("competitor_name") or "").strip(),
                competitor_category=_coerce_category(row.get("competitor_category")),
                species_id=species_id,
                division_id=canonical_id(row.get("division_id")),
                measurement_value=value,
                submitted_at=submitted_at,
                outcome=outcome if outcome in OUTCOMES else None,
                species_name=str(row.get("species_name") or "").strip(),
                day=_coerce_day(row.get("day")),
            )
        )

    return entries, rejected
