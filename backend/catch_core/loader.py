from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .entry import RejectedEntry, normalize, validate_measurement_mode, validate_prize_mode
from .prizes import PrizeSlot


logger = logging.getLogger(__name__)

_MEASUREMENT_MODE_NAMES = {"weight": "weight", "weighed": "weight", "length": "length", "measured": "length"}
_PRIZE_MODE_NAMES = {"combined": "combined", "split": "split"}


def log_rejected(rejected: Iterable[RejectedEntry], source: str) -> int:
    """Log each rejected entry at WARNING level and return how many there were."""

    count = 0
    for item in rejected:
        count += 1
        logger.warning(
            "Rejected catch entry %s (row %s) from %s: %s",
            item.entry_id or "<no id>",
            item.index,
            source,
            item.reason,
        )
    return count


class DataStore:
    """Read-only access to competition data held in Supabase."""

    def __init__(self) -> None:
        self.supabase_url = os.getenv("SUPABASE_URL", "")
        self.supabase_key = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or os.getenv("SUPABASE_ANON_KEY")
            or ""
        )
        self.supabase_schema = os.getenv("SUPABASE_SCHEMA", "public")
        self.supabase_competitions_table = os.getenv("SUPABASE_COMPETITIONS_TABLE", "competition")
        self.supabase_results_table = os.getenv("SUPABASE_RESULTS_TABLE", "competition_results")
        self.supabase_prizes_table = os.getenv("SUPABASE_PRIZES_TABLE", "prize")
        try:
            self.timeout = float(os.getenv("SUPABASE_TIMEOUT", "10"))
        except ValueError:
            logger.warning("Ignoring invalid SUPABASE_TIMEOUT=%r", os.getenv("SUPABASE_TIMEOUT"))
            self.timeout = 10.0

    # ------------------------------------------------------------------
    # Competition

    def fetch_competition(self, competition_id: str) -> Dict[str, Any]:
        rows = self._select(
            self.supabase_competitions_table,
            {
                "select": "id,name,comp_mode:comp_mode_id(name),prize_mode:prize_mode_id(name)",
                "id": f"eq.{competition_id}",
            },
        )
        if not rows:
            raise ValueError("Competition not found")

        row = rows[0]
        return {
            "id": str(row.get("id") or competition_id),
            "name": str(row.get("name") or ""),
            "measurementMode": self._mode_from_embedded(row.get("comp_mode"), _MEASUREMENT_MODE_NAMES),
            "prizeMode": self._mode_from_embedded(row.get("prize_mode"), _PRIZE_MODE_NAMES),
        }

    @staticmethod
    def _mode_from_embedded(value: Any, names: Dict[str, str]) -> str:
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict):
            value = value.get("name")
        name = "" if value is None else str(value).strip().lower()
        if name not in names:
            raise ValueError(f"Unknown competition mode {value!r}")
        return names[name]

    # ------------------------------------------------------------------
    # Catches

    def fetch_catch_rows(self, competition_id: str) -> List[Dict[str, Any]]:
        rows = self._select(
            self.supabase_results_table,
            {
                "select": (
                    "id,species_id,division_id,weight_kg,length_cm,outcome,day,"
                    "priority_timestamp,created_at,"
                    "competitor:competitor_id(id,full_name,category),"
                    "species:species_id(id,name)"
                ),
                "competition_id": f"eq.{competition_id}",
            },
        )
        return [self._flatten_catch_row(row) for row in rows]

    @staticmethod
    def _embedded(row: Dict[str, Any], key: str) -> Dict[str, Any]:
        value = row.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        return value if isinstance(value, dict) else {}

    def _flatten_catch_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        competitor = self._embedded(row, "competitor")
        species = self._embedded(row, "species")
        return {
            "id": row.get("id"),
            "competitor_id": competitor.get("id") or row.get("competitor_id"),
            "competitor_name": competitor.get("full_name") or row.get("competitor_name"),
            "competitor_category": competitor.get("category") or row.get("competitor_category"),
            "species_id": row.get("species_id") if row.get("species_id") is not None else species.get("id"),
            "species_name": species.get("name") or row.get("species_name"),
            "division_id": row.get("division_id"),
            "weight_kg": row.get("weight_kg"),
            "length_cm": row.get("length_cm"),
            "outcome": row.get("outcome"),
            "day": row.get("day"),
            "priority_timestamp": row.get("priority_timestamp"),
            "created_at": row.get("created_at"),
        }

    # ------------------------------------------------------------------
    # Prizes

    def fetch_prize_slots(self, competition_id: str, measurement_mode: Optional[str] = None) -> List[PrizeSlot]:
        rows = self._select(
            self.supabase_prizes_table,
            {
                "select": "*",
                "competition_id": f"eq.{competition_id}",
                "active": "is.true",
                "order": "rank.asc",
            },
        )
        slots: List[PrizeSlot] = []
        for row in rows:
            try:
                slots.append(PrizeSlot.from_row(row, measurement_mode))
            except ValueError as exc:
                raise ValueError(f"Invalid prize configuration {row.get('id')}: {exc}") from exc
        return slots

    # ------------------------------------------------------------------
    # Bundles

    def load_competition_results(
        self, competition_id: str, measurement_mode: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fetch and normalise everything the prize engine needs for one competition."""

        competition = self.fetch_competition(competition_id)
        mode = validate_measurement_mode(measurement_mode or competition["measurementMode"])
        validate_prize_mode(competition["prizeMode"])

        entries, rejected = normalize(self.fetch_catch_rows(competition_id), mode)
        log_rejected(rejected, f"competition {competition_id}")
        slots = self.fetch_prize_slots(competition_id, mode)

        logger.info(
            "Loaded competition %s: %s entries, %s rejected, %s prize slots",
            competition_id,
            len(entries),
            len(rejected),
            len(slots),
        )
        return {
            "competition": competition,
            "entries": entries,
            "rejected": rejected,
            "slots": slots,
        }

    # ------------------------------------------------------------------
    # Transport

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        if not (self.supabase_url and self.supabase_key):
            raise RuntimeError("Supabase configuration is incomplete")

        endpoint = self._supabase_endpoint(table)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(endpoint, params=params, headers=self._supabase_headers())
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_supabase_detail(exc.response)
            logger.warning("Supabase query on %s failed (%s)", table, detail or exc)
            raise RuntimeError(f"Failed to load {table} from Supabase") from exc
        except httpx.HTTPError as exc:
            logger.warning("Supabase query on %s failed (%s)", table, exc)
            raise RuntimeError(f"Failed to load {table} from Supabase") from exc

        if not isinstance(rows, list):
            logger.warning("Supabase query on %s returned unexpected payload: %s", table, type(rows))
            raise RuntimeError(f"Unexpected response loading {table} from Supabase")
        return [row for row in rows if isinstance(row, dict)]

    def _supabase_endpoint(self, table: str) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self) -> Dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.supabase_key}",
            "Accept": "application/json",
        }
        if self.supabase_schema and self.supabase_schema != "public":
            headers["Accept-Profile"] = self.supabase_schema
        return headers

    def _extract_supabase_detail(self, response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            for key in ("message", "detail", "error", "hint", "code"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None
