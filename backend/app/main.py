from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from catch_core import (
    AllocationResult,
    BucketKey,
    CatchEntry,
    DataStore,
    PrizeSlot,
    RejectedEntry,
    allocate_all,
    entries_on_day,
    normalize,
    partition,
    rank_buckets,
    top_overall,
    top_per_species,
)
from catch_core.entry import validate_prize_mode
from catch_core.loader import log_rejected

app = FastAPI(title="Fishing Competition Results API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)


class PrizeSlotPayload(BaseModel):
    species_id: Any = Field(alias="speciesId")
    division_id: Optional[Any] = Field(default=None, alias="divisionId")
    category: str = "combined"
    rank: int
    label: str = ""
    sponsor_name: str = Field(default="", alias="sponsorName")
    outcome_filter: str = Field(default="any", alias="outcomeFilter")
    min_value: Optional[float] = Field(default=None, alias="minValue")
    award_rule: str = Field(default="ranked", alias="awardRule")
    sort_order: int = Field(default=0, alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)


class ResultsRequest(BaseModel):
    measurement_mode: str = Field(alias="measurementMode")
    prize_mode: str = Field(alias="prizeMode")
    entries: List[Dict[str, Any]]
    slots: List[PrizeSlotPayload] = Field(default_factory=list)
    top_n: int = Field(default=10, alias="topN", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class CatchEntryModel(BaseModel):
    entry_id: str = Field(alias="entryId")
    competitor_id: str = Field(alias="competitorId")
    competitor_name: str = Field(alias="competitorName")
    competitor_category: str = Field(alias="competitorCategory")
    species_id: Optional[str] = Field(alias="speciesId")
    species_name: str = Field(default="", alias="speciesName")
    division_id: Optional[str] = Field(default=None, alias="divisionId")
    measurement_value: float = Field(alias="measurementValue")
    submitted_at: Optional[str] = Field(default=None, alias="submittedAt")
    outcome: Optional[str] = None
    day: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class RejectedEntryModel(BaseModel):
    index: int
    entry_id: Optional[str] = Field(default=None, alias="entryId")
    reason: str

    model_config = ConfigDict(populate_by_name=True)


class PrizeSlotModel(BaseModel):
    species_id: Optional[str] = Field(alias="speciesId")
    division_id: Optional[str] = Field(default=None, alias="divisionId")
    category: str
    rank: int
    label: str
    sponsor_name: str = Field(alias="sponsorName")

    model_config = ConfigDict(populate_by_name=True)


class AllocationModel(BaseModel):
    slot: PrizeSlotModel
    entry: Optional[CatchEntryModel] = None


class RankedBucketModel(BaseModel):
    species_id: Optional[str] = Field(alias="speciesId")
    division_id: Optional[str] = Field(default=None, alias="divisionId")
    category: str
    entries: List[CatchEntryModel]

    model_config = ConfigDict(populate_by_name=True)


class AllocationBucketModel(BaseModel):
    species_id: Optional[str] = Field(alias="speciesId")
    division_id: Optional[str] = Field(default=None, alias="divisionId")
    category: str
    allocations: List[AllocationModel]

    model_config = ConfigDict(populate_by_name=True)


class SpeciesLeadersModel(BaseModel):
    species_id: Optional[str] = Field(alias="speciesId")
    entries: List[CatchEntryModel]

    model_config = ConfigDict(populate_by_name=True)


class LeaderboardModel(BaseModel):
    overall: List[CatchEntryModel]
    per_species: List[SpeciesLeadersModel] = Field(alias="perSpecies")

    model_config = ConfigDict(populate_by_name=True)


class CompetitionModel(BaseModel):
    id: str
    name: str
    measurement_mode: str = Field(alias="measurementMode")
    prize_mode: str = Field(alias="prizeMode")

    model_config = ConfigDict(populate_by_name=True)


class ResultsResponse(BaseModel):
    buckets: List[RankedBucketModel]
    allocations: List[AllocationBucketModel]
    rejected: List[RejectedEntryModel]
    leaderboard: LeaderboardModel


class CompetitionResultsResponse(BaseModel):
    competition: CompetitionModel
    buckets: List[RankedBucketModel]
    rejected: List[RejectedEntryModel]


class PrizeGivingResponse(BaseModel):
    competition: CompetitionModel
    allocations: List[AllocationBucketModel]
    rejected: List[RejectedEntryModel]


class LeaderboardResponse(BaseModel):
    competition: CompetitionModel
    day: Optional[str] = None
    leaderboard: LeaderboardModel


@lru_cache(maxsize=1)
def store() -> DataStore:
    return DataStore()


def _entry_model(entry: CatchEntry) -> CatchEntryModel:
    return CatchEntryModel(**entry.to_dict())


def _rejected_models(rejected: Sequence[RejectedEntry]) -> List[RejectedEntryModel]:
    return [RejectedEntryModel(index=item.index, entryId=item.entry_id, reason=item.reason) for item in rejected]


def _bucket_models(buckets: Dict[BucketKey, List[CatchEntry]]) -> List[RankedBucketModel]:
    return [
        RankedBucketModel(
            speciesId=key.species_id,
            divisionId=key.division_id,
            category=key.category,
            entries=[_entry_model(entry) for entry in entries],
        )
        for key, entries in buckets.items()
    ]


def _allocation_models(allocations: Dict[BucketKey, List[AllocationResult]]) -> List[AllocationBucketModel]:
    return [
        AllocationBucketModel(
            speciesId=key.species_id,
            divisionId=key.division_id,
            category=key.category,
            allocations=[
                AllocationModel(
                    slot=PrizeSlotModel(**result.slot.to_dict()),
                    entry=_entry_model(result.entry) if result.entry else None,
                )
                for result in results
            ],
        )
        for key, results in allocations.items()
    ]


def _leaderboard_model(entries: Sequence[CatchEntry], n: int) -> LeaderboardModel:
    return LeaderboardModel(
        overall=[_entry_model(entry) for entry in top_overall(entries, n)],
        perSpecies=[
            SpeciesLeadersModel(speciesId=species_id, entries=[_entry_model(entry) for entry in leaders])
            for species_id, leaders in top_per_species(entries, n).items()
        ],
    )


def _load_competition(competition_id: str) -> Dict[str, Any]:
    try:
        return store().load_competition_results(competition_id)
    except ValueError as exc:
        if str(exc) == "Competition not found":
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/results", response_model=ResultsResponse)
def results(payload: ResultsRequest):
    try:
        validate_prize_mode(payload.prize_mode)
        entries, rejected = normalize(payload.entries, payload.measurement_mode)
        slots = [PrizeSlot(**slot.model_dump()) for slot in payload.slots]
        buckets = rank_buckets(partition(entries, payload.prize_mode))
        allocations = allocate_all(entries, slots, payload.prize_mode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    log_rejected(rejected, "results payload")

    return ResultsResponse(
        buckets=_bucket_models(buckets),
        allocations=_allocation_models(allocations),
        rejected=_rejected_models(rejected),
        leaderboard=_leaderboard_model(entries, payload.top_n),
    )


@app.get("/competitions/{competition_id}/results", response_model=CompetitionResultsResponse)
def competition_results(competition_id: str):
    loaded = _load_competition(competition_id)
    competition = loaded["competition"]
    buckets = rank_buckets(partition(loaded["entries"], competition["prizeMode"]))
    return CompetitionResultsResponse(
        competition=CompetitionModel(**competition),
        buckets=_bucket_models(buckets),
        rejected=_rejected_models(loaded["rejected"]),
    )


@app.get("/competitions/{competition_id}/prize-giving", response_model=PrizeGivingResponse)
def prize_giving(competition_id: str):
    loaded = _load_competition(competition_id)
    competition = loaded["competition"]
    try:
        allocations = allocate_all(loaded["entries"], loaded["slots"], competition["prizeMode"])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PrizeGivingResponse(
        competition=CompetitionModel(**competition),
        allocations=_allocation_models(allocations),
        rejected=_rejected_models(loaded["rejected"]),
    )


@app.get("/competitions/{competition_id}/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    competition_id: str,
    n: int = Query(default=10, ge=0),
    day: Optional[str] = Query(default=None),
):
    loaded = _load_competition(competition_id)
    entries = loaded["entries"]
    if day:
        day_filter: Any = int(day) if day.isdigit() else day
        try:
            entries = entries_on_day(entries, day_filter)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    return LeaderboardResponse(
        competition=CompetitionModel(**loaded["competition"]),
        day=day,
        leaderboard=_leaderboard_model(entries, n),
    )
