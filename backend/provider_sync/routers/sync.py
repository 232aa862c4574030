"""Manual sync, ranking, and sync status routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from provider_sync.config import Settings, get_settings
from provider_sync.db.dependencies import get_db
from provider_sync.models.enums import SourceType
from provider_sync.schemas.common import ApiResponse
from provider_sync.schemas.matching import MatchingStats
from provider_sync.schemas.merge import RankingRebuildResult
from provider_sync.schemas.sync import (
    FullSyncResult,
    IngestionRunResult,
    MatchAndMergeResult,
    MatchRequest,
    RankingRebuildRequest,
    SingleProviderSyncResult,
    SyncOverview,
    SyncRequest,
    SyncRunRead,
)
from provider_sync.services.sync import SyncOrchestrator
from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import SourceAdapterError
from provider_sync.sources.static_adapter import StaticSourceAdapter


router = APIRouter(prefix="/sync")

SyncRunResult = FullSyncResult | IngestionRunResult | MatchAndMergeResult | SingleProviderSyncResult


def get_source_adapters(settings: Settings = Depends(get_settings)) -> list[SourceAdapter]:
    """Build adapters from configured fixture files; empty when none are configured."""

    fixture_paths = {
        SourceType.PRIMARY: settings.primary_source_fixture_path,
        SourceType.SECONDARY: settings.secondary_source_fixture_path,
    }
    try:
        return [
            StaticSourceAdapter.from_json_file(source_type, path)
            for source_type, path in fixture_paths.items()
            if path
        ]
    except SourceAdapterError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def get_sync_orchestrator(
    db: Session = Depends(get_db),
    adapters: list[SourceAdapter] = Depends(get_source_adapters),
    settings: Settings = Depends(get_settings),
) -> SyncOrchestrator:
    return SyncOrchestrator(db, adapters, settings=settings)


@router.post("", response_model=ApiResponse[SyncRunResult])
def post_sync(
    payload: SyncRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[SyncRunResult]:
    """Run one sync mode synchronously and return its result."""

    payload = payload or SyncRequest()
    if payload.mode == "match":
        return ApiResponse(data=orchestrator.run_match_and_merge(payload.category))
    if not orchestrator.adapters:
        raise HTTPException(status_code=503, detail="No source adapters are configured")
    if payload.mode == "ingestion":
        return ApiResponse(data=orchestrator.run_ingestion_only(payload.to_options()))
    if payload.mode == "single":
        result = orchestrator.sync_single_provider(payload.name, payload.category, payload.location)
        if result.source is None:
            raise HTTPException(status_code=404, detail=result.error or "Provider not found")
        return ApiResponse(data=result)
    return ApiResponse(data=orchestrator.run_full_sync(payload.to_options()))


@router.get("", response_model=ApiResponse[SyncOverview])
def get_sync_overview(
    limit: int = Query(default=10, ge=1, le=100),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[SyncOverview]:
    """Return pipeline stats, freshness, and the most recent runs."""

    return ApiResponse(
        data=SyncOverview(
            stats=orchestrator.get_sync_stats(),
            freshness=orchestrator.is_sync_needed(),
            recent_runs=[SyncRunRead.model_validate(run) for run in orchestrator.list_recent_runs(limit)],
        )
    )


@router.get("/runs", response_model=ApiResponse[list[SyncRunRead]])
def get_sync_runs(
    limit: int = Query(default=20, ge=1, le=200),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[list[SyncRunRead]]:
    return ApiResponse(data=[SyncRunRead.model_validate(run) for run in orchestrator.list_recent_runs(limit)])


@router.post("/rebuild-rankings", response_model=ApiResponse[RankingRebuildResult])
def post_rebuild_rankings(
    payload: RankingRebuildRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[RankingRebuildResult]:
    """Recompute positions for one category or all of them."""

    category = payload.category if payload is not None else None
    return ApiResponse(data=orchestrator.rebuild_rankings(category))


@router.post("/match", response_model=ApiResponse[MatchAndMergeResult])
def post_match(
    payload: MatchRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[MatchAndMergeResult]:
    """Match and merge already-ingested records without querying sources."""

    category = payload.category if payload is not None else None
    return ApiResponse(data=orchestrator.run_match_and_merge(category))


@router.get("/match", response_model=ApiResponse[MatchingStats])
def get_matching_stats(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[MatchingStats]:
    """Return linked/unlinked source counts per category and candidate totals."""

    return ApiResponse(data=orchestrator.get_matching_stats())
