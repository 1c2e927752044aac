"""
FastAPI application for the Keeper League Sync API.
"""

import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Header, Query, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from backend.config import settings
from backend.errors import AppError, NotFoundError, UnauthorizedError
from backend.session.database import init_database, get_repository
from backend.session.repository import KeeperLeagueRepository
from backend.session.models import LeagueModel
from backend.dependencies import (
    get_keeper_repository, get_redis_service, get_sleeper_service, get_keeper_service,
    get_timeline_service, get_sync_service, get_sync_dispatcher, get_caller_owner_id
)
from backend.api_models import (
    ErrorResponse, HealthResponse, SyncRequest, SyncResponse, SyncStatusResponse, CronSyncResponse,
    KeeperSettingsUpdate, KeeperSettingsResponse, KeeperResponse, KeeperListResponse,
    KeeperOverrideRequest, AuditLogResponse, AuditLogListResponse, EligibleKeepersResponse,
    OwnerHistoryResponse
)
from backend.scheduler import start_scheduler, shutdown_scheduler
from backend.services.access import is_commissioner, require_league_access
from backend.services.keeper_service import KeeperService
from backend.services.owner_history_service import get_owner_history
from backend.services.sync_actions import SyncDispatcher
from backend.services.sync_service import SyncService
from backend.services.timeline_service import TimelineService
from shared.models import DraftBoard, PlayerTimeline

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""

    # Startup
    logger.info("🏈 Starting Keeper League Sync API")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"API Port: {settings.api_port}")

    try:
        logger.info("Initializing database connection...")
        init_database(settings.get_database_url(), settings.database_echo)
        get_repository().ping()
        logger.info("Database connection established successfully")

        redis_service = get_redis_service()
        if redis_service is None:
            logger.warning("Continuing without Redis - sync throttling and caching unavailable")

        if settings.CRON_ENABLED:
            start_scheduler(get_sync_service)
        else:
            logger.info("Background league sync disabled (CRON_ENABLED=false)")

    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down Keeper League Sync API")
    shutdown_scheduler()

    try:
        await get_sleeper_service().close()
    except Exception as e:
        logger.warning(f"Error closing Sleeper client: {e}")

    try:
        redis_service = get_redis_service()
        if redis_service:
            redis_service.close()
    except Exception as e:
        logger.warning(f"Error closing Redis connection: {e}")

    logger.info("✅ Shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title="Keeper League Sync API",
    version=API_VERSION,
    description="Sleeper league sync, keeper cost engine and player timelines for keeper leagues",
    docs_url="/docs",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


# ===== Error Handling =====

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render application errors as ErrorResponse payloads."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")

    headers = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(**exc.to_dict()).model_dump(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are validation errors (400)."""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="VALIDATION_ERROR", message="Invalid request", details={"errors": errors}).model_dump()
    )


def load_league(repository: KeeperLeagueRepository, league_id: str) -> LeagueModel:
    """Look up a stored league season by platform ID."""
    league = repository.get_league_by_external_id(league_id)
    if league is None:
        raise NotFoundError("League", league_id)
    return league


# ===== Health =====

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Keeper League Sync API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "sync": "/api/sync",
            "keepers": "/api/leagues/{league_id}/keepers"
        },
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(repository: KeeperLeagueRepository = Depends(get_keeper_repository)):
    """Health check endpoint."""

    database_connected = False
    try:
        database_connected = repository.ping()
    except Exception as e:
        logger.error(f"Health check: Database connection failed: {e}")

    redis_service = get_redis_service()
    redis_connected = bool(redis_service and redis_service.is_connected())

    return HealthResponse(
        status="healthy" if database_connected else "unhealthy",
        database_connected=database_connected,
        redis_connected=redis_connected,
        timestamp=datetime.utcnow().isoformat(),
        version=API_VERSION
    )


# ===== Sync =====

@app.post("/api/sync", response_model=SyncResponse, tags=["Sync"])
async def run_sync_action(
    request: SyncRequest,
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    dispatcher: SyncDispatcher = Depends(get_sync_dispatcher)
):
    """Run a sync action (refresh, sync, sync-history, sync-drafts, update-keepers, sync-players, user-leagues)."""
    result = await dispatcher.dispatch(
        request.action,
        owner_id,
        league_id=request.league_id,
        season=request.season,
        force=request.force,
        include_history=request.include_history
    )
    return SyncResponse(**result.model_dump())


@app.get("/api/leagues/{league_id}/sync-status", response_model=SyncStatusResponse, tags=["Sync"])
async def get_sync_status(
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Last sync time and staleness of a league season."""
    repository = sync_service.repository
    require_league_access(repository, load_league(repository, league_id), owner_id)
    return SyncStatusResponse(**sync_service.sync_status(league_id))


@app.get("/api/cron/sync", response_model=CronSyncResponse, tags=["Sync"])
async def cron_sync(
    authorization: Optional[str] = Header(None),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Cron entry point: re-sync every stored league with per-league isolation."""
    if settings.CRON_SECRET and authorization != f"Bearer {settings.CRON_SECRET}":
        raise UnauthorizedError("Invalid cron secret")

    report = await sync_service.sync_all_leagues()
    logger.info(f"[CRON] {len(report.synced)} synced, {len(report.failed)} failed, {len(report.skipped)} deferred")
    return CronSyncResponse(success=not report.failed, report=report)


# ===== Keeper Settings =====

def _settings_response(league: LeagueModel, keeper_service: KeeperService, owner_id: Optional[str]) -> KeeperSettingsResponse:
    rules = keeper_service.get_rules(league)
    return KeeperSettingsResponse(
        league_id=league.external_id,
        season=league.season,
        is_commissioner=is_commissioner(league, owner_id),
        **rules.model_dump()
    )


@app.get("/api/leagues/{league_id}/settings", response_model=KeeperSettingsResponse, tags=["Keepers"])
async def get_keeper_settings(
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Keeper settings of a league season."""
    league = load_league(keeper_service.repository, league_id)
    require_league_access(keeper_service.repository, league, owner_id)
    return _settings_response(league, keeper_service, owner_id)


@app.put("/api/leagues/{league_id}/settings", response_model=KeeperSettingsResponse, tags=["Keepers"])
async def update_keeper_settings(
    updates: KeeperSettingsUpdate,
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Update keeper settings (commissioner only)."""
    league = load_league(keeper_service.repository, league_id)
    keeper_service.update_settings(league, owner_id, updates.model_dump(exclude_none=True))
    return _settings_response(league, keeper_service, owner_id)


# ===== Keepers =====

@app.get("/api/leagues/{league_id}/keepers", response_model=KeeperListResponse, tags=["Keepers"])
async def list_keepers(
    league_id: str = Path(..., description="Platform league ID"),
    season: Optional[int] = Query(None, description="Keeper season (defaults to the league season)"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Keepers of a season with advisory cap violations."""
    league = load_league(keeper_service.repository, league_id)
    require_league_access(keeper_service.repository, league, owner_id)
    rows, violations = keeper_service.list_keepers(league, season)
    return KeeperListResponse(
        league_id=league.external_id,
        season=season or league.season,
        keepers=[KeeperResponse.model_validate(row, from_attributes=True) for row in rows],
        violations=violations
    )


@app.post("/api/leagues/{league_id}/keepers/override", response_model=KeeperResponse, tags=["Keepers"])
async def override_keeper(
    request: KeeperOverrideRequest,
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Commissioner override: add, remove or retype a keeper with a mandatory reason."""
    league = load_league(keeper_service.repository, league_id)
    row = keeper_service.apply_override(
        league,
        owner_id,
        request.action,
        player_id=request.player_id,
        roster_id=request.roster_id,
        season=request.season,
        reason=request.reason,
        keeper_type=request.type,
        final_cost=request.final_cost
    )
    return KeeperResponse.model_validate(row, from_attributes=True)


@app.get("/api/leagues/{league_id}/keepers/override", response_model=AuditLogListResponse, tags=["Keepers"])
async def list_keeper_overrides(
    league_id: str = Path(..., description="Platform league ID"),
    limit: int = Query(100, ge=1, le=500),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Audit trail of commissioner overrides, newest first."""
    league = load_league(keeper_service.repository, league_id)
    require_league_access(keeper_service.repository, league, owner_id)
    entries = keeper_service.get_override_log(league, limit)
    return AuditLogListResponse(
        league_id=league.external_id,
        entries=[AuditLogResponse.model_validate(entry, from_attributes=True) for entry in entries]
    )


@app.get(
    "/api/leagues/{league_id}/rosters/{roster_owner_id}/eligible-keepers",
    response_model=EligibleKeepersResponse,
    tags=["Keepers"]
)
async def get_eligible_keepers(
    league_id: str = Path(..., description="Platform league ID"),
    roster_owner_id: str = Path(..., description="Platform owner ID of the roster"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Keeper cost preview for every player on an owner's current roster."""
    league = load_league(keeper_service.repository, league_id)
    require_league_access(keeper_service.repository, league, owner_id)
    players, violations = keeper_service.preview_eligible_keepers(league, roster_owner_id)
    return EligibleKeepersResponse(
        league_id=league.external_id,
        owner_id=roster_owner_id,
        season=league.season + 1,
        players=players,
        violations=violations
    )


@app.get("/api/leagues/{league_id}/draft-board", response_model=DraftBoard, tags=["Keepers"])
async def get_draft_board(
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    keeper_service: KeeperService = Depends(get_keeper_service)
):
    """Pick ownership after trades and keeper placement for the league season."""
    league = load_league(keeper_service.repository, league_id)
    require_league_access(keeper_service.repository, league, owner_id)
    return keeper_service.draft_board(league)


# ===== History =====

@app.get("/api/leagues/{league_id}/players/{player_id}/timeline", response_model=PlayerTimeline, tags=["History"])
async def get_player_timeline(
    league_id: str = Path(..., description="Platform league ID"),
    player_id: str = Path(..., description="Platform player ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    timeline_service: TimelineService = Depends(get_timeline_service)
):
    """Chronological player history across the league chain, draft-day corrections removed."""
    league = load_league(timeline_service.repository, league_id)
    require_league_access(timeline_service.repository, league, owner_id)
    return timeline_service.get_player_timeline(league_id, player_id)


@app.get("/api/leagues/{league_id}/owner-history", response_model=OwnerHistoryResponse, tags=["History"])
async def get_league_owner_history(
    league_id: str = Path(..., description="Platform league ID"),
    owner_id: Optional[str] = Depends(get_caller_owner_id),
    repository: KeeperLeagueRepository = Depends(get_keeper_repository),
    sleeper=Depends(get_sleeper_service)
):
    """Per-owner records, playoff appearances and titles across the league chain."""
    league = load_league(repository, league_id)
    require_league_access(repository, league, owner_id)
    owners = await get_owner_history(repository, sleeper, league_id)
    return OwnerHistoryResponse(league_id=league.external_id, owners=owners)


if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower()
    )
