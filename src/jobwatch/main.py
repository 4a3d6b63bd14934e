"""Main FastAPI application module."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import router
from .api_client import AnalysisAPIClient
from .auth import get_auth_status
from .config import get_settings
from .logging_config import get_logger, setup_logging
from .providers.prober import ProviderHealthProber
from .providers.reaper import CredentialReaper
from .providers.vault import CredentialVault
from .scheduler.gate import EnvironmentGate, ManualSignal
from .scheduler.poller import PollScheduler
from .scheduler.storage import SnapshotStorage, create_redis_client

# Load settings and configure logging
settings = get_settings()
setup_logging(settings.logging)
logger = get_logger(__name__)


async def _restore_snapshots(storage: SnapshotStorage, scheduler: PollScheduler) -> int:
    snapshots = await storage.load_all()
    restored = 0
    for snapshot in snapshots:
        if scheduler.start_job_polling(snapshot.job_id, snapshot.current_interval_ms):
            restored += 1
    return restored


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - initialize and cleanup resources."""
    # Store settings in app state (call get_settings() to support test env reloading)
    current_settings = get_settings()
    app.state.settings = current_settings

    # Log configuration validation messages
    logger.info(f"Starting {current_settings.app_name} v{__version__}")
    logger.info(f"Environment: {current_settings.environment}")
    for message in current_settings.validate_settings():
        if "WARNING" in message:
            logger.warning(message.replace("WARNING: ", ""))
        elif "ERROR" in message:
            logger.error(message.replace("ERROR: ", ""))
        else:
            logger.info(message.replace("INFO: ", ""))

    # Initialize analysis API client
    api_client = AnalysisAPIClient(current_settings.api)
    app.state.api_client = api_client

    # Initialize poll scheduler and the environment gate driving it
    scheduler = PollScheduler(api_client.fetch_job_status, config=current_settings.polling)
    visibility = ManualSignal("visibility")
    network = ManualSignal("network")
    gate = EnvironmentGate(scheduler, visibility=visibility, network=network)
    gate.attach()
    app.state.scheduler = scheduler
    app.state.gate = gate
    logger.info("Poll scheduler initialized")

    # Initialize credential vault, its reaper and the provider prober
    vault = CredentialVault(current_settings.vault)
    reaper = CredentialReaper(vault)
    await reaper.start()
    prober = ProviderHealthProber(vault, api_client.test_provider, config=current_settings.prober)
    app.state.vault = vault
    app.state.reaper = reaper
    app.state.prober = prober
    logger.info("Credential vault and provider prober initialized")

    # Initialize snapshot storage if Redis is configured
    redis_client = None
    app.state.snapshot_storage = None
    if current_settings.redis.redis_uri:
        try:
            redis_client = await create_redis_client(current_settings.redis.redis_uri)
            storage = SnapshotStorage(redis_client, ttl=current_settings.redis.snapshot_ttl)
            app.state.snapshot_storage = storage
            restored = await _restore_snapshots(storage, scheduler)
            logger.info(f"Snapshot storage initialized ({restored} jobs restored)")
        except Exception as e:
            logger.warning(f"Snapshot storage unavailable: {e}. Polling state will not persist.")
            redis_client = None
            app.state.snapshot_storage = None
    else:
        logger.info("Snapshot storage not initialized (Redis not configured)")

    yield

    # Shutdown - cleanup in reverse order
    logger.info("Shutting down services...")

    if app.state.snapshot_storage:
        try:
            await app.state.snapshot_storage.clear()
            saved = await app.state.snapshot_storage.save_all(scheduler.export_state())
            logger.info(f"Saved {saved} polling snapshots")
        except Exception as e:
            logger.error(f"Failed to save polling snapshots: {e}")

    if redis_client is not None:
        await redis_client.aclose()

    await reaper.shutdown(clear_vault=True)

    gate.detach()
    await scheduler.shutdown()

    await api_client.close()

    logger.info("All services shut down successfully")


# Create FastAPI app
app = FastAPI(
    title="jobwatch",
    description="Adaptive job status polling and provider health monitoring",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint with polling, vault and storage status."""
    app_settings = request.app.state.settings
    scheduler: PollScheduler = request.app.state.scheduler
    gate: EnvironmentGate = request.app.state.gate
    vault: CredentialVault = request.app.state.vault
    reaper: CredentialReaper = request.app.state.reaper

    storage = getattr(request.app.state, "snapshot_storage", None)
    storage_status = {"available": storage is not None}
    if storage is not None:
        try:
            await storage.redis.ping()
            storage_status["status"] = "connected"
        except Exception as e:
            storage_status["status"] = "error"
            storage_status["error"] = str(e)
    else:
        storage_status["reason"] = "Redis connection (REDIS_URI) required"

    polling_status = scheduler.get_polling_status()

    health_info = {
        "status": "healthy",
        "version": __version__,
        "environment": app_settings.environment,
        "configuration": {
            "min_interval_ms": scheduler.config.min_interval_ms,
            "max_interval_ms": scheduler.config.max_interval_ms,
            "backoff_multiplier": scheduler.config.backoff_multiplier,
            "max_retries": scheduler.config.max_retries,
        },
        "services": {
            "polling": {
                "active_jobs": len(polling_status.active_jobs),
                "is_paused": polling_status.is_paused,
                "foreground": gate.is_foreground,
                "online": gate.is_online,
            },
            "credentials": {
                "providers_with_credentials": vault.get_summary().providers_with_credentials,
                "reaper": reaper.get_status(),
            },
            "snapshot_storage": storage_status,
        },
    }
    health_info.update(get_auth_status(app_settings))
    return health_info


# Include API router (must be after specific routes like /health)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("jobwatch.main:app", host="0.0.0.0", port=8000, reload=True)
