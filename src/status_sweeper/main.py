"""
Main application entry point for the status sweeper.

This module sets up the FastAPI application, configures logging, and wires
the sweep poller and demand scheduler to the host's HTTP surface.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .directory import EntityDirectory, StoreEntityDirectory
from .exceptions import ConfigurationError, FetchError
from .polling.cache import ResultCache
from .polling.demand import DemandResult, DemandScheduler
from .polling.rate_limiter import AdmissionController
from .polling.sweep import SweepPoller
from .state.manager import DocumentStore, DocumentStoreFactory
from .status_client import StatusClient

logger = structlog.get_logger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format="%(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class SweeperService:
    """Owns the scheduling components for one process."""

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore | None = None,
        status_client: StatusClient | None = None,
        directory: EntityDirectory | None = None,
    ):
        self.settings = settings
        if "{entity_id}" not in settings.status_path_template:
            raise ConfigurationError(
                "status_path_template must contain an {entity_id} placeholder",
                context={"status_path_template": settings.status_path_template},
            )

        if store is None:
            try:
                store = DocumentStoreFactory.create_store(
                    settings.store_backend, path=settings.store_path
                )
            except ValueError as e:
                raise ConfigurationError(
                    str(e), context={"store_backend": settings.store_backend}
                ) from e
        self.store = store
        self.status_client = status_client or StatusClient(settings.status_api_config)

        sweep_config = settings.sweep_config
        self.directory = directory or StoreEntityDirectory(
            self.store,
            collection=sweep_config.entity_collection,
            id_field=sweep_config.entity_id_field,
            rank_field=sweep_config.entity_rank_field,
        )

        self.admission = AdmissionController(settings.admission_config)
        self.cache = ResultCache(ttl_seconds=settings.cache_ttl_seconds)
        self.last_errors: dict[str, str] = {}

        self.sweep = SweepPoller(
            admission=self.admission,
            directory=self.directory,
            status_client=self.status_client,
            store=self.store,
            config=sweep_config,
        )
        self.demand = DemandScheduler(
            admission=self.admission,
            cache=self.cache,
            status_client=self.status_client,
            config=settings.demand_config,
            observer=self._on_demand_result,
        )

    def _on_demand_result(self, result: DemandResult) -> None:
        if result.ok:
            self.last_errors.pop(result.entity_id, None)
        else:
            self.last_errors[result.entity_id] = result.error or "unknown error"

    async def start(self) -> None:
        """Load credentials and start both schedulers."""
        self.admission.set_credentials(self.settings.get_credentials())
        await self.sweep.init()
        await self.demand.init()

    async def stop(self) -> None:
        """Stop both schedulers and release the HTTP client."""
        await self.demand.destroy()
        await self.sweep.destroy()
        await self.status_client.close()


class CredentialsUpdate(BaseModel):
    """Request body replacing the credential pool."""

    credentials: list[str] = Field(default_factory=list)


def _service(request: Request) -> SweeperService:
    service: SweeperService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not started")
    return service


def create_app(service: SweeperService | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Pre-built service; one is created from settings on startup
            when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        current = service
        if current is None:
            settings = get_settings()
            setup_logging(settings)
            current = SweeperService(settings)

        logger.info(
            "Starting status sweeper",
            store_backend=current.settings.store_backend,
            credentials=len(current.settings.get_credentials()),
        )
        app.state.service = current
        await current.start()

        yield

        logger.info("Shutting down status sweeper")
        await current.stop()
        app.state.service = None

    app = FastAPI(
        title="Status Sweeper",
        description="Quota-aware status polling for tracked entities",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Status Sweeper", "version": "0.1.0", "status": "active"}

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        current = _service(request)
        store_ok = await current.store.health_check()
        return {
            "status": "healthy" if store_ok else "degraded",
            "store": store_ok,
            "sweep_state": current.sweep.state.value,
        }

    @app.get("/sweep")
    async def sweep_status(request: Request) -> dict[str, Any]:
        return _service(request).sweep.get_status()

    @app.get("/credentials")
    async def credential_stats(request: Request) -> dict[str, Any]:
        return _service(request).admission.get_stats()

    @app.put("/credentials")
    async def update_credentials(
        body: CredentialsUpdate, request: Request
    ) -> dict[str, Any]:
        current = _service(request)
        current.admission.set_credentials(body.credentials)
        return current.admission.get_stats()

    @app.get("/credentials/status")
    async def own_status(request: Request) -> dict[str, Any]:
        """Snapshot for the account owning the next available credential."""
        current = _service(request)
        credential = current.admission.reserve()
        if credential is None:
            raise HTTPException(
                status_code=429, detail="No credential with remaining quota"
            )
        try:
            snapshot = await current.status_client.fetch_own_status(credential)
        except FetchError as e:
            logger.warning("Own status fetch failed", error=str(e))
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"snapshot": snapshot}

    @app.post("/visibility/{entity_id}")
    async def become_visible(entity_id: str, request: Request) -> dict[str, Any]:
        demand = _service(request).demand
        demand.become_visible(entity_id)
        return {
            "entity_id": entity_id,
            "visible": True,
            "queued": entity_id in demand.pending,
        }

    @app.delete("/visibility/{entity_id}")
    async def become_hidden(entity_id: str, request: Request) -> dict[str, Any]:
        _service(request).demand.become_hidden(entity_id)
        return {"entity_id": entity_id, "visible": False, "queued": False}

    @app.get("/entities/{entity_id}/status")
    async def entity_status(entity_id: str, request: Request) -> dict[str, Any]:
        current = _service(request)
        entry = current.cache.get_entry(entity_id)
        if entry is None:
            error = current.last_errors.get(entity_id)
            detail = f"No fresh status: {error}" if error else "No fresh status"
            raise HTTPException(status_code=404, detail=detail)
        return {"entity_id": entity_id, "snapshot": entry.snapshot}

    return app


# Create FastAPI application
app = create_app()


def main() -> None:
    """Main entry point."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)

    logger.info(
        "Starting server", host=settings.host, port=settings.port, debug=settings.debug
    )

    uvicorn.run(
        "status_sweeper.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
