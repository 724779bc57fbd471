"""FastAPI application setup with lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.api.deps import CorrelationIdFilter, set_services
from ember.api.models.errors import ErrorResponse
from ember.api.routes import accounts, captures, memories, wake
from ember.capture.exceptions import CaptureValidationError
from ember.capture.pipeline import CapturePipeline, ExtractorFactory
from ember.capture.scheduler import JobScheduler
from ember.capture.service import CaptureIntake
from ember.config import Settings, settings
from ember.db.exceptions import (
    DuplicateCaptureError,
    InvalidCursorError,
    InvalidTransitionError,
    NotFoundError,
)
from ember.db.session import close_db, create_session_factory, init_db
from ember.services.accounts import AccountService
from ember.services.memories import MemoryService
from ember.services.retention import RetentionService
from ember.wake.compression import CompressionCapability
from ember.wake.estimator import TokenEstimator
from ember.wake.service import WakePromptService, build_compressor

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
    level=logging.INFO,
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(CorrelationIdFilter())

logger = logging.getLogger(__name__)


def create_app(
    config: Settings = settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    extractor_factory: ExtractorFactory | None = None,
    compressor: CompressionCapability | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Application settings
        session_factory: Memory Store sessions; built from config.database_url
            (and the schema created) when omitted
        extractor_factory: Override of the per-account extraction capability
        compressor: Override of the configured compression capability
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Ember API server...")

        engine = None
        factory = session_factory
        if factory is None:
            engine, factory = create_session_factory(config.database_url)
            await init_db(engine)

        estimator = TokenEstimator.from_settings(config)
        pipeline = CapturePipeline(factory, config, estimator, extractor_factory)
        scheduler = JobScheduler.from_settings(pipeline, config)
        wake_compressor = compressor or build_compressor(config, estimator)
        retention = RetentionService(factory, config.deletion_retention_days)

        set_services(
            config=config,
            pipeline=pipeline,
            intake=CaptureIntake(pipeline, scheduler),
            memory_service=MemoryService(factory, estimator, config.deletion_retention_days),
            account_service=AccountService(factory, config.default_token_budget),
            wake_service=WakePromptService(factory, estimator, wake_compressor),
        )
        app.state.scheduler = scheduler

        await scheduler.start()
        await scheduler.recover()
        await retention.purge_expired()
        purge_task = asyncio.create_task(retention.run_forever(config.purge_interval_seconds))
        logger.info("Server startup complete - ready to accept requests")

        yield

        logger.info("Shutting down Ember API server...")
        purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await purge_task
        await scheduler.stop()
        if engine is not None:
            await close_db(engine)
        logger.info("Server shutdown complete")

    app = FastAPI(
        title="Ember Memory API",
        description="Capture conversations, extract memories and assemble wake prompts",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(accounts.router, tags=["Accounts & Profiles"])
    app.include_router(captures.router, tags=["Captures"])
    app.include_router(memories.router, tags=["Memories"])
    app.include_router(wake.router, tags=["Wake Prompts"])
    return app


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP statuses."""

    @app.exception_handler(CaptureValidationError)
    async def capture_validation_handler(request: Request, exc: CaptureValidationError):
        return _error(
            422,
            ErrorResponse.from_exception(
                exc.detail, "validation_error", code=exc.reason.value
            ),
        )

    @app.exception_handler(InvalidCursorError)
    async def cursor_handler(request: Request, exc: InvalidCursorError):
        return _error(422, ErrorResponse.from_exception(exc, "validation_error", code="InvalidCursor"))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(404, ErrorResponse.from_exception(exc, "not_found"))

    @app.exception_handler(InvalidTransitionError)
    async def conflict_handler(request: Request, exc: InvalidTransitionError):
        return _error(409, ErrorResponse.from_exception(exc, "conflict", code=exc.current))

    @app.exception_handler(DuplicateCaptureError)
    async def duplicate_handler(request: Request, exc: DuplicateCaptureError):
        return _error(409, ErrorResponse.from_exception(exc, "conflict", code="DuplicateCapture"))


app = create_app()
