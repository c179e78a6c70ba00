from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, cast

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status

from medsim_api.api import include_api_routes
from medsim_api.config.settings import Settings, get_settings
from medsim_api.core.logging import configure_logging, get_logger
from medsim_api.db.session import get_sessionmaker, lifespan_context
from medsim_api.domain.schemas.common import ErrorBody, ErrorEnvelope
from medsim_api.services.cases import (
    CLINICAL_EDUCATOR_SYSTEM_PROMPT,
    CasePipeline,
    PipelineConfiguration,
)
from medsim_api.services.chat import ChatService
from medsim_api.services.inference import (
    GeminiInferenceClient,
    GenerationConfig,
    InferenceClient,
    InferenceScheduler,
    ResponseCache,
    SchedulerConfig,
    UnconfiguredInferenceClient,
)
from medsim_api.services.persistence import (
    InMemoryStatsStore,
    SqlAlchemyStatsStore,
    StatsStore,
)
from medsim_api.services.sessions import CaseSessionManager

HTTP_STATUS_MESSAGES: Mapping[int, str] = cast(
    Mapping[int, str],
    getattr(http_status, "HTTP_STATUS_CODES", {}),
)

logger = get_logger(__name__)


def build_inference_client(settings: Settings) -> InferenceClient:
    if not settings.gemini_api_key:
        logger.warning("gemini_not_configured", detail="serving fallback cases and templates")
        return UnconfiguredInferenceClient()
    return GeminiInferenceClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        endpoint=settings.gemini_endpoint,
        timeout=settings.gemini_request_timeout_seconds,
        system_instruction=CLINICAL_EDUCATOR_SYSTEM_PROMPT,
        generation_config=GenerationConfig(
            temperature=settings.generation_temperature,
            max_output_tokens=settings.generation_max_output_tokens,
        ),
    )


def build_stats_store(settings: Settings) -> StatsStore:
    if settings.persist_stats:
        return SqlAlchemyStatsStore(get_sessionmaker(settings))
    return InMemoryStatsStore()


def create_app(
    settings: Settings | None = None,
    *,
    inference_client: InferenceClient | None = None,
    stats_store: StatsStore | None = None,
) -> FastAPI:
    """Application factory for the MedSim API.

    ``inference_client`` and ``stats_store`` override the ones derived from
    settings; the lifespan owns whichever client ends up in use.
    """

    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with lifespan_context():
            client = inference_client or build_inference_client(settings)
            scheduler = InferenceScheduler(
                client=client,
                cache=ResponseCache(settings.inference_cache_ttl_seconds),
                config=SchedulerConfig.from_settings(settings),
            )
            pipeline = CasePipeline(
                scheduler=scheduler,
                config=PipelineConfiguration.from_settings(settings),
            )
            manager = CaseSessionManager(
                pipeline=pipeline,
                stats_store=stats_store or build_stats_store(settings),
            )
            app.state.scheduler = scheduler
            app.state.session_manager = manager
            app.state.chat_service = ChatService(manager)
            logger.info(
                "medsim_started",
                environment=settings.environment,
                model=settings.gemini_model,
            )
            try:
                yield
            finally:
                await scheduler.aclose()
                await client.aclose()
                logger.info("medsim_stopped")

    app = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        lifespan=_lifespan,
    )

    include_api_routes(app)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        message = (
            exc.detail
            if isinstance(exc.detail, str)
            else HTTP_STATUS_MESSAGES.get(exc.status_code, "Error")
        )
        details = exc.detail if isinstance(exc.detail, dict) else None
        payload = ErrorEnvelope(
            error=ErrorBody(
                code=exc.status_code,
                message=message,
                details=details,
            )
        ).model_dump(mode="json")
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        payload = ErrorEnvelope(
            error=ErrorBody(
                code=http_status.HTTP_422_UNPROCESSABLE_ENTITY,
                message="Request validation failed",
                details={"errors": jsonable_encoder(exc.errors())},
            )
        ).model_dump(mode="json")
        return JSONResponse(
            status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:  # pragma: no cover
        payload = ErrorEnvelope(
            error=ErrorBody(
                code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
                message="Internal Server Error",
                details={"reason": str(exc)},
            )
        ).model_dump(mode="json")
        return JSONResponse(status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)

    return app


app = create_app()


__all__ = ["app", "build_inference_client", "build_stats_store", "create_app"]
