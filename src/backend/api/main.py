"""
FastAPI server for natural-language SQL generation and guarded execution.

This module handles application setup, lifespan management, error
handlers and middleware configuration. Route handlers are organized in
the routers/ package.

The lifespan wires the components together:
- RuleStore: rule set from the system database, falling back to rules.json
- QueryGenerationService: Anthropic or OpenAI generator (optional) then pattern matching
- QueryExecutor: safety check, EXPLAIN probe, row limit, execution
- QueryLog: audit log in the system database, or the application log
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from api.routers import logs_router, query_router, settings_router, validation_router
from config.settings import Settings, get_settings
from dotenv import load_dotenv
from entities.ai_generator.client import (
    AnthropicQueryGenerator,
    LanguageModelQueryGenerator,
    OpenAIQueryGenerator,
)
from entities.pattern_matcher.matcher import PatternQueryGenerator
from entities.query_executor.executor import QueryExecutor
from entities.query_generation.orchestrator import QueryGenerationService
from entities.query_log.service import DatabaseQueryLog, LoggingQueryLog
from entities.rule_store.store import DatabaseRuleBackingStore, FileRuleBackingStore, RuleStore
from entities.shared.errors import ConfigurationReadOnlyError, InputError, RuleSetError
from entities.shared.protocols import ConnectionPool, RuleBackingStore
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

# Configure logging - use force=True to prevent duplicate handlers
logger = logging.getLogger(__name__)
logging.basicConfig(level=get_settings().log_level, force=True)

# Reduce noise from HTTP client libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("anthropic").setLevel(logging.WARNING)


async def _open_pool(dsn: str, settings: Settings, label: str) -> ConnectionPool | None:
    """Open an ODBC pool, or return None when not configured or unreachable."""
    if not dsn:
        logger.info("%s database is not configured", label)
        return None

    # Deferred so the ODBC driver manager is only loaded when a DSN is set
    from entities.shared.sql_client import OdbcConnectionPool

    try:
        return await OdbcConnectionPool.create(
            dsn, min_size=settings.db_pool_min_size, max_size=settings.db_pool_max_size
        )
    except Exception:
        logger.exception("Could not connect to the %s database", label.lower())
        return None


def build_ai_generator(settings: Settings) -> LanguageModelQueryGenerator:
    """Anthropic when its key is set, otherwise OpenAI (disabled without a key)."""
    if settings.anthropic_api_key:
        return AnthropicQueryGenerator(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            temperature=settings.anthropic_temperature,
            max_tokens=settings.anthropic_max_tokens,
            timeout=settings.anthropic_timeout_seconds,
        )
    return OpenAIQueryGenerator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        timeout=settings.openai_timeout_seconds,
        base_url=settings.openai_base_url,
    )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Opens the database pools and builds the services on startup; closes
    the pools on shutdown.
    """
    settings = get_settings()
    logger.info("Query service starting (environment=%s)", settings.environment)

    destination_pool = await _open_pool(settings.database_dsn, settings, "Destination")
    system_pool = await _open_pool(settings.system_database_dsn, settings, "System")

    stores: list[RuleBackingStore] = []
    if system_pool is not None and settings.rules_config_id is not None:
        stores.append(DatabaseRuleBackingStore(system_pool, settings.rules_config_id))
    stores.append(FileRuleBackingStore(settings.rules_file))
    rule_store = RuleStore(stores)

    ai_generator = build_ai_generator(settings)
    if settings.ai_configured:
        logger.info(
            "AI generation is ENABLED (provider=%s, model=%s)",
            ai_generator.provider,
            ai_generator.model,
        )
    else:
        logger.info("AI generation is disabled (set ANTHROPIC_API_KEY or OPENAI_API_KEY to enable)")

    if settings.sandbox_mode:
        logger.warning("Sandbox mode is ON: configuration editing is disabled")

    application.state.settings = settings
    application.state.rule_store = rule_store
    application.state.ai_generator = ai_generator
    application.state.generation_service = QueryGenerationService(
        rule_store,
        pattern_generator=PatternQueryGenerator(),
        ai_generator=ai_generator,
        max_prompt_length=settings.max_prompt_length,
    )
    application.state.executor = QueryExecutor(
        destination_pool,
        default_limit=settings.default_row_limit,
        max_limit=settings.max_row_limit,
        timeout_seconds=settings.query_timeout_seconds,
        expose_error_details=settings.expose_error_details,
    )
    application.state.query_log = (
        DatabaseQueryLog(system_pool) if system_pool is not None else LoggingQueryLog()
    )

    yield

    await ai_generator.close()
    for pool in (destination_pool, system_pool):
        if pool is not None:
            await pool.close()
    logger.info("Application shutdown complete")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(application: FastAPI) -> None:
    """Map service exceptions to ``{"error": ...}`` responses."""

    @application.exception_handler(RequestValidationError)
    async def _request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _error(status.HTTP_400_BAD_REQUEST, f"Validation failed: {details}")

    @application.exception_handler(InputError)
    async def _input_error(_request: Request, exc: InputError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @application.exception_handler(ConfigurationReadOnlyError)
    async def _read_only(_request: Request, exc: ConfigurationReadOnlyError) -> JSONResponse:
        return _error(status.HTTP_403_FORBIDDEN, str(exc))

    @application.exception_handler(RuleSetError)
    async def _rule_set_error(request: Request, exc: RuleSetError) -> JSONResponse:
        logger.error("Rule set unavailable: %s", exc)
        settings = getattr(request.app.state, "settings", None) or get_settings()
        message = "Query rules are not available"
        if settings.expose_error_details:
            message = f"{message}: {exc}"
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def create_app() -> FastAPI:
    """Build the FastAPI application with routers, middleware and handlers."""
    settings = get_settings()
    application = FastAPI(title="Natural Language Query Service", lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    application.include_router(query_router)
    application.include_router(validation_router)
    application.include_router(settings_router)
    application.include_router(logs_router)

    @application.get("/health")
    async def health_check(request: Request) -> dict[str, object]:
        """Health check endpoint."""
        executor = getattr(request.app.state, "executor", None)
        ai_generator = getattr(request.app.state, "ai_generator", None)
        return {
            "status": "healthy",
            "database_configured": bool(executor and executor.configured),
            "ai_enabled": bool(ai_generator and ai_generator.enabled),
        }

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)  # noqa: S104
