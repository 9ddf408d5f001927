"""
FastAPI dependencies for shared resources.

Services are built once in the application lifespan and stored on
``app.state``; these helpers hand them to route handlers.
"""

import logging

from config.settings import Settings, get_settings
from entities.ai_generator.client import LanguageModelQueryGenerator
from entities.query_executor.executor import QueryExecutor
from entities.query_generation.orchestrator import QueryGenerationService
from entities.query_log.service import LoggingQueryLog
from entities.rule_store.store import RuleStore
from entities.shared.protocols import QueryLog
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

SESSION_HEADER = "x-session-id"


def _require_state(request: Request, name: str, label: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{label} not initialized")
    return value


def get_app_settings(request: Request) -> Settings:
    """Settings stored at startup, or the process-wide defaults."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_generation_service(request: Request) -> QueryGenerationService:
    """
    Get the query generation service from app state.

    Raises HTTPException 503 if not initialized.
    """
    return _require_state(request, "generation_service", "Query generation")  # type: ignore[return-value]


def get_executor(request: Request) -> QueryExecutor:
    """
    Get the query executor from app state.

    Raises HTTPException 503 if not initialized.
    """
    return _require_state(request, "executor", "Query executor")  # type: ignore[return-value]


def get_rule_store(request: Request) -> RuleStore:
    """
    Get the rule store from app state.

    Raises HTTPException 503 if not initialized.
    """
    return _require_state(request, "rule_store", "Rule store")  # type: ignore[return-value]


def get_ai_generator(request: Request) -> LanguageModelQueryGenerator | None:
    """Get the AI generator from app state, or None when AI is not configured."""
    return getattr(request.app.state, "ai_generator", None)


def get_query_log(request: Request) -> QueryLog:
    """Get the audit log from app state; falls back to application logging."""
    query_log = getattr(request.app.state, "query_log", None)
    if query_log is None:
        return LoggingQueryLog()
    return query_log


def get_session_id(request: Request) -> str | None:
    """Caller-supplied session identifier, used only for the audit log."""
    return request.headers.get(SESSION_HEADER)


def get_client_ip(request: Request) -> str | None:
    """Client address, honouring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
