"""
Query generation API routes.
"""

import logging
import time
from typing import Any

from api.dependencies import (
    get_client_ip,
    get_generation_service,
    get_query_log,
    get_rule_store,
    get_session_id,
)
from entities.query_generation.orchestrator import QueryGenerationService
from entities.rule_store.store import RuleStore
from entities.shared.errors import InputError
from entities.shared.protocols import QueryLog
from fastapi import APIRouter, Depends
from models import ExecutionStatus, GeneratedQuery, GenerateQueryRequest, QueryLogEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["query"])


@router.post("/generate-query", response_model=GeneratedQuery)
async def generate_query(
    body: GenerateQueryRequest,
    service: QueryGenerationService = Depends(get_generation_service),
    query_log: QueryLog = Depends(get_query_log),
    session_id: str | None = Depends(get_session_id),
    client_ip: str | None = Depends(get_client_ip),
) -> GeneratedQuery:
    """
    Turn a natural-language prompt into SQL.

    Invalid prompts are answered with 400 by the ``InputError`` handler.
    """
    started = time.perf_counter()
    try:
        result = await service.generate(body.prompt, use_ai=body.use_ai)
    except InputError as exc:
        await query_log.record(
            QueryLogEntry(
                natural_language_query=body.prompt[:500],
                execution_status=ExecutionStatus.VALIDATION_ERROR,
                error_message=str(exc),
                user_session=session_id,
                ip_address=client_ip,
            )
        )
        raise

    await query_log.record(
        QueryLogEntry(
            natural_language_query=body.prompt,
            generated_sql=result.sql,
            execution_status=ExecutionStatus.SUCCESS,
            confidence_score=result.confidence,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
            user_session=session_id,
            ip_address=client_ip,
        )
    )
    logger.info("Generated SQL via %s (confidence=%.2f)", result.source.value, result.confidence)
    return result


@router.get("/patterns")
async def list_patterns(rule_store: RuleStore = Depends(get_rule_store)) -> dict[str, Any]:
    """
    Describe the configured query patterns and schema.
    """
    rule_set = await rule_store.get()
    return {
        "patterns": [
            {
                "intent": p.intent,
                "description": p.description,
                "keywords": list(p.keywords),
                "examples": list(p.examples),
            }
            for p in rule_set.query_patterns
        ],
        "schema": {
            name: info.model_dump(mode="json") for name, info in rule_set.tables.items()
        },
        "default_intent": rule_set.default_pattern.intent,
    }
