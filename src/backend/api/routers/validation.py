"""
SQL validation and execution API routes.
"""

import logging

from api.dependencies import get_client_ip, get_executor, get_query_log, get_session_id
from entities.query_executor.executor import QueryExecutor
from entities.shared.protocols import QueryLog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from models import (
    ExecutionStatus,
    OutcomeClassification,
    QueryLogEntry,
    ValidateQueryRequest,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["validation"])

STATUS_BY_CLASSIFICATION: dict[OutcomeClassification, int] = {
    OutcomeClassification.OK: 200,
    OutcomeClassification.REJECTED: 400,
    OutcomeClassification.SYNTAX_ERROR: 400,
    OutcomeClassification.EXECUTION_ERROR: 400,
    OutcomeClassification.TIMEOUT: 400,
    OutcomeClassification.NOT_CONFIGURED: 503,
    OutcomeClassification.INTERNAL_ERROR: 500,
}

_LOG_STATUS: dict[OutcomeClassification, ExecutionStatus] = {
    OutcomeClassification.OK: ExecutionStatus.SUCCESS,
    OutcomeClassification.REJECTED: ExecutionStatus.VALIDATION_ERROR,
    OutcomeClassification.SYNTAX_ERROR: ExecutionStatus.VALIDATION_ERROR,
}


@router.post("/validate-query", response_model=ValidationOutcome)
async def validate_query(
    body: ValidateQueryRequest,
    executor: QueryExecutor = Depends(get_executor),
    query_log: QueryLog = Depends(get_query_log),
    session_id: str | None = Depends(get_session_id),
    client_ip: str | None = Depends(get_client_ip),
) -> JSONResponse:
    """
    Safety-check, probe and optionally execute a SQL statement.

    The HTTP status follows the outcome classification.
    """
    outcome = await executor.run(body.sql, execute=body.execute)

    await query_log.record(
        QueryLogEntry(
            natural_language_query=body.sql,
            generated_sql=outcome.executed_sql,
            execution_status=_LOG_STATUS.get(
                outcome.classification, ExecutionStatus.EXECUTION_ERROR
            ),
            execution_time_ms=round(outcome.execution_time_ms),
            error_message=outcome.error,
            user_session=session_id,
            ip_address=client_ip,
        )
    )

    return JSONResponse(
        status_code=STATUS_BY_CLASSIFICATION[outcome.classification],
        content=outcome.model_dump(mode="json"),
    )
