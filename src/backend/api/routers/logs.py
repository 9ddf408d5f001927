"""
Query audit log API routes.
"""

import logging

from api.dependencies import get_query_log
from entities.query_log.service import MAX_LOG_PAGE
from entities.shared.protocols import QueryLog
from fastapi import APIRouter, Depends, Query
from models import QueryLogEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["logs"])


@router.get("/query-logs", response_model=list[QueryLogEntry])
async def list_query_logs(
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0, ge=0),
    query_log: QueryLog = Depends(get_query_log),
) -> list[QueryLogEntry]:
    """Return logged requests, newest first (at most 1000 per page)."""
    return await query_log.recent(limit=min(limit, MAX_LOG_PAGE), offset=offset)
