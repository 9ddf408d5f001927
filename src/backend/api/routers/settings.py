"""
Rule-set configuration API routes.

Edits are refused with 403 while sandbox mode is on.
"""

import logging
from typing import Any

from api.dependencies import get_ai_generator, get_app_settings, get_rule_store
from config.settings import Settings
from entities.ai_generator.client import LanguageModelQueryGenerator
from entities.rule_store.store import RuleStore, parse_rule_set
from entities.shared.errors import ConfigurationReadOnlyError, RuleSetError
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/rules")
async def get_rules(rule_store: RuleStore = Depends(get_rule_store)) -> dict[str, Any]:
    """Return the current rule set using the persisted key names."""
    rule_set = await rule_store.get()
    return rule_set.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.put("/rules", response_model=None)
async def update_rules(
    payload: dict[str, Any] = Body(...),
    rule_store: RuleStore = Depends(get_rule_store),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any] | JSONResponse:
    """
    Validate and store a new rule set.

    The cache is cleared so the next request loads the stored version.
    """
    if settings.sandbox_mode:
        raise ConfigurationReadOnlyError()

    try:
        rule_set = parse_rule_set(payload, "request body")
    except RuleSetError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    await rule_store.save(rule_set, read_only=settings.sandbox_mode)
    logger.info("Rule set updated (%d patterns)", len(rule_set.query_patterns))
    return {"success": True, "pattern_count": len(rule_set.query_patterns)}


@router.post("/rules/reload")
async def reload_rules(rule_store: RuleStore = Depends(get_rule_store)) -> dict[str, Any]:
    """Drop the cached rule set and load it again."""
    rule_set = await rule_store.reload()
    return {"success": True, "pattern_count": len(rule_set.query_patterns)}


@router.get("/sandbox")
async def get_sandbox_status(settings: Settings = Depends(get_app_settings)) -> dict[str, bool]:
    """Report whether configuration editing is disabled."""
    return {"sandbox_mode": settings.sandbox_mode}


@router.post("/ai/test")
async def test_ai_connection(
    ai_generator: LanguageModelQueryGenerator | None = Depends(get_ai_generator),
) -> dict[str, Any]:
    """Check that the configured language model answers."""
    if ai_generator is None or not ai_generator.enabled:
        return {"enabled": False, "connected": False}
    connected = await ai_generator.test_connection()
    return {
        "enabled": True,
        "connected": connected,
        "provider": ai_generator.provider,
        "model": ai_generator.model,
    }
