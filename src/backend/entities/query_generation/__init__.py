"""Query Generation package combining the AI and pattern generators."""

from .orchestrator import QueryGenerationService, validate_prompt

__all__ = ["QueryGenerationService", "validate_prompt"]
