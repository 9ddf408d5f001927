"""Query Log package for auditing generation and validation requests."""

from .service import MAX_LOG_PAGE, DatabaseQueryLog, LoggingQueryLog, clamp_page

__all__ = ["MAX_LOG_PAGE", "DatabaseQueryLog", "LoggingQueryLog", "clamp_page"]
