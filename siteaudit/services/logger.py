"""Loguru sinks plus the structured record helpers used across the audit pipeline."""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from siteaudit.config import settings

LOG_DIR = Path("logs")

logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

if settings.log_to_file:
    LOG_DIR.mkdir(exist_ok=True)
    logger.add(
        LOG_DIR / "siteaudit_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
    )

# Framework and provider SDK loggers go through stdlib logging.
for logger_name in ("uvicorn.access", "httpx", "httpcore", "openai._base_client", "chromadb"):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """One completion or embedding request."""
    call_data = {
        "model": model,
        "caller": caller,
        "tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data} error={error}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_audit_step(job_id: str, step: str, status: str, data: Optional[dict] = None) -> None:
    level = "WARNING" if status == "failed" else "INFO"
    logger.log(level, f"AUDIT_STEP: job={job_id} step={step} status={status} data={data or {}}")


def log_db_operation(operation: str, table: str, details: Optional[str] = None) -> None:
    logger.debug(f"DB_OPERATION: {operation} {table} {details or ''}".rstrip())


def log_event(event_type: str, message: str, **kwargs) -> None:
    logger.info(f"EVENT: {event_type} - {message} {kwargs}")
