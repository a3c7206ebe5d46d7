"""Structured logging for the core, the API and the CLI."""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

# chatty libraries that only log at WARNING unless we are debugging
NOISY_LOGGERS = ("aiohttp.access", "uvicorn.access", "asyncio")


def _enum_values(logger: Any, method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Render Outcome/RiskLevel/ReasonCode fields as their plain values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[Path] = None,
) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric)
    logging.getLogger().setLevel(numeric)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _enum_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if structured:
        # Vietnamese labels stay readable in the JSON lines
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
