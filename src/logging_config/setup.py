"""Logging Setup.

One-call configuration for the key lifecycle service. Every line carries
the rotation pass (``operation_id``) and signing key (``key_name``) it
belongs to, taken from the record's ``extra`` or the bound
OperationContext, and anything shaped like seed material is masked
before it reaches a handler.
"""

import json
import logging
import os
import re
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import get_context_dict

# Generated seeds (53 chars) and Stellar secret seeds (56 chars)
KEY_MATERIAL_PATTERN = re.compile(r"\bS[A-Z2-7]{52}(?:[A-Z2-7]{3})?\b")
REDACTED_MATERIAL = "S***REDACTED***"

DOMAIN_FIELDS = ("operation_id", "key_name")

# Loggers that echo request URLs or connection chatter at INFO/DEBUG
NOISY_LOGGERS = ("urllib3", "hvac")


def redact_key_material(text: str) -> str:
    """Mask every substring that looks like signing seed material."""
    return KEY_MATERIAL_PATTERN.sub(REDACTED_MATERIAL, text)


class KeyMaterialFilter(logging.Filter):
    """Handler filter that masks seed material in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_key_material(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def domain_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Operation and key identifiers for a record, plus other bound context.

    Values passed through ``extra=`` win over the ambient OperationContext.
    """
    ctx = get_context_dict()
    fields = {}
    for name in DOMAIN_FIELDS:
        bound = ctx.pop(name, None)
        fields[name] = getattr(record, name, None) or bound
    fields.update(ctx)
    return fields


class StructuredFormatter(logging.Formatter):
    """JSON formatter: one object per line.

    ``operation_id`` and ``key_name`` are always present (null when
    unbound) so log queries can filter on them without guarding.
    """

    def __init__(self, service_name: str = "key-lifecycle", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
        }
        log_entry.update(domain_fields(record))
        log_entry["message"] = record.getMessage()

        if self.include_caller:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": redact_key_material(str(record.exc_info[1])),
                "traceback": redact_key_material(self.formatException(record.exc_info)),
            }

        for key in ("duration_ms", "extra_data"):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development.

    Lines read ``12:00:00.000 INFO     [op=3f2a... key=hot-wallet] logger: message``.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]

        fields = domain_fields(record)
        tags = []
        if fields.get("operation_id"):
            tags.append(f"op={fields['operation_id']}")
        if fields.get("key_name"):
            tags.append(f"key={fields['key_name']}")
        tag_str = f" [{' '.join(tags)}]" if tags else ""

        extras = {k: v for k, v in fields.items() if k not in DOMAIN_FIELDS}
        extra_str = ""
        if extras:
            extra_str = " " + " ".join(f"{k}={v}" for k, v in extras.items())

        line = (
            f"{color}{timestamp} {record.levelname:8s}{self.RESET}{tag_str} "
            f"{record.name}: {record.getMessage()}{extra_str}"
        )

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + redact_key_material(self.formatException(record.exc_info))

        return line


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure logging for the service.

    Call once at process start. Installs one stdout handler on the root
    logger with the JSON or console formatter and, unless disabled, the
    key material filter.

    Args:
        config: Logging configuration. Uses defaults if not provided.
                Log level can be overridden with KEYVAULT_LOG_LEVEL env var.
                Log format can be overridden with KEYVAULT_LOG_FORMAT env var.
    """
    config = config or DEFAULT_LOGGING_CONFIG

    env_level = os.environ.get("KEYVAULT_LOG_LEVEL", "").upper()
    if env_level and env_level in LogLevel.__members__:
        config = replace(config, level=LogLevel(env_level))

    env_format = os.environ.get("KEYVAULT_LOG_FORMAT", "").lower()
    if env_format and env_format in [f.value for f in LogFormat]:
        config = replace(config, format=LogFormat(env_format))

    if config.format == LogFormat.JSON:
        formatter = StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        formatter = ConsoleFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    if config.redact_key_material:
        handler.addFilter(KeyMaterialFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.value))

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    When configure_logging() has been called, all output goes through
    the configured formatter.
    """
    return logging.getLogger(name)
