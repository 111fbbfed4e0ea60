"""Structured Logging & Operation Tracing.

Provides structured JSON logging, operation ID propagation,
and performance timing for the key lifecycle service.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import OperationContext, generate_operation_id
from src.logging_config.performance import log_performance
from src.logging_config.setup import configure_logging, get_logger

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "OperationContext",
    "configure_logging",
    "generate_operation_id",
    "get_logger",
    "log_performance",
]
