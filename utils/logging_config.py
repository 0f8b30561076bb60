"""
Logging Configuration

One-line structured records for the ledger and performance engines.
Data-quality findings pass their details as ``extra={"context": {...}}``
and the formatter appends them as sorted key=value pairs, so a run's log
can be grepped by holding, currency or period.

The level comes from the LOG_LEVEL environment variable unless a caller
passes one explicitly.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LEVEL = "INFO"


class StructuredFormatter(logging.Formatter):
    """
    [2026-01-31 12:00:00.123] [WARNING ] [fx_rates:_fill_mandatory:212] message key=value ...
    """

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{self.formatTime(record)}]",
            f"[{record.levelname:8s}]",
            f"[{record.module}:{record.funcName}:{record.lineno}]",
            record.getMessage(),
        ]

        context: Dict[str, Any] = getattr(record, "context", None) or {}
        parts.extend(f"{key}={context[key]}" for key in sorted(context))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class PerformanceLogger:
    """
    Times an engine phase. Logs at DEBUG, or WARNING past ``threshold_ms``.

    Exceptions from the timed block always propagate.
    """

    def __init__(self, logger: logging.Logger, operation: str, threshold_ms: float = 1000):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._started is None:
            return False

        self.duration_ms = (time.perf_counter() - self._started) * 1000

        if exc_type is not None:
            self.logger.debug(f"{self.operation} failed after {self.duration_ms:.1f}ms")
        elif self.duration_ms > self.threshold_ms:
            self.logger.warning(
                f"SLOW: {self.operation} took {self.duration_ms:.1f}ms",
                extra={"context": {"threshold_ms": self.threshold_ms}},
            )
        else:
            self.logger.debug(f"{self.operation} took {self.duration_ms:.1f}ms")
        return False


def _handler(target: logging.Handler, level: int) -> logging.Handler:
    target.setLevel(level)
    target.setFormatter(StructuredFormatter())
    return target


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Return the named logger, configured on first use.

    Args:
        name: Usually the calling module's ``__name__``
        level: Level name; LOG_LEVEL, then INFO, when omitted
        log_file: Also write records to this file

    Returns:
        The logger; later calls with the same name return it unchanged
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level_name = (level or os.getenv("LOG_LEVEL", DEFAULT_LEVEL)).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger.setLevel(numeric_level)
    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), numeric_level))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), numeric_level))

    # Engine records are already formatted; keep them out of the root logger
    logger.propagate = False
    return logger


def get_perf_logger(logger: logging.Logger, operation: str, threshold_ms: float = 1000) -> PerformanceLogger:
    """
    Usage:
        with get_perf_logger(logger, "build_ledger", threshold_ms=500):
            holdings = build_ledger(...)
    """
    return PerformanceLogger(logger, operation, threshold_ms)


def log_dataframe_info(logger: logging.Logger, df, name: str = "DataFrame"):
    """DEBUG line with the shape and date span of a date-indexed frame."""
    if df is None:
        logger.warning(f"{name} is missing")
        return
    if df.empty:
        logger.debug(f"{name}: no rows")
        return
    logger.debug(
        f"{name}: {len(df)} rows x {len(df.columns)} columns",
        extra={"context": {"first": df.index[0], "last": df.index[-1]}},
    )
