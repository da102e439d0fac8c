"""Logging helpers shared by the setup pipeline and the cell workers."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional


def format_exception_short(exc: BaseException) -> str:
    """Return ``ExceptionName: message`` for one-line diagnostics."""

    return f"{exc.__class__.__name__}: {exc}"


def log_stage(
    logger_obj: Optional[logging.Logger],
    label: str,
    *,
    extra: Optional[Mapping[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """Emit a ``stage=<label> key=value ...`` progress line."""

    if logger_obj is None:
        return
    if extra:
        fields = " ".join(f"{key}={value}" for key, value in extra.items())
        logger_obj.log(level, "stage=%s %s", label, fields)
    else:
        logger_obj.log(level, "stage=%s", label)


__all__ = ["format_exception_short", "log_stage"]
