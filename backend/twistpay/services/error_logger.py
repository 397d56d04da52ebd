"""Centralised error logging: captures exceptions to the ``twistpay.errors`` logger.

Usage:
    # 1. As a function call in any try/except:
    from twistpay.services.error_logger import log_error
    try:
        ...
    except Exception as e:
        await log_error(e, module="my_module", function_name="my_func")

    # 2. Middleware captures unhandled request errors automatically.
"""

from __future__ import annotations

import enum
import logging
import traceback as tb_module
from typing import Optional

logger = logging.getLogger("twistpay.errors")


class ErrorSeverity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _sanitize_text(value: object, *, max_len: Optional[int] = None) -> str:
    """Normalize control characters before logging text."""
    text = str(value)
    # Keep common whitespace but strip other control chars.
    text = "".join(ch if (ch >= " " or ch in "\n\r\t") else " " for ch in text)
    if max_len is not None:
        return text[:max_len]
    return text


async def log_error(
    exc: Exception,
    *,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    module: Optional[str] = None,
    function_name: Optional[str] = None,
    line_number: Optional[int] = None,
    request_method: Optional[str] = None,
    request_path: Optional[str] = None,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
    ip_address: Optional[str] = None,
) -> dict:
    """Log an exception and return the structured entry that was logged."""

    error_type = type(exc).__name__
    message = _sanitize_text(exc, max_len=2000)

    # Auto-detect module/function/line from traceback if not provided
    if exc.__traceback__ and not module:
        frame = exc.__traceback__
        while frame.tb_next:
            frame = frame.tb_next
        module = frame.tb_frame.f_code.co_filename
        function_name = function_name or frame.tb_frame.f_code.co_name
        line_number = line_number or frame.tb_lineno

    log_msg = f"[{severity.value.upper()}] {error_type}: {message}"
    if request_path:
        log_msg = f"{request_method or '?'} {request_path} -> {log_msg}"

    if severity == ErrorSeverity.WARNING:
        logger.warning(log_msg)
    else:
        logger.error(log_msg, exc_info=exc if exc.__traceback__ else None)

    return {
        "severity": severity.value,
        "error_type": error_type,
        "message": message,
        "traceback": _sanitize_text(
            "".join(tb_module.format_exception(type(exc), exc, exc.__traceback__)),
            max_len=10000,
        ),
        "module": _sanitize_text(module, max_len=300) if module else None,
        "function_name": function_name,
        "line_number": line_number,
        "request_method": request_method,
        "request_path": _sanitize_text(request_path, max_len=500) if request_path else None,
        "status_code": status_code,
        "response_time_ms": response_time_ms,
        "ip_address": ip_address,
    }
