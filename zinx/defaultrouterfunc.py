"""Default handlers for slice-based routes: panic recovery and timing."""

from __future__ import annotations

import inspect
import logging
import os
import time
import traceback
from typing import Any

__all__ = ["STACK_BEGIN", "STACK_END", "router_recovery", "router_time", "stack_info"]

log = logging.getLogger(__name__)

STACK_BEGIN = 3
STACK_END = 5


def _format_frame(func_name: str, filename: str, line_no: int) -> str:
    return (
        f"funcname:{func_name} filename:{os.path.basename(filename)} "
        f"LineNo:{line_no}\n"
    )


def stack_info(skip: int = STACK_BEGIN) -> str:
    """Describe call frames from depth ``skip`` to ``STACK_END``; depth 0 is this one."""
    lines = []
    frame = inspect.currentframe()
    depth = 0
    try:
        while frame is not None and depth <= STACK_END:
            if depth >= skip:
                code = frame.f_code
                lines.append(_format_frame(code.co_name, code.co_filename, frame.f_lineno))
            frame = frame.f_back
            depth += 1
    finally:
        del frame
    return "".join(lines)


def _exception_info(exc: BaseException) -> str:
    frames = traceback.extract_tb(exc.__traceback__)
    innermost = frames[-(STACK_END - STACK_BEGIN + 1):]
    return "".join(
        _format_frame(f.name, f.filename, f.lineno or 0) for f in reversed(innermost)
    )


def router_recovery(request: Any) -> None:
    """Run the rest of the chain, logging any exception instead of raising it."""
    try:
        request.router_slices_next()
    except Exception as exc:
        log.error(
            "MsgId:%s Handler panic: info:%s err:%s",
            request.msg_id,
            _exception_info(exc),
            exc,
        )


def router_time(request: Any) -> None:
    """Run the rest of the chain and print how long it took."""
    started = time.perf_counter()
    request.router_slices_next()
    print(f"{time.perf_counter() - started:.6f}s")