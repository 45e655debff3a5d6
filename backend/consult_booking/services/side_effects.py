"""
Best-effort side effects.

Steps that must never block or roll back the primary write (calendar
event creation, notifications, cleanup) run through run_best_effort().
The returned SideEffectResult is for logging and for carrying the value
(e.g. an event id); booking control flow never branches on `ok`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SideEffectResult(Generic[T]):
    step: str
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None


def run_best_effort(step: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> SideEffectResult[T]:
    """Call fn; log and swallow any exception."""
    try:
        value = fn(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Best-effort step '{step}' failed: {e}", exc_info=True)
        return SideEffectResult(step=step, ok=False, error=str(e))
    return SideEffectResult(step=step, ok=True, value=value)
