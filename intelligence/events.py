"""
Workflow Events
生命周期通知 - 交给可选的 progress callback，不负责任何传输。
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

STAGE_STARTED = "stage_started"
STAGE_COMPLETED = "stage_completed"
ITEM_FOUND = "item_found"
PROGRESS = "progress"
FINAL_RESULT = "final_result"
ERROR = "error"

EVENT_TYPES = (STAGE_STARTED, STAGE_COMPLETED, ITEM_FOUND, PROGRESS, FINAL_RESULT, ERROR)

ProgressCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


async def emit_event(
    progress_callback: Optional[ProgressCallback],
    *,
    event: str,
    **payload: Any,
) -> None:
    """Deliver one event dict; callback failures are logged and never abort the run."""
    if progress_callback is None:
        return
    message: Dict[str, Any] = {"event": event}
    message.update(payload)
    try:
        result = progress_callback(message)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.debug("Progress callback failed", exc_info=True)
