"""What a localization run does when documents or batches keep failing."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import (
    AbortRequested,
    ErrorCategory,
    ErrorRecord,
    ErrorTracker,
    NonInteractiveAbort,
)

logger = logging.getLogger(__name__)

CONTINUE = "continue"
RETRY = "retry"

REPLIES = {
    "continue": CONTINUE,
    "c": CONTINUE,
    "retry": RETRY,
    "r": RETRY,
}


class ErrorPolicy:
    """Keeps going after isolated failures, asks (or stops) after repeated ones.

    ``handle_error`` returns ``"continue"`` or ``"retry"``; stopping is an
    exception so callers deep inside a locale pass unwind cleanly.
    """

    def __init__(self, *, interactive: bool) -> None:
        self.interactive = interactive
        self.records: List[ErrorRecord] = []
        self.tracker = ErrorTracker()

    def record_success(self) -> None:
        self.tracker.reset_consecutive()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> str:
        self.records.append(ErrorRecord(category=category, message=message, details=details))
        consecutive, total, threshold = self.tracker.register(category)

        label = category.name.lower().replace("_", " ")
        logger.error("[%s] %s", label, message)
        if details:
            logger.debug(details)

        if not threshold:
            return CONTINUE

        if consecutive >= self.tracker.CONSECUTIVE_LIMIT:
            question = f"{consecutive} {label} errors in a row."
        else:
            question = f"{total} errors so far in this run."

        if not self.interactive:
            raise NonInteractiveAbort(
                f"{question} Stopping because the run is not interactive."
            )

        while True:
            reply = input(f"{question} Continue, retry, or abort? ").strip().lower()
            if reply in REPLIES:
                return REPLIES[reply]
            if reply in {"abort", "a"}:
                raise AbortRequested("Abort requested by user.")
            print("Please respond with Continue, Retry, or Abort (c/r/a).")
