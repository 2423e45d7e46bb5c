"""Error definitions and policy helpers for mrkdwnloc."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises runtime errors to apply policy thresholds."""

    ARGUMENT = auto()
    FILE_IO = auto()
    FORMAT = auto()
    MARKUP = auto()
    TRANSLATION = auto()
    NETWORK = auto()
    OTHER = auto()


class MrkdwnlocError(Exception):
    """Base exception for all custom errors."""


class AbortRequested(MrkdwnlocError):
    """Raised when the user elects to abort processing."""


class NonInteractiveAbort(MrkdwnlocError):
    """Raised when non-interactive policy dictates termination."""


class UnsupportedFileTypeError(MrkdwnlocError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(MrkdwnlocError):
    """Raised when attempting to overwrite an output without consent."""


class ConfigurationError(MrkdwnlocError):
    """Raised when the configuration sources cannot be loaded or validated."""


class TranslationProviderConfigurationError(ConfigurationError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(MrkdwnlocError):
    """Raised when the translation provider fails permanently."""


class DocumentParseError(MrkdwnlocError):
    """Raised when a source document is not valid (tolerant) JSON."""


class UnhandledNodeError(MrkdwnlocError):
    """Raised when a walker meets a node type it has no rule for."""


class MarkupSyntaxError(MrkdwnlocError):
    """Raised when the mrkdwn source itself is broken beyond recovery."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        line: int = 1,
        column: int = 1,
    ) -> None:
        self.path = path
        self.line = line
        self.column = column
        location = f"{path or '<string>'}:{line}:{column}"
        super().__init__(f"{location}: {message}")


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Tracks consecutive and aggregate errors to satisfy policy rules."""

    CONSECUTIVE_LIMIT = 3
    TOTAL_LIMIT = 10

    def __init__(self) -> None:
        self.last_category: Optional[ErrorCategory] = None
        self.consecutive: int = 0
        self.total: int = 0

    def register(self, category: ErrorCategory) -> tuple[int, int, bool]:
        """Register a new error and return counters."""

        if self.last_category == category:
            self.consecutive += 1
        else:
            self.last_category = category
            self.consecutive = 1

        self.total += 1

        threshold_reached = (
            self.consecutive >= self.CONSECUTIVE_LIMIT
            or self.total >= self.TOTAL_LIMIT
        )

        return self.consecutive, self.total, threshold_reached

    def reset_consecutive(self) -> None:
        """Reset the consecutive counter after successful work."""

        self.consecutive = 0
        self.last_category = None
