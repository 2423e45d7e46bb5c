"""Core data structures for mrkdwnloc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from .accumulator import MessageAccumulator
    from .mrkdwn import MarkupNode
    from .store import Resource


class ComponentKind(Enum):
    """Whether a placeholder wraps translatable content or stands alone."""

    PAIRED = "paired"
    SELF_CLOSING = "self-closing"


@dataclass
class PlaceholderComponent:
    """A non-text markup node lifted out of a text run."""

    index: int
    kind: ComponentKind
    source_node: "MarkupNode"


class PieceKind(Enum):
    TEXT = "text"
    START = "start"
    END = "end"
    WHOLE = "whole"


@dataclass
class Piece:
    """Part of a message stripped off the front or back during minimization."""

    kind: PieceKind
    node: "MarkupNode"


class WarningKind(Enum):
    UNKNOWN_COMPONENT = "unknown-component"
    MISSING_COMPONENT = "missing-component"
    UNBALANCED_TAG = "unbalanced-tag"
    KIND_MISMATCH = "kind-mismatch"


@dataclass
class PlaceholderWarning:
    """A structural mismatch absorbed while rebuilding a translation."""

    kind: WarningKind
    index: Optional[int]
    message: str
    key: Optional[str] = None
    locale: Optional[str] = None
    source: Optional[str] = None
    translation: Optional[str] = None


@dataclass
class Run:
    """A maximal sequence of inline nodes handled as one unit.

    ``resource`` is ``None`` when the run held nothing worth translating; the
    nodes are then written back verbatim.
    """

    nodes: List["MarkupNode"] = field(default_factory=list)
    accumulator: Optional["MessageAccumulator"] = None
    resource: Optional["Resource"] = None


class RunState(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    RECONSTRUCTED = "reconstructed"
    RECONSTRUCTED_WITH_WARNING = "reconstructed-with-warning"


@dataclass
class RunLocalization:
    """Progress of one resource through a locale pass."""

    key: str
    source: str
    state: RunState = RunState.PENDING
    translation: Optional[str] = None
    fallback: bool = False
    text: str = ""
    warnings: List[PlaceholderWarning] = field(default_factory=list)


@dataclass
class Reconstruction:
    """Localized text for one value plus everything absorbed on the way."""

    text: str
    warnings: List[PlaceholderWarning] = field(default_factory=list)
    fully_translated: bool = True
    runs: List[RunLocalization] = field(default_factory=list)


@dataclass
class DocumentValue:
    """One top-level entry of a parsed document."""

    value: Any
    ast: Optional["MarkupNode"] = None


@dataclass
class LocalizedDocument:
    """Result of localizing a whole document into one locale."""

    locale: str
    text: str
    fully_translated: bool
    warnings: List[PlaceholderWarning] = field(default_factory=list)


@dataclass
class TranslationStatus:
    """Per document, per locale translation completeness."""

    path: str
    locale: str
    fully_translated: bool


@dataclass
class Batch:
    """A batch of resources constrained by a character budget."""

    batch_id: int
    resources: List["Resource"]
