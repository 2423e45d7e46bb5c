"""Accumulate text runs into flat placeholder strings and rebuild them.

A run of mrkdwn such as ``This is a *test*`` becomes ``This is a <c0>test</c0>``
for translators, while the accumulator remembers which markup node each
``cN`` stands for. A translated string is parsed back into a small tree whose
components point at those original nodes again.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .mrkdwn import MarkupNode, NodeType, closing, opening, render, render_markup
from .structures import (
    ComponentKind,
    Piece,
    PieceKind,
    PlaceholderComponent,
    PlaceholderWarning,
    WarningKind,
)

logger = logging.getLogger(__name__)

# whitespace plus the zero-width characters (U+200B to U+200D, U+2060)
_WHITESPACE = r"\s\u2000-\u200d\u2028\u2029\u202f\u205f\u2060"
WHITESPACE_START = re.compile(rf"\A[{_WHITESPACE}]+")
WHITESPACE_END = re.compile(rf"[{_WHITESPACE}]+\Z")
WHITESPACE = re.compile(rf"[{_WHITESPACE}]+")

TAG_PATTERN = re.compile(r"<(/?)c(\d+)(/?)>")


def render_pieces(pieces: List[Piece]) -> str:
    """Regenerate the original mrkdwn for stripped prefix or suffix pieces."""

    parts: List[str] = []
    for piece in pieces:
        if piece.kind is PieceKind.TEXT:
            parts.append(piece.node.text)
        elif piece.kind is PieceKind.START:
            parts.append(opening(piece.node))
        elif piece.kind is PieceKind.END:
            parts.append(closing(piece.node))
        else:
            parts.append(render(piece.node))
    return "".join(parts)


def _flatten(nodes: List[MarkupNode], pieces: List[Piece]) -> None:
    for node in nodes:
        if node.type is NodeType.TEXT:
            pieces.append(Piece(PieceKind.TEXT, node))
        elif node.children:
            pieces.append(Piece(PieceKind.START, node))
            _flatten(node.children, pieces)
            pieces.append(Piece(PieceKind.END, node))
        else:
            pieces.append(Piece(PieceKind.WHOLE, node))


@dataclass
class TranslatedMessage:
    """A translated placeholder-string bound to the source components."""

    root: MarkupNode
    warnings: List[PlaceholderWarning] = field(default_factory=list)

    def flatten(self) -> List[Piece]:
        """Return the ordered text and component pieces, without the root."""

        pieces: List[Piece] = []
        _flatten(self.root.children, pieces)
        return pieces

    def render(self) -> str:
        """Walk the flattened pieces and put the source syntax back around them."""

        stack: List[List[str]] = [[]]
        for piece in self.flatten():
            if piece.kind is PieceKind.TEXT:
                stack[-1].append(piece.node.text)
            elif piece.kind is PieceKind.START:
                stack.append([])
            elif piece.kind is PieceKind.END:
                inner = "".join(stack.pop())
                stack[-1].append(render_markup(piece.node, inner))
            else:
                stack[-1].append(render_markup(piece.node))
        return "".join(stack[0])


class MessageAccumulator:
    """Builds a placeholder-string from begin/text/end events."""

    def __init__(self) -> None:
        self.root = MarkupNode(NodeType.ROOT)
        self.current = self.root
        self.component_index = 0
        self.text = ""
        self.mapping: Dict[int, PlaceholderComponent] = {}
        self.prefixes: List[Piece] = []
        self.suffixes: List[Piece] = []
        self._minimized = False

    @classmethod
    def create_from_translated_string(
        cls,
        translated: str,
        source: Optional["MessageAccumulator"],
    ) -> TranslatedMessage:
        """Parse a translated placeholder-string against the source components.

        Components whose number never existed in ``source`` are removed along
        with their content. A tag written paired where the source component
        stands alone, or the other way round, keeps the source syntax only.
        Every structural problem is reported as a warning record; nothing here
        raises.
        """

        mapping = source.get_mapping() if source is not None else {}
        message = cls()
        warnings: List[PlaceholderWarning] = []
        stack: List[MarkupNode] = [message.root]
        translated = translated or ""
        position = 0

        for match in TAG_PATTERN.finditer(translated):
            if match.start() > position:
                stack[-1].add(MarkupNode(NodeType.TEXT, text=translated[position:match.start()]))
            position = match.end()
            end_slash, number, self_closing = match.groups()
            index = int(number)

            if end_slash and self_closing:
                warnings.append(PlaceholderWarning(
                    WarningKind.UNBALANCED_TAG, index, f"Malformed tag {match.group(0)} dropped."
                ))
            elif self_closing:
                stack[-1].add(message._placeholder(
                    index, ComponentKind.SELF_CLOSING, source, warnings
                ))
            elif not end_slash:
                node = stack[-1].add(message._placeholder(
                    index, ComponentKind.PAIRED, source, warnings
                ))
                stack.append(node)
            elif index not in [node.index for node in stack[1:]]:
                warnings.append(PlaceholderWarning(
                    WarningKind.UNBALANCED_TAG,
                    index,
                    f"Closing tag </c{index}> has no matching opening tag.",
                ))
            else:
                while stack[-1].index != index:
                    unclosed = stack.pop()
                    warnings.append(PlaceholderWarning(
                        WarningKind.UNBALANCED_TAG,
                        unclosed.index,
                        f"Tag <c{unclosed.index}> closed implicitly by </c{index}>.",
                    ))
                stack.pop()

        if position < len(translated):
            stack[-1].add(MarkupNode(NodeType.TEXT, text=translated[position:]))
        while len(stack) > 1:
            unclosed = stack.pop()
            warnings.append(PlaceholderWarning(
                WarningKind.UNBALANCED_TAG,
                unclosed.index,
                f"Tag <c{unclosed.index}> is never closed.",
            ))

        used: Set[int] = set()
        max_index = max(mapping) if mapping else -1
        message._reconcile(message.root, max_index, used, warnings)
        for index in sorted(set(mapping) - used):
            warnings.append(PlaceholderWarning(
                WarningKind.MISSING_COMPONENT,
                index,
                f"Component c{index} of the source is missing from the translation.",
            ))

        message._minimized = True
        return TranslatedMessage(root=message.root, warnings=warnings)

    def add_text(self, text: str) -> None:
        """Add text to the innermost open component."""

        self.current.add(MarkupNode(NodeType.TEXT, text=text))
        self.text += text

    def begin_component(self, source_node: MarkupNode) -> None:
        """Open a new component; text added from now on goes inside it."""

        node = MarkupNode(
            NodeType.COMPONENT,
            index=self.component_index,
            origin=source_node,
        )
        self.component_index += 1
        self.current.add(node)
        self.current = node

    def end_component(self) -> Optional[MarkupNode]:
        """Close the innermost component and return its source node."""

        if self.current.parent is None:
            logger.warning(
                "Unbalanced component: nothing to close after %r", self.text
            )
            return None
        node = self.current
        self.current = node.parent
        return node.origin

    def get_minimal_string(self) -> str:
        """Return the placeholder-string without irrelevant outer parts.

        Components wrapping the whole message, components at either end that
        hold no text, and surrounding whitespace are moved to the prefix and
        suffix. The remaining components are renumbered from zero.
        """

        self._minimize()
        return self._to_string(self.root.children)

    def get_prefix(self) -> List[Piece]:
        self._minimize()
        return self.prefixes

    def get_suffix(self) -> List[Piece]:
        self._minimize()
        return self.suffixes

    def get_text_length(self) -> int:
        """Number of non-whitespace characters added so far."""

        return len(WHITESPACE.sub("", self.text))

    def get_current_level(self) -> int:
        """Depth of the open component stack; 0 at the root."""

        depth = 0
        node = self.current
        while node.parent is not None:
            depth += 1
            node = node.parent
        return depth

    def get_mapping(self) -> Dict[int, PlaceholderComponent]:
        self._minimize()
        return self.mapping

    def get_component(self, index: int) -> Optional[PlaceholderComponent]:
        return self.get_mapping().get(index)

    # --- Internal helpers -------------------------------------------------

    def _placeholder(
        self,
        index: int,
        kind: ComponentKind,
        source: Optional["MessageAccumulator"],
        warnings: List[PlaceholderWarning],
    ) -> MarkupNode:
        component = source.get_component(index) if source is not None else None
        if component is not None and component.kind is not kind:
            if kind is ComponentKind.PAIRED:
                message = (
                    f"Component c{index} stands alone in the source; "
                    f"text inside <c{index}> is dropped."
                )
            else:
                message = (
                    f"Component c{index} wraps text in the source "
                    f"but is used as <c{index}/>."
                )
            warnings.append(PlaceholderWarning(WarningKind.KIND_MISMATCH, index, message))
        return MarkupNode(
            NodeType.COMPONENT,
            index=index,
            origin=component.source_node if component is not None else None,
        )

    def _reconcile(
        self,
        node: MarkupNode,
        max_index: int,
        used: Set[int],
        warnings: List[PlaceholderWarning],
    ) -> None:
        kept: List[MarkupNode] = []
        for child in node.children:
            if child.type is NodeType.COMPONENT:
                if child.origin is None or child.index > max_index:
                    warnings.append(PlaceholderWarning(
                        WarningKind.UNKNOWN_COMPONENT,
                        child.index,
                        f"Component c{child.index} does not exist in the source.",
                    ))
                    continue
                used.add(child.index)
                self._reconcile(child, max_index, used, warnings)
            kept.append(child)
        node.children = kept

    def _is_empty(self, node: MarkupNode) -> bool:
        if node.type is NodeType.TEXT:
            return not WHITESPACE.sub("", node.text)
        return all(self._is_empty(child) for child in node.children)

    def _whole(self, node: MarkupNode) -> Piece:
        if node.type is NodeType.TEXT:
            return Piece(PieceKind.TEXT, node)
        return Piece(PieceKind.WHOLE, node)

    def _minimize(self) -> None:
        if self._minimized:
            return

        nodes = list(self.root.children)
        changed = True
        while changed and nodes:
            changed = False

            # components that surround everything without adding to it
            while (
                len(nodes) == 1
                and nodes[0].type is NodeType.COMPONENT
                and nodes[0].children
            ):
                outer = nodes[0]
                self.prefixes.append(Piece(PieceKind.START, outer))
                self.suffixes.insert(0, Piece(PieceKind.END, outer))
                nodes = list(outer.children)
                changed = True

            while nodes and self._is_empty(nodes[0]):
                self.prefixes.append(self._whole(nodes.pop(0)))
                changed = True

            while nodes and self._is_empty(nodes[-1]):
                self.suffixes.insert(0, self._whole(nodes.pop()))
                changed = True

            if nodes and nodes[0].type is NodeType.TEXT:
                match = WHITESPACE_START.search(nodes[0].text)
                if match:
                    nodes[0].text = nodes[0].text[match.end():]
                    self.prefixes.append(Piece(PieceKind.TEXT, MarkupNode(NodeType.TEXT, text=match.group(0))))
                    changed = True

            if nodes and nodes[-1].type is NodeType.TEXT:
                match = WHITESPACE_END.search(nodes[-1].text)
                if match:
                    nodes[-1].text = nodes[-1].text[:match.start()]
                    self.suffixes.insert(0, Piece(PieceKind.TEXT, MarkupNode(NodeType.TEXT, text=match.group(0))))
                    changed = True

        self.root.children = nodes
        for node in nodes:
            node.parent = self.root

        self.component_index = 0
        self.mapping = {}
        self._renumber(self.root)
        self._minimized = True

    def _renumber(self, node: MarkupNode) -> None:
        if node.type is NodeType.COMPONENT:
            node.index = self.component_index
            self.component_index += 1
            kind = ComponentKind.PAIRED if node.children else ComponentKind.SELF_CLOSING
            self.mapping[node.index] = PlaceholderComponent(node.index, kind, node.origin)
        for child in node.children:
            self._renumber(child)

    def _to_string(self, nodes: List[MarkupNode]) -> str:
        parts: List[str] = []
        for node in nodes:
            if node.type is NodeType.TEXT:
                parts.append(node.text)
            elif node.children:
                parts.append(f"<c{node.index}>{self._to_string(node.children)}</c{node.index}>")
            else:
                parts.append(f"<c{node.index}/>")
        return "".join(parts)
