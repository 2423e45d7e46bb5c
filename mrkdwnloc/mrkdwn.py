"""Slack mrkdwn parsing and rendering.

The parser is lossless: ``render(parse(text)) == text`` for any input. Nodes
are plain dataclasses tagged with a :class:`NodeType`; the same type also
describes the placeholder nodes built while reconstructing a translation, so
every consumer dispatches over one closed set of node kinds.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import MarkupSyntaxError, UnhandledNodeError


class NodeType(Enum):
    """Every node kind the parser and the reconstruction code can produce."""

    ROOT = "root"
    TEXT = "text"
    ITALIC = "italic"
    BOLD = "bold"
    STRIKE = "strike"
    QUOTE = "quote"
    PRE_TEXT = "pre_text"
    CODE = "code"
    EMOJI = "emoji"
    URL = "url"
    CHANNEL_LINK = "channel_link"
    USER_LINK = "user_link"
    COMMAND = "command"
    HTML = "html"
    COMMENT = "comment"
    COMPONENT = "component"


EMPHASIS_TYPES = frozenset({NodeType.ITALIC, NodeType.BOLD, NodeType.STRIKE})
WRAPPER_TYPES = EMPHASIS_TYPES | {NodeType.QUOTE}
LINK_TYPES = frozenset(
    {NodeType.URL, NodeType.CHANNEL_LINK, NodeType.USER_LINK, NodeType.COMMAND}
)
OPAQUE_TYPES = frozenset({NodeType.CODE, NodeType.EMOJI, NodeType.HTML})
BOUNDARY_TYPES = frozenset({NodeType.PRE_TEXT, NodeType.COMMENT})
INLINE_TYPES = frozenset({NodeType.TEXT}) | WRAPPER_TYPES | LINK_TYPES | OPAQUE_TYPES

DELIMITERS = {"_": NodeType.ITALIC, "*": NodeType.BOLD, "~": NodeType.STRIKE}
MARKERS = {node_type: marker for marker, node_type in DELIMITERS.items()}
QUOTE_MARKERS = (">", "&gt;")

EMOJI_PATTERN = re.compile(r":([a-z0-9_+'\-]+):(?::skin-tone-[2-6]:)?")
SCHEME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")
WHOLE_TAG_PATTERN = re.compile(r"<(\"(\\\"|[^\"])*\"|'(\\'|[^'])*'|[^>])*>")
_ATTRIBUTE = r"""\s+[^\s"'<>/=]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?"""
HTML_TAG_PATTERN = re.compile(
    r"</?[A-Za-z][\w:.\-]*(?:" + _ATTRIBUTE + r")*\s*/?>\Z"
)


@dataclass(eq=False)
class MarkupNode:
    """A node of a parsed mrkdwn string or of a reconstructed translation."""

    type: NodeType
    text: str = ""
    children: List["MarkupNode"] = field(default_factory=list)
    label: Optional[List["MarkupNode"]] = None
    attrs: Dict[str, str] = field(default_factory=dict)
    source: str = ""
    line: int = 1
    column: int = 1
    # annotations added by the extraction walker
    localizable: bool = False
    segments: List[Any] = field(default_factory=list, repr=False)
    # placeholder nodes only
    index: int = -1
    origin: Optional["MarkupNode"] = field(default=None, repr=False)
    parent: Optional["MarkupNode"] = field(default=None, repr=False)

    @property
    def content(self) -> List["MarkupNode"]:
        """Children that carry translatable content (the label for links)."""

        if self.type in LINK_TYPES:
            return self.label or []
        return self.children

    def add(self, child: "MarkupNode") -> "MarkupNode":
        child.parent = self
        self.children.append(child)
        return child


# --- Rendering ----------------------------------------------------------------


def _link_target(node: MarkupNode) -> str:
    if node.type is NodeType.URL:
        return node.attrs.get("url", "")
    if node.type is NodeType.CHANNEL_LINK:
        return "#" + node.attrs.get("channel_id", "")
    if node.type is NodeType.USER_LINK:
        return "@" + node.attrs.get("user_id", "")
    arguments = node.attrs.get("arguments")
    return "!" + node.attrs.get("name", "") + (f"^{arguments}" if arguments else "")


def opening(node: MarkupNode) -> str:
    """Return the syntax that opens a paired node."""

    if node.type is NodeType.COMPONENT:
        return opening(node.origin) if node.origin is not None else ""
    if node.type in EMPHASIS_TYPES:
        return MARKERS[node.type]
    if node.type is NodeType.QUOTE:
        return node.attrs.get("marker", ">")
    if node.type in LINK_TYPES:
        return "<" + _link_target(node) + "|"
    return ""


def closing(node: MarkupNode) -> str:
    """Return the syntax that closes a paired node."""

    if node.type is NodeType.COMPONENT:
        return closing(node.origin) if node.origin is not None else ""
    if node.type in EMPHASIS_TYPES:
        return MARKERS[node.type]
    if node.type is NodeType.QUOTE:
        return node.attrs.get("newline", "")
    if node.type in LINK_TYPES:
        return ">"
    return ""


def _render_emphasis(node: MarkupNode, inner: str) -> str:
    # delimiters only count next to non-space text
    content = inner.strip()
    if not content:
        return inner
    start = inner.index(content)
    marker = MARKERS[node.type]
    return inner[:start] + marker + content + marker + inner[start + len(content):]


def _render_quote(node: MarkupNode, inner: str) -> str:
    return opening(node) + inner + closing(node)


def _render_link(node: MarkupNode, inner: str) -> str:
    if inner:
        return "<" + _link_target(node) + "|" + inner + ">"
    return "<" + _link_target(node) + ">"


def _render_verbatim(node: MarkupNode, inner: str) -> str:
    return node.source


def _render_component(node: MarkupNode, inner: str) -> str:
    if node.origin is None:
        return ""
    return render_markup(node.origin, inner)


_MARKUP_RENDERERS: Dict[NodeType, Callable[[MarkupNode, str], str]] = {
    NodeType.ROOT: lambda node, inner: inner,
    NodeType.TEXT: lambda node, inner: node.text,
    NodeType.ITALIC: _render_emphasis,
    NodeType.BOLD: _render_emphasis,
    NodeType.STRIKE: _render_emphasis,
    NodeType.QUOTE: _render_quote,
    NodeType.PRE_TEXT: _render_verbatim,
    NodeType.CODE: _render_verbatim,
    NodeType.EMOJI: _render_verbatim,
    NodeType.HTML: _render_verbatim,
    NodeType.COMMENT: _render_verbatim,
    NodeType.URL: _render_link,
    NodeType.CHANNEL_LINK: _render_link,
    NodeType.USER_LINK: _render_link,
    NodeType.COMMAND: _render_link,
    NodeType.COMPONENT: _render_component,
}


def render_markup(node: MarkupNode, inner: Optional[str] = None) -> str:
    """Emit the original syntax of ``node`` around already rendered content.

    Opaque nodes ignore ``inner`` and come back verbatim. Emphasis around
    nothing disappears and whitespace at the edges of its content is moved
    outside the delimiters. A link with an empty label falls back to its bare
    ``<target>`` form.
    """

    renderer = _MARKUP_RENDERERS.get(node.type)
    if renderer is None:
        raise UnhandledNodeError(f"No markup rule for node type {node.type!r}.")
    return renderer(node, inner or "")


def render(node: MarkupNode) -> str:
    """Regenerate the mrkdwn text of a node and everything below it."""

    if node.type is NodeType.TEXT:
        return node.text
    inner = "".join(render(child) for child in node.content)
    return render_markup(node, inner)


# --- Parsing ------------------------------------------------------------------


class MrkdwnParser:
    """Recursive descent parser for Slack mrkdwn."""

    def __init__(self, text: str, *, path: Optional[str] = None) -> None:
        self.src = text
        self.path = path
        self._line_starts = [0] + [
            match.end() for match in re.finditer("\n", text)
        ]

    def parse(self) -> MarkupNode:
        src = self.src
        length = len(src)
        root = MarkupNode(NodeType.ROOT, source=src)
        pos = 0
        while pos < length:
            if src.startswith("```", pos):
                close = src.find("```", pos + 3)
                if close != -1:
                    self._append(
                        root,
                        self._node(NodeType.PRE_TEXT, pos, close + 3, text=src[pos + 3:close]),
                    )
                    pos = close + 3
                    continue
            elif src.startswith("<!--", pos):
                close = src.find("-->", pos + 4)
                if close != -1:
                    self._append(
                        root,
                        self._node(NodeType.COMMENT, pos, close + 3, text=src[pos + 4:close]),
                    )
                    pos = close + 3
                    continue
            elif self._at_line_start(pos):
                marker = next(
                    (m for m in QUOTE_MARKERS if src.startswith(m, pos)), None
                )
                if marker is not None:
                    pos = self._quote(root, pos, marker)
                    continue

            end = self._segment_end(pos)
            for node in self._inline(pos, end):
                self._append(root, node)
            pos = end
        return root

    # --- Internal helpers -------------------------------------------------

    def _position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def _node(self, node_type: NodeType, start: int, end: int, **kwargs: Any) -> MarkupNode:
        line, column = self._position(start)
        return MarkupNode(
            node_type,
            source=self.src[start:end],
            line=line,
            column=column,
            **kwargs,
        )

    def _at_line_start(self, pos: int) -> bool:
        return pos == 0 or self.src[pos - 1] == "\n"

    def _append(self, parent: MarkupNode, node: MarkupNode) -> None:
        if parent.children and node.type is NodeType.TEXT:
            last = parent.children[-1]
            if last.type is NodeType.TEXT:
                last.text += node.text
                last.source += node.source
                return
        parent.children.append(node)

    def _segment_end(self, pos: int) -> int:
        src = self.src
        candidates = [len(src)]
        newline = src.find("\n", pos)
        if newline != -1:
            candidates.append(newline + 1)
        for token in ("```", "<!--"):
            found = src.find(token, pos + 1)
            if found != -1:
                candidates.append(found)
        return min(candidates)

    def _quote(self, root: MarkupNode, pos: int, marker: str) -> int:
        src = self.src
        line_end = src.find("\n", pos)
        content_end = len(src) if line_end == -1 else line_end
        newline = "" if line_end == -1 else "\n"
        node = self._node(
            NodeType.QUOTE,
            pos,
            content_end + len(newline),
            attrs={"marker": marker, "newline": newline},
        )
        node.children = self._inline(pos + len(marker), content_end)
        self._append(root, node)
        return content_end + len(newline)

    def _text(self, start: int, end: int) -> MarkupNode:
        return self._node(NodeType.TEXT, start, end, text=self.src[start:end])

    def _inline(self, start: int, end: int) -> List[MarkupNode]:
        src = self.src
        nodes: List[MarkupNode] = []
        text_start = start
        i = start
        while i < end:
            char = src[i]
            result: Optional[Tuple[MarkupNode, int]] = None
            if char == "`":
                result = self._code(i, end)
            elif char == "<":
                result = self._angle(i, end)
            elif char in DELIMITERS:
                result = self._emphasis(i, end)
            elif char == ":":
                result = self._emoji(i, end)

            if result is None:
                i += 1
                continue

            node, following = result
            if text_start < i:
                nodes.append(self._text(text_start, i))
            nodes.append(node)
            i = text_start = following

        if text_start < end:
            nodes.append(self._text(text_start, end))
        return nodes

    def _code(self, i: int, end: int) -> Optional[Tuple[MarkupNode, int]]:
        close = self.src.find("`", i + 1, end)
        if close <= i + 1:
            return None
        return self._node(NodeType.CODE, i, close + 1, text=self.src[i + 1:close]), close + 1

    def _emoji(self, i: int, end: int) -> Optional[Tuple[MarkupNode, int]]:
        if i > 0 and self.src[i - 1].isalnum():
            return None
        match = EMOJI_PATTERN.match(self.src, i, end)
        if not match:
            return None
        node = self._node(NodeType.EMOJI, i, match.end(), text=match.group(1))
        return node, match.end()

    def _emphasis(self, i: int, end: int) -> Optional[Tuple[MarkupNode, int]]:
        src = self.src
        delimiter = src[i]
        previous = src[i - 1] if i > 0 else ""
        if previous and (previous.isalnum() or previous == delimiter):
            return None
        if i + 1 >= end or src[i + 1].isspace() or src[i + 1] == delimiter:
            return None

        j = i + 1
        while j < end:
            char = src[j]
            if char == "`" or char == "<":
                close = src.find("`" if char == "`" else ">", j + 1, end)
                if close != -1:
                    j = close + 1
                    continue
            elif (
                char == delimiter
                and not src[j - 1].isspace()
                and (j + 1 >= len(src) or not src[j + 1].isalnum())
            ):
                node = self._node(DELIMITERS[delimiter], i, j + 1)
                node.children = self._inline(i + 1, j)
                return node, j + 1
            j += 1
        return None

    def _angle(self, i: int, end: int) -> Optional[Tuple[MarkupNode, int]]:
        src = self.src
        close = src.find(">", i + 1, end)
        if close == -1:
            return None
        inner = src[i + 1:close]
        if not inner or inner[0].isspace() or inner.startswith("!--"):
            return None

        head = inner[0]
        target = inner.split("|", 1)[0]
        if head in "#@!" or (
            SCHEME_PATTERN.match(inner) and not any(c.isspace() for c in target)
        ):
            return self._link(i, close, inner), close + 1

        if head.isalpha() or head == "/":
            match = WHOLE_TAG_PATTERN.match(src, i, end)
            tag = match.group(0) if match else src[i:close + 1]
            if match and HTML_TAG_PATTERN.match(tag):
                return self._node(NodeType.HTML, i, i + len(tag), text=tag), i + len(tag)
            line, column = self._position(i)
            raise MarkupSyntaxError(
                f"Malformed HTML tag {tag!r}",
                path=self.path,
                line=line,
                column=column,
            )
        return None

    def _link(self, i: int, close: int, inner: str) -> MarkupNode:
        target, separator, label = inner.partition("|")
        if separator and not label:
            target, separator = inner, ""
        head = target[:1]
        if head == "#":
            node = self._node(NodeType.CHANNEL_LINK, i, close + 1, attrs={"channel_id": target[1:]})
        elif head == "@":
            node = self._node(NodeType.USER_LINK, i, close + 1, attrs={"user_id": target[1:]})
        elif head == "!":
            name, _, arguments = target[1:].partition("^")
            attrs = {"name": name}
            if arguments:
                attrs["arguments"] = arguments
            node = self._node(NodeType.COMMAND, i, close + 1, attrs=attrs)
        else:
            node = self._node(NodeType.URL, i, close + 1, attrs={"url": target})

        if separator:
            label_start = i + 1 + len(target) + 1
            node.label = self._inline(label_start, close)
        return node


def parse(text: str, *, path: Optional[str] = None) -> MarkupNode:
    """Parse a mrkdwn string into a ROOT node."""

    return MrkdwnParser(text, path=path).parse()
