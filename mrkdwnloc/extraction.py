"""Walk parsed mrkdwn and pull out translatable runs as resources."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .accumulator import WHITESPACE, MessageAccumulator
from .errors import UnhandledNodeError
from .filters import is_translatable
from .mrkdwn import BOUNDARY_TYPES, MarkupNode, NodeType, parse
from .store import DATATYPE, Resource
from .structures import PieceKind, Run

logger = logging.getLogger(__name__)

I18N_COMMENT_PATTERN = re.compile(r"\A\s*i18n\s*:?\s*(.*?)\s*\Z", re.DOTALL)


@dataclass
class ExtractionContext:
    """State of one string value while it is being walked."""

    key: str
    container: MarkupNode
    accumulator: MessageAccumulator = field(default_factory=MessageAccumulator)
    run_nodes: List[MarkupNode] = field(default_factory=list)
    subkey: int = 0
    comment: Optional[str] = None
    resources: List[Resource] = field(default_factory=list)


class ExtractionWalker:
    """Turns mrkdwn string values into resources.

    Every top-level node of a value ends up either in a :class:`Run` or, for
    code blocks and comments, on its own in the root's ``segments`` list.
    Runs remember their accumulator so a translation can be put back later.
    """

    def __init__(
        self,
        project_id: str,
        source_locale: str,
        path_name: Optional[str] = None,
        *,
        localize_links: bool = False,
    ) -> None:
        self.project_id = project_id
        self.source_locale = source_locale
        self.path_name = path_name
        self.localize_links = localize_links
        self.resource_index = 0
        self._handlers: Dict[NodeType, Callable[[MarkupNode, ExtractionContext], None]] = {
            NodeType.ROOT: self._walk_root,
            NodeType.TEXT: self._walk_text,
            NodeType.ITALIC: self._walk_wrapper,
            NodeType.BOLD: self._walk_wrapper,
            NodeType.STRIKE: self._walk_wrapper,
            NodeType.QUOTE: self._walk_wrapper,
            NodeType.PRE_TEXT: self._walk_pre_text,
            NodeType.COMMENT: self._walk_comment,
            NodeType.URL: self._walk_link,
            NodeType.CHANNEL_LINK: self._walk_link,
            NodeType.USER_LINK: self._walk_link,
            NodeType.COMMAND: self._walk_link,
            NodeType.CODE: self._walk_opaque,
            NodeType.EMOJI: self._walk_opaque,
            NodeType.HTML: self._walk_opaque,
        }

    def walk(self, key: str, value: str) -> Tuple[MarkupNode, List[Resource]]:
        """Parse ``value`` and return its tree and the resources found in it.

        When one value holds several separate runs, the first resource uses
        ``key`` and the following ones ``key_1``, ``key_2`` and so on.
        """

        ast = parse(value, path=self.path_name)
        context = ExtractionContext(key=key, container=ast)
        self._walk(ast, context)
        return ast, context.resources

    # --- Node handlers ----------------------------------------------------

    def _walk(self, node: MarkupNode, context: ExtractionContext) -> None:
        handler = self._handlers.get(node.type)
        if handler is None:
            raise UnhandledNodeError(
                f"Cannot extract from node type {node.type!r} at "
                f"{self.path_name or '<string>'}:{node.line}:{node.column}."
            )
        handler(node, context)

    def _walk_root(self, node: MarkupNode, context: ExtractionContext) -> None:
        self._flush(context)
        outer = context.container
        context.container = node
        node.segments = []
        for child in node.children:
            self._walk(child, context)
            if child.type in BOUNDARY_TYPES:
                node.segments.append(child)
            else:
                context.run_nodes.append(child)
        self._flush(context)
        context.container = outer

    def _walk_text(self, node: MarkupNode, context: ExtractionContext) -> None:
        accumulator = context.accumulator
        if accumulator.get_text_length() > 0 or WHITESPACE.sub("", node.text):
            node.localizable = True
        accumulator.add_text(node.text)

    def _walk_wrapper(self, node: MarkupNode, context: ExtractionContext) -> None:
        context.accumulator.begin_component(node)
        for child in node.children:
            self._walk(child, context)
        context.accumulator.end_component()
        node.localizable = all(child.localizable for child in node.children)

    def _walk_link(self, node: MarkupNode, context: ExtractionContext) -> None:
        context.accumulator.begin_component(node)
        for child in node.label or []:
            self._walk(child, context)
        context.accumulator.end_component()
        node.localizable = True

    def _walk_opaque(self, node: MarkupNode, context: ExtractionContext) -> None:
        # holds its place in the run but is never translated
        context.accumulator.begin_component(node)
        context.accumulator.end_component()
        node.localizable = True

    def _walk_pre_text(self, node: MarkupNode, context: ExtractionContext) -> None:
        self._flush(context)

    def _walk_comment(self, node: MarkupNode, context: ExtractionContext) -> None:
        self._flush(context)
        match = I18N_COMMENT_PATTERN.match(node.text)
        if not match or not match.group(1):
            return
        comment = match.group(1)
        context.comment = f"{context.comment} {comment}" if context.comment else comment

    # --- Internal helpers -------------------------------------------------

    def _flush(self, context: ExtractionContext) -> None:
        """Close the current run, emitting a resource if it has real text."""

        accumulator = context.accumulator
        if not context.run_nodes:
            return

        if accumulator.get_current_level() > 0:
            logger.warning(
                "Unbalanced component in %s (key %s): %d scope(s) still open",
                self.path_name or "<string>",
                context.key,
                accumulator.get_current_level(),
            )

        run = Run(nodes=context.run_nodes, accumulator=accumulator)
        if accumulator.get_text_length() > 0:
            text = accumulator.get_minimal_string()
            logger.debug("Text using message accumulator is: %r", text)
            if is_translatable(text, localize_links=self.localize_links):
                run.resource = self._add_resource(context, text)
                for piece in accumulator.get_prefix() + accumulator.get_suffix():
                    if piece.kind is not PieceKind.TEXT and piece.node.origin is not None:
                        piece.node.origin.localizable = False
            context.comment = None

        context.container.segments.append(run)
        context.accumulator = MessageAccumulator()
        context.run_nodes = []

    def _add_resource(self, context: ExtractionContext, text: str) -> Resource:
        key = f"{context.key}_{context.subkey}" if context.subkey > 0 else context.key
        context.subkey += 1
        resource = Resource(
            key=key,
            source=text,
            project=self.project_id,
            source_locale=self.source_locale,
            datatype=DATATYPE,
            comment=context.comment,
            index=self.resource_index,
            path=self.path_name,
        )
        self.resource_index += 1
        context.resources.append(resource)
        return resource
