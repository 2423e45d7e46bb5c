"""Rebuild mrkdwn for a target locale from extracted runs and translations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .accumulator import MessageAccumulator, render_pieces
from .mrkdwn import MarkupNode, render
from .pseudo import PseudoLocalizer
from .store import Resource, TranslationSet
from .structures import Reconstruction, Run, RunLocalization, RunState

logger = logging.getLogger(__name__)


@dataclass
class LocalizationOptions:
    """Project-wide settings that steer extraction and localization."""

    project_id: str = "mrkdwnloc"
    source_locale: str = "en-US"
    pseudo_locale: str = "zxx-XX"
    pseudo_locales: Dict[str, PseudoLocalizer] = field(default_factory=dict)
    nopseudo: bool = False
    missing_pseudo: Optional[PseudoLocalizer] = None
    localize_links: bool = False
    fully_translated: bool = False


class LocalizationWalker:
    """Produces the localized text of one value's tree.

    The tree is only read. Each call to :meth:`localize` keeps its own state,
    so passes for different locales can run side by side.
    """

    def __init__(
        self,
        options: LocalizationOptions,
        translations: TranslationSet,
        new_strings: TranslationSet,
        *,
        path_name: Optional[str] = None,
    ) -> None:
        self.options = options
        self.translations = translations
        self.new_strings = new_strings
        self.path_name = path_name

    def localize(self, ast: MarkupNode, locale: str) -> Reconstruction:
        result = Reconstruction(text="")
        parts = []
        for segment in ast.segments:
            if isinstance(segment, Run):
                parts.append(self._localize_run(segment, locale, result))
            else:
                # code blocks and comments
                parts.append(render(segment))
        result.text = "".join(parts)
        return result

    # --- Internal helpers -------------------------------------------------

    def _localize_run(self, run: Run, locale: str, result: Reconstruction) -> str:
        if run.resource is None or run.accumulator is None:
            return "".join(render(node) for node in run.nodes)

        resource = run.resource
        record = RunLocalization(key=resource.key, source=resource.source)
        result.runs.append(record)

        translation, fallback = self.localize_string(resource, locale)
        record.translation = translation
        record.fallback = fallback
        record.state = RunState.RESOLVED
        if fallback:
            result.fully_translated = False

        message = MessageAccumulator.create_from_translated_string(
            translation, run.accumulator
        )
        for warning in message.warnings:
            warning.key = resource.key
            warning.locale = locale
            warning.source = resource.source
            warning.translation = translation
        if message.warnings:
            logger.warning(
                "Translation of %r (key: %s) to locale %s is %r, which does not "
                "match the components of the source: %s",
                resource.source,
                resource.key,
                locale,
                translation,
                "; ".join(warning.message for warning in message.warnings),
            )
            record.state = RunState.RECONSTRUCTED_WITH_WARNING
        else:
            record.state = RunState.RECONSTRUCTED

        accumulator = run.accumulator
        record.text = (
            render_pieces(accumulator.get_prefix())
            + message.render()
            + render_pieces(accumulator.get_suffix())
        )
        record.warnings = message.warnings
        result.warnings.extend(message.warnings)
        return record.text

    def localize_string(self, resource: Resource, locale: str) -> Tuple[str, bool]:
        """Return the text to use for ``resource`` and whether it is a fallback."""

        options = self.options
        source = resource.source
        if locale == options.pseudo_locale and options.nopseudo:
            return source, False

        translated = self.translations.get(resource.hash_key_for_translation(locale))
        if translated is not None and translated.target is not None:
            return translated.target, False

        pseudo = options.pseudo_locales.get(locale)
        if pseudo is not None:
            base_locale = pseudo.get_pseudo_source_locale()
            if base_locale and base_locale != options.source_locale:
                # chained off another locale's translation
                base = self.translations.get(resource.hash_key_for_translation(base_locale))
                if base is not None and base.target:
                    source = base.target
            self._register_new(resource, locale)
            return pseudo.get_string(source), True

        self._register_new(resource, locale)
        if options.missing_pseudo is not None and not options.nopseudo:
            return options.missing_pseudo.get_string(source), True
        return source, True

    def _register_new(self, resource: Resource, locale: str) -> None:
        logger.debug("New string found: %r (key %s, locale %s)", resource.source, resource.key, locale)
        self.new_strings.add(
            Resource(
                key=resource.key,
                source=resource.source,
                project=resource.project,
                source_locale=resource.source_locale,
                datatype=resource.datatype,
                comment=resource.comment,
                index=len(self.new_strings),
                path=resource.path or self.path_name,
                target=resource.source,
                target_locale=locale,
                state="new",
            )
        )
