"""Document extraction and reassembly for JSON files of mrkdwn strings."""

from __future__ import annotations

import json
import logging
import pathlib
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import json5

from .errors import UnsupportedFileTypeError
from .extraction import ExtractionWalker
from .localization import LocalizationOptions, LocalizationWalker
from .store import Resource, TranslationSet, TranslationStatusLog
from .structures import DocumentValue, LocalizedDocument, TranslationStatus

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".json", ".jsn")


def derive_output_path(
    input_path: pathlib.Path,
    locale: str,
    output_dir: Optional[pathlib.Path] = None,
) -> pathlib.Path:
    """Return ``<stem>_<locale><suffix>``, next to the input unless redirected."""

    candidate = f"{input_path.stem}_{locale}{input_path.suffix}"
    if output_dir is not None:
        return output_dir / candidate
    return input_path.with_name(candidate)


class BaseDocumentHandler(ABC):
    """Common base class for document handlers."""

    def __init__(self, source_path: pathlib.Path):
        self.source_path = source_path
        self.resources: List[Resource] = []

    @abstractmethod
    def extract(self) -> List[Resource]:
        """Extract translation-ready resources."""

    @abstractmethod
    def localize_text(self, translations: TranslationSet, locale: str) -> LocalizedDocument:
        """Return the document localized into one locale."""

    def register_resources(self, resources: Iterable[Resource]) -> List[Resource]:
        """Store and return the provided resources."""

        self.resources = list(resources)
        return self.resources


class MrkdwnJsonDocument(BaseDocumentHandler):
    """A JSON object whose string values are written in Slack mrkdwn."""

    def __init__(
        self,
        source_path: pathlib.Path,
        *,
        options: LocalizationOptions,
        path_name: Optional[str] = None,
        new_strings: Optional[TranslationSet] = None,
    ):
        super().__init__(source_path)
        self.options = options
        self.path_name = path_name or str(source_path)
        self.set = TranslationSet(options.source_locale)
        self.new_strings = (
            new_strings if new_strings is not None else TranslationSet(options.source_locale)
        )
        self.contents: Dict[str, DocumentValue] = {}
        self.translation_status: Dict[str, bool] = {}

    def parse(self, data: str) -> None:
        """Parse the document text and collect its resources.

        A document that is not valid JSON yields no resources at all. Broken
        markup inside a value raises :class:`MarkupSyntaxError`.
        """

        logger.debug("Extracting strings from %s", self.path_name)
        try:
            document = json5.loads(data)
        except ValueError as exc:
            logger.error("Failed to parse file %s: %s", self.path_name, exc)
            return
        if not isinstance(document, dict):
            logger.error(
                "Failed to parse file %s: expected an object at the top level",
                self.path_name,
            )
            return

        walker = ExtractionWalker(
            self.options.project_id,
            self.options.source_locale,
            self.path_name,
            localize_links=self.options.localize_links,
        )
        contents: Dict[str, DocumentValue] = {}
        resources: List[Resource] = []
        for key, value in document.items():
            if isinstance(value, str):
                ast, found = walker.walk(str(key), value)
                contents[key] = DocumentValue(value=value, ast=ast)
                resources.extend(found)
            else:
                contents[key] = DocumentValue(value=value)

        self.contents = contents
        self.set.add_all(resources)
        self.register_resources(resources)

    def extract(self) -> List[Resource]:
        try:
            data = self.source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read file %s: %s", self.source_path, exc)
            return self.resources
        if data:
            self.parse(data)
        return self.resources

    def get_translation_set(self) -> TranslationSet:
        return self.set

    def localize_text(self, translations: TranslationSet, locale: str) -> LocalizedDocument:
        logger.debug("Localizing strings for locale %s", locale)
        walker = LocalizationWalker(
            self.options,
            translations,
            self.new_strings,
            path_name=self.path_name,
        )
        localized = {}
        fully_translated = True
        warnings = []
        for key, entry in self.contents.items():
            if entry.ast is None:
                localized[key] = entry.value
                continue
            result = walker.localize(entry.ast, locale)
            localized[key] = result.text
            fully_translated = fully_translated and result.fully_translated
            warnings.extend(result.warnings)

        self.translation_status[locale] = fully_translated
        return LocalizedDocument(
            locale=locale,
            text=json.dumps(localized, indent=4, ensure_ascii=False),
            fully_translated=fully_translated,
            warnings=warnings,
        )

    def get_localized_path(
        self,
        locale: str,
        output_dir: Optional[pathlib.Path] = None,
    ) -> pathlib.Path:
        return derive_output_path(self.source_path, locale, output_dir)

    def localize(
        self,
        translations: TranslationSet,
        locales: Sequence[str],
        output_dir: Optional[pathlib.Path] = None,
        *,
        status_log: Optional[TranslationStatusLog] = None,
    ) -> List[Tuple[LocalizedDocument, Optional[pathlib.Path]]]:
        """Localize into every locale and write the results.

        The source locale is skipped. When only fully translated output is
        wanted, incomplete locales are reported but not written.
        """

        results: List[Tuple[LocalizedDocument, Optional[pathlib.Path]]] = []
        for locale in locales:
            if locale == self.options.source_locale:
                continue
            localized = self.localize_text(translations, locale)
            destination: Optional[pathlib.Path] = self.get_localized_path(locale, output_dir)
            if self.options.fully_translated and not localized.fully_translated:
                logger.info(
                    "Not writing %s: %s is not fully translated", destination, locale
                )
                destination = None
            else:
                logger.debug("Writing file %s", destination)
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_text(localized.text, encoding="utf-8")

            if status_log is not None:
                status_log.add(
                    TranslationStatus(
                        path=str(self.get_localized_path(locale, output_dir)),
                        locale=locale,
                        fully_translated=localized.fully_translated,
                    )
                )
            results.append((localized, destination))
        return results


def detect_handler(
    path: pathlib.Path,
    *,
    options: LocalizationOptions,
    new_strings: Optional[TranslationSet] = None,
) -> Tuple[str, BaseDocumentHandler]:
    """Select an appropriate handler for the provided file."""

    if path.suffix.lower() in SUPPORTED_SUFFIXES:
        handler = MrkdwnJsonDocument(path, options=options, new_strings=new_strings)
        return "mrkdwn-json", handler
    raise UnsupportedFileTypeError(
        "This file type isn't supported. Please use a .json file of mrkdwn strings."
    )
