"""High-level orchestration: extract, fill, localize and write."""

from __future__ import annotations

import logging
import pathlib
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .documents import MrkdwnJsonDocument, detect_handler
from .errors import (
    ErrorCategory,
    MarkupSyntaxError,
    MrkdwnlocError,
    OverwriteRefusedError,
    TranslationProviderError,
    UnsupportedFileTypeError,
)
from .localization import LocalizationOptions
from .policy import RETRY, ErrorPolicy
from .providers import TranslationProvider, build_provider, payload_id
from .segmenter import BatchBuilder, placeholders_match
from .store import (
    Resource,
    TranslationSet,
    TranslationStatusLog,
    load_translations,
    save_resources,
)
from .structures import Batch, LocalizedDocument

logger = logging.getLogger(__name__)


@dataclass
class LocalizationSummary:
    """Report returned after a localization run."""

    input_paths: List[pathlib.Path]
    output_paths: List[pathlib.Path]
    locales: List[str]
    total_documents: int
    total_resources: int
    new_strings: int
    machine_translated: int
    total_warnings: int
    total_errors: int
    fully_translated: Dict[str, bool]
    provider_name: str | None
    model: str | None
    elapsed_seconds: float
    new_strings_path: pathlib.Path | None = None
    status_path: pathlib.Path | None = None
    error_messages: List[str] = field(default_factory=list)


class LocalizationRunner:
    """Coordinates extraction, optional machine fill, and localization."""

    def __init__(
        self,
        *,
        input_paths: Sequence[pathlib.Path],
        locales: Sequence[str],
        options: LocalizationOptions,
        translations_path: pathlib.Path | None = None,
        output_dir: pathlib.Path | None = None,
        new_strings_path: pathlib.Path | None = None,
        fill: bool = False,
        provider_name: str | None = None,
        model: str | None = None,
        batch_budget: int = 2000,
        workers: int = 1,
        force_overwrite: bool = False,
        interactive: bool = True,
        verbose: bool = False,
        provider_debug: bool = False,
        settings: Any = None,
    ) -> None:
        self.input_paths = list(input_paths)
        self.locales = list(locales)
        self.options = options
        self.translations_path = translations_path
        self.output_dir = output_dir
        self.new_strings_path = new_strings_path
        self.fill = fill
        self.provider_name = provider_name
        self.model = model
        self.batch_budget = batch_budget
        self.workers = max(1, workers)
        self.force_overwrite = force_overwrite
        self.interactive = interactive
        self.verbose = verbose
        self.provider_debug = provider_debug
        self.settings = settings

        self.error_policy = ErrorPolicy(interactive=interactive)
        self.max_retries = 3
        self.retry_backoff = [1, 4, 9]
        self.machine_translated = 0

    @property
    def target_locales(self) -> List[str]:
        return [locale for locale in self.locales if locale != self.options.source_locale]

    def run(self) -> LocalizationSummary:
        start_time = time.time()

        if self.translations_path is not None:
            translations = load_translations(self.translations_path, self.options.source_locale)
        else:
            translations = TranslationSet(self.options.source_locale)
        new_strings = TranslationSet(self.options.source_locale)
        status_log = TranslationStatusLog()

        documents = self._extract_all(new_strings)
        for document in documents:
            for locale in self.target_locales:
                validate_paths(
                    document.source_path,
                    document.get_localized_path(locale, self.output_dir),
                    force_overwrite=self.force_overwrite,
                )

        resources = [resource for document in documents for resource in document.resources]
        if self.verbose:
            print(
                f"Extracted {len(resources)} resources from {len(documents)} documents."
            )

        if self.fill and resources:
            provider = build_provider(
                self.provider_name, debug=self.provider_debug, settings=self.settings
            )
            self._machine_fill(provider, resources, translations)

        tasks = [(document, locale) for document in documents for locale in self.target_locales]
        if self.workers > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                results = list(
                    executor.map(
                        lambda task: self._localize_one(task[0], task[1], translations, status_log),
                        tasks,
                    )
                )
        else:
            results = [
                self._localize_one(document, locale, translations, status_log)
                for document, locale in tasks
            ]

        output_paths = [path for _, path in results if path is not None]
        fully_translated: Dict[str, bool] = {locale: True for locale in self.target_locales}
        total_warnings = 0
        for localized, _ in results:
            total_warnings += len(localized.warnings)
            if not localized.fully_translated:
                fully_translated[localized.locale] = False

        written_new_strings = None
        if self.new_strings_path is not None:
            save_resources(self.new_strings_path, new_strings.get_all())
            written_new_strings = self.new_strings_path

        status_path = None
        if self.options.fully_translated:
            status_dir = self.output_dir or (
                self.input_paths[0].parent if self.input_paths else pathlib.Path.cwd()
            )
            status_path = status_log.write(status_dir)

        elapsed = time.time() - start_time
        return LocalizationSummary(
            input_paths=self.input_paths,
            output_paths=output_paths,
            locales=self.target_locales,
            total_documents=len(documents),
            total_resources=len(resources),
            new_strings=len(new_strings),
            machine_translated=self.machine_translated,
            total_warnings=total_warnings,
            total_errors=len(self.error_policy.records),
            fully_translated=fully_translated,
            provider_name=self.provider_name if self.fill else None,
            model=self.model if self.fill else None,
            elapsed_seconds=elapsed,
            new_strings_path=written_new_strings,
            status_path=status_path,
            error_messages=[record.message for record in self.error_policy.records],
        )

    def _extract_all(self, new_strings: TranslationSet) -> List[MrkdwnJsonDocument]:
        documents: List[MrkdwnJsonDocument] = []
        for path in self.input_paths:
            try:
                _, handler = detect_handler(
                    path, options=self.options, new_strings=new_strings
                )
                handler.extract()
            except UnsupportedFileTypeError as exc:
                self.error_policy.handle_error(ErrorCategory.FORMAT, f"{path}: {exc}")
                continue
            except MarkupSyntaxError as exc:
                self.error_policy.handle_error(
                    ErrorCategory.MARKUP,
                    f"Skipping {path}: {exc}",
                )
                continue
            self.error_policy.record_success()
            documents.append(handler)  # type: ignore[arg-type]
        return documents

    def _localize_one(
        self,
        document: MrkdwnJsonDocument,
        locale: str,
        translations: TranslationSet,
        status_log: TranslationStatusLog,
    ) -> Tuple[LocalizedDocument, Optional[pathlib.Path]]:
        (result,) = document.localize(
            translations,
            [locale],
            self.output_dir,
            status_log=status_log,
        )
        if self.verbose:
            state = "complete" if result[0].fully_translated else "incomplete"
            print(f"Localized {document.source_path.name} into {locale} ({state}).")
        return result

    def _machine_fill(
        self,
        provider: TranslationProvider,
        resources: Sequence[Resource],
        translations: TranslationSet,
    ) -> None:
        builder = BatchBuilder(self.batch_budget)
        for locale in self.target_locales:
            if locale in self.options.pseudo_locales or locale == self.options.pseudo_locale:
                continue
            missing = [
                resource
                for resource in resources
                if translations.get(resource.hash_key_for_translation(locale)) is None
            ]
            for batch in builder.build(missing):
                self._process_batch(
                    provider=provider,
                    batch=batch,
                    locale=locale,
                    translations=translations,
                )

    def _process_batch(
        self,
        *,
        provider: TranslationProvider,
        batch: Batch,
        locale: str,
        translations: TranslationSet,
    ) -> None:
        attempt = 0
        while True:
            try:
                mapping = provider.translate(
                    batch.resources,
                    source_language=self.options.source_locale,
                    target_language=locale,
                    model=self.model,
                )
                self._map_translations(batch, mapping, locale, translations)
                if self.verbose:
                    total_chars = sum(len(resource.source) for resource in batch.resources)
                    print(
                        f"Processed batch {batch.batch_id} for {locale} "
                        f"({len(batch.resources)} strings, {total_chars} chars)."
                    )
                self.error_policy.record_success()
                return
            except TranslationProviderError as exc:
                attempt += 1
                if attempt <= self.max_retries:
                    wait_time = self.retry_backoff[min(attempt - 1, len(self.retry_backoff) - 1)]
                    logger.warning(
                        "Could not translate one batch (attempt %d of %d: %s). Retrying...",
                        attempt,
                        self.max_retries,
                        exc,
                    )
                    time.sleep(wait_time)
                    continue

                action = self.error_policy.handle_error(
                    ErrorCategory.TRANSLATION,
                    f"Batch {batch.batch_id} for {locale} failed after multiple attempts. {exc}",
                )
                if action == RETRY:
                    attempt = 0
                    continue
                # the strings stay untranslated and show up as new strings
                return

    def _map_translations(
        self,
        batch: Batch,
        mapping: Dict[str, str],
        locale: str,
        translations: TranslationSet,
    ) -> None:
        for position, resource in enumerate(batch.resources):
            translated = mapping.get(payload_id(position))
            if translated is None:
                self.error_policy.handle_error(
                    ErrorCategory.TRANSLATION,
                    f"Translation missing for {resource.key} in {locale}. Leaving it untranslated.",
                )
                continue
            if not placeholders_match(resource.source, translated):
                self.error_policy.handle_error(
                    ErrorCategory.TRANSLATION,
                    f"Machine translation of {resource.key} into {locale} changed "
                    f"its placeholders ({translated!r}). Leaving it untranslated.",
                )
                continue
            added = translations.add(
                Resource(
                    key=resource.key,
                    source=resource.source,
                    project=resource.project,
                    source_locale=resource.source_locale,
                    datatype=resource.datatype,
                    comment=resource.comment,
                    index=resource.index,
                    path=resource.path,
                    target=translated,
                    target_locale=locale,
                    state="machine",
                )
            )
            if added:
                self.machine_translated += 1


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            f"Input file not found: {input_path}. Please provide a readable .json file."
        )
    if not input_path.is_file():
        raise MrkdwnlocError(f"Input path must be a file: {input_path}")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            f"The output file {output_path} already exists. Rename it or use the overwrite flag."
        )

