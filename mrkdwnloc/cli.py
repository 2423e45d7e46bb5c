"""Command line interface for mrkdwnloc."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Any, Iterable, Optional

from .configuration import (
    build_options,
    get_settings,
    split_locales,
    validate_provider_settings,
)
from .errors import (
    AbortRequested,
    ConfigurationError,
    DocumentParseError,
    MrkdwnlocError,
    NonInteractiveAbort,
    OverwriteRefusedError,
)
from .localization import LocalizationOptions
from .translator import LocalizationRunner, LocalizationSummary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mrkdwnloc",
        description=(
            "Localize JSON files of Slack mrkdwn strings while preserving formatting, "
            "links, code and emoji."
        ),
    )
    parser.add_argument(
        "input_files",
        nargs="+",
        help="JSON files whose string values are mrkdwn.",
    )
    parser.add_argument(
        "-l",
        "--locales",
        help="Comma separated target locales (default: TARGET_LOCALES from the configuration).",
    )
    parser.add_argument(
        "-t",
        "--translations",
        help="JSON file of existing translations.",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        help="Directory for localized files. Defaults to next to each input.",
    )
    parser.add_argument(
        "--new-strings",
        help="Write strings that had no translation to this JSON file.",
    )
    parser.add_argument(
        "--fill",
        action="store_true",
        help="Machine translate missing strings before localizing.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier for --fill (default: openai).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model or engine identifier.",
    )
    parser.add_argument(
        "-b",
        "--batch-guidance",
        type=int,
        default=2000,
        help="Approximate maximum characters per translation batch (default: 2000).",
    )
    parser.add_argument(
        "-j",
        "--workers",
        type=int,
        default=1,
        help="Number of locales localized in parallel (default: 1).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting localized files that already exist.",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Disable prompts and enforce automatic decisions (suitable for CI).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def load_options() -> tuple[LocalizationOptions, Any]:
    """Return walker options and the raw settings they were built from."""

    settings = get_settings()
    return build_options(settings), settings


def execute_localization(
    *,
    input_files: Iterable[str],
    locales: list[str],
    options: LocalizationOptions,
    settings: Any = None,
    translations_file: str | None = None,
    output_dir: str | None = None,
    new_strings_file: str | None = None,
    fill: bool = False,
    provider: str | None = None,
    model: str | None = None,
    batch_guidance: int = 2000,
    workers: int = 1,
    force_overwrite: bool = False,
    non_interactive: bool = False,
    verbose: bool = False,
    provider_debug: bool = False,
) -> tuple[int, LocalizationSummary | None, str | None]:
    """Execute a localization run and return the exit code, summary, and message."""

    input_paths = [pathlib.Path(name).expanduser().resolve() for name in input_files]
    for path in input_paths:
        if not path.is_file():
            return 1, None, f"Input file not found: {path}"

    runner = LocalizationRunner(
        input_paths=input_paths,
        locales=locales,
        options=options,
        translations_path=(
            pathlib.Path(translations_file).expanduser() if translations_file else None
        ),
        output_dir=pathlib.Path(output_dir).expanduser().resolve() if output_dir else None,
        new_strings_path=(
            pathlib.Path(new_strings_file).expanduser() if new_strings_file else None
        ),
        fill=fill,
        provider_name=provider,
        model=model,
        batch_budget=batch_guidance,
        workers=workers,
        force_overwrite=force_overwrite,
        interactive=not non_interactive,
        verbose=verbose,
        provider_debug=provider_debug,
        settings=settings,
    )

    try:
        summary = runner.run()
    except (FileNotFoundError, OverwriteRefusedError, DocumentParseError) as exc:
        return 1, None, str(exc)
    except ConfigurationError as exc:
        return 1, None, str(exc)
    except NonInteractiveAbort as exc:
        return 2, None, str(exc)
    except AbortRequested:
        return 2, None, "Localization aborted at your request."
    except MrkdwnlocError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Localization interrupted by user."

    return 0, summary, None


def print_summary(summary: LocalizationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nLocalization complete.")
    print(f"  Documents:       {summary.total_documents} of {len(summary.input_paths)}")
    print(f"  Resources:       {summary.total_resources}")
    print(f"  Locales:         {', '.join(summary.locales) or '(none)'}")
    for locale, complete in summary.fully_translated.items():
        print(f"    {locale}: {'fully translated' if complete else 'incomplete'}")
    print(f"  Files written:   {len(summary.output_paths)}")
    for path in summary.output_paths:
        print(f"    {path}")
    print(f"  New strings:     {summary.new_strings}")
    if summary.new_strings_path:
        print(f"    saved to {summary.new_strings_path}")
    if summary.provider_name or summary.machine_translated:
        print(
            f"  Machine filled:  {summary.machine_translated} via "
            f"{summary.provider_name or 'openai'}"
            + (f" ({summary.model})" if summary.model else "")
        )
    if summary.total_warnings:
        print(f"  Warnings:        {summary.total_warnings} placeholder mismatches")
    if summary.status_path:
        print(f"  Status file:     {summary.status_path}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.total_errors:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.verbose)

    try:
        options, settings = load_options()
    except ConfigurationError as exc:
        print(exc)
        return 1

    provider_debug = bool(
        args.debug_provider or getattr(settings, "MRKDWNLOC_PROVIDER_DEBUG", False)
    )

    locales = split_locales(args.locales) or split_locales(
        getattr(settings, "TARGET_LOCALES", None)
    )
    if not locales:
        parser.error("the following arguments are required: -l/--locales")

    if args.fill and (args.provider or "openai").strip().lower() not in {"echo", "noop", "mock"}:
        try:
            validate_provider_settings(settings)
        except ConfigurationError as exc:
            print(exc)
            return 1

    exit_code, summary, message = execute_localization(
        input_files=args.input_files,
        locales=locales,
        options=options,
        settings=settings,
        translations_file=args.translations,
        output_dir=args.output_dir,
        new_strings_file=args.new_strings,
        fill=args.fill,
        provider=args.provider,
        model=args.model,
        batch_guidance=args.batch_guidance,
        workers=args.workers,
        force_overwrite=args.force,
        non_interactive=args.non_interactive,
        verbose=args.verbose,
        provider_debug=provider_debug,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
