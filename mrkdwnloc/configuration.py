"""Prepper-backed configuration loader for mrkdwnloc."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError, TranslationProviderConfigurationError
from .localization import LocalizationOptions
from .pseudo import PseudoLocalizer

APP_NAME = "mrkdwnloc"


class MrkdwnlocConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    PROJECT_ID: str = Field(
        default="mrkdwnloc",
        description="Project identifier used in translation lookup keys.",
    )
    SOURCE_LOCALE: str = Field(default="en-US")
    TARGET_LOCALES: str | None = Field(
        default=None,
        description="Comma separated locales used when none are given on the command line.",
    )
    PSEUDO_LOCALE: str = Field(default="zxx-XX")
    PSEUDO_LOCALES: str | None = Field(
        default=None,
        description="Comma separated extra locales that receive pseudo-localized text.",
    )
    PSEUDO_SOURCE_LOCALE: str | None = Field(default=None)
    NOPSEUDO: bool = Field(default=False)
    PSEUDO_MISSING: bool = Field(
        default=False,
        description="Pseudo-localize strings that have no translation.",
    )
    LOCALIZE_LINKS: bool = Field(default=False)
    FULLY_TRANSLATED: bool = Field(
        default=False,
        description="Only write fully translated files and record translation-status.json.",
    )
    LLM_PROVIDER: Literal["azure_openai", "openai"] = Field(
        default="openai",
        description="Large language model provider selection.",
    )
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    MRKDWNLOC_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "azure_open_ai": "azure_openai",
                    "azureopenai": "azure_openai",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in {"openai", "azure_openai"}:
                    normalized = "openai"
                data["LLM_PROVIDER"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance.

    Without any configuration source every setting keeps its default.
    """

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=MrkdwnlocConfig,
        )

        model = MrkdwnlocConfig.validate(combined, provenance=provenance)
        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=MrkdwnlocConfig,
        )
    except IoError as exc:
        raise ConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def validate_provider_settings(settings: MrkdwnlocConfig) -> None:
    """Check that the selected LLM provider has its credentials."""

    provider = settings.LLM_PROVIDER
    errors: list[str] = []

    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            errors.append(
                "OPENAI_API_KEY is required when LLM_PROVIDER is 'openai'."
            )
    elif provider == "azure_openai":
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
                "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
                "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
                "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            }.items()
            if not value
        ]
        if missing:
            errors.append(
                "The following Azure OpenAI settings must be provided when "
                f"LLM_PROVIDER is 'azure_openai': {', '.join(missing)}."
            )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def split_locales(value: str | None) -> list[str]:
    """Split a comma separated locale list, dropping blanks."""

    if not value:
        return []
    return [locale.strip() for locale in value.split(",") if locale.strip()]


def build_options(settings: Any) -> LocalizationOptions:
    """Turn validated settings into the options the walkers use."""

    pseudo_locales: dict[str, PseudoLocalizer] = {}
    if not settings.NOPSEUDO:
        for locale in [settings.PSEUDO_LOCALE, *split_locales(settings.PSEUDO_LOCALES)]:
            pseudo_locales[locale] = PseudoLocalizer(
                locale, settings.PSEUDO_SOURCE_LOCALE
            )

    missing_pseudo = None
    if settings.PSEUDO_MISSING:
        missing_pseudo = PseudoLocalizer(settings.PSEUDO_LOCALE)

    return LocalizationOptions(
        project_id=settings.PROJECT_ID,
        source_locale=settings.SOURCE_LOCALE,
        pseudo_locale=settings.PSEUDO_LOCALE,
        pseudo_locales=pseudo_locales,
        nopseudo=bool(settings.NOPSEUDO),
        missing_pseudo=missing_pseudo,
        localize_links=bool(settings.LOCALIZE_LINKS),
        fully_translated=bool(settings.FULLY_TRANSLATED),
    )


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> MrkdwnlocConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()
