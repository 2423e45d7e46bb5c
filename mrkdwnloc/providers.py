"""Translation providers used to fill in missing placeholder-strings."""

from __future__ import annotations

import json
import os
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .store import Resource

SYSTEM_PROMPT = (
    "You translate Slack messages for a software product. Each string may "
    "contain numbered tags: <cN>…</cN> wraps formatted or linked text, <cN/> "
    "stands for code, an emoji or a mention. Translate the text, keep every "
    "tag exactly once with its number, and move tags where the grammar of "
    "the target language needs them. Never add, drop or renumber tags. Keep "
    "{placeholders} and numbers unchanged. A 'note' explains the context of "
    "a string and is not translated. Reply with JSON only, shaped as "
    '{"translations": [{"id": "...", "translated": "..."}]}.'
)

REQUIRED_SETTINGS = {
    "openai": ("OPENAI_API_KEY",),
    "azure_openai": (
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_API_VERSION",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
    ),
}


def payload_id(position: int) -> str:
    """Identifier of the resource at ``position`` in a provider request."""

    return str(position)


def build_request(
    resources: Sequence[Resource],
    *,
    source_language: str | None,
    target_language: str,
) -> Dict[str, Any]:
    """Describe a batch of placeholder-strings for the model."""

    strings = []
    for position, resource in enumerate(resources):
        entry = {"id": payload_id(position), "text": resource.source}
        if resource.comment:
            entry["note"] = resource.comment
        strings.append(entry)
    return {
        "source_language": source_language,
        "target_language": target_language,
        "strings": strings,
    }


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, language hint included."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1:]
    closing = body.rfind("```")
    if closing != -1:
        body = body[:closing]
    return body.strip()


def parse_reply(text: str) -> Dict[str, str]:
    """Turn the model's JSON reply into ``{payload id: translation}``.

    Both ``{"translations": [...]}`` and a bare list are accepted, and ids may
    come back as numbers.
    """

    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as exc:
        raise TranslationProviderError(
            f"Translation provider returned invalid JSON: {exc}"
        ) from exc

    items = data.get("translations") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise TranslationProviderError(
            "Translation provider response malformed: could not find translations list."
        )

    mapping: Dict[str, str] = {}
    for item in items:
        if not isinstance(item, dict):
            raise TranslationProviderError(
                "Translation provider response malformed: expected objects."
            )
        item_id = item.get("id")
        translated = item.get("translated")
        if isinstance(item_id, int):
            item_id = payload_id(item_id)
        if not isinstance(item_id, str) or not isinstance(translated, str):
            raise TranslationProviderError(
                "Translation provider response malformed: missing fields."
            )
        mapping[item_id] = translated
    return mapping


def _provider_kind(value: str | None) -> str:
    normalized = (value or "openai").strip().lower().replace("-", "_")
    if normalized in {"azure_open_ai", "azureopenai"}:
        normalized = "azure_openai"
    return normalized if normalized in REQUIRED_SETTINGS else "openai"


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    @abstractmethod
    def translate(
        self,
        resources: Sequence[Resource],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        """Translate resource sources and return a mapping by payload id."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    def translate(
        self,
        resources: Sequence[Resource],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        return {
            payload_id(position): resource.source
            for position, resource in enumerate(resources)
        }


class OpenAITranslationProvider(TranslationProvider):
    """Translates placeholder-strings through the OpenAI Responses API.

    ``LLM_PROVIDER`` selects OpenAI or Azure OpenAI; on Azure the deployment
    name doubles as the default model.
    """

    DEFAULT_MODEL = "gpt-5-mini"

    def __init__(self, *, debug: bool = False, settings: Any = None, client: Any = None) -> None:
        self.debug = debug
        self.settings = settings
        self.provider_kind = _provider_kind(self._setting("LLM_PROVIDER"))
        self._client = client if client is not None else self._build_client()
        if self.provider_kind == "azure_openai":
            self._default_model = self._setting("AZURE_OPENAI_DEPLOYMENT_NAME") or self.DEFAULT_MODEL
        else:
            self._default_model = self.DEFAULT_MODEL

    def _setting(self, name: str) -> str | None:
        value = getattr(self.settings, name, None) if self.settings is not None else None
        return value or os.getenv(name)

    def _build_client(self) -> Any:
        values = {name: self._setting(name) for name in REQUIRED_SETTINGS[self.provider_kind]}
        missing = [name for name, value in values.items() if not value]
        if missing:
            label = "Azure OpenAI" if self.provider_kind == "azure_openai" else "OpenAI"
            raise TranslationProviderConfigurationError(
                f"{label} configuration incomplete. Please set: {', '.join(missing)}."
            )

        try:
            import openai  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        if self.provider_kind == "azure_openai":
            return openai.AzureOpenAI(
                api_key=values["AZURE_OPENAI_API_KEY"],
                api_version=values["AZURE_OPENAI_API_VERSION"],
                azure_endpoint=values["AZURE_OPENAI_ENDPOINT"],
            )
        return openai.OpenAI(api_key=values["OPENAI_API_KEY"])

    def translate(
        self,
        resources: Sequence[Resource],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        if not resources:
            return {}

        request = build_request(
            resources,
            source_language=source_language,
            target_language=target_language,
        )
        self._log_debug("request", request)
        try:
            response = self._client.responses.create(
                model=model or self._default_model,
                instructions=SYSTEM_PROMPT,
                input=json.dumps(request, ensure_ascii=False),
            )
        except Exception as exc:
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        text = getattr(response, "output_text", None)
        self._log_debug("reply", text)
        if not text:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )
        return parse_reply(str(text))

    def _log_debug(self, label: str, payload: Any) -> None:
        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload, ensure_ascii=False, indent=2)
        print(f"[mrkdwnloc][provider-debug] {label}:\n{payload}", file=sys.stderr)


def build_provider(
    name: str | None,
    *,
    debug: bool = False,
    settings: Any = None,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "openai").strip().lower()
    if normalized in {"openai", "azure", "azure_openai", "default"}:
        return OpenAITranslationProvider(debug=debug, settings=settings)
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
