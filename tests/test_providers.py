import json
from types import SimpleNamespace

import pytest

from mrkdwnloc.errors import TranslationProviderConfigurationError, TranslationProviderError
from mrkdwnloc.providers import (
    EchoTranslationProvider,
    OpenAITranslationProvider,
    build_provider,
    build_request,
    parse_reply,
    payload_id,
    strip_code_fence,
)
from mrkdwnloc.store import Resource


def test_echo_returns_sources_by_position():
    provider = build_provider("echo")
    resources = [Resource(key="a", source="Run <c0/>"), Resource(key="b", source="Hi")]

    result = provider.translate(resources, source_language="en-US", target_language="fr-FR")

    assert isinstance(provider, EchoTranslationProvider)
    assert result == {payload_id(0): "Run <c0/>", payload_id(1): "Hi"}


def test_unknown_provider_name():
    with pytest.raises(TranslationProviderConfigurationError):
        build_provider("carrier-pigeon")


def test_openai_needs_a_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_PROVIDER", raising=False)

    with pytest.raises(TranslationProviderConfigurationError):
        build_provider("openai", settings=SimpleNamespace(LLM_PROVIDER="openai", OPENAI_API_KEY=None))


def test_azure_lists_missing_settings(monkeypatch):
    for name in (
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_API_VERSION",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
    ):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(TranslationProviderConfigurationError) as info:
        OpenAITranslationProvider(
            settings=SimpleNamespace(LLM_PROVIDER="azure_openai", AZURE_OPENAI_API_KEY="k")
        )

    assert "AZURE_OPENAI_ENDPOINT" in str(info.value)
    assert "AZURE_OPENAI_API_KEY" not in str(info.value)


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


def test_parse_reply_shapes():
    expected = {"0": "Bonjour"}

    assert parse_reply('{"translations": [{"id": "0", "translated": "Bonjour"}]}') == expected
    assert parse_reply('[{"id": 0, "translated": "Bonjour"}]') == expected
    assert parse_reply('```\n{"translations": [{"id": "0", "translated": "Bonjour"}]}\n```') == expected
    with pytest.raises(TranslationProviderError):
        parse_reply("not json")
    with pytest.raises(TranslationProviderError):
        parse_reply('{"unexpected": true}')
    with pytest.raises(TranslationProviderError):
        parse_reply('[{"id": "0"}]')


class FakeResponses:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(output_text=self.reply)


def fake_client(reply=None, error=None):
    return SimpleNamespace(responses=FakeResponses(reply, error))


def test_translate_sends_a_request_and_reads_the_reply():
    client = fake_client('```json\n{"translations": [{"id": 0, "translated": "Lancez <c0/>"}]}\n```')
    provider = OpenAITranslationProvider(
        settings=SimpleNamespace(LLM_PROVIDER="openai"), client=client
    )
    resources = [Resource(key="a", source="Run <c0/>", comment="button label")]

    result = provider.translate(resources, source_language="en-US", target_language="fr-FR")

    assert result == {"0": "Lancez <c0/>"}
    (call,) = client.responses.calls
    assert call["model"] == OpenAITranslationProvider.DEFAULT_MODEL
    assert "<cN/>" in call["instructions"]
    assert json.loads(call["input"]) == build_request(
        resources, source_language="en-US", target_language="fr-FR"
    )
    assert json.loads(call["input"])["strings"] == [
        {"id": "0", "text": "Run <c0/>", "note": "button label"}
    ]


def test_azure_deployment_is_the_default_model():
    client = fake_client('{"translations": []}')
    provider = OpenAITranslationProvider(
        settings=SimpleNamespace(
            LLM_PROVIDER="azure-openai", AZURE_OPENAI_DEPLOYMENT_NAME="loc-deploy"
        ),
        client=client,
    )

    provider.translate([Resource(key="a", source="Hi")], source_language=None, target_language="de-DE")
    provider.translate(
        [Resource(key="a", source="Hi")], source_language=None, target_language="de-DE", model="other"
    )

    assert provider.provider_kind == "azure_openai"
    assert [call["model"] for call in client.responses.calls] == ["loc-deploy", "other"]


def test_empty_batch_does_not_call_the_client():
    client = fake_client()
    provider = OpenAITranslationProvider(settings=SimpleNamespace(), client=client)

    assert provider.translate([], source_language="en-US", target_language="fr-FR") == {}
    assert client.responses.calls == []


@pytest.mark.parametrize(
    "client",
    [
        fake_client(error=RuntimeError("rate limited")),
        fake_client(reply=""),
        fake_client(reply='[{"id": "0"}]'),
    ],
)
def test_translate_failures_become_provider_errors(client):
    provider = OpenAITranslationProvider(settings=SimpleNamespace(), client=client)

    with pytest.raises(TranslationProviderError):
        provider.translate(
            [Resource(key="a", source="Hi")], source_language="en-US", target_language="fr-FR"
        )


def test_debug_output_goes_to_stderr(capsys):
    provider = OpenAITranslationProvider(
        debug=True,
        settings=SimpleNamespace(),
        client=fake_client('[{"id": "0", "translated": "Salut"}]'),
    )

    provider.translate([Resource(key="a", source="Hi")], source_language="en-US", target_language="fr-FR")

    err = capsys.readouterr().err
    assert "[mrkdwnloc][provider-debug] request" in err
    assert "Salut" in err
