import json
import pathlib

import pytest

from mrkdwnloc.documents import MrkdwnJsonDocument, derive_output_path, detect_handler
from mrkdwnloc.errors import MarkupSyntaxError, UnsupportedFileTypeError
from mrkdwnloc.localization import LocalizationOptions
from mrkdwnloc.store import Resource, TranslationSet, TranslationStatusLog


def make_document(tmp_path, contents, name="strings.json", **option_values):
    path = tmp_path / name
    path.write_text(contents, encoding="utf-8")
    options = LocalizationOptions(project_id="proj", **option_values)
    return MrkdwnJsonDocument(path, options=options, path_name=name)


def french(**targets):
    translations = TranslationSet()
    for key, target in targets.items():
        translations.add(
            Resource(key=key, source="", project="proj", target=target, target_locale="fr-FR")
        )
    return translations


def test_end_to_end_translation(tmp_path):
    document = make_document(tmp_path, '{"id1": "This is a *test*"}')

    resources = document.extract()
    localized = document.localize_text(french(id1="Ceci est un <c0>essai</c0>"), "fr-FR")

    assert [(r.key, r.source) for r in resources] == [("id1", "This is a <c0>test</c0>")]
    assert json.loads(localized.text) == {"id1": "Ceci est un *essai*"}
    assert localized.fully_translated is True


def test_output_keeps_key_order_and_unicode(tmp_path):
    document = make_document(
        tmp_path,
        '{"b": "Second", "a": "First", "n": 3, "flag": true, "list": ["x"], "none": null}',
    )
    document.extract()

    localized = document.localize_text(french(b="Deuxième", a="Premier"), "fr-FR")

    assert localized.text == json.dumps(
        {"b": "Deuxième", "a": "Premier", "n": 3, "flag": True, "list": ["x"], "none": None},
        indent=4,
        ensure_ascii=False,
    )
    assert "\\u" not in localized.text


def test_comments_and_trailing_commas_are_accepted(tmp_path):
    document = make_document(
        tmp_path,
        """{
            // greeting shown on login
            "hello": "Hello *you*",
            'bye': 'Goodbye',
        }""",
    )

    assert [r.key for r in document.extract()] == ["hello", "bye"]


def test_invalid_json_gives_no_resources(tmp_path, caplog):
    document = make_document(tmp_path, '{"id1": "unterminated')

    assert document.extract() == []
    assert "Failed to parse file strings.json" in caplog.text


def test_top_level_array_gives_no_resources(tmp_path):
    document = make_document(tmp_path, '["a", "b"]')

    assert document.extract() == []


def test_broken_markup_is_raised(tmp_path):
    document = make_document(tmp_path, '{"id1": "Hello <a href=\\"x> there"}')

    with pytest.raises(MarkupSyntaxError) as info:
        document.extract()

    assert info.value.path == "strings.json"


def test_untranslated_strings_are_collected(tmp_path):
    new_strings = TranslationSet()
    path = tmp_path / "strings.json"
    path.write_text('{"id1": "Hello", "id2": "World"}', encoding="utf-8")
    document = MrkdwnJsonDocument(
        path, options=LocalizationOptions(project_id="proj"), new_strings=new_strings
    )
    document.extract()

    localized = document.localize_text(french(id1="Bonjour"), "fr-FR")

    assert json.loads(localized.text) == {"id1": "Bonjour", "id2": "World"}
    assert localized.fully_translated is False
    assert document.translation_status == {"fr-FR": False}
    assert [r.key for r in new_strings] == ["id2"]


def test_localize_writes_one_file_per_locale(tmp_path):
    document = make_document(tmp_path, '{"id1": "Hello"}')
    document.extract()
    out = tmp_path / "out"

    results = document.localize(french(id1="Bonjour"), ["en-US", "fr-FR", "de-DE"], out)

    written = {localized.locale: destination for localized, destination in results}
    assert written == {
        "fr-FR": out / "strings_fr-FR.json",
        "de-DE": out / "strings_de-DE.json",
    }
    assert json.loads((out / "strings_fr-FR.json").read_text(encoding="utf-8")) == {"id1": "Bonjour"}
    assert json.loads((out / "strings_de-DE.json").read_text(encoding="utf-8")) == {"id1": "Hello"}


def test_incomplete_locales_are_skipped_when_full_translation_is_required(tmp_path):
    document = make_document(tmp_path, '{"id1": "Hello"}', fully_translated=True)
    document.extract()
    status_log = TranslationStatusLog()

    results = document.localize(
        french(id1="Bonjour"), ["fr-FR", "de-DE"], status_log=status_log
    )

    assert [destination for _, destination in results] == [
        tmp_path / "strings_fr-FR.json",
        None,
    ]
    assert not (tmp_path / "strings_de-DE.json").exists()
    assert status_log.to_dict() == {
        "translated": [str(tmp_path / "strings_fr-FR.json")],
        "untranslated": [str(tmp_path / "strings_de-DE.json")],
    }


def test_derive_output_path():
    source = pathlib.Path("/data/strings.json")

    assert derive_output_path(source, "fr-FR") == pathlib.Path("/data/strings_fr-FR.json")
    assert derive_output_path(source, "ja", pathlib.Path("/out")) == pathlib.Path(
        "/out/strings_ja.json"
    )


def test_detect_handler(tmp_path):
    options = LocalizationOptions()

    name, handler = detect_handler(tmp_path / "Strings.JSON", options=options)
    assert name == "mrkdwn-json"
    assert isinstance(handler, MrkdwnJsonDocument)

    with pytest.raises(UnsupportedFileTypeError):
        detect_handler(tmp_path / "strings.yaml", options=options)
