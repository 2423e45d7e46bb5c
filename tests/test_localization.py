import pytest

from mrkdwnloc.extraction import ExtractionWalker
from mrkdwnloc.localization import LocalizationOptions, LocalizationWalker
from mrkdwnloc.mrkdwn import NodeType, parse, render
from mrkdwnloc.pseudo import PseudoLocalizer
from mrkdwnloc.store import Resource, TranslationSet
from mrkdwnloc.structures import RunState, WarningKind


def translations_for(locale, **targets):
    translations = TranslationSet()
    for key, target in targets.items():
        translations.add(
            Resource(key=key, source="", project="proj", target=target, target_locale=locale)
        )
    return translations


def localize(value, locale="fr-FR", translations=None, options=None, new_strings=None):
    ast, _ = ExtractionWalker("proj", "en-US").walk("key", value)
    walker = LocalizationWalker(
        options or LocalizationOptions(project_id="proj"),
        translations or TranslationSet(),
        new_strings if new_strings is not None else TranslationSet(),
    )
    return walker.localize(ast, locale)


@pytest.mark.parametrize(
    "value",
    [
        "This is a *test*",
        "Run `npm install` now :rocket: please",
        "<@U123> joined <#C2|general> :tada:",
        "> quoted *text*\nNormal line\n",
        "Hello there\n```print('hi')```\nGoodbye now",
        "<!-- i18n: greeting -->  Hi <https://example.com|*there*>!  ",
        "... :+1: ...",
        "*Everything is bold*",
        "Use <b>bold</b> and &amp; entities",
    ],
)
def test_untranslated_values_come_back_unchanged(value):
    result = localize(value)

    assert result.text == value
    assert result.warnings == []


def test_translation_is_put_back_into_markup():
    result = localize(
        "This is a *test*",
        translations=translations_for("fr-FR", key="Ceci est un <c0>essai</c0>"),
    )

    assert result.text == "Ceci est un *essai*"
    assert result.fully_translated is True
    assert [run.state for run in result.runs] == [RunState.RECONSTRUCTED]


def test_translators_may_reorder_components():
    result = localize(
        "Click *here* to see _more_",
        translations=translations_for("fr-FR", key="<c1>Plus</c1> : cliquez <c0>ici</c0>"),
    )

    assert result.text == "_Plus_ : cliquez *ici*"


def test_outer_markup_and_whitespace_are_kept():
    result = localize(
        "  *Everything is bold*\n",
        translations=translations_for("fr-FR", key="Tout est en gras"),
    )

    assert result.text == "  *Tout est en gras*\n"


def test_each_run_uses_its_own_key():
    result = localize(
        "Hello there\n```print('hi')```\nGoodbye now",
        translations=translations_for("fr-FR", key="Bonjour", key_1="Au revoir"),
    )

    assert result.text == "Bonjour\n```print('hi')```\nAu revoir"


def test_opaque_components_are_copied_from_the_source():
    result = localize(
        "Run `npm install` now :rocket:",
        translations=translations_for("fr-FR", key="Lancez <c0/> maintenant"),
    )

    assert result.text == "Lancez `npm install` maintenant :rocket:"


def test_extra_components_are_dropped_with_a_warning():
    result = localize(
        "This is a *test*",
        translations=translations_for("fr-FR", key="Ceci <c5/>est un <c0>essai</c0>"),
    )

    assert result.text == "Ceci est un *essai*"
    (warning,) = result.warnings
    assert warning.kind is WarningKind.UNKNOWN_COMPONENT
    assert warning.index == 5
    assert warning.key == "key"
    assert warning.locale == "fr-FR"
    assert warning.source == "This is a <c0>test</c0>"
    assert result.runs[0].state is RunState.RECONSTRUCTED_WITH_WARNING
    assert result.fully_translated is True


@pytest.mark.parametrize(
    "value, translated, expected",
    [
        ("This is a *test*", "Ceci est un<c0> essai</c0>", "Ceci est un *essai*"),
        ("a *b* c", "x <c0>y <c9>z</c9></c0> w", "x *y*  w"),
    ],
)
def test_rebuilt_emphasis_stays_valid_mrkdwn(value, translated, expected):
    result = localize(value, translations=translations_for("fr-FR", key=translated))

    assert result.text == expected
    (bold,) = [node for node in parse(result.text).children if node.type is NodeType.BOLD]
    assert not bold.children[0].text[0].isspace()


def test_text_inside_a_code_placeholder_is_reported():
    result = localize(
        "Run `cmd` now",
        translations=translations_for("fr-FR", key="Lancez <c0>commande</c0> maintenant"),
    )

    assert result.text == "Lancez `cmd` maintenant"
    assert [warning.kind for warning in result.warnings] == [WarningKind.KIND_MISMATCH]
    assert result.runs[0].state is RunState.RECONSTRUCTED_WITH_WARNING


def test_missing_components_are_reported(caplog):
    result = localize(
        "Run `ls` now",
        translations=translations_for("fr-FR", key="Lancez maintenant"),
    )

    assert result.text == "Lancez maintenant"
    assert [warning.kind for warning in result.warnings] == [WarningKind.MISSING_COMPONENT]
    assert "does not match the components" in caplog.text


def test_missing_translation_falls_back_and_is_recorded():
    new_strings = TranslationSet()

    result = localize("This is a *test*", new_strings=new_strings)

    assert result.text == "This is a *test*"
    assert result.fully_translated is False
    assert result.runs[0].fallback is True
    (entry,) = new_strings.get_all()
    assert entry.source == "This is a <c0>test</c0>"
    assert entry.target_locale == "fr-FR"
    assert entry.state == "new"


def test_pseudo_locale_accents_the_source():
    options = LocalizationOptions(
        project_id="proj", pseudo_locales={"zxx-XX": PseudoLocalizer("zxx-XX")}
    )
    new_strings = TranslationSet()

    result = localize("This is a *test*", "zxx-XX", options=options, new_strings=new_strings)

    assert result.text == "Ţĥìš ìš à *ţèšţ*"
    assert result.fully_translated is False
    assert len(new_strings) == 1


def test_pseudo_can_chain_off_another_translation():
    options = LocalizationOptions(
        project_id="proj",
        pseudo_locales={"zxx-FR": PseudoLocalizer("zxx-FR", source_locale="fr-FR")},
    )
    translations = translations_for("fr-FR", key="Ceci est un <c0>essai</c0>")

    result = localize("This is a *test*", "zxx-FR", translations=translations, options=options)

    assert result.text == "Çèçì èšţ üñ *èššàì*"


def test_nopseudo_returns_the_source_for_the_pseudo_locale():
    options = LocalizationOptions(project_id="proj", pseudo_locale="zxx-XX", nopseudo=True)
    new_strings = TranslationSet()

    result = localize("This is a *test*", "zxx-XX", options=options, new_strings=new_strings)

    assert result.text == "This is a *test*"
    assert result.fully_translated is True
    assert len(new_strings) == 0


def test_missing_strings_can_be_pseudo_localized():
    options = LocalizationOptions(project_id="proj", missing_pseudo=PseudoLocalizer("de-DE"))

    result = localize("This is a *test*", "de-DE", options=options)

    assert result.text == "Ţĥìš ìš à *ţèšţ*"
    assert result.fully_translated is False


def test_tree_is_not_changed_by_localizing():
    value = "Hi <@U1>, see <#C2|general> and *read* `docs` :eyes:"
    ast, _ = ExtractionWalker("proj", "en-US").walk("key", value)
    walker = LocalizationWalker(
        LocalizationOptions(project_id="proj"),
        translations_for("fr-FR", key="Salut <c0/>, voir <c1>général</c1> et <c2>lire</c2>"),
        TranslationSet(),
    )

    first = walker.localize(ast, "fr-FR")
    second = walker.localize(ast, "fr-FR")

    assert first.text == second.text == "Salut <@U1>, voir <#C2|général> et *lire* `docs` :eyes:"
    assert render(ast) == value
