from mrkdwnloc.pseudo import PseudoLocalizer


def test_letters_are_accented():
    assert PseudoLocalizer("zxx-XX").get_string("This is a test") == "Ţĥìš ìš à ţèšţ"


def test_tags_params_and_entities_are_untouched():
    pseudo = PseudoLocalizer("zxx-XX")

    assert pseudo.get_string("Hi <c0>{name}</c0> &amp; <c1/>") == "Ĥì <c0>{name}</c0> &amp; <c1/>"


def test_digits_and_unmapped_letters_stay():
    assert PseudoLocalizer("zxx-XX").get_string("Quiz 42 vx") == "Qüìž 42 vx"


def test_empty_string():
    assert PseudoLocalizer("zxx-XX").get_string("") == ""


def test_source_locale_for_chaining():
    assert PseudoLocalizer("zxx-XX").get_pseudo_source_locale() is None
    assert PseudoLocalizer("zxx-FR", source_locale="fr-FR").get_pseudo_source_locale() == "fr-FR"
