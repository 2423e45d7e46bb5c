import pytest

from mrkdwnloc.errors import MarkupSyntaxError, UnhandledNodeError
from mrkdwnloc.mrkdwn import MarkupNode, NodeType, parse, render, render_markup


def types(nodes):
    return [node.type for node in nodes]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "plain text",
        "This is a *test*",
        "This _is a *test* of the emergency parsing_ system.",
        "Run `npm install` now",
        "Hello :wave::skin-tone-3: world",
        "Visit <https://example.com|our site> today",
        "<@U123> joined <#C42|general>",
        "<!here> please look <!date^1392734382^{date}|Feb 18>",
        "> quoted *text*\nNormal line\n",
        "&gt; escaped quote",
        "Hello\n```code *here*```\nGoodbye",
        "<!-- i18n: greeting -->Hi there",
        "snake_case_name and 2*3*4",
        "a < b and <3",
        "Use <b>bold</b> here",
        "~gone~ and *unclosed",
        "<https://example.com|>",
    ],
)
def test_render_reproduces_source(text):
    assert render(parse(text)) == text


def test_parses_nested_emphasis():
    root = parse("This _is a *test* of it_ now")

    assert types(root.children) == [NodeType.TEXT, NodeType.ITALIC, NodeType.TEXT]
    italic = root.children[1]
    assert types(italic.children) == [NodeType.TEXT, NodeType.BOLD, NodeType.TEXT]
    assert italic.children[1].children[0].text == "test"


def test_delimiters_inside_words_are_text():
    root = parse("snake_case_name")

    assert types(root.children) == [NodeType.TEXT]


def test_links_keep_target_and_label():
    root = parse("See <https://example.com|the *docs*> or <#C123> or <@U9|bob>")
    url, channel, user = [node for node in root.children if node.type is not NodeType.TEXT]

    assert url.type is NodeType.URL
    assert url.attrs["url"] == "https://example.com"
    assert types(url.label) == [NodeType.TEXT, NodeType.BOLD]
    assert channel.type is NodeType.CHANNEL_LINK
    assert channel.attrs["channel_id"] == "C123"
    assert channel.label is None
    assert user.attrs["user_id"] == "U9"


def test_command_arguments():
    root = parse("<!date^1392734382^{date_short}|Feb 18, 2014>")
    command = root.children[0]

    assert command.type is NodeType.COMMAND
    assert command.attrs["name"] == "date"
    assert command.attrs["arguments"] == "1392734382^{date_short}"


def test_code_block_and_comment_are_top_level_nodes():
    root = parse("Hello\n```x = 1```\n<!-- note -->Bye")

    assert types(root.children) == [
        NodeType.TEXT,
        NodeType.PRE_TEXT,
        NodeType.TEXT,
        NodeType.COMMENT,
        NodeType.TEXT,
    ]
    assert root.children[1].text == "x = 1"
    assert root.children[3].text == " note "


def test_quote_covers_rest_of_line():
    root = parse("> quoted\nnot quoted")
    quote = root.children[0]

    assert quote.type is NodeType.QUOTE
    assert quote.attrs == {"marker": ">", "newline": "\n"}
    assert quote.children[0].text == " quoted"
    assert root.children[1].text == "not quoted"


def test_malformed_html_tag_reports_position():
    with pytest.raises(MarkupSyntaxError) as info:
        parse("first line\nHello <b =x> there", path="strings.json")

    error = info.value
    assert error.path == "strings.json"
    assert error.line == 2
    assert error.column == 7
    assert str(error).startswith("strings.json:2:7:")


def test_render_markup_collapses_empty_content():
    bold = parse("*x*").children[0]
    link = parse("<https://example.com|x>").children[0]

    assert render_markup(bold, "") == ""
    assert render_markup(bold, "y") == "*y*"
    assert render_markup(link, "") == "<https://example.com>"
    assert render_markup(link, "site") == "<https://example.com|site>"


def test_emphasis_delimiters_touch_the_text():
    bold = parse("*x*").children[0]
    italic = parse("_x_").children[0]

    assert render_markup(bold, " essai") == " *essai*"
    assert render_markup(italic, "y \n") == "_y_ \n"
    assert render_markup(bold, "  ") == "  "


def test_opaque_nodes_ignore_inner_content():
    code = parse("`ls -la`").children[0]

    assert render_markup(code, "translated") == "`ls -la`"


def test_component_without_origin_renders_nothing():
    assert render_markup(MarkupNode(NodeType.COMPONENT, index=3), "text") == ""


def test_unknown_node_type_raises():
    node = MarkupNode(NodeType.TEXT)
    node.type = "mystery"

    with pytest.raises(UnhandledNodeError):
        render_markup(node, "")
