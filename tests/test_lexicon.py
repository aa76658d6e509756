import pytest

from mermaid_convert.lexicon import (
    DEFAULT_ARROW, cardinality_style, level_colors, parse_arrow, parse_node_shape,
)


@pytest.mark.parametrize(
    "fragment, shape, label",
    [
        ("([Start])", "stadium", "Start"),
        ("((Hub))", "circle", "Hub"),
        ("[[Sub routine]]", "subroutine", "Sub routine"),
        ("[Box]", "rectangle", "Box"),
        ("(Soft)", "roundedRect", "Soft"),
        ("{Ok?}", "diamond", "Ok?"),
    ],
)
def test_shape_patterns(fragment, shape, label):
    parsed = parse_node_shape(fragment)
    assert parsed.shape == shape
    assert parsed.label == label


def test_multi_character_delimiters_win_over_single():
    assert parse_node_shape("([x])").shape != "roundedRect"
    assert parse_node_shape("((x))").shape != "roundedRect"
    assert parse_node_shape("[[x]]").shape != "rectangle"


def test_unmatched_fragment_is_rectangle_with_trimmed_label():
    parsed = parse_node_shape("  plain text ")
    assert parsed.shape == "rectangle"
    assert parsed.label == "plain text"
    assert parsed.fill_color == "#dae8fc"


def test_shape_carries_default_style():
    parsed = parse_node_shape("{Decide}")
    assert parsed.style.startswith("rhombus;")
    assert parsed.fill_color == "#ffe6cc"
    assert parsed.stroke_color == "#d79b00"


@pytest.mark.parametrize(
    "token, kind",
    [
        ("-->", "solidClassic"),
        ("---", "solidNone"),
        ("-.->", "dashedClassic"),
        ("-.-", "dashedNone"),
        ("==>", "thickClassic"),
    ],
)
def test_arrow_kinds(token, kind):
    assert parse_arrow(token).kind == kind


def test_unknown_arrow_defaults_to_solid_classic():
    assert parse_arrow("~~>") == DEFAULT_ARROW
    assert DEFAULT_ARROW.kind == "solidClassic"


def test_level_colors_wrap_after_six():
    assert level_colors(0) == ("#f8cecc", "#b85450")
    assert level_colors(1) == ("#dae8fc", "#6c8ebf")
    assert level_colors(6) == level_colors(0)
    assert level_colors(13) == level_colors(1)


def test_cardinality_style():
    assert cardinality_style("o{", at_start=True) == "startArrow=ERzeroToMany;startFill=0;"
    assert cardinality_style("|{", at_start=False) == "endArrow=ERoneToMany;endFill=0;"
    assert cardinality_style("??", at_start=False) == "endArrow=ERone;endFill=0;"
    assert cardinality_style(None, at_start=True) == "startArrow=ERone;startFill=0;"
