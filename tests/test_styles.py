import pytest

from truckcheck.services.layout import Document, Element, build_print_document
from truckcheck.services.styles import (
    StyleSheet, color_function_to_rgb, computed_style, freeze_styles, neutralize, neutralized_color_functions,
)
from truckcheck.schemas.reports import Report


def report(**overrides):
    data = dict(id=12, driver_name="سالم", truck_number="T-9", date="2024-02-02")
    data.update(overrides)
    return Report(**data)


def test_oklch_white_and_black():
    assert color_function_to_rgb("oklch", "1 0 0") == "rgb(255, 255, 255)"
    assert color_function_to_rgb("oklch", "0% 0 0") == "rgb(0, 0, 0)"
    assert color_function_to_rgb("oklab", "100% 0 0 / 0.5") == "rgb(255, 255, 255)"


def test_neutralize_rewrites_only_color_functions():
    text = ".a { color: oklch(1 0 0); border-color: #123456; }"
    assert neutralize(text) == ".a { color: rgb(255, 255, 255); border-color: #123456; }"


def test_stylesheets_restored_after_capture():
    doc = build_print_document(report())
    original = doc.stylesheets[0].text
    doc.root.style["background-color"] = "oklch(1 0 0)"

    with neutralized_color_functions(doc):
        assert "oklch" not in doc.stylesheets[0].text
        assert doc.root.style["background-color"] == "rgb(255, 255, 255)"

    assert doc.stylesheets[0].text == original
    assert doc.root.style["background-color"] == "oklch(1 0 0)"


def test_stylesheets_restored_when_capture_raises():
    doc = build_print_document(report())
    original = doc.stylesheets[0].text

    with pytest.raises(RuntimeError):
        with neutralized_color_functions(doc):
            raise RuntimeError("rasterizer crashed")

    assert doc.stylesheets[0].text == original


def test_cascade_specificity_and_inheritance():
    sheet = StyleSheet(".box { color: #111111; padding: 4px; } .outer .box.hot { color: #ff0000; } .outer { font-size: 20px; }")
    inner = Element("p", ["box", "hot"])
    outer = Element("div", ["outer"], children=[inner])

    style = computed_style(inner, [sheet])
    assert style["color"] == "#ff0000"
    assert style["padding"] == "4px"
    assert style["font-size"] == "20px"
    assert style["background-color"] == "transparent"

    inner.style["color"] = "#00ff00"
    assert computed_style(inner, [sheet])["color"] == "#00ff00"


def test_freeze_inlines_and_strips_stylesheets():
    doc = build_print_document(report())
    clone = doc.clone()
    with neutralized_color_functions(clone):
        freeze_styles(clone)

    assert clone.stylesheets == []
    assert all("color" in el.style and "padding" in el.style for el in clone.root.iter())
    assert doc.stylesheets and "oklch" in doc.stylesheets[0].text
    assert doc.root.style == {}


def test_freeze_forces_light_scheme():
    doc = build_print_document(report(), dark=True)
    assert "dark" in doc.root.classes

    clone = doc.clone()
    with neutralized_color_functions(clone):
        freeze_styles(clone, light=True)

    assert "dark" not in clone.root.classes
    assert "dark" in doc.root.classes
    assert clone.root.style["background-color"] != "#1c1917"
    cards = [el for el in clone.root.iter() if "card" in el.classes]
    assert cards and all(el.style["background-color"] == "#ffffff" for el in cards)


def test_dark_values_remapped_when_forced():
    sheet = StyleSheet(".x { background-color: #1c1917; color: #fafaf9; }")
    doc = Document(Element("div", ["x"]), [sheet])
    freeze_styles(doc, light=True)
    assert doc.root.style["background-color"] == "#fafaf9"
    assert doc.root.style["color"] == "#1c1917"
