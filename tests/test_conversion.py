from __future__ import annotations

import math

import pytest

from pysignalk.conversion import FormulaError, evaluate_formula, radians_to_degrees, try_evaluate_formula
from pysignalk.models.metadata import PathMetadata
from pysignalk.state.metadata import MetadataStore

_KNOTS = {"units": "kn", "formula": "value * 1.94384", "inverseFormula": "value * 0.514444", "symbol": "kn"}


@pytest.mark.parametrize(
    ("formula", "value", "expected"),
    [
        ("value * 1.94384", 1.0, 1.94384),
        ("(value - 273.15) * 9/5 + 32", 273.15, 32.0),
        ("value * 180 / pi", math.pi, 180.0),
        ("value ^ 2", 3.0, 9.0),
        ("-value", 2.0, -2.0),
        ("abs(value)", -4.0, 4.0),
        ("value", 7.0, 7.0),
    ],
)
def test_evaluate_formula(formula: str, value: float, expected: float) -> None:
    assert evaluate_formula(formula, value) == pytest.approx(expected)


@pytest.mark.parametrize(
    "formula",
    [
        "__import__('os').system('true')",
        "value.__class__",
        "open('x')",
        "[value]",
        "unknown + 1",
    ],
)
def test_unsafe_or_unknown_formulas_are_rejected(formula: str) -> None:
    with pytest.raises(FormulaError):
        evaluate_formula(formula, 1.0)


def test_unparseable_formula_falls_back_to_simple_factor() -> None:
    assert evaluate_formula("value * 2.5 kn", 2.0) == pytest.approx(5.0)


def test_division_by_zero_is_a_formula_error() -> None:
    with pytest.raises(FormulaError):
        evaluate_formula("1 / value", 0.0)


def test_try_evaluate_formula() -> None:
    assert try_evaluate_formula(None, 3.0) == 3.0
    assert try_evaluate_formula("", 3.0) == 3.0
    assert try_evaluate_formula("value * 2", 3.0) == 6.0
    assert try_evaluate_formula("nope(", 3.0) is None


def test_radians_to_degrees_normalizes() -> None:
    assert radians_to_degrees(math.pi) == pytest.approx(180.0)
    assert radians_to_degrees(-math.pi / 2) == pytest.approx(270.0)


def test_path_metadata_from_display_units() -> None:
    meta = PathMetadata.from_display_units("navigation.speedOverGround", _KNOTS, category="speed")

    assert meta.target_unit == "kn"
    assert meta.category == "speed"
    assert meta.convert(1.0) == pytest.approx(1.94384)
    assert meta.convert_to_si(1.94384) == pytest.approx(1.0, rel=1e-4)
    assert meta.format(5.4) == "10.5 kn"
    assert not meta.is_identity


def test_path_metadata_without_units_uses_symbol() -> None:
    meta = PathMetadata.from_display_units("environment.wind.angleApparent", {"symbol": "°", "formula": "value * 57.2958"})

    assert meta.target_unit == "°"


def test_metadata_store_notifies_only_on_change() -> None:
    store = MetadataStore()
    changes: list[tuple[str, PathMetadata | None]] = []
    remove = store.add_listener(lambda path, meta: changes.append((path, meta)))

    assert store.update_from_meta("navigation.speedOverGround", _KNOTS)
    assert not store.update_from_meta("navigation.speedOverGround", dict(_KNOTS))
    assert store.update_from_meta("navigation.speedOverGround", {**_KNOTS, "symbol": "kt"})

    assert [path for path, _meta in changes] == ["navigation.speedOverGround"] * 2
    remove()
    store.remove("navigation.speedOverGround")
    assert len(changes) == 2
    assert not store.has("navigation.speedOverGround")


def test_metadata_store_conversions_fall_back_without_metadata() -> None:
    store = MetadataStore()
    store.update_from_meta("navigation.speedOverGround", _KNOTS)

    assert store.convert("navigation.speedOverGround", 1.0) == pytest.approx(1.94384)
    assert store.convert("environment.depth.belowKeel", 4.2) == 4.2
    assert store.convert_to_si("environment.depth.belowKeel", 4.2) == 4.2
    assert store.format("environment.depth.belowKeel", 4.25, decimals=2) == "4.25"
    assert store.get_symbol("navigation.speedOverGround") == "kn"
    assert store.get_symbol("environment.depth.belowKeel") is None


def test_broken_formula_returns_input_value() -> None:
    store = MetadataStore()
    store.update_from_meta("a.b", {"formula": "value *", "symbol": "x"})

    assert store.convert("a.b", 3.0) == 3.0
    assert store.format("a.b", 3.0) == "3.0"


def test_metadata_store_export_and_restore() -> None:
    store = MetadataStore()
    store.update_from_meta("navigation.speedOverGround", _KNOTS, category="speed")
    store.update_from_meta("environment.water.temperature", {"units": "C", "formula": "value - 273.15"})
    exported = store.to_map()

    restored = MetadataStore()
    loaded = restored.load_from_cache({**exported, "bad.entry": {"formula": 1}})

    assert loaded == 2
    assert restored.paths() == ["environment.water.temperature", "navigation.speedOverGround"]
    assert restored.convert("environment.water.temperature", 300.0) == pytest.approx(26.85)
    assert [meta.path for meta in restored.get_by_category("speed")] == ["navigation.speedOverGround"]
