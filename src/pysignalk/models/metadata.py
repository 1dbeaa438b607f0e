"""Per-path unit metadata and conversion formulas."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field

from pysignalk.conversion import try_evaluate_formula
from pysignalk.models._base import SignalKBaseModel


class PathMetadata(SignalKBaseModel):
    """Conversion metadata for a single path.

    Populated from ``displayUnits`` objects carried by meta deltas, e.g.
    ``{"units": "kn", "formula": "value * 1.94384",
    "inverseFormula": "value * 0.514444", "symbol": "kn"}``.
    """

    path: str
    base_unit: str | None = None
    target_unit: str | None = None
    category: str | None = None
    formula: str | None = None
    inverse_formula: str | None = None
    symbol: str | None = None
    display_format: str | None = None
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_display_units(
        cls,
        path: str,
        display_units: dict[str, Any],
        *,
        category: str | None = None,
    ) -> PathMetadata:
        # Meta deltas often omit "units" and only carry "symbol".
        target_unit = display_units.get("units") or display_units.get("symbol")
        return cls.model_validate(
            {
                "path": path,
                "baseUnit": display_units.get("baseUnit"),
                "targetUnit": target_unit,
                "category": category or display_units.get("category"),
                "formula": display_units.get("formula"),
                "inverseFormula": display_units.get("inverseFormula"),
                "symbol": display_units.get("symbol"),
                "displayFormat": display_units.get("displayFormat"),
                "raw": dict(display_units),
            }
        )

    @property
    def has_conversion(self) -> bool:
        return bool(self.formula)

    @property
    def is_identity(self) -> bool:
        return not self.formula or self.formula.strip() == "value"

    def convert(self, si_value: float) -> float | None:
        """SI value -> display value; ``None`` if the formula fails."""
        return try_evaluate_formula(self.formula, si_value)

    def convert_to_si(self, display_value: float) -> float | None:
        """Display value -> SI value; ``None`` if the inverse formula fails."""
        return try_evaluate_formula(self.inverse_formula, display_value)

    def format(self, si_value: float, *, decimals: int = 1) -> str:
        """Convert and format with symbol, e.g. ``"10.5 kn"``."""
        converted = self.convert(si_value)
        if converted is None:
            return f"{si_value:.{decimals}f}"
        text = f"{converted:.{decimals}f}"
        if self.symbol:
            return f"{text} {self.symbol}"
        return text

    def differs_from(self, other: PathMetadata | None) -> bool:
        if other is None:
            return True
        return (
            self.formula != other.formula
            or self.inverse_formula != other.inverse_formula
            or self.symbol != other.symbol
            or self.target_unit != other.target_unit
            or self.category != other.category
        )
