"""Sprint pricing engine - points to hours to fixed price. Decimal only, no I/O."""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from app.config import get_settings


def _to_decimal(value: Any, default: Decimal = Decimal(0)) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError):
        return default


@dataclass(frozen=True)
class PricingSelection:
    """One selected deliverable: catalog (or package override) points, quantity and complexity."""

    base_points: Decimal
    quantity: int = 1
    complexity_multiplier: Decimal = Decimal(1)


@dataclass(frozen=True)
class PricingTotals:
    points: Decimal
    adjusted_points: Decimal
    hours: Decimal
    price: Decimal
    deliverable_count: int

    def display(self) -> dict[str, Any]:
        return {
            "points": float(PricingEngine._round(self.points, 1)),
            "hours": int(PricingEngine._round(self.hours, 0)),
            "price": int(PricingEngine._round(self.price, 0)),
        }


@dataclass(frozen=True)
class PackageQuote:
    """Package price after flat-fee / discount overrides."""

    subtotal: Decimal
    final_price: Decimal
    savings: Decimal
    hours: Decimal
    points: Decimal
    flat_fee_applied: bool
    discount_applied: bool

    def display(self) -> dict[str, Any]:
        return {
            "subtotal": int(PricingEngine._round(self.subtotal, 0)),
            "finalPrice": int(PricingEngine._round(self.final_price, 0)),
            "savings": int(PricingEngine._round(self.savings, 0)),
            "hours": int(PricingEngine._round(self.hours, 0)),
            "points": float(PricingEngine._round(self.points, 1)),
            "flatFeeApplied": self.flat_fee_applied,
            "discountApplied": self.discount_applied,
        }


class PricingEngine:
    """
    Pricing policy: price = base fee (once per sprint) + points x price per point,
    hours = points x hours per point. Constants come from settings.
    """

    def __init__(self, settings=None) -> None:
        self.settings = settings or get_settings()
        self.base_fee = _to_decimal(self.settings.point_base_fee)
        self.price_per_point = _to_decimal(self.settings.point_price_per_point)
        self.hours_per_point = _to_decimal(self.settings.hours_per_point)
        self.standard_complexity = _to_decimal(self.settings.standard_complexity, Decimal("2.5"))

    @staticmethod
    def _round(value: Decimal, places: int = 2) -> Decimal:
        """Round for display only - totals are stored unrounded to 2dp columns."""
        quantize = Decimal(10) ** -places
        return value.quantize(quantize, rounding=ROUND_HALF_UP)

    def complexity_multiplier(self, complexity_score: Any) -> Decimal:
        """complexity_score / 2.5; the standard score of 2.5 is a 1.0 multiplier."""
        score = _to_decimal(complexity_score, Decimal(0))
        if score <= 0 or self.standard_complexity <= 0:
            return Decimal(1)
        return score / self.standard_complexity

    def hours_from_points(self, points: Any) -> Decimal:
        return _to_decimal(points) * self.hours_per_point

    def price_from_points(self, total_points: Any) -> Decimal:
        return self.base_fee + _to_decimal(total_points) * self.price_per_point

    def selection(self, base_points: Any, quantity: Any = 1, complexity_score: Any = None) -> PricingSelection:
        """Build a selection, clamping quantity to >= 1 and missing points to 0."""
        try:
            qty = int(quantity) if quantity is not None else 1
        except (TypeError, ValueError):
            qty = 1
        return PricingSelection(
            base_points=_to_decimal(base_points),
            quantity=max(qty, 1),
            complexity_multiplier=self.complexity_multiplier(complexity_score),
        )

    def calculate(self, selections: Iterable[PricingSelection]) -> PricingTotals:
        """Aggregate totals. Points are unadjusted; hours and price use complexity-adjusted points."""
        points = Decimal(0)
        adjusted = Decimal(0)
        hours = Decimal(0)
        count = 0
        for sel in selections:
            qty = max(int(sel.quantity or 1), 1)
            item_points = _to_decimal(sel.base_points) * qty
            item_adjusted = item_points * _to_decimal(sel.complexity_multiplier, Decimal(1))
            points += item_points
            adjusted += item_adjusted
            hours += self.hours_from_points(item_adjusted)
            count += qty
        return PricingTotals(
            points=points,
            adjusted_points=adjusted,
            hours=hours,
            price=self.price_from_points(adjusted),
            deliverable_count=count,
        )

    def quote_package(
        self,
        totals: PricingTotals,
        flat_fee: Any = None,
        flat_hours: Any = None,
        discount_percentage: Any = None,
    ) -> PackageQuote:
        """Flat fee always wins; otherwise a discount applies multiplicatively to the subtotal."""
        subtotal = totals.price
        flat_fee_applied = flat_fee is not None
        discount = _to_decimal(discount_percentage)
        discount_applied = False
        if flat_fee_applied:
            final_price = _to_decimal(flat_fee)
        elif discount_percentage is not None and discount > 0:
            discount = min(discount, Decimal(100))
            final_price = subtotal * (Decimal(1) - discount / Decimal(100))
            discount_applied = True
        else:
            final_price = subtotal
        hours = _to_decimal(flat_hours) if flat_hours is not None else totals.hours
        return PackageQuote(
            subtotal=subtotal,
            final_price=final_price,
            savings=max(Decimal(0), subtotal - final_price),
            hours=hours,
            points=totals.points,
            flat_fee_applied=flat_fee_applied,
            discount_applied=discount_applied,
        )

    def formula_text(self, prefix: str = "Formula:") -> str:
        """Human-readable formula so UI copy stays in sync with the constants."""
        return (
            f"{prefix} ${int(self.base_fee):,} base + "
            f"(complexity x ${int(self.price_per_point):,})"
        )
