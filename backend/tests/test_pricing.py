"""Pricing engine: points -> hours -> price, package overrides."""
from decimal import Decimal

import pytest

from app.config import Settings
from app.engine.pricing import PricingEngine


@pytest.fixture
def engine():
    return PricingEngine(Settings(point_base_fee=0, point_price_per_point=1750, hours_per_point=10))


@pytest.fixture
def engine_with_base_fee():
    return PricingEngine(Settings(point_base_fee=500, point_price_per_point=1000, hours_per_point=8))


class TestComplexity:
    def test_standard_score_is_unit_multiplier(self, engine):
        assert engine.complexity_multiplier(2.5) == Decimal(1)

    def test_multiplier_scales_linearly(self, engine):
        assert engine.complexity_multiplier(5) == Decimal(2)
        assert engine.complexity_multiplier("1.25") == Decimal("0.5")

    @pytest.mark.parametrize("score", [None, 0, -1, "not-a-number"])
    def test_missing_or_invalid_score_falls_back_to_one(self, engine, score):
        assert engine.complexity_multiplier(score) == Decimal(1)


class TestPointConversions:
    def test_price_of_zero_points_is_base_fee(self, engine, engine_with_base_fee):
        assert engine.price_from_points(0) == Decimal(0)
        assert engine_with_base_fee.price_from_points(0) == Decimal(500)

    def test_price_is_base_plus_points(self, engine_with_base_fee):
        assert engine_with_base_fee.price_from_points(3) == Decimal(3500)

    def test_hours_monotonic(self, engine):
        samples = [0, 0.5, 1, 2, 3.3, 8, 13, 21, 100]
        hours = [engine.hours_from_points(p) for p in samples]
        assert hours == sorted(hours)
        assert engine.hours_from_points(8) == Decimal(80)


class TestCalculate:
    def test_total_points_is_sum_of_points_times_quantity(self, engine):
        totals = engine.calculate([
            engine.selection(3, 2, 5),
            engine.selection(5, 1, 2.5),
            engine.selection("1.5", 4, None),
        ])
        # complexity never changes raw points
        assert totals.points == Decimal(3 * 2 + 5 + Decimal("1.5") * 4)
        assert totals.deliverable_count == 7

    def test_hours_and_price_use_adjusted_points(self, engine):
        totals = engine.calculate([engine.selection(4, 1, 5)])
        assert totals.points == Decimal(4)
        assert totals.adjusted_points == Decimal(8)
        assert totals.hours == Decimal(80)
        assert totals.price == Decimal(8 * 1750)

    def test_base_fee_charged_once_per_sprint(self, engine_with_base_fee):
        totals = engine_with_base_fee.calculate([
            engine_with_base_fee.selection(1),
            engine_with_base_fee.selection(2),
        ])
        assert totals.price == Decimal(500 + 3 * 1000)

    def test_quantity_clamped_and_missing_points_zero(self, engine):
        totals = engine.calculate([engine.selection(None, 0), engine.selection(2, -3)])
        assert totals.points == Decimal(2)
        assert totals.deliverable_count == 2

    def test_empty_selection(self, engine):
        totals = engine.calculate([])
        assert totals.points == 0
        assert totals.price == engine.price_from_points(0)

    def test_display_rounding(self, engine):
        totals = engine.calculate([engine.selection("1.26", 1, "2.6")])
        shown = totals.display()
        assert shown["points"] == 1.3
        assert isinstance(shown["hours"], int)
        assert isinstance(shown["price"], int)

    def test_two_standard_deliverables(self, engine):
        totals = engine.calculate([engine.selection(3, 1, 2.5), engine.selection(5, 1, 2.5)])
        assert totals.points == Decimal(8)
        assert totals.price == engine.price_from_points(8)
        assert totals.hours == engine.hours_from_points(8)


class TestPackageQuote:
    def _totals(self, engine):
        return engine.calculate([engine.selection(3), engine.selection(5)])

    def test_no_overrides_final_equals_subtotal(self, engine):
        quote = engine.quote_package(self._totals(engine))
        assert quote.final_price == quote.subtotal == Decimal(14000)
        assert quote.savings == 0
        assert not quote.flat_fee_applied and not quote.discount_applied

    def test_flat_fee_wins_over_discount(self, engine):
        quote = engine.quote_package(self._totals(engine), flat_fee=9000, discount_percentage=50)
        assert quote.final_price == Decimal(9000)
        assert quote.flat_fee_applied
        assert not quote.discount_applied
        assert quote.savings == Decimal(5000)

    def test_discount_is_multiplicative(self, engine):
        quote = engine.quote_package(self._totals(engine), discount_percentage=10)
        assert quote.final_price == Decimal(14000) * Decimal("0.9")
        assert quote.savings == quote.subtotal - quote.final_price

    def test_savings_never_negative(self, engine):
        quote = engine.quote_package(self._totals(engine), flat_fee=20000)
        assert quote.final_price == Decimal(20000)
        assert quote.savings == 0

    def test_flat_hours_override(self, engine):
        quote = engine.quote_package(self._totals(engine), flat_hours=40)
        assert quote.hours == Decimal(40)
        assert quote.points == Decimal(8)

    def test_display_uses_camel_case(self, engine):
        shown = engine.quote_package(self._totals(engine), discount_percentage=10).display()
        assert shown["subtotal"] == 14000
        assert shown["finalPrice"] == 12600
        assert shown["savings"] == 1400
        assert shown["discountApplied"] is True


def test_formula_text_tracks_settings(engine_with_base_fee):
    text = engine_with_base_fee.formula_text("Price:")
    assert text.startswith("Price:")
    assert "$500" in text and "$1,000" in text
