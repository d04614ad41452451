"""Tests for the courier earnings formula."""

import pytest
from protean.exceptions import ValidationError

from delivery.settings import PricingSettings
from delivery.shared.earnings import EarningsCalculator
from delivery.shared.geo import UNREACHABLE


@pytest.fixture
def calculator():
    return EarningsCalculator(base_earning=30.0, per_km_rate=5.0)


class TestEarning:
    def test_zero_distance_pays_the_base(self, calculator):
        breakdown = calculator.earning(0.0)
        assert breakdown.base_earning == 30.0
        assert breakdown.distance_earning == 0.0
        assert breakdown.total_earning == 30.0

    def test_four_km(self, calculator):
        assert calculator.total(4.0) == 50.0

    def test_three_km(self, calculator):
        assert calculator.total(3.0) == 45.0

    def test_fractional_distance(self, calculator):
        breakdown = calculator.earning(2.5)
        assert breakdown.distance_km == 2.5
        assert breakdown.distance_earning == pytest.approx(12.5)
        assert breakdown.total_earning == pytest.approx(42.5)

    def test_unreachable_counts_as_zero(self, calculator):
        breakdown = calculator.earning(UNREACHABLE)
        assert breakdown.distance_km == 0.0
        assert breakdown.total_earning == 30.0

    def test_negative_distance_is_rejected(self, calculator):
        with pytest.raises(ValidationError) as exc:
            calculator.earning(-1.0)
        assert "distance_km" in exc.value.messages


class TestConfiguration:
    def test_defaults(self):
        calculator = EarningsCalculator.from_settings(PricingSettings())
        assert calculator.total(1.0) == 35.0

    def test_overrides_from_environment(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_BASE_EARNING", "40")
        monkeypatch.setenv("DELIVERY_PER_KM_RATE", "8")
        calculator = EarningsCalculator.from_settings(PricingSettings.from_env())
        assert calculator.total(2.0) == 56.0
