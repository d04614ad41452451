"""Courier earnings — one formula for previews and settlement.

    earning(d) = base_earning + per_km_rate * d

The assignment preview, the ready-list preview and the settlement stamped at
delivery all go through ``EarningsCalculator.earning``; they differ only in
when and between which points the distance was sampled.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from delivery.settings import PricingSettings
from delivery.shared.geo import is_reachable


@dataclass(frozen=True)
class EarningBreakdown:
    distance_km: float
    base_earning: float
    distance_earning: float
    total_earning: float


class EarningsCalculator:
    def __init__(self, base_earning: float, per_km_rate: float):
        self.base_earning = base_earning
        self.per_km_rate = per_km_rate

    @classmethod
    def from_settings(cls, settings: PricingSettings) -> "EarningsCalculator":
        return cls(base_earning=settings.base_earning, per_km_rate=settings.per_km_rate)

    def earning(self, distance_km: float) -> EarningBreakdown:
        """Break down the payout for a trip of ``distance_km``.

        An unreachable distance counts as zero so the base earning still
        applies.
        """
        if not is_reachable(distance_km):
            distance_km = 0.0
        if distance_km < 0:
            raise ValidationError({"distance_km": ["Distance cannot be negative"]})

        distance_earning = self.per_km_rate * distance_km
        return EarningBreakdown(
            distance_km=distance_km,
            base_earning=self.base_earning,
            distance_earning=distance_earning,
            total_earning=self.base_earning + distance_earning,
        )

    def total(self, distance_km: float) -> float:
        return self.earning(distance_km).total_earning
