"""Requester-facing arrival estimate for orders out for delivery."""

import math

from protean.exceptions import ValidationError

from delivery.settings import PricingSettings
from delivery.shared.geo import is_reachable

MIN_ETA_MINUTES = 1


class ETAEstimator:
    def __init__(self, average_speed_kmph: float):
        if average_speed_kmph <= 0:
            raise ValidationError({"average_speed_kmph": ["Average speed must be positive"]})
        self.average_speed_kmph = average_speed_kmph

    @classmethod
    def from_settings(cls, settings: PricingSettings) -> "ETAEstimator":
        return cls(average_speed_kmph=settings.average_speed_kmph)

    def eta_minutes(self, distance_km: float) -> int | None:
        """Whole minutes to cover ``distance_km``, never below one minute.

        Halves round up (4.5 -> 5). Returns ``None`` when the distance is
        unreachable.
        """
        if not is_reachable(distance_km):
            return None
        minutes = distance_km / self.average_speed_kmph * 60
        return max(MIN_ETA_MINUTES, math.floor(minutes + 0.5))
