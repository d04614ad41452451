"""Process-start configuration for earnings and ETA constants."""

import os
from dataclasses import dataclass

DEFAULT_BASE_EARNING = 30.0
DEFAULT_PER_KM_RATE = 5.0
DEFAULT_AVERAGE_SPEED_KMPH = 25.0


@dataclass(frozen=True)
class PricingSettings:
    base_earning: float = DEFAULT_BASE_EARNING
    per_km_rate: float = DEFAULT_PER_KM_RATE
    average_speed_kmph: float = DEFAULT_AVERAGE_SPEED_KMPH

    @classmethod
    def from_env(cls) -> "PricingSettings":
        """Read overrides from DELIVERY_* environment variables."""
        return cls(
            base_earning=float(os.environ.get("DELIVERY_BASE_EARNING", DEFAULT_BASE_EARNING)),
            per_km_rate=float(os.environ.get("DELIVERY_PER_KM_RATE", DEFAULT_PER_KM_RATE)),
            average_speed_kmph=float(
                os.environ.get("DELIVERY_AVERAGE_SPEED_KMPH", DEFAULT_AVERAGE_SPEED_KMPH)
            ),
        )
