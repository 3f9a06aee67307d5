"""Detection settings.

Every value here is passed explicitly into the engine; nothing reads a
shared module-level setting at detection time.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class DetectionConfig:
    z_threshold: float = 3.0
    # changes closer together than this must be more extreme to count
    short_gap_minutes: float = 5.0
    short_gap_multiplier: float = 1.5
    # fraction of the stream at the start where ramp-up is expected
    early_exclusion_ratio: float = 0.10
    max_anomalies: int = 50
    trend_multiplier: float = 1.5
    mad_scale: float = 0.6745
    min_valid_timestamp: str = "1971-01-01T00:00:00Z"

    @classmethod
    def from_env(cls) -> "DetectionConfig":
        """Build a config from STREAMSIGHT_* environment variables."""
        defaults = cls()
        return cls(
            z_threshold=float(os.getenv("STREAMSIGHT_Z_THRESHOLD", defaults.z_threshold)),
            short_gap_minutes=float(
                os.getenv("STREAMSIGHT_SHORT_GAP_MINUTES", defaults.short_gap_minutes)
            ),
            short_gap_multiplier=float(
                os.getenv("STREAMSIGHT_SHORT_GAP_MULTIPLIER", defaults.short_gap_multiplier)
            ),
            early_exclusion_ratio=float(
                os.getenv("STREAMSIGHT_EARLY_EXCLUSION_RATIO", defaults.early_exclusion_ratio)
            ),
            max_anomalies=int(os.getenv("STREAMSIGHT_MAX_ANOMALIES", defaults.max_anomalies)),
            trend_multiplier=float(
                os.getenv("STREAMSIGHT_TREND_MULTIPLIER", defaults.trend_multiplier)
            ),
            mad_scale=float(os.getenv("STREAMSIGHT_MAD_SCALE", defaults.mad_scale)),
            min_valid_timestamp=os.getenv(
                "STREAMSIGHT_MIN_VALID_TIMESTAMP", defaults.min_valid_timestamp
            ),
        )
