# liftgrade/constants.py

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class PrescriptionDefaults:
    """Fallback values used when a prescription row or multiplier is unset."""
    min_reps: int = 8
    max_reps: int = 12
    goal_min_reps: int = 8
    goal_max_reps: int = 12
    multiplier: Tuple[float, float] = (1.0, 1.0)  # (multiplier_min, multiplier_max)


DEFAULTS = PrescriptionDefaults()

# Progressive overload: reps over max_reps -> weight increase
OVERLOAD_SMALL_PERCENT = 0.05   # overage of 1-3 reps
OVERLOAD_LARGE_PERCENT = 0.10   # overage of 4+ reps
OVERLOAD_SMALL_MAX_OVERAGE = 3
OVERLOAD_LARGE_MIN_OVERAGE = 4

# Deload: average reps under min_reps
DELOAD_FACTOR = 0.975

# Rep range moves by this many reps on progression and deload
REP_RANGE_STEP = 2

# Weight rounding increments
LIGHT_WEIGHT_THRESHOLD = 20
LIGHT_WEIGHT_INCREMENT = 2.5
HEAVY_WEIGHT_INCREMENT = 5

# Averages are stored with this many decimals
GRADE_DECIMALS = 2
