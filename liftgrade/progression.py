"""Prescription adjustment: progressive overload, deload and rep-range progression."""

from __future__ import annotations

from typing import Any, Dict, Optional

from liftgrade.constants import (
    DEFAULTS,
    DELOAD_FACTOR,
    GRADE_DECIMALS,
    HEAVY_WEIGHT_INCREMENT,
    LIGHT_WEIGHT_INCREMENT,
    LIGHT_WEIGHT_THRESHOLD,
    OVERLOAD_LARGE_MIN_OVERAGE,
    OVERLOAD_LARGE_PERCENT,
    OVERLOAD_SMALL_MAX_OVERAGE,
    OVERLOAD_SMALL_PERCENT,
    REP_RANGE_STEP,
)
from liftgrade.rounding import round_down_to_increment, round_half_up, round_up_to_increment, to_float


def weight_increment(current_weight: float) -> float:
    """Light loads move in 2.5 steps, everything above the threshold in 5s."""
    if current_weight <= LIGHT_WEIGHT_THRESHOLD:
        return LIGHT_WEIGHT_INCREMENT
    return HEAVY_WEIGHT_INCREMENT


def overload_percent(reps_over_goal: float) -> float:
    if 1 <= reps_over_goal <= OVERLOAD_SMALL_MAX_OVERAGE:
        return OVERLOAD_SMALL_PERCENT
    if reps_over_goal >= OVERLOAD_LARGE_MIN_OVERAGE:
        return OVERLOAD_LARGE_PERCENT
    return 0.0


def calculate_overload_weight(current_weight: float, reps_over_goal: float) -> float:
    """
    Increases the weight by 5% (1-3 reps over) or 10% (4+ reps over), rounded up.

    Fractional overages outside those bands (below 1, or between 3 and 4) add
    nothing before rounding, so the weight only moves if it is off the increment grid.
    """
    new_weight = current_weight * (1 + overload_percent(reps_over_goal))
    return round_up_to_increment(new_weight, weight_increment(current_weight))


def calculate_deload_weight(current_weight: float) -> float:
    """Decreases the weight by 2.5%, rounded down."""
    new_weight = current_weight * DELOAD_FACTOR
    return round_down_to_increment(new_weight, weight_increment(current_weight))


def adjust_prescription(
    current_weight: float,
    average_reps: float,
    min_reps: int,
    max_reps: int,
    goal_min_reps: Optional[int] = None,
    goal_max_reps: Optional[int] = None,
    average_effort: Optional[float] = None,
    average_rir: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Computes the next target weight and rep range for an exercise.

    Args:
        current_weight: The prescribed (goal) weight used this session.
        average_reps: Mean reps across the exercise's sets this session.
        min_reps: Current bottom of the rep range.
        max_reps: Current top of the rep range.
        goal_min_reps: Goal range bottom; falls back to min_reps when unset.
        goal_max_reps: Goal range top; falls back to max_reps when unset.
        average_effort: The exercise's average effort grade. Not used by the rule.
        average_rir: The exercise's average RIR. Not used by the rule.

    Returns:
        A dictionary containing:
            'new_weight': float - rounded to two decimals.
            'new_min_reps': int
            'new_max_reps': int
    """
    current_weight = to_float(current_weight)
    new_weight = current_weight
    new_min_reps = goal_min_reps or min_reps
    new_max_reps = goal_max_reps or max_reps

    if average_reps > max_reps:
        # Overload achieved: heavier weight, back to the default band
        new_weight = calculate_overload_weight(current_weight, average_reps - max_reps)
        new_min_reps = DEFAULTS.min_reps
        new_max_reps = DEFAULTS.max_reps
    elif average_reps < min_reps:
        new_weight = calculate_deload_weight(current_weight)
        new_min_reps = max(DEFAULTS.min_reps, min_reps - REP_RANGE_STEP)
        new_max_reps = max(DEFAULTS.max_reps, max_reps - REP_RANGE_STEP)
    else:
        new_max_reps = new_max_reps + REP_RANGE_STEP
        new_min_reps = min(new_min_reps + REP_RANGE_STEP, new_max_reps)

    return {
        'new_weight': round_half_up(new_weight, GRADE_DECIMALS),
        'new_min_reps': new_min_reps,
        'new_max_reps': new_max_reps,
    }


__all__ = [
    "weight_increment",
    "overload_percent",
    "calculate_overload_weight",
    "calculate_deload_weight",
    "adjust_prescription",
]
