"""
Per-set grading: volume, effort and overall grades scaled by the exercise-type multiplier.
"""
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from liftgrade.constants import DEFAULTS
from liftgrade.rounding import to_float

# Type aliases for clarity
SetRecord = Dict[str, Any]  # completed_sets row joined with exercise ids
MultiplierRecord = Mapping[str, Any]  # expects 'multiplier_min' and 'multiplier_max'


def build_multiplier_lookup(exercise_type_rows: Iterable[MultiplierRecord]) -> Dict[Any, MultiplierRecord]:
    """Index exercise_types rows by exercise_type_id."""
    return {row['exercise_type_id']: row for row in exercise_type_rows}


def midpoint_multiplier(exercise_type_id, exercise_multipliers: Mapping[Any, MultiplierRecord]) -> float:
    """
    Returns the midpoint of the exercise type's multiplier range.

    Unknown exercise types fall back to the neutral (1, 1) pair without logging.
    """
    row = exercise_multipliers.get(exercise_type_id)
    if row is None:
        multiplier_min, multiplier_max = DEFAULTS.multiplier
    else:
        multiplier_min = to_float(row['multiplier_min'])
        multiplier_max = to_float(row['multiplier_max'])
    return (multiplier_min + multiplier_max) / 2


def grade_set(weight: float, reps: float, rpe: float, rir: float, multiplier: float) -> Tuple[float, float, float]:
    """
    Computes (volume_grade, effort_grade, overall_grade) for one set.

    rpe and rir are expected on a 0-10 scale but are not bounds-checked, so a
    rir above 10 yields a negative effort grade.
    """
    volume_grade = (weight * reps) * multiplier
    effort_grade = ((rpe / 10) * (1 - (rir / 10))) * multiplier
    overall_grade = volume_grade * (1 + (rpe / 10)) * (1 - (rir / 10)) * multiplier
    return volume_grade, effort_grade, overall_grade


def calculate_set_grades(sets: List[SetRecord], exercise_multipliers: Mapping[Any, MultiplierRecord]) -> List[SetRecord]:
    """
    Attaches volume_grade, effort_grade and overall_grade to every set in place.

    Args:
        sets: Set rows with 'weight', 'reps', 'rpe', 'rir' and 'exercise_type_id'.
        exercise_multipliers: Mapping of exercise_type_id to its multiplier row.

    Returns:
        The same list, with grades attached.
    """
    for set_row in sets:
        multiplier = midpoint_multiplier(set_row.get('exercise_type_id'), exercise_multipliers)
        volume_grade, effort_grade, overall_grade = grade_set(
            to_float(set_row.get('weight')),
            to_float(set_row.get('reps')),
            to_float(set_row.get('rpe')),
            to_float(set_row.get('rir')),
            multiplier,
        )
        set_row['volume_grade'] = volume_grade
        set_row['effort_grade'] = effort_grade
        set_row['overall_grade'] = overall_grade

    return sets


__all__ = [
    "build_multiplier_lookup",
    "midpoint_multiplier",
    "grade_set",
    "calculate_set_grades",
]
