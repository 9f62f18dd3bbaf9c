"""
Arithmetic-mean rollups of grades: sets -> completed exercise, exercises -> completed workout.
"""
import logging
from typing import Any, Dict, Iterable, Mapping, Tuple

from liftgrade.constants import GRADE_DECIMALS
from liftgrade.rounding import is_number, round_half_up

logger = logging.getLogger(__name__)

# (volume, effort, overall) field names per aggregation level
SET_GRADE_FIELDS = ('volume_grade', 'effort_grade', 'overall_grade')
EXERCISE_AVERAGE_FIELDS = ('average_volume', 'average_effort', 'average_overall')


def calculate_averages(
    items: Iterable[Mapping[str, Any]],
    fields: Tuple[str, str, str],
    level: str = "items",
) -> Dict[str, float]:
    """
    Averages the volume, effort and overall fields across `items`.

    Items missing a field, or holding a non-numeric value in one, are skipped
    and logged; the mean is taken over the remaining items only. An empty or
    entirely invalid collection averages to zero.

    Args:
        items: Grade-bearing records (graded sets or exercise averages).
        fields: Names of the (volume, effort, overall) fields on each item.
        level: Label used in log messages, e.g. "sets" or "exercises".

    Returns:
        A new dict with 'average_volume', 'average_effort' and 'average_overall',
        each rounded to two decimals.
    """
    volume_field, effort_field, overall_field = fields
    total_volume = 0.0
    total_effort = 0.0
    total_overall = 0.0
    valid_count = 0
    invalid_count = 0

    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            volume, effort, overall = item.get(volume_field), item.get(effort_field), item.get(overall_field)
        else:
            volume = effort = overall = None

        if is_number(volume) and is_number(effort) and is_number(overall):
            total_volume += float(volume)
            total_effort += float(effort)
            total_overall += float(overall)
            valid_count += 1
        else:
            invalid_count += 1
            logger.warning("Invalid data at %s item %s, skipping: %s", level, index, item)

    if valid_count == 0:
        return {'average_volume': 0.0, 'average_effort': 0.0, 'average_overall': 0.0}

    averages = {
        'average_volume': round_half_up(total_volume / valid_count, GRADE_DECIMALS),
        'average_effort': round_half_up(total_effort / valid_count, GRADE_DECIMALS),
        'average_overall': round_half_up(total_overall / valid_count, GRADE_DECIMALS),
    }
    logger.debug(
        "Averages (%s) over %s valid item(s), %s invalid: %s",
        level, valid_count, invalid_count, averages,
    )
    return averages


def calculate_set_averages(sets: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    """Averages the graded sets of one completed exercise."""
    return calculate_averages(sets, SET_GRADE_FIELDS, level="sets")


def calculate_exercise_averages(exercise_averages: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    """Averages per-exercise averages into workout averages (mean of means)."""
    return calculate_averages(exercise_averages, EXERCISE_AVERAGE_FIELDS, level="exercises")


__all__ = [
    "SET_GRADE_FIELDS",
    "EXERCISE_AVERAGE_FIELDS",
    "calculate_averages",
    "calculate_set_averages",
    "calculate_exercise_averages",
]
