"""
End-to-end processing of a workout-completion event.

The stages run strictly in order: grade sets -> aggregate per exercise ->
aggregate the workout -> adjust each exercise's prescription. Every stage
persists through the repository before the next one starts.
"""
import logging
from statistics import mean
from typing import Any, Dict, List

from liftgrade.aggregation import calculate_exercise_averages, calculate_set_averages
from liftgrade.constants import DEFAULTS
from liftgrade.grading import build_multiplier_lookup, calculate_set_grades
from liftgrade.progression import adjust_prescription
from liftgrade.rounding import to_float

logger = logging.getLogger(__name__)


def group_sets_by_exercise(
    sets: List[Dict[str, Any]], key: str = 'completed_exercise_id'
) -> Dict[Any, List[Dict[str, Any]]]:
    """Groups sets by `key` (completed_exercise_id or exercise_id), keeping first-appearance order."""
    grouped: Dict[Any, List[Dict[str, Any]]] = {}
    for set_row in sets:
        grouped.setdefault(set_row[key], []).append(set_row)
    return grouped


def _with_default(value, default):
    return default if value is None else value


def resolve_goal_weight(prescription: Dict[str, Any], exercise_sets: List[Dict[str, Any]]) -> float:
    """Stored goal weight, or the weight of the most recently recorded set when unset."""
    goal_weight = prescription.get('goal_weight')
    if not goal_weight:
        goal_weight = exercise_sets[-1]['weight']
    return to_float(goal_weight)


def adjust_exercise_prescription(workout_id, exercise_sets: List[Dict[str, Any]], repository):
    """
    Applies the weight adjustment policy to one exercise and saves the result.

    `exercise_sets` holds every graded set of the exercise in this workout, in
    recording order. Returns the adjustment dict, or None when the template has
    no row for the exercise.
    """
    exercise_id = exercise_sets[0]['exercise_id']

    prescription = repository.fetch_prescription(workout_id, exercise_id)
    if prescription is None:
        logger.error(
            "No matching workout_exercises entry found for exercise %s (workout %s).",
            exercise_id, workout_id,
        )
        return None

    current_weight = resolve_goal_weight(prescription, exercise_sets)
    average_reps = mean(to_float(s.get('reps')) for s in exercise_sets)
    average_rir = mean(to_float(s.get('rir')) for s in exercise_sets)

    # An unset goal range falls back to the current range inside the policy
    adjustment = adjust_prescription(
        current_weight=current_weight,
        average_reps=average_reps,
        min_reps=_with_default(prescription.get('min_reps'), DEFAULTS.min_reps),
        max_reps=_with_default(prescription.get('max_reps'), DEFAULTS.max_reps),
        goal_min_reps=prescription.get('goal_min_reps'),
        goal_max_reps=prescription.get('goal_max_reps'),
        average_effort=calculate_set_averages(exercise_sets)['average_effort'],
        average_rir=average_rir,
    )
    logger.info(
        f"Exercise {exercise_id} (workout {workout_id}): weight {current_weight} -> {adjustment['new_weight']}, "
        f"average reps {average_reps:.2f}, rep range -> "
        f"{adjustment['new_min_reps']}-{adjustment['new_max_reps']}."
    )

    repository.save_prescription(
        workout_id,
        exercise_id,
        adjustment['new_weight'],
        adjustment['new_min_reps'],
        adjustment['new_max_reps'],
    )
    return adjustment


def process_completed_workout(workout_id, repository) -> Dict[str, Any]:
    """
    Grades a completed workout and adapts the template's prescriptions.

    Args:
        workout_id: The completed_workout_id of the finished session.
        repository: A CompletedWorkoutRepository (or anything with the same methods).

    Returns:
        A summary dictionary containing:
            'workout_id': the processed workout.
            'sets_graded': int - number of sets graded.
            'exercise_averages': dict - completed_exercise_id -> averages.
            'workout_averages': dict - mean of the exercise averages.
            'prescriptions_updated': list - exercise ids whose prescription was saved.
            'prescriptions_skipped': list - exercise ids without a template row.

    Database errors raised by the repository propagate to the caller; writes
    already committed stay committed.
    """
    repository.mark_workout_ended(workout_id)

    sets = repository.fetch_workout_sets(workout_id)
    exercise_multipliers = build_multiplier_lookup(repository.fetch_exercise_type_multipliers())
    logger.info(f"Grading {len(sets)} set(s) for completed workout {workout_id}.")

    graded_sets = calculate_set_grades(sets, exercise_multipliers)
    for set_row in graded_sets:
        repository.save_set_grades(
            set_row['completed_set_id'],
            set_row['volume_grade'],
            set_row['effort_grade'],
            set_row['overall_grade'],
        )

    sets_by_exercise = group_sets_by_exercise(graded_sets)
    exercise_averages: Dict[Any, Dict[str, float]] = {}
    for completed_exercise_id, exercise_sets in sets_by_exercise.items():
        averages = calculate_set_averages(exercise_sets)
        exercise_averages[completed_exercise_id] = averages
        repository.save_exercise_averages(completed_exercise_id, averages)

    workout_averages = calculate_exercise_averages(list(exercise_averages.values()))
    repository.save_workout_averages(workout_id, workout_averages)
    logger.info(f"Workout {workout_id} averages: {workout_averages}")

    # One adjustment per exercise; an exercise logged twice has its sets pooled
    updated, skipped = [], []
    for exercise_id, exercise_sets in group_sets_by_exercise(graded_sets, key='exercise_id').items():
        adjustment = adjust_exercise_prescription(workout_id, exercise_sets, repository)
        if adjustment is None:
            skipped.append(exercise_id)
        else:
            updated.append(exercise_id)

    return {
        'workout_id': workout_id,
        'sets_graded': len(graded_sets),
        'exercise_averages': exercise_averages,
        'workout_averages': workout_averages,
        'prescriptions_updated': updated,
        'prescriptions_skipped': skipped,
    }


__all__ = [
    "group_sets_by_exercise",
    "resolve_goal_weight",
    "adjust_exercise_prescription",
    "process_completed_workout",
]
