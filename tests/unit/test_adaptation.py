import logging
import unittest
from unittest.mock import MagicMock

import psycopg2

from liftgrade.adaptation import (
    group_sets_by_exercise,
    resolve_goal_weight,
    process_completed_workout,
)


class FakeRepository:
    """In-memory stand-in for CompletedWorkoutRepository that records every write."""

    def __init__(self, sets, exercise_types=None, prescriptions=None):
        self.sets = sets
        self.exercise_types = exercise_types or []
        self.prescriptions = prescriptions or {}  # exercise_id -> workout_exercises row
        self.calls = []
        self.set_grades = {}
        self.exercise_averages = {}
        self.workout_averages = {}
        self.saved_prescriptions = {}

    def mark_workout_ended(self, workout_id):
        self.calls.append(('mark_workout_ended', workout_id))

    def fetch_workout_sets(self, workout_id):
        self.calls.append(('fetch_workout_sets', workout_id))
        return [dict(s) for s in self.sets]

    def fetch_exercise_type_multipliers(self):
        self.calls.append(('fetch_exercise_type_multipliers',))
        return self.exercise_types

    def fetch_prescription(self, workout_id, exercise_id):
        self.calls.append(('fetch_prescription', workout_id, exercise_id))
        return self.prescriptions.get(exercise_id)

    def save_set_grades(self, completed_set_id, volume_grade, effort_grade, overall_grade):
        self.calls.append(('save_set_grades', completed_set_id))
        self.set_grades[completed_set_id] = (volume_grade, effort_grade, overall_grade)

    def save_exercise_averages(self, completed_exercise_id, averages):
        self.calls.append(('save_exercise_averages', completed_exercise_id))
        self.exercise_averages[completed_exercise_id] = averages

    def save_workout_averages(self, workout_id, averages):
        self.calls.append(('save_workout_averages', workout_id))
        self.workout_averages[workout_id] = averages

    def save_prescription(self, workout_id, exercise_id, new_weight, new_min_reps, new_max_reps):
        self.calls.append(('save_prescription', workout_id, exercise_id))
        self.saved_prescriptions[exercise_id] = (new_weight, new_min_reps, new_max_reps)
        row = self.prescriptions.get(exercise_id)
        if row is not None:
            row.update(goal_weight=new_weight, min_reps=new_min_reps, max_reps=new_max_reps)
            if row['goal_min_reps'] is None:
                row['goal_min_reps'] = new_min_reps
            if row['goal_max_reps'] is None:
                row['goal_max_reps'] = new_max_reps


def _set(set_id, completed_exercise_id, exercise_id, weight, reps, rpe, rir, exercise_type_id=1):
    return {
        'completed_set_id': set_id,
        'completed_exercise_id': completed_exercise_id,
        'exercise_id': exercise_id,
        'exercise_type_id': exercise_type_id,
        'weight': weight,
        'reps': reps,
        'rpe': rpe,
        'rir': rir,
    }


def _prescription(exercise_id, goal_weight=None, min_reps=8, max_reps=12, goal_min_reps=8, goal_max_reps=12):
    return {
        'workout_template_id': 7,
        'exercise_id': exercise_id,
        'goal_weight': goal_weight,
        'min_reps': min_reps,
        'max_reps': max_reps,
        'goal_min_reps': goal_min_reps,
        'goal_max_reps': goal_max_reps,
    }


NEUTRAL_TYPES = [{'exercise_type_id': 1, 'multiplier_min': 1, 'multiplier_max': 1}]


class TestHelpers(unittest.TestCase):
    def test_group_sets_keeps_first_appearance_order(self):
        sets = [_set(1, 20, 2, 50, 10, 8, 2), _set(2, 10, 1, 50, 10, 8, 2), _set(3, 20, 2, 50, 10, 8, 2)]
        grouped = group_sets_by_exercise(sets)
        self.assertEqual(list(grouped), [20, 10])
        self.assertEqual([s['completed_set_id'] for s in grouped[20]], [1, 3])

    def test_group_sets_by_exercise_id(self):
        sets = [_set(1, 10, 1, 50, 10, 8, 2), _set(2, 20, 2, 50, 10, 8, 2), _set(3, 30, 1, 55, 10, 8, 2)]
        grouped = group_sets_by_exercise(sets, key='exercise_id')
        self.assertEqual(list(grouped), [1, 2])
        self.assertEqual([s['completed_set_id'] for s in grouped[1]], [1, 3])

    def test_resolve_goal_weight_prefers_stored_value(self):
        sets = [_set(1, 10, 1, 80, 10, 8, 2)]
        self.assertEqual(resolve_goal_weight({'goal_weight': 95}, sets), 95.0)

    def test_resolve_goal_weight_falls_back_to_most_recent_set(self):
        sets = [_set(1, 10, 1, 80, 10, 8, 2), _set(2, 10, 1, 85, 10, 8, 2)]
        self.assertEqual(resolve_goal_weight({'goal_weight': None}, sets), 85.0)
        self.assertEqual(resolve_goal_weight({}, sets), 85.0)


class TestProcessCompletedWorkout(unittest.TestCase):
    def test_single_exercise_end_to_end(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 10, 8, 2), _set(2, 10, 100, 100, 8, 7, 3)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=100)},
        )

        summary = process_completed_workout(5, repo)

        self.assertEqual(repo.set_grades[1][0], 1000)
        self.assertEqual(repo.set_grades[2][0], 800)
        self.assertAlmostEqual(repo.set_grades[1][1], 0.64)
        self.assertAlmostEqual(repo.set_grades[2][1], 0.49)
        expected = {'average_volume': 900.0, 'average_effort': 0.57, 'average_overall': 1196.0}
        self.assertEqual(repo.exercise_averages[10], expected)
        self.assertEqual(repo.workout_averages[5], expected)
        # 9 average reps sits inside 8-12: weight holds, range moves up
        self.assertEqual(repo.saved_prescriptions[100], (100.0, 10, 14))

        self.assertEqual(summary['sets_graded'], 2)
        self.assertEqual(summary['workout_averages'], expected)
        self.assertEqual(summary['prescriptions_updated'], [100])
        self.assertEqual(summary['prescriptions_skipped'], [])

    def test_stage_order(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 10, 8, 2)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=100)},
        )
        process_completed_workout(5, repo)
        names = [c[0] for c in repo.calls]
        self.assertEqual(names, [
            'mark_workout_ended',
            'fetch_workout_sets',
            'fetch_exercise_type_multipliers',
            'save_set_grades',
            'save_exercise_averages',
            'save_workout_averages',
            'fetch_prescription',
            'save_prescription',
        ])

    def test_workout_average_is_mean_of_exercise_means(self):
        repo = FakeRepository(
            sets=[
                _set(1, 10, 100, 10, 10, 0, 0),
                _set(2, 20, 200, 30, 10, 0, 0),
                _set(3, 20, 200, 30, 10, 0, 0),
                _set(4, 20, 200, 30, 10, 0, 0),
            ],
            exercise_types=NEUTRAL_TYPES,
        )
        summary = process_completed_workout(5, repo)
        self.assertEqual(repo.exercise_averages[10]['average_volume'], 100.0)
        self.assertEqual(repo.exercise_averages[20]['average_volume'], 300.0)
        # Mean of means (200), not the mean over all four sets (250)
        self.assertEqual(summary['workout_averages']['average_volume'], 200.0)

    def test_missing_prescription_is_skipped_and_logged(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 10, 8, 2), _set(2, 20, 200, 60, 13, 9, 1)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={200: _prescription(200, goal_weight=60)},
        )
        with self.assertLogs('liftgrade.adaptation', level=logging.ERROR) as logs:
            summary = process_completed_workout(5, repo)

        self.assertIn("No matching workout_exercises entry", logs.output[0])
        self.assertEqual(summary['prescriptions_skipped'], [100])
        self.assertEqual(summary['prescriptions_updated'], [200])
        # 13 reps over a max of 12: +5%, 63 -> 65
        self.assertEqual(repo.saved_prescriptions[200], (65.0, 8, 12))
        self.assertNotIn(100, repo.saved_prescriptions)

    def test_unset_goal_weight_uses_most_recent_set(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 80, 13, 8, 2), _set(2, 10, 100, 85, 13, 8, 2)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=None)},
        )
        process_completed_workout(5, repo)
        # 85 * 1.05 = 89.25 -> 90
        self.assertEqual(repo.saved_prescriptions[100], (90.0, 8, 12))

    def test_null_rep_fields_use_defaults(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 40, 10, 8, 2)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=40, min_reps=None, max_reps=None,
                                              goal_min_reps=None, goal_max_reps=None)},
        )
        process_completed_workout(5, repo)
        self.assertEqual(repo.saved_prescriptions[100], (40.0, 10, 14))

    def test_unset_goal_range_falls_back_to_current_range(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 12, 8, 2)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=100, min_reps=10, max_reps=14,
                                              goal_min_reps=None, goal_max_reps=None)},
        )
        process_completed_workout(5, repo)
        # 12 reps inside 10-14: range moves up from the current range, not from 8-12
        self.assertEqual(repo.saved_prescriptions[100], (100.0, 12, 16))
        row = repo.prescriptions[100]
        self.assertEqual((row['goal_min_reps'], row['goal_max_reps']), (12, 16))

    def test_stored_goal_range_is_kept(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 12, 8, 2)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=100, min_reps=10, max_reps=14,
                                              goal_min_reps=6, goal_max_reps=10)},
        )
        process_completed_workout(5, repo)
        self.assertEqual(repo.saved_prescriptions[100], (100.0, 8, 12))
        row = repo.prescriptions[100]
        self.assertEqual((row['goal_min_reps'], row['goal_max_reps']), (6, 10))

    def test_exercise_logged_twice_is_adjusted_once(self):
        repo = FakeRepository(
            sets=[
                _set(1, 10, 100, 60, 13, 8, 2),
                _set(2, 20, 200, 40, 10, 8, 2),
                _set(3, 30, 100, 62, 13, 8, 2),
            ],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=None),
                           200: _prescription(200, goal_weight=40)},
        )
        summary = process_completed_workout(5, repo)

        self.assertEqual(summary['prescriptions_updated'], [100, 200])
        saves = [c for c in repo.calls if c[0] == 'save_prescription']
        self.assertEqual(saves, [('save_prescription', 5, 100), ('save_prescription', 5, 200)])
        # Pooled sets: most recent weight is 62, 62 * 1.05 = 65.1 -> 70
        self.assertEqual(repo.saved_prescriptions[100], (70.0, 8, 12))
        self.assertEqual(set(repo.exercise_averages), {10, 20, 30})

    def test_under_target_deloads(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 22, 5, 9, 0), _set(2, 10, 100, 22, 5, 10, 0)],
            exercise_types=NEUTRAL_TYPES,
            prescriptions={100: _prescription(100, goal_weight=22)},
        )
        process_completed_workout(5, repo)
        self.assertEqual(repo.saved_prescriptions[100], (20.0, 8, 12))

    def test_exercise_type_multiplier_applied(self):
        repo = FakeRepository(
            sets=[_set(1, 10, 100, 100, 10, 0, 0, exercise_type_id=3)],
            exercise_types=[{'exercise_type_id': 3, 'multiplier_min': 1.0, 'multiplier_max': 2.0}],
        )
        process_completed_workout(5, repo)
        self.assertEqual(repo.set_grades[1][0], 1500.0)

    def test_workout_without_sets(self):
        repo = FakeRepository(sets=[], exercise_types=NEUTRAL_TYPES)
        summary = process_completed_workout(5, repo)
        self.assertEqual(summary['sets_graded'], 0)
        self.assertEqual(repo.workout_averages[5],
                         {'average_volume': 0.0, 'average_effort': 0.0, 'average_overall': 0.0})
        self.assertEqual(summary['prescriptions_updated'], [])

    def test_repository_failure_propagates(self):
        repo = MagicMock()
        repo.fetch_workout_sets.return_value = [_set(1, 10, 100, 100, 10, 8, 2)]
        repo.fetch_exercise_type_multipliers.return_value = NEUTRAL_TYPES
        repo.save_set_grades.side_effect = psycopg2.OperationalError("server closed the connection")

        with self.assertRaises(psycopg2.OperationalError):
            process_completed_workout(5, repo)

        repo.mark_workout_ended.assert_called_once_with(5)
        repo.save_exercise_averages.assert_not_called()
        repo.save_prescription.assert_not_called()


if __name__ == "__main__":
    unittest.main()
