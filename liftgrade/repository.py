"""
Postgres access for the workout-completion pipeline.

Each write is committed on its own, so a failure part-way through leaves the
earlier grades and averages in place.
"""
import logging

import psycopg2.extras
from psycopg2 import sql

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "fitness"

# The template row for an exercise within the template that owns the completed workout
_TEMPLATE_SUBQUERY = (
    "(SELECT workout_template_id FROM {schema}.completed_workouts WHERE completed_workout_id = %s)"
)


class CompletedWorkoutRepository:
    """Loads and saves grading data for completed workouts through one connection."""

    def __init__(self, conn, schema: str = DEFAULT_SCHEMA):
        self.conn = conn
        self.schema = schema

    def _query(self, template: str) -> sql.Composed:
        return sql.SQL(template).format(schema=sql.Identifier(self.schema))

    def _fetchall(self, template: str, params=None) -> list:
        with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(self._query(template), params)
            return cur.fetchall()

    def _write(self, template: str, params) -> int:
        with self.conn.cursor() as cur:
            cur.execute(self._query(template), params)
            rowcount = cur.rowcount
        self.conn.commit()
        return rowcount

    # --- Reads ---

    def fetch_workout_sets(self, workout_id) -> list:
        """All sets of the workout with their completed exercise, exercise and exercise type ids."""
        return self._fetchall(
            """
            SELECT cs.*, ce.completed_exercise_id, ce.exercise_id, e.exercise_type_id
            FROM {schema}.completed_sets cs
            JOIN {schema}.completed_exercises ce ON cs.completed_exercise_id = ce.completed_exercise_id
            JOIN {schema}.exercises e ON ce.exercise_id = e.exercise_id
            WHERE ce.completed_workout_id = %s
            ORDER BY cs.completed_set_id ASC;
            """,
            (workout_id,),
        )

    def fetch_exercise_type_multipliers(self) -> list:
        return self._fetchall(
            "SELECT exercise_type_id, multiplier_min, multiplier_max FROM {schema}.exercise_types;"
        )

    def fetch_prescription(self, workout_id, exercise_id):
        """The workout_exercises row for the exercise, or None when the template has no entry."""
        rows = self._fetchall(
            """
            SELECT * FROM {schema}.workout_exercises
            WHERE workout_template_id = """ + _TEMPLATE_SUBQUERY + """
            AND exercise_id = %s
            LIMIT 1;
            """,
            (workout_id, exercise_id),
        )
        return rows[0] if rows else None

    # --- Writes ---

    def mark_workout_ended(self, workout_id) -> int:
        return self._write(
            "UPDATE {schema}.completed_workouts SET end_time = NOW() WHERE completed_workout_id = %s;",
            (workout_id,),
        )

    def save_set_grades(self, completed_set_id, volume_grade, effort_grade, overall_grade) -> int:
        return self._write(
            """
            UPDATE {schema}.completed_sets
            SET volume_grade = %s, effort_grade = %s, overall_grade = %s
            WHERE completed_set_id = %s;
            """,
            (volume_grade, effort_grade, overall_grade, completed_set_id),
        )

    def save_exercise_averages(self, completed_exercise_id, averages: dict) -> int:
        return self._write(
            """
            UPDATE {schema}.completed_exercises
            SET average_volume_grade = %s, average_effort_grade = %s, average_overall_grade = %s
            WHERE completed_exercise_id = %s;
            """,
            (averages['average_volume'], averages['average_effort'], averages['average_overall'],
             completed_exercise_id),
        )

    def save_workout_averages(self, workout_id, averages: dict) -> int:
        return self._write(
            """
            UPDATE {schema}.completed_workouts
            SET average_volume_grade = %s, average_effort_grade = %s, average_overall_grade = %s
            WHERE completed_workout_id = %s;
            """,
            (averages['average_volume'], averages['average_effort'], averages['average_overall'],
             workout_id),
        )

    def save_prescription(self, workout_id, exercise_id, new_weight, new_min_reps, new_max_reps) -> int:
        """
        Overwrites goal_weight, min_reps and max_reps; goal_min_reps and
        goal_max_reps are only filled in when currently NULL.
        """
        return self._write(
            """
            UPDATE {schema}.workout_exercises
            SET goal_weight = %s, min_reps = %s, max_reps = %s,
                goal_min_reps = COALESCE(goal_min_reps, %s),
                goal_max_reps = COALESCE(goal_max_reps, %s)
            WHERE workout_template_id = """ + _TEMPLATE_SUBQUERY + """
            AND exercise_id = %s;
            """,
            (new_weight, new_min_reps, new_max_reps, new_min_reps, new_max_reps,
             workout_id, exercise_id),
        )


__all__ = ["CompletedWorkoutRepository", "DEFAULT_SCHEMA"]
