from flask import Blueprint, jsonify
from ..app import get_db_connection, release_db_connection, logger, limiter, FITNESS_DB_SCHEMA
import psycopg2
from liftgrade.adaptation import process_completed_workout
from liftgrade.repository import CompletedWorkoutRepository

workouts_bp = Blueprint('workouts', __name__)

COMPLETION_SUCCESS_MESSAGE = "Workout calculations completed successfully."


# --- Workout Completion: grading + prescription adaptation ---
@workouts_bp.route('/v1/completed-workouts/<int:workout_id>/complete', methods=['POST'])
@limiter.limit("30 per hour")
def complete_workout(workout_id):
    logger.info(f"Processing completion of workout {workout_id}")

    conn = None
    try:
        conn = get_db_connection()
        repository = CompletedWorkoutRepository(conn, schema=FITNESS_DB_SCHEMA)
        summary = process_completed_workout(workout_id, repository)

        logger.info(
            f"Workout {workout_id} graded: {summary['sets_graded']} set(s), "
            f"{len(summary['prescriptions_updated'])} prescription(s) updated, "
            f"{len(summary['prescriptions_skipped'])} skipped."
        )
        return jsonify({"message": COMPLETION_SUCCESS_MESSAGE, "summary": summary}), 200

    except psycopg2.Error as e:
        logger.error(f"Database error completing workout {workout_id}: {e}", exc_info=True)
        if conn:
            conn.rollback()
        return jsonify(error="Internal Server Error", message=str(e)), 500
    except Exception as e:
        logger.error(f"Unexpected error completing workout {workout_id}: {e}", exc_info=True)
        if conn:
            conn.rollback()
        return jsonify(error="Internal Server Error", message=str(e)), 500
    finally:
        if conn:
            release_db_connection(conn)


@workouts_bp.route('/v1/completed-workouts/<int:workout_id>/complete/async', methods=['POST'])
@limiter.limit("30 per hour")
def enqueue_workout_completion_route(workout_id):
    try:
        from .. import tasks  # Imported here to avoid circular dependency on startup
        job = tasks.enqueue_workout_completion(workout_id)
        logger.info(f"Enqueued completion job {job.id} for workout {workout_id}")
        return jsonify({
            "message": "Workout completion enqueued",
            "job_id": job.id,
            "workout_id": workout_id,
        }), 202

    except Exception as e:
        logger.error(f"Failed to enqueue completion of workout {workout_id}: {e}", exc_info=True)
        return jsonify(error="Failed to enqueue workout completion", message=str(e)), 500
