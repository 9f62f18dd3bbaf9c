import os
import logging
import psycopg2
from redis import Redis
from rq import Queue, Retry, get_current_job

from .adaptation import process_completed_workout
from .app import get_db_connection, release_db_connection, FITNESS_DB_SCHEMA
from .repository import CompletedWorkoutRepository

logger = logging.getLogger(__name__)

# Redis connection for RQ
redis_url = os.getenv("REDIS_URL", "redis://redis:6379/0")
redis_conn = Redis.from_url(redis_url)

# Default queue used by the API and worker
queue = Queue("grading", connection=redis_conn)

DEFAULT_RETRY = Retry(max=3, interval=[10, 30, 60])


def enqueue_workout_completion(workout_id):
    """Enqueue grading of a completed workout with retry strategy."""
    return queue.enqueue(
        process_workout_completion_job,
        workout_id=workout_id,
        retry=DEFAULT_RETRY,
    )


def process_workout_completion_job(workout_id):
    """Grade a completed workout and adapt its prescriptions; errors propagate so RQ retries."""
    job = get_current_job()
    if job and job.retries_left is not None and job.retries_left < DEFAULT_RETRY.max:
        logger.info("Retry attempt for job %s (%s retries left)", job.id, job.retries_left)

    conn = None
    try:
        conn = get_db_connection()
        repository = CompletedWorkoutRepository(conn, schema=FITNESS_DB_SCHEMA)
        summary = process_completed_workout(workout_id, repository)
        logger.info(
            "Completed workout %s processed: %s set(s) graded",
            workout_id,
            summary["sets_graded"],
        )
        return summary
    except psycopg2.Error as e:
        logger.error("Database error processing completed workout %s: %s", workout_id, e)
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            release_db_connection(conn)
