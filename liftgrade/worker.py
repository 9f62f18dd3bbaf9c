"""RQ worker for the grading queue. Run with `python -m liftgrade.worker`."""
import logging
import os

from rq import Worker
from rq.registry import FailedJobRegistry

from .tasks import queue, redis_conn

logger = logging.getLogger(__name__)


def requeue_failed_completions():
    """Puts completion jobs that exhausted their retries back on the grading queue."""
    failed_registry = FailedJobRegistry(queue.name, connection=redis_conn)
    job_ids = failed_registry.get_job_ids()
    for job_id in job_ids:
        logger.info("Requeuing failed completion job %s", job_id)
        queue.requeue(job_id)
    return len(job_ids)


def main():
    logging.basicConfig(level=logging.INFO)
    requeue_failed_completions()
    worker = Worker([queue], connection=redis_conn)
    worker.work(with_scheduler=True, burst=os.getenv("RQ_BURST", "0") == "1")


if __name__ == "__main__":
    main()
