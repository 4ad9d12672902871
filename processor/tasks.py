import logging

from celery import shared_task

from .config import load_worker_config
from .pipeline import build_pipeline, run_batch

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def process_batch(self, tasks: list[dict]) -> list[dict]:
    """
    Run one batch inside a Celery worker.

    tasks is the same list of camelCase task records accepted by BATCH_TASKS.
    Configuration problems raise before any task starts; task failures are
    reported in the returned summaries, never raised.
    """
    config = load_worker_config(tasks=tasks)
    logger.info("Batch %s: %d tasks", self.request.id, len(config.tasks))

    outcomes = run_batch(config.tasks, build_pipeline(config))
    return [o.as_dict() for o in outcomes]
