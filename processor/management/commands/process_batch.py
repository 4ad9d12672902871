import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from processor.config import load_worker_config
from processor.exceptions import ConfigurationError
from processor.pipeline import build_pipeline, run_batch


class Command(BaseCommand):
    help = "Process a batch of media tasks (BATCH_TASKS or --tasks-file) in the foreground."

    def add_arguments(self, parser):
        parser.add_argument(
            "--tasks-file",
            help="JSON file holding the task list; defaults to the BATCH_TASKS environment variable.",
        )

    def handle(self, *args, **options):
        tasks = None
        if options.get("tasks_file"):
            try:
                tasks = Path(options["tasks_file"]).read_text(encoding="utf-8")
            except OSError as e:
                raise CommandError(f"Cannot read tasks file: {e}")

        try:
            config = load_worker_config(tasks=tasks)
        except ConfigurationError as e:
            raise CommandError(f"Initialization failed: {e}")

        outcomes = run_batch(config.tasks, build_pipeline(config))

        for outcome in outcomes:
            self.stdout.write(json.dumps(outcome.as_dict()))

        failed = [o for o in outcomes if not o.success]
        if failed:
            raise CommandError(f"{len(failed)} of {len(outcomes)} tasks failed")
        self.stdout.write(self.style.SUCCESS(f"Processed {len(outcomes)} tasks"))
