"""
Per-task orchestration.

A task runs its stages strictly in order. Each stage produces a StageRecord
that is appended to the task's ProgressTrace and pushed to the progress
store together with the name of the stage that comes next. A FATAL outcome
stops the task; a working directory the task created is removed whatever
happens.
"""
import json
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import PipelineError, RecoverableStageError
from .ffmpeg import FFmpegRunner
from .media import DEFAULT_LADDER, Task
from .progress import ProgressRecorder
from .s3 import ObjectStore, get_s3_client
from .stages import ProgressTrace, Stage, StageOutcome, StageRecord, utcnow
from .transcoder import Transcoder
from .uploads import UploadManager
from .validation import SourceValidator

logger = logging.getLogger(__name__)

INPUT_FILENAME = "input"
OUTPUT_DIRNAME = "transcoded"


def completion_marker(user_id: str, asset_id: str, file_count: int) -> bytes:
    marker = {
        "userId": user_id,
        "assetId": asset_id,
        "timestamp": utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"),
        "fileCount": file_count,
        "status": "complete",
    }
    return json.dumps(marker, indent=4).encode("utf-8")


@dataclass(frozen=True)
class TaskOutcome:
    task: Task
    success: bool
    trace: ProgressTrace = field(default_factory=ProgressTrace)
    uploaded_count: int = 0
    error: str | None = None

    def as_dict(self) -> dict:
        return {
            "taskId": self.task.task_id,
            "userId": self.task.user_id,
            "assetId": self.task.asset_id,
            "success": self.success,
            "uploadedCount": self.uploaded_count,
            "stages": self.trace.stages,
            "error": self.error,
        }


class _TaskRun:
    """Scratch state for one run of one task. Never outlives Pipeline.run."""

    def __init__(self, task: Task, work_dir: Path, recorder):
        self.task = task
        self.recorder = recorder
        self.work_dir = work_dir
        self.owns_work_dir = False
        self.input_path = work_dir / INPUT_FILENAME
        self.output_dir = work_dir / OUTPUT_DIRNAME
        self.data: bytes | None = None
        self.transcoder: Transcoder | None = None
        self.uploaded_count = 0


class Pipeline:
    # stage order; each stage's successor is the "next stage" written to the store
    STAGES = (
        (Stage.PREPARE_WORKSPACE, "_prepare_workspace"),
        (Stage.DOWNLOAD, "_download"),
        (Stage.WRITE_TO_STORAGE, "_write_to_storage"),
        (Stage.TRANSCODE_INITIALIZE, "_initialize_transcoder"),
        (Stage.EXTRACT_METADATA, "_extract_metadata"),
        (Stage.GENERATE_THUMBNAIL, "_generate_thumbnail"),
        (Stage.GENERATE_MP4, "_generate_mp4"),
        (Stage.GENERATE_HLS, "_generate_hls"),
        (Stage.GENERATE_IFRAME, "_generate_iframe"),
        (Stage.UPLOAD, "_upload"),
        (Stage.COMPLETION, "_write_completion_marker"),
    )

    def __init__(self, *, source_store, content_store, footage_dir, completion_trigger: str,
                 ladder=DEFAULT_LADDER, recorder_factory=ProgressRecorder, runner=None,
                 upload_workers: int | None = None, upload_buffer_size: int = 1000,
                 reencode_iframes: bool = False, transcoder_class=Transcoder):
        self.source_store = source_store
        self.content_store = content_store
        self.footage_dir = Path(footage_dir)
        self.completion_trigger = completion_trigger
        self.ladder = tuple(ladder)
        self.recorder_factory = recorder_factory
        self.runner = runner or FFmpegRunner()
        self.upload_workers = upload_workers
        self.upload_buffer_size = upload_buffer_size
        self.reencode_iframes = reencode_iframes
        self.transcoder_class = transcoder_class

    def work_dir_for(self, task: Task) -> Path:
        return self.footage_dir / task.user_id / task.asset_id

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def run(self, task: Task) -> TaskOutcome:
        recorder = self.recorder_factory(task.user_id, task.asset_id)
        state = _TaskRun(task, self.work_dir_for(task), recorder)
        trace = ProgressTrace()
        overall = time.monotonic()

        try:
            for index, (stage, method) in enumerate(self.STAGES):
                next_stage = self.STAGES[index + 1][0] if index + 1 < len(self.STAGES) else Stage.DONE
                record = self._run_stage(stage, getattr(self, method), state)
                trace = trace.append(record)
                recorder.record(record, next_stage)

                if not record.outcome.should_continue:
                    logger.error("Task %s stopped at %s: %s", task.task_id, stage, record.error)
                    break
        finally:
            if state.owns_work_dir:
                shutil.rmtree(state.work_dir, ignore_errors=True)
            _log_step(f"Overall-Task-{task.task_id}", time.monotonic() - overall)

        logger.info("Task %s trace:\n%s", task.task_id, trace.summary())

        failed = trace.fatal
        return TaskOutcome(
            task=task,
            success=failed is None,
            trace=trace,
            uploaded_count=state.uploaded_count,
            error=None if failed is None else f"{failed.stage}: {failed.error}",
        )

    def _run_stage(self, stage, action, state: _TaskRun) -> StageRecord:
        started_at = utcnow()
        clock = time.monotonic()
        try:
            action(state)
        except RecoverableStageError as e:
            logger.warning("%s failed for task %s, continuing: %s", stage, state.task.task_id, e)
            record = StageRecord.seal(stage, started_at, e, outcome=StageOutcome.RECOVERABLE)
        except PipelineError as e:
            logger.error("%s failed for task %s: %s", stage, state.task.task_id, e)
            record = StageRecord.seal(stage, started_at, e)
        except Exception as e:
            logger.exception("%s raised unexpectedly for task %s", stage, state.task.task_id)
            record = StageRecord.seal(stage, started_at, f"{type(e).__name__}: {e}")
        else:
            record = StageRecord.seal(stage, started_at)
        _log_step(str(stage), time.monotonic() - clock)
        return record

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _prepare_workspace(self, state: _TaskRun):
        # strictly below footage_dir, never footage_dir itself
        root = self.footage_dir.resolve()
        if root not in state.work_dir.resolve().parents:
            raise PipelineError(f"workspace {state.work_dir} is not inside {self.footage_dir}")
        state.work_dir.mkdir(parents=True, exist_ok=True)
        state.owns_work_dir = True

    def _download(self, state: _TaskRun):
        state.data = self.source_store.download(state.task.input_key)
        logger.info("Downloaded %s (%d bytes)", state.task.input_key, len(state.data))

    def _write_to_storage(self, state: _TaskRun):
        state.input_path.write_bytes(state.data)
        state.data = None

    def _initialize_transcoder(self, state: _TaskRun):
        state.transcoder = self.transcoder_class(
            state.input_path,
            self.ladder,
            runner=self.runner,
            reencode_iframes=self.reencode_iframes,
            output_dir=state.output_dir,
        )
        info = state.transcoder.video_info
        logger.info(
            "Probed %s: %dx%d, %.2fs, audio=%s, vertical=%s",
            state.task.input_key, info.width, info.height, info.duration, info.has_audio, info.is_vertical,
        )

    def _extract_metadata(self, state: _TaskRun):
        transcoder = state.transcoder
        report = SourceValidator(self.runner).validate(state.input_path, transcoder.probe_data)
        state.recorder.record_metadata({"technical": transcoder.technical.as_dict(), **report.as_dict()})
        if report.problems:
            raise RecoverableStageError("; ".join(report.problems))

    def _generate_thumbnail(self, state: _TaskRun):
        state.transcoder.generate_thumbnail()

    def _generate_mp4(self, state: _TaskRun):
        state.transcoder.generate_mp4_files()

    def _generate_hls(self, state: _TaskRun):
        state.transcoder.generate_hls_playlists()

    def _generate_iframe(self, state: _TaskRun):
        state.transcoder.generate_iframe_playlists()

    def _upload(self, state: _TaskRun):
        manager = UploadManager(
            self.content_store,
            state.task.user_id,
            state.task.asset_id,
            max_workers=self.upload_workers,
            buffer_size=self.upload_buffer_size,
        )
        count, err = manager.upload_all(state.output_dir)
        state.uploaded_count = count
        state.recorder.record_file_count(count)
        if err is not None:
            logger.error("Upload failed after processing %d files", count)
            raise err

    def _write_completion_marker(self, state: _TaskRun):
        task = state.task
        key = f"{task.user_id}/{task.asset_id}/{self.completion_trigger}"
        self.content_store.upload(
            key,
            completion_marker(task.user_id, task.asset_id, state.uploaded_count),
            "application/json",
        )


def _log_step(name: str, seconds: float):
    logger.info(json.dumps({"step": name, "duration": round(seconds, 3)}))


def run_batch(tasks, pipeline: Pipeline) -> list[TaskOutcome]:
    """Run tasks one after another; a failing task never stops the batch."""
    outcomes = []
    for task in tasks:
        logger.info("Starting to process task: %s for user: %s, asset: %s",
                    task.task_id, task.user_id, task.asset_id)
        try:
            outcome = pipeline.run(task)
        except Exception as e:
            logger.exception("Failed to process task %s", task.task_id)
            outcome = TaskOutcome(task=task, success=False, error=str(e))

        if outcome.success:
            logger.info("Successfully completed task: %s", task.task_id)
        else:
            logger.error("Failed to process task %s: %s", task.task_id, outcome.error)
        outcomes.append(outcome)
    return outcomes


def build_pipeline(config) -> Pipeline:
    """Wire the real S3, ffmpeg and progress-table collaborators."""
    client = get_s3_client()
    return Pipeline(
        source_store=ObjectStore(config.transport_bucket, client=client),
        content_store=ObjectStore(config.content_bucket, client=client),
        footage_dir=config.footage_dir,
        completion_trigger=config.completion_trigger,
        ladder=config.ladder,
        runner=FFmpegRunner(config.ffmpeg_bin, config.ffprobe_bin),
        upload_workers=config.upload_workers,
        upload_buffer_size=config.upload_buffer_size,
        reencode_iframes=config.reencode_iframes,
    )
