import json
from dataclasses import dataclass
from pathlib import Path

from django.conf import settings

from .exceptions import ConfigurationError
from .media import DEFAULT_LADDER, Task
from .serializers import BatchSerializer

REQUIRED_SETTINGS = (
    "FOOTAGE_DIR",
    "S3_REGION",
    "TRANSPORT_BUCKET",
    "CONTENT_BUCKET",
    "COMPLETION_TRIGGER",
)


@dataclass(frozen=True)
class WorkerConfig:
    tasks: tuple
    footage_dir: Path
    region: str
    transport_bucket: str
    content_bucket: str
    completion_trigger: str
    ladder: tuple = DEFAULT_LADDER
    upload_workers: int | None = None
    upload_buffer_size: int = 1000
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    reencode_iframes: bool = False


def parse_tasks(raw) -> list[Task]:
    """Accepts a JSON string or an already-decoded list of task dicts."""
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            raise ConfigurationError("missing required environment variable: BATCH_TASKS")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"failed to parse BATCH_TASKS: {e}") from e

    ser = BatchSerializer(data={"tasks": raw})
    if not ser.is_valid():
        raise ConfigurationError(f"invalid BATCH_TASKS: {ser.errors}")
    return ser.to_tasks()


def load_worker_config(tasks=None) -> WorkerConfig:
    """
    Build the worker configuration from Django settings.
    tasks overrides settings.BATCH_TASKS (JSON string or list of dicts).
    """
    missing = [name for name in REQUIRED_SETTINGS if not getattr(settings, name, "")]
    if missing:
        raise ConfigurationError(f"missing required environment variables: {missing}")

    parsed = parse_tasks(settings.BATCH_TASKS if tasks is None else tasks)

    return WorkerConfig(
        tasks=tuple(parsed),
        footage_dir=Path(settings.FOOTAGE_DIR),
        region=settings.S3_REGION,
        transport_bucket=settings.TRANSPORT_BUCKET,
        content_bucket=settings.CONTENT_BUCKET,
        completion_trigger=settings.COMPLETION_TRIGGER,
        upload_workers=settings.UPLOAD_MAX_WORKERS,
        upload_buffer_size=settings.UPLOAD_BUFFER_SIZE,
        ffmpeg_bin=settings.FFMPEG_BIN,
        ffprobe_bin=settings.FFPROBE_BIN,
        reencode_iframes=settings.IFRAME_REENCODE,
    )
