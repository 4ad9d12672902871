"""
Stage names and the per-task progress trace.

Stage values are stored verbatim in the progress table, so they are part of
the contract with anything that reads asset status.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from django.db import models

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class Stage(models.TextChoices):
    PREPARE_WORKSPACE = "prepare-workspace"
    DOWNLOAD = "download"
    WRITE_TO_STORAGE = "write-to-storage"
    TRANSCODE_INITIALIZE = "transcode-initialize"
    EXTRACT_METADATA = "extract-metadata"
    GENERATE_THUMBNAIL = "generate-thumbnail"
    GENERATE_MP4 = "generate-mp4"
    GENERATE_HLS = "generate-hls"
    GENERATE_IFRAME = "generate-iframe"
    UPLOAD = "upload"
    COMPLETION = "completion"
    DONE = "done"


class StageStatus(models.TextChoices):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StageOutcome(enum.Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"

    @property
    def should_continue(self) -> bool:
        return self is not StageOutcome.FATAL


def format_timestamp(dt: datetime) -> str:
    """UTC, millisecond precision: 2024-01-02T15:04:05.000Z"""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime(TIMESTAMP_FORMAT)[:-4] + "Z"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StageRecord:
    stage: str
    started_at: datetime
    ended_at: datetime
    error: str | None = None
    outcome: StageOutcome = StageOutcome.SUCCESS

    @classmethod
    def seal(cls, stage, started_at: datetime, error: BaseException | str | None = None,
             outcome: StageOutcome | None = None, ended_at: datetime | None = None) -> "StageRecord":
        if outcome is None:
            outcome = StageOutcome.SUCCESS if error is None else StageOutcome.FATAL
        return cls(
            stage=str(stage),
            started_at=started_at,
            ended_at=ended_at or utcnow(),
            error=None if error is None else str(error),
            outcome=outcome,
        )

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def status(self) -> str:
        return StageStatus.COMPLETED if self.success else StageStatus.FAILED


@dataclass(frozen=True)
class ProgressTrace:
    records: tuple = field(default_factory=tuple)

    def append(self, record: StageRecord) -> "ProgressTrace":
        return ProgressTrace(self.records + (record,))

    def __iter__(self):
        return iter(self.records)

    def __len__(self):
        return len(self.records)

    @property
    def stages(self) -> list[str]:
        return [r.stage for r in self.records]

    @property
    def failures(self) -> tuple:
        """Every unsuccessful record, recoverable ones included, in order."""
        return tuple(r for r in self.records if not r.success)

    @property
    def fatal(self) -> StageRecord | None:
        for r in self.records:
            if r.outcome is StageOutcome.FATAL:
                return r
        return None

    @property
    def critical_failure(self) -> bool:
        return self.fatal is not None

    @property
    def total_duration(self) -> float:
        if not self.records:
            return 0.0
        return (self.records[-1].ended_at - self.records[0].started_at).total_seconds()

    def summary(self) -> str:
        """Operator-facing table of every stage that ran."""
        rule = "=" * 64
        lines = [
            rule,
            "Processing Summary",
            rule,
            f"Total Duration: {self.total_duration:.2f}s",
            f"Critical Failure: {self.critical_failure}",
            f"Failed Stages: {', '.join(r.stage for r in self.failures) or 'none'}",
            rule,
        ]
        for r in self.records:
            status = "ok" if r.success else f"FAILED: {r.error}"
            lines.append(f"{r.stage:<22} | {r.duration:>8.2f}s | {status}")
        lines.append(rule)
        return "\n".join(lines)
