import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import DatabaseError, transaction

from .models import AssetProgress
from .stages import StageRecord, format_timestamp

logger = logging.getLogger(__name__)

NO_ERROR = "N.A"


@dataclass(frozen=True)
class StageUpdate:
    status: str
    started_at: datetime
    ended_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_record(cls, record: StageRecord) -> "StageUpdate":
        return cls(
            status=record.status,
            started_at=record.started_at,
            ended_at=record.ended_at,
            error=record.error,
        )

    def as_dict(self) -> dict:
        return {
            "status": str(self.status),
            "startTime": format_timestamp(self.started_at),
            "endTime": format_timestamp(self.ended_at) if self.ended_at else None,
            "error": self.error if self.error else NO_ERROR,
        }


class ProgressRecorder:
    """
    Writes stage transitions for one asset to the progress table.

    Every method returns True on success. Database failures are logged and
    reported as False; they never reach the pipeline.
    """

    def __init__(self, user_id: str, asset_id: str):
        self.user_id = user_id
        self.asset_id = asset_id

    def _upsert(self, what: str, apply) -> bool:
        try:
            with transaction.atomic():
                row, _ = AssetProgress.objects.select_for_update().get_or_create(
                    user_id=self.user_id, asset_id=self.asset_id,
                )
                fields = apply(row)
                row.save(update_fields=[*fields, "updated_at"])
            return True
        except DatabaseError:
            logger.exception("Failed to record %s for %s/%s", what, self.user_id, self.asset_id)
            return False

    def record_stage_transition(self, current_stage, next_stage, update: StageUpdate) -> bool:
        def apply(row):
            progress = dict(row.progress or {})
            progress[str(current_stage)] = update.as_dict()
            row.progress = progress
            row.current_stage = str(next_stage)
            return ["progress", "current_stage"]

        return self._upsert(f"{current_stage} state", apply)

    def record_file_count(self, count: int) -> bool:
        def apply(row):
            row.total_files = count
            return ["total_files"]

        return self._upsert("file count", apply)

    def record_metadata(self, metadata: dict) -> bool:
        def apply(row):
            row.metadata = dict(metadata)
            return ["metadata"]

        return self._upsert("metadata", apply)

    def record(self, record: StageRecord, next_stage) -> bool:
        return self.record_stage_transition(record.stage, next_stage, StageUpdate.from_record(record))

