from django.core.exceptions import ImproperlyConfigured


class PipelineError(Exception):
    """Base class for failures that end a single task."""


class ConfigurationError(ImproperlyConfigured):
    """Required worker input is missing or malformed; nothing should run."""


class StorageError(PipelineError):
    def __init__(self, operation: str, bucket: str, key: str, reason):
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.reason = reason
        super().__init__(f"{operation} s3://{bucket}/{key} failed: {reason}")


class EncoderError(PipelineError):
    """ffmpeg/ffprobe exited non-zero (or could not be started)."""

    def __init__(self, operation: str, detail: str = "", returncode: int | None = None):
        self.operation = operation
        self.detail = detail
        self.returncode = returncode
        msg = f"{operation} failed"
        if returncode is not None:
            msg += f" (exit {returncode})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ProbeError(PipelineError):
    """Source media is unreadable or lacks the streams we need."""


class UploadError(PipelineError):
    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = list(failures)
        listing = "; ".join(f"{path}: {msg}" for path, msg in self.failures)
        super().__init__(f"upload errors ({len(self.failures)}): {listing}")

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.failures]


class RecoverableStageError(PipelineError):
    """Stage failed, but later stages do not depend on its output."""
