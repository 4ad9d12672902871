"""
Source checks that run once the input has been probed.

Container and codec support, a full decode pass for playability, and the
quality and content figures stored alongside the technical metadata. None of
this blocks the ladder: the caller decides what a problem means.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .exceptions import EncoderError
from .ffmpeg import FFmpegRunner, first_stream

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("mp4", "mov", "avi", "mkv")
FORMAT_ALIASES = {"matroska": "mkv"}
SUPPORTED_VIDEO_CODECS = ("h264", "hevc", "vp8", "vp9")
SUPPORTED_AUDIO_CODECS = ("aac", "mp3", "opus")

REFERENCE_PIXELS = 1920 * 1080
REFERENCE_AUDIO_BITRATE = 320_000


@dataclass(frozen=True)
class BasicValidation:
    exists: bool
    size_in_bytes: int
    container_format: str = "unknown"
    detected_formats: str = "unknown"
    video_codec: str = "none"
    audio_codec: str = "none"
    is_valid: bool = False


@dataclass(frozen=True)
class StreamValidation:
    has_video_stream: bool
    has_audio_stream: bool
    is_playable: bool
    has_corrupt_frames: bool
    error: str = ""


@dataclass(frozen=True)
class QualityMetrics:
    video_quality_score: int
    audio_quality_score: int
    is_corrupted: bool
    missing_frames: bool
    audio_sync: bool = True


@dataclass(frozen=True)
class ContentMetadata:
    creation_date: str = "N/A"
    last_modified: str = "N/A"


@dataclass(frozen=True)
class SourceReport:
    basic: BasicValidation
    stream: StreamValidation
    quality: QualityMetrics
    content: ContentMetadata
    problems: tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "validation": {"basic": asdict(self.basic), "stream": asdict(self.stream)},
            "quality": asdict(self.quality),
            "content": asdict(self.content),
            "problems": list(self.problems),
        }


def format_supported(container: str, detected: str) -> bool:
    names = {container, *detected.split(",")}
    return any(FORMAT_ALIASES.get(n, n) in SUPPORTED_FORMATS for n in names if n)


def video_quality_score(stream: dict | None) -> int:
    """Pixel count against 1080p, as a 0-100 score."""
    if not stream:
        return 0
    try:
        pixels = int(stream.get("width") or 0) * int(stream.get("height") or 0)
    except (TypeError, ValueError):
        return 0
    return int(min(pixels / REFERENCE_PIXELS * 100, 100))


def audio_quality_score(stream: dict | None) -> int:
    """Bitrate against 320 kbps, as a 0-100 score."""
    if not stream:
        return 0
    try:
        bitrate = int(stream.get("bit_rate") or 0)
    except (TypeError, ValueError):
        return 0
    return int(min(bitrate / REFERENCE_AUDIO_BITRATE * 100, 100))


def has_missing_frames(stream: dict | None) -> bool:
    # containers that cannot report a frame count leave nb_frames out
    return stream is not None and not stream.get("nb_frames")


def _rfc3339(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class SourceValidator:
    def __init__(self, runner: FFmpegRunner | None = None):
        self.runner = runner or FFmpegRunner()

    def validate(self, input_path, probe_data: dict) -> SourceReport:
        path = Path(input_path)
        streams = probe_data.get("streams") or []
        fmt = probe_data.get("format") or {}
        video = first_stream(streams, "video")
        audio = first_stream(streams, "audio")

        basic, problems = self.validate_basic(path, fmt, video, audio)

        playable, error = self.check_playability(path)
        if not playable:
            problems.append(f"source is not playable: {error or 'decode failed'}")
        stream = StreamValidation(
            has_video_stream=video is not None,
            has_audio_stream=audio is not None,
            is_playable=playable,
            has_corrupt_frames=not playable,
            error=error,
        )

        quality = QualityMetrics(
            video_quality_score=video_quality_score(video),
            audio_quality_score=audio_quality_score(audio),
            is_corrupted=not playable,
            missing_frames=has_missing_frames(video),
        )

        try:
            last_modified = _rfc3339(path.stat().st_mtime)
        except OSError:
            last_modified = "N/A"
        content = ContentMetadata(
            creation_date=(fmt.get("tags") or {}).get("creation_time") or "N/A",
            last_modified=last_modified,
        )

        return SourceReport(basic, stream, quality, content, tuple(problems))

    def validate_basic(self, path: Path, fmt: dict, video: dict | None, audio: dict | None):
        try:
            size = path.stat().st_size
        except OSError:
            return BasicValidation(exists=False, size_in_bytes=0), ["source file is missing"]

        detected = fmt.get("format_name") or ""
        container = path.suffix.lstrip(".").lower() or detected.split(",")[0]
        video_codec = ((video or {}).get("codec_name") or "").lower()
        audio_codec = ((audio or {}).get("codec_name") or "").lower()

        problems = []
        if not format_supported(container, detected):
            problems.append(f"unsupported container format: {detected or container or 'unknown'}")
        if video_codec not in SUPPORTED_VIDEO_CODECS:
            problems.append(f"unsupported video codec: {video_codec or 'none'}")
        # a silent source is packaged without an audio rendition
        if audio is not None and audio_codec not in SUPPORTED_AUDIO_CODECS:
            problems.append(f"unsupported audio codec: {audio_codec or 'unknown'}")

        basic = BasicValidation(
            exists=True,
            size_in_bytes=size,
            container_format=container or "unknown",
            detected_formats=detected or "unknown",
            video_codec=video_codec or "none",
            audio_codec=audio_codec or "none",
            is_valid=not problems,
        )
        return basic, problems

    def check_playability(self, path: Path) -> tuple[bool, str]:
        """Decode the whole file to the null muxer; any ffmpeg error means it is not playable."""
        try:
            self.runner.ffmpeg(["-v", "error", "-i", str(path), "-f", "null", "-"], operation="playability check")
        except EncoderError as e:
            logger.warning("Playability check failed for %s: %s", path, e)
            return False, e.detail or str(e)
        return True, ""
