import json
import logging
import subprocess

from .exceptions import EncoderError, ProbeError
from .media import TechnicalMetadata, VideoInfo

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 4000

PROBE_ARGS = [
    "-v", "error",
    "-print_format", "json",
    "-show_format",
    "-show_streams",
]


class FFmpegRunner:
    """Runs ffmpeg/ffprobe synchronously; one call per operation."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe"):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin

    def ffmpeg(self, args: list[str], operation: str) -> None:
        self._run([self.ffmpeg_bin, "-hide_banner", *args], operation)

    def ffprobe(self, args: list[str], operation: str = "probe") -> str:
        result = self._run([self.ffprobe_bin, *args], operation)
        return result.stdout.decode("utf-8", errors="replace")

    def _run(self, cmd: list[str], operation: str) -> subprocess.CompletedProcess:
        logger.debug("%s: %s", operation, " ".join(cmd))
        try:
            return subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except subprocess.CalledProcessError as e:
            err = e.stderr.decode("utf-8", errors="ignore") if e.stderr else str(e)
            raise EncoderError(operation, err.strip()[-MAX_ERROR_CHARS:], e.returncode) from e
        except OSError as e:
            raise EncoderError(operation, f"could not run {cmd[0]}: {e}") from e


def first_stream(streams: list[dict], codec_type: str) -> dict | None:
    for stream in streams:
        if stream.get("codec_type") == codec_type:
            return stream
    return None


def _frame_rate(stream: dict | None) -> float:
    if not stream:
        return 0.0
    num, _, den = str(stream.get("r_frame_rate", "")).partition("/")
    try:
        num, den = float(num), float(den or 1)
    except ValueError:
        return 0.0
    return num / den if den > 0 else 0.0


def _int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def load_probe(output: str) -> dict:
    try:
        data = json.loads(output or "")
    except json.JSONDecodeError as e:
        raise ProbeError(f"failed to parse probe data: {e}") from e
    if not isinstance(data, dict):
        raise ProbeError("probe data is not an object")
    return data


def parse_probe(output: str) -> tuple[VideoInfo, TechnicalMetadata]:
    """Turn `ffprobe -show_format -show_streams -of json` output into our types."""
    return parse_probe_data(load_probe(output))


def parse_probe_data(data: dict) -> tuple[VideoInfo, TechnicalMetadata]:
    streams = data.get("streams") or []
    fmt = data.get("format") or {}

    video = first_stream(streams, "video")
    if video is None:
        raise ProbeError("no video streams found")
    audio = first_stream(streams, "audio")

    width, height = _int(video.get("width")), _int(video.get("height"))
    if width <= 0 or height <= 0:
        raise ProbeError(f"video stream has no usable dimensions ({width}x{height})")

    try:
        duration = float(fmt.get("duration"))
    except (TypeError, ValueError):
        raise ProbeError(f"unreadable duration: {fmt.get('duration')!r}")

    info = VideoInfo(width=width, height=height, duration=duration, has_audio=audio is not None)

    technical = TechnicalMetadata(
        container_format=(fmt.get("format_name") or "N/A").split(",")[0],
        video_codec=video.get("codec_name") or "N/A",
        audio_codec=(audio or {}).get("codec_name") or "N/A",
        duration=duration,
        bitrate=_int(fmt.get("bit_rate")),
        frame_rate=round(_frame_rate(video), 3),
        resolution=f"{width}x{height}",
        aspect_ratio=video.get("display_aspect_ratio") or "N/A",
        color_space=video.get("color_space") or "N/A",
    )
    return info, technical


def read_probe(runner: FFmpegRunner, input_path) -> dict:
    """Raw ffprobe JSON for input_path."""
    try:
        output = runner.ffprobe([*PROBE_ARGS, str(input_path)], operation="probe")
    except EncoderError as e:
        raise ProbeError(f"failed to probe {input_path}: {e}") from e
    return load_probe(output)


def probe(runner: FFmpegRunner, input_path) -> tuple[VideoInfo, TechnicalMetadata]:
    return parse_probe_data(read_probe(runner, input_path))
