import re
from dataclasses import asdict, dataclass
from pathlib import Path

_BITRATE_RE = re.compile(r"^([1-9][0-9]*)k$")


@dataclass(frozen=True)
class Task:
    task_id: str
    user_id: str
    asset_id: str
    input_key: str
    output_key: str


@dataclass(frozen=True)
class Resolution:
    """One rung of the ladder, e.g. Resolution("720p", 1280, 720, "2000k")."""

    name: str
    width: int
    height: int
    bitrate: str

    def __post_init__(self):
        if not _BITRATE_RE.match(self.bitrate):
            raise ValueError(f"Invalid bitrate for {self.name}: {self.bitrate!r} (expected e.g. '800k')")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid size for {self.name}: {self.width}x{self.height}")

    @property
    def kbps(self) -> int:
        return int(_BITRATE_RE.match(self.bitrate).group(1))

    @property
    def bandwidth(self) -> int:
        """Bits per second as advertised in playlists."""
        return self.kbps * 1000

    @property
    def bufsize(self) -> str:
        return f"{self.kbps * 2}k"


DEFAULT_LADDER = (
    Resolution("1080p", 1920, 1080, "3000k"),
    Resolution("720p", 1280, 720, "2000k"),
    Resolution("480p", 854, 480, "800k"),
    Resolution("360p", 640, 360, "400k"),
)


def validate_ladder(ladder) -> tuple:
    """Return the ladder as a tuple; rung names must be unique."""
    ladder = tuple(ladder)
    if not ladder:
        raise ValueError("Resolution ladder is empty")
    seen = set()
    for res in ladder:
        if res.name in seen:
            raise ValueError(f"Duplicate rung name in ladder: {res.name}")
        seen.add(res.name)
    return ladder


@dataclass(frozen=True)
class VideoInfo:
    width: int
    height: int
    duration: float
    has_audio: bool

    @property
    def is_vertical(self) -> bool:
        return self.height > self.width


@dataclass(frozen=True)
class TechnicalMetadata:
    container_format: str = "N/A"
    video_codec: str = "N/A"
    audio_codec: str = "N/A"
    duration: float = 0.0
    bitrate: int = 0
    frame_rate: float = 0.0
    resolution: str = "0x0"
    aspect_ratio: str = "N/A"
    color_space: str = "N/A"

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OutputPaths:
    base_dir: Path
    mp4_dir: Path
    hls_dir: Path
    assets_dir: Path
    logs_dir: Path

    @classmethod
    def under(cls, base_dir) -> "OutputPaths":
        base = Path(base_dir)
        return cls(
            base_dir=base,
            mp4_dir=base / "mp4",
            hls_dir=base / "hls",
            assets_dir=base / "assets",
            logs_dir=base / "logs",
        )

    def create(self):
        for d in (self.mp4_dir, self.hls_dir, self.assets_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)

    # Per-rung locations. Playlists reference these relative to hls_dir.
    def mp4_for(self, res: Resolution) -> Path:
        return self.mp4_dir / f"{res.name}.mp4"

    @property
    def audio_m4a(self) -> Path:
        return self.mp4_dir / "audio.m4a"

    @property
    def thumbnail(self) -> Path:
        return self.assets_dir / "thumbnail.png"

    def video_stream_dir(self, res: Resolution) -> Path:
        return self.hls_dir / "video" / res.name

    @property
    def audio_stream_dir(self) -> Path:
        return self.hls_dir / "audio"

    def iframe_dir(self, res: Resolution) -> Path:
        return self.hls_dir / "iframe" / res.name

    @property
    def master_playlist(self) -> Path:
        return self.hls_dir / "master.m3u8"

    @property
    def iframe_master_playlist(self) -> Path:
        return self.hls_dir / "master_iframe.m3u8"
