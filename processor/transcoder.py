import logging
from pathlib import Path

from PIL import Image

from .ffmpeg import FFmpegRunner, parse_probe_data, read_probe
from .media import OutputPaths, Resolution, validate_ladder
from .playlist import iframe_master_playlist, master_playlist, write_playlist

logger = logging.getLogger(__name__)

THUMBNAIL_BOX = (1920, 1080)
SEGMENT_SECONDS = 2
ENCODED_BY = "ShortRelay"


class Transcoder:
    """
    Drives ffmpeg through the ladder for one local input file.

    Construction probes the input; the four generate_* steps must then be
    called in order since each reads what the previous one wrote.
    """

    def __init__(self, input_path, ladder, runner: FFmpegRunner | None = None,
                 reencode_iframes: bool = False, output_dir=None):
        self.input_path = Path(input_path)
        self.ladder = validate_ladder(ladder)
        self.runner = runner or FFmpegRunner()
        self.reencode_iframes = reencode_iframes

        # probe before touching the filesystem so a bad input leaves nothing behind
        self.probe_data = read_probe(self.runner, self.input_path)
        self.video_info, self.technical = parse_probe_data(self.probe_data)

        base = Path(output_dir) if output_dir else self.input_path.parent / "transcoded"
        self.paths = OutputPaths.under(base)
        self.paths.create()

    # ------------------------------------------------------------------
    # Thumbnail
    # ------------------------------------------------------------------
    def generate_thumbnail(self) -> Path:
        logger.info("Generating thumbnail for %s", self.input_path.name)
        out = self.paths.thumbnail
        args = [
            "-y",
            "-ss", f"{self.video_info.duration / 2:.2f}",
            "-i", str(self.input_path),
            "-frames:v", "1",
            "-f", "image2",
            "-update", "1",
            str(out),
        ]
        self.runner.ffmpeg(args, operation="thumbnail")

        with Image.open(out) as img:
            if img.width > THUMBNAIL_BOX[0] or img.height > THUMBNAIL_BOX[1]:
                img.thumbnail(THUMBNAIL_BOX)
                img.save(out, format="PNG")
        return out

    # ------------------------------------------------------------------
    # MP4 renditions
    # ------------------------------------------------------------------
    def generate_mp4_files(self) -> list[Path]:
        outputs = []
        if self.video_info.has_audio:
            outputs.append(self._extract_audio())
        for res in self.ladder:
            outputs.append(self._generate_mp4(res))
        return outputs

    def _extract_audio(self) -> Path:
        out = self.paths.audio_m4a
        args = [
            "-y",
            "-i", str(self.input_path),
            "-vn",
            "-c:a", "aac",
            "-b:a", "128k",
            "-ar", "44100",
            "-ac", "2",
            "-af", "loudnorm=I=-16:LRA=11:TP=-1.5",
            "-metadata", f"encoded_by={ENCODED_BY}",
            str(out),
        ]
        self.runner.ffmpeg(args, operation="extract audio")
        return out

    def _scale_filter(self, res: Resolution) -> str:
        # match the dominant dimension; -2 keeps the other one even
        if self.video_info.is_vertical:
            scale = f"scale=-2:{res.height}"
        else:
            scale = f"scale={res.width}:-2"
        return f"{scale},format=yuv420p"

    def _generate_mp4(self, res: Resolution) -> Path:
        out = self.paths.mp4_for(res)
        args = [
            "-y",
            "-i", str(self.input_path),
            "-an",
            "-c:v", "libx264",
            "-b:v", res.bitrate,
            "-maxrate", res.bitrate,
            "-bufsize", res.bufsize,
            "-vf", self._scale_filter(res),
            "-preset", "veryfast",
            "-profile:v", "high",
            "-level", "4.1",
            # closed GOP, keyframe every 2s at 30fps so segments cut cleanly
            "-g", "60",
            "-keyint_min", "30",
            "-sc_threshold", "0",
            "-flags", "+cgop",
            "-movflags", "+faststart",
            "-pix_fmt", "yuv420p",
            "-metadata", f"encoded_by={ENCODED_BY}",
            str(out),
        ]
        logger.info("Encoding %s rendition", res.name)
        self.runner.ffmpeg(args, operation=f"encode {res.name}")
        return out

    # ------------------------------------------------------------------
    # HLS
    # ------------------------------------------------------------------
    def generate_hls_playlists(self) -> Path:
        for res in self.ladder:
            self._generate_hls_stream(res)
        if self.video_info.has_audio:
            self._generate_audio_stream()

        text = master_playlist(self.ladder, self.video_info.has_audio)
        return write_playlist(self.paths.master_playlist, text)

    @staticmethod
    def _hls_args(stream_dir: Path, playlist: str, segment_pattern: str, hls_time: int, flags: str) -> list[str]:
        return [
            "-f", "hls",
            "-hls_time", str(hls_time),
            "-hls_playlist_type", "vod",
            "-hls_flags", flags,
            "-hls_segment_type", "fmp4",
            "-hls_fmp4_init_filename", "init.mp4",
            "-hls_list_size", "0",
            "-start_number", "0",
            "-hls_segment_filename", str(stream_dir / "segments" / segment_pattern),
            str(stream_dir / playlist),
        ]

    def _generate_hls_stream(self, res: Resolution) -> Path:
        stream_dir = self.paths.video_stream_dir(res)
        (stream_dir / "segments").mkdir(parents=True, exist_ok=True)

        args = ["-y", "-i", str(self.paths.mp4_for(res))]
        if self.video_info.has_audio:
            args += [
                "-i", str(self.paths.audio_m4a),
                "-map", "0:v:0",
                "-map", "1:a:0",
                "-c:a", "copy",
            ]
        args += ["-c:v", "copy"]
        args += self._hls_args(
            stream_dir, "stream.m3u8", "data%03d.m4s", SEGMENT_SECONDS,
            "independent_segments+program_date_time+discont_start",
        )
        self.runner.ffmpeg(args, operation=f"segment {res.name}")
        return stream_dir / "stream.m3u8"

    def _generate_audio_stream(self) -> Path:
        stream_dir = self.paths.audio_stream_dir
        (stream_dir / "segments").mkdir(parents=True, exist_ok=True)

        args = ["-y", "-i", str(self.paths.audio_m4a), "-c:a", "copy"]
        args += self._hls_args(
            stream_dir, "stream.m3u8", "data%03d.m4s", SEGMENT_SECONDS,
            "independent_segments+program_date_time",
        )
        self.runner.ffmpeg(args, operation="segment audio")
        return stream_dir / "stream.m3u8"

    # ------------------------------------------------------------------
    # I-frame (trick play)
    # ------------------------------------------------------------------
    def generate_iframe_playlists(self) -> Path:
        for res in self.ladder:
            logger.info("Generating IFRAME playlist for %s", res.name)
            self._generate_iframe_playlist(res)

        return write_playlist(self.paths.iframe_master_playlist, iframe_master_playlist(self.ladder))

    def _generate_iframe_playlist(self, res: Resolution) -> Path:
        stream_dir = self.paths.iframe_dir(res)
        (stream_dir / "segments").mkdir(parents=True, exist_ok=True)

        args = ["-y", "-i", str(self.paths.mp4_for(res)), "-an"]
        if self.reencode_iframes:
            args += [
                "-c:v", "libx264",
                "-b:v", res.bitrate,
                "-preset", "veryfast",
                "-g", "1",
                "-keyint_min", "1",
                "-sc_threshold", "0",
                "-pix_fmt", "yuv420p",
            ]
            hls_time = 1
        else:
            # the MP4 is already closed-GOP, so a stream copy keeps every keyframe aligned
            args += ["-c:v", "copy"]
            hls_time = SEGMENT_SECONDS
        args += self._hls_args(
            stream_dir, "iframe.m3u8", "iframe%03d.m4s", hls_time,
            "independent_segments+discont_start",
        )
        self.runner.ffmpeg(args, operation=f"iframe {res.name}")
        return stream_dir / "iframe.m3u8"

    def process(self):
        self.generate_thumbnail()
        self.generate_mp4_files()
        self.generate_hls_playlists()
        self.generate_iframe_playlists()
        return self.paths
