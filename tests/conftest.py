import json
import math
import threading
from pathlib import Path

import pytest
from PIL import Image

from processor.exceptions import EncoderError, StorageError
from processor.media import Task


class FakeStore:
    """In-memory object store; keys listed in fail_keys raise on upload."""

    def __init__(self, objects=None, fail_keys=(), bucket="fake-bucket"):
        self.bucket = bucket
        self.objects = dict(objects or {})
        self.content_types = {}
        self.fail_keys = set(fail_keys)
        self.lock = threading.Lock()

    def download(self, key):
        try:
            return self.objects[key]
        except KeyError:
            raise StorageError("download", self.bucket, key, "NoSuchKey")

    def upload(self, key, data, content_type=None):
        if key in self.fail_keys:
            raise StorageError("upload", self.bucket, key, "simulated outage")
        with self.lock:
            self.objects[key] = data
            self.content_types[key] = content_type


def probe_json(width=1920, height=1080, duration=10.0, audio=True, codec="h264",
               audio_codec="aac", format_name="mov,mp4,m4a"):
    streams = [{
        "codec_type": "video",
        "codec_name": codec,
        "width": width,
        "height": height,
        "r_frame_rate": "30/1",
        "display_aspect_ratio": "16:9",
        "color_space": "bt709",
    }]
    if audio:
        streams.append({"codec_type": "audio", "codec_name": audio_codec, "bit_rate": "128000"})
    return json.dumps({
        "streams": streams,
        "format": {"format_name": format_name, "duration": f"{duration:.6f}", "bit_rate": "5000000"},
    })


class FakeRunner:
    """
    Stands in for ffmpeg/ffprobe. Probing an empty file fails like the real
    prober does; every ffmpeg call materialises plausible output files.
    """

    def __init__(self, width=1920, height=1080, duration=10.0, audio=True, codec="h264", fail_on=None,
                 audio_codec="aac", format_name="mov,mp4,m4a"):
        self.width = width
        self.height = height
        self.duration = duration
        self.audio = audio
        self.codec = codec
        self.fail_on = fail_on
        self.audio_codec = audio_codec
        self.format_name = format_name
        self.calls = []

    def ffprobe(self, args, operation="probe"):
        self.calls.append((operation, list(args)))
        path = Path(args[-1])
        if not path.exists() or path.stat().st_size == 0:
            raise EncoderError(operation, f"{path}: Invalid data found when processing input", 1)
        return probe_json(self.width, self.height, self.duration, self.audio, self.codec,
                          self.audio_codec, self.format_name)

    def ffmpeg(self, args, operation):
        self.calls.append((operation, list(args)))
        if self.fail_on and self.fail_on in operation:
            raise EncoderError(operation, "Conversion failed!", 1)
        if args[-1] == "-":
            # null muxer: decode only
            return

        out = Path(args[-1])
        out.parent.mkdir(parents=True, exist_ok=True)

        if "hls" in args:
            hls_time = float(args[args.index("-hls_time") + 1])
            pattern = args[args.index("-hls_segment_filename") + 1]
            for i in range(math.ceil(self.duration / hls_time)):
                Path(pattern % i).write_bytes(b"segment")
            (out.parent / "init.mp4").write_bytes(b"init")
            out.write_text("#EXTM3U\n#EXT-X-ENDLIST\n")
        elif "image2" in args:
            Image.new("RGB", (self.width, self.height), (10, 20, 30)).save(out, format="PNG")
        else:
            out.write_bytes(b"media")

    def operations(self):
        return [op for op, _ in self.calls]


@pytest.fixture
def task():
    return Task(
        task_id="task-1",
        user_id="user-1",
        asset_id="asset-1",
        input_key="uploads/user-1/asset-1/source.mp4",
        output_key="user-1/asset-1",
    )


@pytest.fixture
def source_store(task):
    return FakeStore({task.input_key: b"\x00\x00\x00\x18ftypmp42 not really a video"})


@pytest.fixture
def content_store():
    return FakeStore(bucket="content")


@pytest.fixture
def runner():
    return FakeRunner()
