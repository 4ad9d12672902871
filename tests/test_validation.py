import json

import pytest

from processor.validation import (
    SourceValidator,
    audio_quality_score,
    format_supported,
    has_missing_frames,
    video_quality_score,
)

from .conftest import FakeRunner, probe_json


@pytest.fixture
def source(tmp_path):
    p = tmp_path / "input"
    p.write_bytes(b"\x00" * 2048)
    return p


def _data(**kwargs):
    return json.loads(probe_json(**kwargs))


def test_supported_source_passes(source):
    runner = FakeRunner()
    report = SourceValidator(runner).validate(source, _data())

    assert report.problems == ()
    assert report.basic.is_valid
    assert report.basic.size_in_bytes == 2048
    assert report.basic.container_format == "mov"
    assert report.basic.detected_formats == "mov,mp4,m4a"
    assert (report.basic.video_codec, report.basic.audio_codec) == ("h264", "aac")
    assert report.stream.is_playable and not report.stream.has_corrupt_frames
    assert report.stream.has_audio_stream

    [(operation, args)] = runner.calls
    assert operation == "playability check"
    assert args == ["-v", "error", "-i", str(source), "-f", "null", "-"]


def test_each_unsupported_property_is_reported(source):
    data = _data(codec="wmv3", audio_codec="wmav2", format_name="asf")
    report = SourceValidator(FakeRunner()).validate(source, data)

    assert not report.basic.is_valid
    assert report.problems == (
        "unsupported container format: asf",
        "unsupported video codec: wmv3",
        "unsupported audio codec: wmav2",
    )


def test_silent_source_is_valid(source):
    report = SourceValidator(FakeRunner()).validate(source, _data(audio=False))

    assert report.problems == ()
    assert report.basic.audio_codec == "none"
    assert not report.stream.has_audio_stream
    assert report.quality.audio_quality_score == 0


def test_unplayable_source_is_flagged(source):
    report = SourceValidator(FakeRunner(fail_on="playability")).validate(source, _data())

    assert not report.stream.is_playable
    assert report.stream.has_corrupt_frames
    assert report.quality.is_corrupted
    assert "Conversion failed!" in report.stream.error
    assert report.problems == ("source is not playable: Conversion failed!",)


def test_missing_file(tmp_path):
    report = SourceValidator(FakeRunner(fail_on="playability")).validate(tmp_path / "gone", _data())

    assert not report.basic.exists
    assert report.basic.size_in_bytes == 0
    assert report.problems[0] == "source file is missing"


def test_content_metadata(source):
    data = _data()
    data["format"]["tags"] = {"creation_time": "2024-03-01T09:30:00.000000Z"}

    report = SourceValidator(FakeRunner()).validate(source, data)

    assert report.content.creation_date == "2024-03-01T09:30:00.000000Z"
    assert report.content.last_modified.endswith("Z") and len(report.content.last_modified) == 20


def test_report_as_dict_shape(source):
    report = SourceValidator(FakeRunner()).validate(source, _data())
    d = report.as_dict()

    assert set(d) == {"validation", "quality", "content", "problems"}
    assert set(d["validation"]) == {"basic", "stream"}
    assert d["quality"]["audio_sync"] is True
    assert d["content"]["creation_date"] == "N/A"


@pytest.mark.parametrize("container, detected, expected", [
    ("mov", "mov,mp4,m4a,3gp,3g2,mj2", True),
    ("matroska", "matroska,webm", True),
    ("avi", "avi", True),
    ("flv", "flv", False),
    ("", "", False),
])
def test_format_supported(container, detected, expected):
    assert format_supported(container, detected) is expected


def test_quality_scores():
    assert video_quality_score({"width": 3840, "height": 2160}) == 100
    assert video_quality_score({"width": 1280, "height": 720}) == 44
    assert video_quality_score(None) == 0
    assert audio_quality_score({"bit_rate": "128000"}) == 40
    assert audio_quality_score({"bit_rate": "640000"}) == 100
    assert audio_quality_score({"bit_rate": "N/A"}) == 0


def test_missing_frames_flag():
    assert has_missing_frames({"codec_type": "video"})
    assert not has_missing_frames({"codec_type": "video", "nb_frames": "300"})
    assert not has_missing_frames(None)
