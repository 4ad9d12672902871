import pytest

from processor.media import DEFAULT_LADDER, OutputPaths, Resolution, VideoInfo, validate_ladder


def test_bitrate_parsing():
    res = Resolution("720p", 1280, 720, "2000k")
    assert res.kbps == 2000
    assert res.bandwidth == 2_000_000
    assert res.bufsize == "4000k"


@pytest.mark.parametrize("bitrate", ["", "0k", "2000", "2.5k", "-400k", "400K", "k"])
def test_malformed_bitrate_rejected(bitrate):
    with pytest.raises(ValueError):
        Resolution("bad", 640, 360, bitrate)


def test_ladder_names_must_be_unique():
    with pytest.raises(ValueError):
        validate_ladder([DEFAULT_LADDER[0], DEFAULT_LADDER[0]])
    with pytest.raises(ValueError):
        validate_ladder([])
    assert validate_ladder(list(DEFAULT_LADDER)) == DEFAULT_LADDER


def test_video_info_orientation():
    assert VideoInfo(1080, 1920, 5.0, True).is_vertical
    assert not VideoInfo(1920, 1080, 5.0, True).is_vertical
    assert not VideoInfo(1080, 1080, 5.0, False).is_vertical


def test_output_paths_layout(tmp_path):
    paths = OutputPaths.under(tmp_path / "transcoded")
    paths.create()
    for d in ("mp4", "hls", "assets", "logs"):
        assert (tmp_path / "transcoded" / d).is_dir()
    res = DEFAULT_LADDER[1]
    assert paths.mp4_for(res) == tmp_path / "transcoded" / "mp4" / "720p.mp4"
    assert paths.iframe_dir(res) == tmp_path / "transcoded" / "hls" / "iframe" / "720p"
