"""
HLS master playlist generation.

Both playlists are rebuilt from the ladder on every run; nothing is read
back from disk. Rung order in the ladder is the order players see.
"""
from pathlib import Path

HEADER = ["#EXTM3U", "#EXT-X-VERSION:6", ""]

AUDIO_GROUP = "audio"
FRAME_RATE = "30"
VIDEO_CODEC = "avc1.640028"
AUDIO_CODEC = "mp4a.40.2"

# keyframe-only streams are advertised at a quarter of the rendition rate
IFRAME_BANDWIDTH_DIVISOR = 4

AUDIO_MEDIA_LINE = (
    f'#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="{AUDIO_GROUP}",NAME="Original",'
    'DEFAULT=YES,AUTOSELECT=YES,LANGUAGE="und",'
    'CHANNELS="2",URI="audio/stream.m3u8"'
)


def master_playlist(ladder, has_audio: bool) -> str:
    lines = list(HEADER)

    if has_audio:
        lines += [AUDIO_MEDIA_LINE, ""]
        codecs = f"{VIDEO_CODEC},{AUDIO_CODEC}"
        audio_attr = f',AUDIO="{AUDIO_GROUP}"'
    else:
        codecs = VIDEO_CODEC
        audio_attr = ""

    for res in ladder:
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={res.bandwidth},RESOLUTION={res.width}x{res.height},"
            f'FRAME-RATE={FRAME_RATE},CODECS="{codecs}"{audio_attr}'
        )
        lines.append(f"video/{res.name}/stream.m3u8")

    return "\n".join(lines)


def iframe_bandwidth(res) -> int:
    return res.bandwidth // IFRAME_BANDWIDTH_DIVISOR


def iframe_master_playlist(ladder) -> str:
    lines = list(HEADER)
    for res in ladder:
        lines.append(
            f"#EXT-X-I-FRAME-STREAM-INF:BANDWIDTH={iframe_bandwidth(res)},"
            f"RESOLUTION={res.width}x{res.height},"
            f'CODECS="{VIDEO_CODEC}",'
            f'URI="iframe/{res.name}/iframe.m3u8"'
        )
    return "\n".join(lines)


def write_playlist(path: Path, text: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
