"""Tests for ffmpeg argument construction."""

import math
from dataclasses import replace
from pathlib import Path

import pytest

from ffqueue.command_builder import (
    build_atempo_chain,
    build_force_style,
    build_probe_command,
    build_transcode_command,
    escape_filter_path,
    output_extension,
)
from ffqueue.models import ProcessingSpec, RGBAColor
from ffqueue.scanner import build_output_path

SRC = Path("/in/clip.mov")
DST = Path("/out/clip_converted.mov")


def build(**changes):
    return build_transcode_command(ProcessingSpec(**changes), SRC, DST)


def test_no_options_copies_video():
    assert build() == ["-i", "/in/clip.mov", "-c:v", "copy", "-y", "/out/clip_converted.mov"]


def test_audio_only_has_no_video_arguments():
    args = build(audio_only=True, resolution_enabled=True, frame_rate_enabled=True,
                 video_bitrate_enabled=True, audio_bitrate_enabled=True, audio_bitrate="128")

    assert args == ["-i", "/in/clip.mov", "-vn", "-c:a", "aac", "-b:a", "128k",
                    "-y", "/out/clip_converted.mov"]
    assert args.count("-c:a") == 1
    for flag in ("-c:v", "-vf", "-filter_complex", "-r", "-b:v"):
        assert flag not in args


def test_audio_only_uses_chosen_encoder():
    args = build(audio_only=True, audio_encoder="MP3")
    assert args[args.index("-c:a") + 1] == "libmp3lame"


def test_audio_only_wins_over_video_only():
    args = build(audio_only=True, video_only=True)
    assert "-vn" in args
    assert "-an" not in args


def test_half_speed_filters():
    args = build(speed_enabled=True, speed_percentage="50")
    assert args == [
        "-i", "/in/clip.mov",
        "-filter_complex", "[0:v]setpts=2.0*PTS[v];[0:a]atempo=0.5[a]",
        "-map", "[v]", "-map", "[a]",
        "-y", "/out/clip_converted.mov",
    ]


def test_video_only_speed_has_no_tempo():
    args = build(video_only=True, speed_enabled=True, speed_percentage="50")
    assert "-an" in args
    assert args[args.index("-vf") + 1] == "setpts=2.0*PTS"
    assert not any("atempo" in a for a in args)


def test_audio_only_speed_uses_af():
    args = build(audio_only=True, speed_enabled=True, speed_percentage="200")
    assert args[args.index("-af") + 1] == "atempo=2.0"


@pytest.mark.parametrize("multiplier", [8.0, 0.25, 3.0, 0.1, 1.0])
def test_atempo_chain_product(multiplier):
    stages = build_atempo_chain(multiplier)
    assert stages
    assert all(0.5 <= s <= 100 for s in stages)
    assert math.isclose(math.prod(stages), multiplier, rel_tol=1e-9)


def test_eight_times_speed_splits_tempo():
    args = build(speed_enabled=True, speed_percentage="800")
    graph = args[args.index("-filter_complex") + 1]
    assert "setpts=0.125*PTS" in graph
    assert "atempo=2.0,atempo=2.0,atempo=2.0" in graph


@pytest.mark.parametrize("value", ["0", "-50", "fast", ""])
def test_unusable_speed_is_ignored(value):
    assert build(speed_enabled=True, speed_percentage=value)[2:4] == ["-c:v", "copy"]


def test_scale_filter():
    args = build(resolution_enabled=True, width="1280", height="720")
    assert args == ["-i", "/in/clip.mov", "-vf", "scale=1280:720", "-y", "/out/clip_converted.mov"]


@pytest.mark.parametrize("width,height", [("0", "720"), ("1280", "-1"), ("abc", "720")])
def test_bad_scale_is_ignored(width, height):
    args = build(resolution_enabled=True, width=width, height=height)
    assert "-vf" not in args
    assert args[2:4] == ["-c:v", "copy"]


def test_frame_rate_and_bitrate():
    args = build(frame_rate_enabled=True, frame_rate="29.97",
                 video_bitrate_enabled=True, video_bitrate="2500",
                 video_encoder="H.264 (Software)")
    assert args == ["-i", "/in/clip.mov", "-c:v", "libx264", "-b:v", "2500k", "-r", "29.97",
                    "-y", "/out/clip_converted.mov"]


def test_zero_bitrate_alone_keeps_copy():
    args = build(video_bitrate_enabled=True, video_bitrate="0")
    assert args[2:4] == ["-c:v", "copy"]


def test_encoder_only_pinned_with_bitrate():
    args = build(video_bitrate_enabled=True, video_bitrate="900", video_encoder="HEVC (Hardware)")
    assert args[2:7] == ["-c:v", "hevc_videotoolbox", "-tag:v", "hvc1", "-b:v"]

    args = build(frame_rate_enabled=True, video_encoder="AV1")
    assert args == ["-i", "/in/clip.mov", "-r", "60.00", "-y", "/out/clip_converted.mov"]


def test_unknown_encoder_keeps_bitrate_only():
    args = build(video_bitrate_enabled=True, video_bitrate="800", video_encoder="Something")
    assert args == ["-i", "/in/clip.mov", "-b:v", "800k", "-y", "/out/clip_converted.mov"]


def test_subtitles_without_bitrate_use_libx264():
    args = build(subtitle_enabled=True, subtitle_path="/subs/a.srt", video_encoder="AV1")
    assert args[2:4] == ["-c:v", "libx264"]

    args = build(subtitle_enabled=True, subtitle_path="/subs/a.srt",
                 video_bitrate_enabled=True, video_bitrate="3000", video_encoder="AV1")
    assert args[2:6] == ["-c:v", "libsvtav1", "-b:v", "3000k"]


def test_audio_bitrate_with_video():
    args = build(audio_bitrate_enabled=True, audio_bitrate="96", audio_encoder="Opus")
    assert args == ["-i", "/in/clip.mov", "-c:v", "copy", "-c:a", "libopus", "-b:a", "96k",
                    "-y", "/out/clip_converted.mov"]


def test_filter_order_scale_setpts_subtitles():
    args = build(resolution_enabled=True, width="640", height="360",
                 speed_enabled=True, speed_percentage="200",
                 subtitle_enabled=True, subtitle_path="/subs/a.srt")
    graph = args[args.index("-filter_complex") + 1]
    video_chain = graph.split(";")[0]
    assert video_chain.startswith("[0:v]scale=640:360,setpts=0.5*PTS,subtitles=/subs/a.srt:")
    assert graph.endswith("[0:a]atempo=2.0[a]")


def test_subtitle_filter_with_default_style():
    args = build(subtitle_enabled=True, subtitle_path="C:\\subs\\it's.srt")
    assert args[args.index("-vf") + 1] == (
        "subtitles=C\\:/subs/it\\'s.srt:force_style='Alignment=2,PrimaryColour=&H00FFFFFF,"
        "FontName=Arial,FontSize=24,OutlineColour=&H00000000,Outline=2'"
    )


def test_subtitles_without_path_are_skipped():
    assert "-vf" not in build(subtitle_enabled=True, subtitle_path="  ")


def test_force_style_drops_bad_values():
    spec = ProcessingSpec(subtitle_position="Top Left", subtitle_font=" ",
                          subtitle_font_size="big", subtitle_outline_width="-1",
                          subtitle_color=RGBAColor(1.0, 0.0, 0.0, 1.0))
    assert build_force_style(spec) == (
        "Alignment=5,PrimaryColour=&H000000FF,OutlineColour=&H00000000"
    )


def test_escape_filter_path():
    assert escape_filter_path("/a/b.srt") == "/a/b.srt"
    assert escape_filter_path("D:\\x.srt") == "D\\:/x.srt"
    assert escape_filter_path("/subs/a,b [1];c.srt") == "/subs/a\\,b \\[1\\]\\;c.srt"


def test_subtitle_path_with_graph_separators_stays_one_filter():
    args = build(subtitle_enabled=True, subtitle_path="/subs/a,b.srt")
    chain = args[args.index("-vf") + 1]
    assert chain.split(":force_style=")[0] == "subtitles=/subs/a\\,b.srt"
    assert "-filter_complex" not in args


def test_speed_without_audio_stream_has_no_tempo():
    spec = ProcessingSpec(speed_enabled=True, speed_percentage="50")
    args = build_transcode_command(spec, SRC, DST, has_audio=False)
    assert args == ["-i", "/in/clip.mov", "-vf", "setpts=2.0*PTS", "-y", "/out/clip_converted.mov"]


def test_output_extension():
    spec = ProcessingSpec()
    assert output_extension(SRC, spec) == "mov"
    assert output_extension(SRC, replace(spec, container_enabled=True, container="MKV")) == "mkv"
    assert output_extension(SRC, replace(spec, video_encoder="Apple ProRes")) == "mp4"


def test_output_path():
    spec = ProcessingSpec(container_enabled=True, container="MP4")
    assert build_output_path(Path("/rushes/clip001.mov"), Path("/proxies"), spec) == \
        Path("/proxies/clip001_converted.mp4")


def test_probe_command_restricts_entries():
    cmd = build_probe_command(Path("/in/a.mp4"), "ffprobe")
    assert cmd[0] == "ffprobe"
    assert cmd[cmd.index("-print_format") + 1] == "json"
    assert cmd[cmd.index("-show_entries") + 1] == (
        "stream=duration,avg_frame_rate,codec_type,codec_name,bit_rate,width,height"
    )
    assert cmd[-1] == "/in/a.mp4"
