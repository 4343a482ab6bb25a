"""Tests for per-format stage planning."""

from pathlib import Path

import pytest

from penaudio.exceptions import UnsupportedFormatError
from penaudio.media.stages import (
    SUPPORTED_FORMATS,
    ChannelPolicy,
    is_mono_from_decoder_output,
    plan_stages,
)
from penaudio.media.tools import ToolPaths

TOOLS = ToolPaths(mpg123="mpg123", oggenc="oggenc", oggdec="oggdec")


@pytest.mark.parametrize(
    "fmt, decoder, policy",
    [
        ("mp3", "mpg123", ChannelPolicy.ASSUME_MONO),
        ("ogg", "oggdec", ChannelPolicy.DETECT),
        ("wav", None, ChannelPolicy.DOWNMIX),
    ],
)
def test_plan_per_format(fmt, decoder, policy):
    plan = plan_stages(fmt)

    assert plan.decoder == decoder
    assert plan.channel_policy is policy


def test_format_tag_is_case_insensitive():
    assert plan_stages("MP3") is plan_stages("mp3")
    assert plan_stages(".Wav") is plan_stages("wav")


@pytest.mark.parametrize("fmt", ["xyz", "flac", ""])
def test_unknown_format_is_rejected(fmt):
    with pytest.raises(UnsupportedFormatError) as exc_info:
        plan_stages(fmt)
    assert exc_info.value.extension == fmt


def test_supported_formats():
    assert set(SUPPORTED_FORMATS) == {"mp3", "ogg", "wav"}


class TestMonoDetection:
    def test_one_channel_is_mono(self):
        assert is_mono_from_decoder_output("Bitstream is 1 channel, 22050Hz")

    def test_two_channels_is_not_mono(self):
        assert not is_mono_from_decoder_output("Bitstream is 2 channel, 44100Hz")

    def test_eleven_channels_is_not_mono(self):
        assert not is_mono_from_decoder_output("Bitstream is 11 channel, 44100Hz")

    def test_missing_marker_is_treated_as_stereo(self):
        assert not is_mono_from_decoder_output("")
        assert not is_mono_from_decoder_output(None)


class TestDownmix:
    def test_mp3_never_downmixes(self):
        assert plan_stages("mp3").resolve_downmix() is False

    def test_wav_always_downmixes(self):
        assert plan_stages("wav").resolve_downmix() is True

    def test_ogg_follows_decoder_output(self):
        plan = plan_stages("ogg")

        assert plan.resolve_downmix("Bitstream is 1 channel, 22050Hz") is False
        assert plan.resolve_downmix("Bitstream is 2 channel, 44100Hz") is True
        assert plan.resolve_downmix("garbage") is True


class TestArguments:
    def test_mp3_stages(self):
        plan = plan_stages("mp3")
        wav = Path("/c/k.ogg.tmp.wav")
        out = Path("/c/k.ogg.tmp")

        decode = plan.decode_stage(TOOLS, "/m/song.mp3", wav)
        encode = plan.encode_stage(TOOLS, wav, out, plan.resolve_downmix())

        assert decode.argv == ["-w", str(wav), "/m/song.mp3"]
        assert decode.produces == wav
        assert not decode.capture_output
        assert encode.argv == [str(wav), f"--output={out}", "--resample", "22500", "--quiet"]
        assert encode.produces == out

    def test_ogg_decode_captures_output(self):
        plan = plan_stages("ogg")
        wav = Path("/c/k.wav")

        decode = plan.decode_stage(TOOLS, "/m/a.ogg", wav)

        assert decode.executable == "oggdec"
        assert decode.argv == ["--wavout", str(wav), "-q", "/m/a.ogg"]
        assert decode.capture_output

    def test_ogg_encode_with_downmix(self):
        plan = plan_stages("ogg")
        out = Path("/c/k.tmp")

        encode = plan.encode_stage(TOOLS, Path("/c/k.wav"), out, True)

        assert encode.argv[-1] == "--downmix"

    def test_wav_is_encoded_directly(self):
        plan = plan_stages("wav")
        out = Path("/c/k.tmp")

        assert not plan.needs_decode
        encode = plan.encode_stage(TOOLS, "/m/a.wav", out, plan.resolve_downmix())

        assert encode.argv == [
            "/m/a.wav",
            "-o",
            str(out),
            "--quiet",
            "--resample",
            "22500",
            "--downmix",
        ]

    def test_wav_has_no_decode_stage(self):
        with pytest.raises(ValueError):
            plan_stages("wav").decode_stage(TOOLS, "/m/a.wav", Path("/c/x.wav"))
