"""
Selects the external tool invocations that turn a source format into the
pen's Ogg Vorbis format.

Conversion plans:
- mp3: mpg123 decodes to WAV, oggenc encodes; the source is treated as mono.
- ogg: oggdec decodes to WAV (its diagnostics reveal the channel count),
  oggenc encodes and down-mixes anything that is not mono.
- wav: oggenc encodes directly and always down-mixes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from penaudio.exceptions import UnsupportedFormatError
from penaudio.media.subprocess_runner import clean_args
from penaudio.media.tools import ToolPaths

# Fixed properties of the target device
TARGET_RESAMPLE_RATE = 22500
TARGET_EXTENSION = ".ogg"

# Marker oggdec prints for mono streams ("Bitstream is 1 channel, 22050Hz")
_MONO_MARKER = re.compile(r"\b1 channel\b")


class ChannelPolicy(Enum):
    """How the encoder's down-mix flag is decided."""

    ASSUME_MONO = "assume_mono"
    DETECT = "detect"
    DOWNMIX = "downmix"


@dataclass(frozen=True)
class Stage:
    """One external tool invocation and the file it is expected to produce."""

    executable: str
    args: tuple[str | None, ...]
    produces: Path
    capture_output: bool = False

    @property
    def argv(self) -> list[str]:
        return clean_args(self.args)


def is_mono_from_decoder_output(output: str) -> bool:
    """
    Reads the channel count out of oggdec's diagnostic text.
    Anything without the mono marker is treated as stereo.
    """
    return bool(_MONO_MARKER.search(output or ""))


@dataclass(frozen=True)
class ConversionPlan:
    """The ordered stages needed for one source format."""

    source_format: str
    decoder: str | None
    channel_policy: ChannelPolicy

    @property
    def needs_decode(self) -> bool:
        return self.decoder is not None

    def decode_stage(self, tools: ToolPaths, source: str, wav_path: Path) -> Stage:
        """Builds the decode-to-WAV stage."""
        if self.decoder == "mpg123":
            return Stage(tools.mpg123, ("-w", str(wav_path), source), wav_path)
        if self.decoder == "oggdec":
            return Stage(
                tools.oggdec,
                ("--wavout", str(wav_path), "-q", source),
                wav_path,
                capture_output=True,
            )
        raise ValueError(f"No decode stage for '{self.source_format}' sources.")

    def resolve_downmix(self, decoder_output: str | None = None) -> bool:
        """Decides whether the encoder must down-mix to mono."""
        if self.channel_policy is ChannelPolicy.DOWNMIX:
            return True
        if self.channel_policy is ChannelPolicy.ASSUME_MONO:
            return False
        return not is_mono_from_decoder_output(decoder_output or "")

    def encode_stage(
        self, tools: ToolPaths, wav_input: str | Path, output: Path, downmix: bool
    ) -> Stage:
        """Builds the WAV-to-Ogg encode stage writing to ``output``."""
        if not self.needs_decode:
            return Stage(
                tools.oggenc,
                (
                    str(wav_input),
                    "-o",
                    str(output),
                    "--quiet",
                    "--resample",
                    str(TARGET_RESAMPLE_RATE),
                    "--downmix" if downmix else None,
                ),
                output,
            )
        return Stage(
            tools.oggenc,
            (
                str(wav_input),
                f"--output={output}",
                "--resample",
                str(TARGET_RESAMPLE_RATE),
                "--quiet",
                "--downmix" if downmix else None,
            ),
            output,
        )


PLANS = {
    "mp3": ConversionPlan("mp3", "mpg123", ChannelPolicy.ASSUME_MONO),
    "ogg": ConversionPlan("ogg", "oggdec", ChannelPolicy.DETECT),
    "wav": ConversionPlan("wav", None, ChannelPolicy.DOWNMIX),
}

SUPPORTED_FORMATS = tuple(PLANS)


def plan_stages(source_format: str) -> ConversionPlan:
    """
    Returns the conversion plan for a format tag (extension without the dot).

    Raises:
        UnsupportedFormatError: If no plan exists for the format.
    """
    plan = PLANS.get(source_format.lower().lstrip("."))
    if plan is None:
        raise UnsupportedFormatError(source_format)
    return plan
