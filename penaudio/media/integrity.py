"""
Provides methods for checking the integrity of converted media files.
"""

import logging
from pathlib import Path

from mutagen.ogg import error as OggError
from mutagen.oggvorbis import OggVorbis, OggVorbisHeaderError

from penaudio.media.stages import TARGET_RESAMPLE_RATE

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating converted files."""

    @staticmethod
    def check_ogg_vorbis(filepath: str | Path) -> bool:
        """
        Performs a basic integrity check on an Ogg Vorbis file.

        Checks if the file can be opened by mutagen, has a positive duration
        and was encoded at the device's sample rate.

        Args:
            filepath: Path to the Ogg Vorbis file.

        Returns:
            True if the file appears to be a valid artifact, False otherwise.
        """
        try:
            audio = OggVorbis(filepath)
        except (OggVorbisHeaderError, OggError) as e:
            log.warning(f"Ogg integrity check failed for '{filepath}': {e}")
            return False
        except Exception as e:
            log.debug(f"Ogg check failed for '{filepath}' with unexpected error: {e}")
            return False

        if not audio.info or audio.info.length <= 0:
            log.warning(
                f"Ogg integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        if audio.info.sample_rate != TARGET_RESAMPLE_RATE:
            log.warning(
                f"Ogg integrity check failed for '{filepath}': sample rate "
                f"{audio.info.sample_rate} Hz, expected {TARGET_RESAMPLE_RATE} Hz."
            )
            return False
        return True
