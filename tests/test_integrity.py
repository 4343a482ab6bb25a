"""Tests for the Ogg Vorbis integrity check."""

from types import SimpleNamespace
from unittest.mock import patch

from mutagen.oggvorbis import OggVorbisHeaderError

from penaudio.media.integrity import FileIntegrityChecker


def fake_audio(length: float, sample_rate: int):
    return SimpleNamespace(info=SimpleNamespace(length=length, sample_rate=sample_rate))


@patch("penaudio.media.integrity.OggVorbis")
def test_valid_artifact(mock_ogg):
    mock_ogg.return_value = fake_audio(3.5, 22500)

    assert FileIntegrityChecker.check_ogg_vorbis("/c/a.ogg") is True
    mock_ogg.assert_called_once_with("/c/a.ogg")


@patch("penaudio.media.integrity.OggVorbis")
def test_wrong_sample_rate(mock_ogg):
    mock_ogg.return_value = fake_audio(3.5, 44100)

    assert FileIntegrityChecker.check_ogg_vorbis("/c/a.ogg") is False


@patch("penaudio.media.integrity.OggVorbis")
def test_empty_stream(mock_ogg):
    mock_ogg.return_value = fake_audio(0, 22500)

    assert FileIntegrityChecker.check_ogg_vorbis("/c/a.ogg") is False


@patch("penaudio.media.integrity.OggVorbis")
def test_header_error(mock_ogg):
    mock_ogg.side_effect = OggVorbisHeaderError("bad header")

    assert FileIntegrityChecker.check_ogg_vorbis("/c/a.ogg") is False


def test_non_ogg_file_is_rejected(tmp_path):
    bogus = tmp_path / "bogus.ogg"
    bogus.write_bytes(b"FAKE oggenc output, not an ogg stream")

    assert FileIntegrityChecker.check_ogg_vorbis(bogus) is False
