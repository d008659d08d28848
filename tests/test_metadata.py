"""
Unit tests for time-reference tagging of rendered WAV files.
"""

import wave

import pytest

from audiosweet.render.metadata import (
    embed_for_clip,
    embed_time_reference,
    read_time_reference,
    time_reference_samples,
)
from audiosweet.timeline import Project, Take


@pytest.fixture
def wav_file(tmp_path):
    """Short silent mono WAV."""
    path = tmp_path / "render.wav"
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(48000)
        w.writeframes(b"\x00\x00" * 480)
    return path


@pytest.fixture
def project():
    return Project(sample_rate=48000.0)


class TestTimeReferenceSamples:
    """Test sample position computation."""

    def test_position_minus_offset(self, project):
        track = project.add_track("T")
        clip = project.add_clip(track, 10.0, 2.0, takes=[Take("A", start_offset=2.0)])

        assert time_reference_samples(clip, 48000.0) == 384000

    def test_unknown_rate(self, project):
        track = project.add_track("T")
        clip = project.add_clip(track, 10.0, 2.0)

        assert time_reference_samples(clip, None) is None

    def test_clamped_at_zero(self, project):
        track = project.add_track("T")
        clip = project.add_clip(track, 1.0, 2.0, takes=[Take("A", start_offset=5.0)])

        assert time_reference_samples(clip, 48000.0) == 0


class TestEmbedTimeReference:
    """Test writing the tag with mutagen."""

    def test_embed_and_read_back(self, wav_file):
        """The tag round-trips through the file."""
        assert embed_time_reference(str(wav_file), 384000) is True
        assert read_time_reference(str(wav_file)) == 384000

    def test_embed_overwrites(self, wav_file):
        """A second embed replaces the first value."""
        embed_time_reference(str(wav_file), 1)
        embed_time_reference(str(wav_file), 2)

        assert read_time_reference(str(wav_file)) == 2

    def test_non_wav_skipped(self, tmp_path):
        path = tmp_path / "render.flac"
        path.write_bytes(b"")

        assert embed_time_reference(str(path), 100) is False

    def test_missing_file_skipped(self, tmp_path):
        assert embed_time_reference(str(tmp_path / "gone.wav"), 100) is False

    def test_corrupt_wav_returns_false(self, tmp_path):
        """Failures are logged, not raised."""
        path = tmp_path / "broken.wav"
        path.write_bytes(b"not a wav file at all")

        assert embed_time_reference(str(path), 100) is False

    def test_clip_without_source_skipped(self, project):
        track = project.add_track("T")
        clip = project.add_clip(track, 0.0, 1.0)

        assert embed_for_clip(clip, 48000.0) is False

    def test_clip_source_embedded(self, project, wav_file):
        track = project.add_track("T")
        clip = project.add_clip(track, 1.0, 1.0, takes=[Take("A", source_path=str(wav_file))])

        assert embed_for_clip(clip, 48000.0) is True
        assert read_time_reference(str(wav_file)) == 48000
