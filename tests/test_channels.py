"""
Unit tests for channel policy resolution.
"""

import pytest

from audiosweet.config import ApplyMode, ChannelPolicy
from audiosweet.render.channels import (
    RenderChannelMode,
    normalize_channel_count,
    resolve_channel_plan,
    unit_playback_channels,
)
from audiosweet.timeline import ChannelMode, Project


@pytest.fixture
def project():
    return Project()


@pytest.fixture
def track(project):
    return project.add_track("T")


class TestNormalize:
    """Test stereo-pair alignment."""

    @pytest.mark.parametrize("count,multi,expected", [
        (1, False, 1),
        (0, False, 1),
        (1, True, 2),
        (2, False, 2),
        (3, False, 4),
        (5, True, 6),
        (6, True, 6),
    ])
    def test_normalize(self, count, multi, expected):
        assert normalize_channel_count(count, multi) == expected


class TestPlaybackChannels:
    """Test playback channel counting."""

    def test_mono_downmix_counts_as_one(self, project, track):
        """A mono-downmix take of a 4-channel source plays 1 channel."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=4, channel_mode=ChannelMode.MONO_DOWNMIX)

        assert clip.playback_channels() == 1

    def test_unit_takes_max(self, project, track):
        """A unit plays as many channels as its widest member."""
        a = project.add_clip(track, 0.0, 1.0, source_channels=2)
        b = project.add_clip(track, 1.0, 1.0, source_channels=6)
        c = project.add_clip(track, 2.0, 1.0, source_channels=4, channel_mode=ChannelMode.LEFT_ONLY)

        assert unit_playback_channels([a, b, c]) == 6

    def test_empty_unit_defaults_to_stereo(self):
        assert unit_playback_channels([]) == 2


class TestResolveChannelPlan:
    """Test policy resolution per mode."""

    def test_auto_mono_downmix_renders_mono(self, project, track):
        """SOURCE_PLAYBACK on a mono-downmix clip of a 4-channel source gives 1."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=4, channel_mode=ChannelMode.MONO_DOWNMIX)

        plan = resolve_channel_plan([clip], ApplyMode.AUTO, ChannelPolicy.SOURCE_PLAYBACK, 2, 2)

        assert plan.mode is RenderChannelMode.MONO
        assert plan.channels == 1
        assert plan.policy is None

    def test_auto_three_channels_rounds_up(self, project, track):
        """A 3-channel playback clip renders 4 channels."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=3)

        plan = resolve_channel_plan([clip], ApplyMode.AUTO, ChannelPolicy.TARGET_TRACK, 2, 2)

        assert plan.mode is RenderChannelMode.MULTI
        assert plan.channels == 4
        assert plan.policy is ChannelPolicy.SOURCE_PLAYBACK

    def test_multi_source_playback_mono_stays_mono(self, project, track):
        """Explicit multi with SOURCE_PLAYBACK keeps a mono unit mono."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=4, channel_mode=ChannelMode.MONO_DOWNMIX)

        plan = resolve_channel_plan([clip], ApplyMode.MULTI, ChannelPolicy.SOURCE_PLAYBACK, 4, 2)

        assert plan.channels == 1
        assert plan.mode is RenderChannelMode.MONO

    def test_explicit_mono_forces_one(self, project, track):
        """Explicit mono ignores the source width."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=6)

        plan = resolve_channel_plan([clip], ApplyMode.MONO, ChannelPolicy.SOURCE_TRACK, 6, 2)

        assert plan.channels == 1
        assert plan.target_channels == 1

    def test_source_track_uses_snapshot(self, project, track):
        """SOURCE_TRACK normalizes the pre-move track count."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=2)

        plan = resolve_channel_plan([clip], ApplyMode.MULTI, ChannelPolicy.SOURCE_TRACK, 3, 2)

        assert plan.channels == 4
        assert plan.source_track_channels == 3

    def test_source_track_mono_track_becomes_stereo(self, project, track):
        """A 1-channel source track becomes 2 in explicit multi mode."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=1)

        plan = resolve_channel_plan([clip], ApplyMode.MULTI, ChannelPolicy.SOURCE_TRACK, 1, 2)

        assert plan.channels == 2

    def test_target_track_leaves_track_alone(self, project, track):
        """TARGET_TRACK reports the processing count and does not apply it."""
        clip = project.add_clip(track, 0.0, 1.0, source_channels=6)

        plan = resolve_channel_plan([clip], ApplyMode.MULTI, ChannelPolicy.TARGET_TRACK, 6, 8)

        assert plan.channels == 8
        assert plan.target_channels is None
