"""
Channel Policy Resolution.

Turns the configured channel mode and multi-channel policy into a concrete
render channel mode and target channel count for a unit (or a single clip).

- SOURCE_PLAYBACK: max playback channels across members; mono stays mono
- SOURCE_TRACK: originating track count, snapshotted before any move
- TARGET_TRACK: processing track count, left untouched
- Odd counts above 1 round up to the next even count
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..config import ApplyMode, ChannelPolicy
from ..timeline import Clip

logger = logging.getLogger(__name__)


class RenderChannelMode(str, Enum):
    MONO = "mono"
    MULTI = "multi"


@dataclass(frozen=True)
class ChannelPlan:
    """
    Resolved channel decision for one render call.

    Attributes:
        mode: Channel mode passed to the engine.
        channels: Resolved channel count.
        policy: Policy announced to the engine, None in mono mode.
        source_track_channels: Pre-move channel count of the originating track.
        apply_to_track: Whether `channels` is written to the processing track.
    """

    mode: RenderChannelMode
    channels: int
    policy: Optional[ChannelPolicy]
    source_track_channels: int
    apply_to_track: bool = True

    @property
    def target_channels(self) -> Optional[int]:
        return self.channels if self.apply_to_track else None


def playback_channels(clip: Clip) -> int:
    return clip.playback_channels()


def unit_playback_channels(members: Iterable[Clip]) -> int:
    """Maximum playback channel count across members (2 for an empty unit)."""
    counts = [playback_channels(clip) for clip in members]
    if not counts:
        return 2
    return max(counts)


def normalize_channel_count(count: int, multi: bool) -> int:
    """
    Align a channel count to stereo pairs.

    Args:
        count: Raw channel count.
        multi: True in an explicit multi render mode.

    Returns:
        1 for 0/1 outside multi mode, 2 for 0/1 in multi mode, odd counts
        rounded up to the next even count.
    """
    if count <= 1:
        return 2 if multi else 1
    if count % 2:
        return count + 1
    return count


def _mono_plan(source_track_channels: int) -> ChannelPlan:
    return ChannelPlan(
        mode=RenderChannelMode.MONO,
        channels=1,
        policy=None,
        source_track_channels=source_track_channels,
    )


def resolve_channel_plan(
    members: Iterable[Clip],
    apply_mode: ApplyMode,
    policy: ChannelPolicy,
    source_track_channels: int,
    processing_track_channels: int,
) -> ChannelPlan:
    """
    Resolve the render channel plan for a unit or a single clip.

    `auto` renders mono when the playback count is at most 1, else multi with
    SOURCE_PLAYBACK logic; the configured policy applies only in explicit
    `multi` mode.

    Args:
        members: Clips rendered together (read before they are moved).
        apply_mode: Explicit channel mode override.
        policy: Configured multi-channel policy.
        source_track_channels: Originating track count snapshotted pre-move.
        processing_track_channels: Current processing track count.

    Returns:
        ChannelPlan
    """
    members = list(members)
    ch = unit_playback_channels(members)

    if apply_mode is ApplyMode.MONO:
        logger.debug("Channel mode 'mono' (explicit) -> 1")
        return _mono_plan(source_track_channels)

    if apply_mode is ApplyMode.AUTO:
        if ch <= 1:
            logger.debug(f"Channel mode 'auto': playback_ch={ch} -> mono")
            return _mono_plan(source_track_channels)
        desired = normalize_channel_count(ch, multi=True)
        logger.debug(f"Channel mode 'auto': playback_ch={ch} -> multi, desired={desired}")
        return ChannelPlan(
            mode=RenderChannelMode.MULTI,
            channels=desired,
            policy=ChannelPolicy.SOURCE_PLAYBACK,
            source_track_channels=source_track_channels,
        )

    if policy is ChannelPolicy.SOURCE_PLAYBACK:
        if ch <= 1:
            logger.debug(f"Multi policy SOURCE-PLAYBACK: playback_ch={ch} stays mono")
            return _mono_plan(source_track_channels)
        desired = normalize_channel_count(ch, multi=True)
        logger.debug(f"Multi policy SOURCE-PLAYBACK: playback_ch={ch} -> desired={desired}")
        return ChannelPlan(
            mode=RenderChannelMode.MULTI,
            channels=desired,
            policy=policy,
            source_track_channels=source_track_channels,
        )

    if policy is ChannelPolicy.SOURCE_TRACK:
        desired = normalize_channel_count(source_track_channels, multi=True)
        logger.debug(f"Multi policy SOURCE-TRACK: track_ch={source_track_channels} -> desired={desired}")
        return ChannelPlan(
            mode=RenderChannelMode.MULTI,
            channels=desired,
            policy=policy,
            source_track_channels=source_track_channels,
        )

    logger.debug(f"Multi policy TARGET-TRACK: keep {processing_track_channels}")
    return ChannelPlan(
        mode=RenderChannelMode.MULTI,
        channels=processing_track_channels,
        policy=policy,
        source_track_channels=source_track_channels,
        apply_to_track=False,
    )
