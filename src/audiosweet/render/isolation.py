"""
Effect Isolation / Restore.

Snapshots of per-effect enable flags and track channel counts, restored by
context managers on every exit path, including engine exceptions.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from ..timeline import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectEnableSnapshot:
    """Enabled flags aligned to effect position on one track."""

    track: Track
    states: Tuple[bool, ...]

    @classmethod
    def capture(cls, track: Track) -> "EffectEnableSnapshot":
        return cls(track=track, states=tuple(fx.enabled for fx in track.effects))

    def restore(self) -> None:
        for idx, enabled in enumerate(self.states):
            if idx < len(self.track.effects):
                self.track.effects[idx].enabled = enabled


@dataclass(frozen=True)
class ChannelSnapshot:
    """Channel count of one track."""

    track: Track
    channel_count: int

    @classmethod
    def capture(cls, track: Track) -> "ChannelSnapshot":
        return cls(track=track, channel_count=track.channel_count)

    def restore(self) -> None:
        if self.track.channel_count != self.channel_count:
            logger.debug(
                f"{self.track!r} channel count restore "
                f"{self.track.channel_count} -> {self.channel_count}"
            )
        self.track.channel_count = self.channel_count


def isolate_effect(track: Track, index: int) -> None:
    """Enable only the effect at `index`; bypass all others."""
    for idx, fx in enumerate(track.effects):
        fx.enabled = idx == index


@contextmanager
def isolated_effects(track: Track, focus_index: Optional[int]) -> Iterator[EffectEnableSnapshot]:
    """
    Isolate one effect (focused mode) or leave the chain as-is (focus_index None).

    Every enable flag is restored from the snapshot on exit.
    """
    snapshot = EffectEnableSnapshot.capture(track)
    try:
        if focus_index is not None:
            isolate_effect(track, focus_index)
        yield snapshot
    finally:
        snapshot.restore()


@contextmanager
def preserved_channel_count(track: Track, target: Optional[int] = None) -> Iterator[ChannelSnapshot]:
    """
    Snapshot a track's channel count, optionally set `target`, restore on exit.
    """
    snapshot = ChannelSnapshot.capture(track)
    try:
        if target is not None and target != track.channel_count:
            logger.debug(f"{track!r} channel count {track.channel_count} -> {target} (pre-render)")
            track.channel_count = target
        yield snapshot
    finally:
        snapshot.restore()


@contextmanager
def preserved_track_channels(tracks: Iterable[Track]) -> Iterator[List[ChannelSnapshot]]:
    """Snapshot several tracks (each once) and restore them all on exit."""
    snapshots: List[ChannelSnapshot] = []
    seen = set()
    for track in tracks:
        if track.track_id in seen:
            continue
        seen.add(track.track_id)
        snapshots.append(ChannelSnapshot.capture(track))
    try:
        yield snapshots
    finally:
        for snapshot in snapshots:
            snapshot.restore()
