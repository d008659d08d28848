"""
Unit Detection: group selected clips into atomic processing units.

A unit is a maximal run of touching or overlapping clips on one track.
Touching counts (gap within one sample period), matching the glue semantics
of the render engine, which consolidates contiguous clips into one.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Dict

from ..timeline import Clip, Project, TimeWindow, Track

logger = logging.getLogger(__name__)


def _approx_eq(a: float, b: float, eps: float) -> bool:
    return abs(a - b) <= eps


def ranges_touch_or_overlap(a0: float, a1: float, b0: float, b1: float, eps: float) -> bool:
    """Interval touch test: not (a ends before b starts or b ends before a starts)."""
    return not (a1 < b0 - eps or b1 < a0 - eps)


@dataclass
class Unit:
    """Touching/overlapping clips on one track, sorted by position."""

    track: Track
    members: List[Clip] = field(default_factory=list)
    start: float = 0.0
    end: float = 0.0

    def equals_window(self, window: Optional[TimeWindow], eps: float) -> bool:
        """True when both window edges match the unit span within epsilon."""
        if window is None:
            return False
        return _approx_eq(self.start, window.start, eps) and _approx_eq(self.end, window.end, eps)

    def intersects(self, window: Optional[TimeWindow], eps: float) -> bool:
        if window is None:
            return False
        return ranges_touch_or_overlap(self.start, self.end, window.start, window.end, eps)

    def overlap(self, window: Optional[TimeWindow]) -> float:
        """Seconds of the unit inside the window; 0.0 when they only touch."""
        if window is None:
            return 0.0
        return max(0.0, min(self.end, window.end) - max(self.start, window.start))

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return (
            f"Unit(track={self.track.track_id}, members={len(self.members)}, "
            f"span={self.start:.3f}..{self.end:.3f})"
        )


def build_units(clips: Iterable[Clip], project: Project, eps: Optional[float] = None) -> List[Unit]:
    """
    Merge clips into units per track.

    Algorithm:
    1. Partition clips by owning track (project track order)
    2. Sort each partition by start position
    3. Scan left to right; open a new unit when the next clip starts
       strictly beyond the current unit end plus epsilon

    Args:
        clips: Clips to group (typically the current selection).
        project: Owning project (track order and sample rate).
        eps: Merge tolerance; defaults to one sample period.

    Returns:
        Units ordered by track, then position.
    """
    if eps is None:
        eps = project.epsilon()

    by_track: Dict[int, List[Clip]] = {}
    for clip in clips:
        by_track.setdefault(clip.track_id, []).append(clip)

    units: List[Unit] = []
    for track_id in project.tracks:
        arr = by_track.pop(track_id, None)
        if not arr:
            continue
        units.extend(_scan_track(project.track(track_id), arr, eps))

    if by_track:
        logger.warning(f"Ignoring clips on unknown tracks: {sorted(by_track)}")

    logger.debug(f"UNITS count={len(units)}")
    for idx, unit in enumerate(units, 1):
        logger.debug(f"  unit#{idx} {unit!r}")
    return units


def _scan_track(track: Track, clips: List[Clip], eps: float) -> List[Unit]:
    ordered = sorted(clips, key=lambda c: (c.position, c.clip_id))
    units: List[Unit] = []
    cur: Optional[Unit] = None
    for clip in ordered:
        if cur is not None and clip.position <= cur.end + eps:
            cur.members.append(clip)
            cur.end = max(cur.end, clip.end)
            continue
        cur = Unit(track=track, members=[clip], start=clip.position, end=clip.end)
        units.append(cur)
    return units


def build_units_from_selection(project: Project) -> List[Unit]:
    """Units for the project's current clip selection."""
    return build_units(project.selected_clips(), project)
