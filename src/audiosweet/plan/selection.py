"""Selection snapshot and restore."""

import logging
from dataclasses import dataclass
from typing import List

from ..timeline import Project

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedRange:
    track_id: int
    start: float
    end: float


class SelectionSnapshot:
    """Selected clips recorded as (track, start, end) ranges."""

    def __init__(self, ranges: List[SelectedRange]):
        self.ranges = ranges

    @classmethod
    def capture(cls, project: Project) -> "SelectionSnapshot":
        ranges = [
            SelectedRange(clip.track_id, clip.position, clip.end)
            for clip in project.selected_clips()
        ]
        logger.debug(f"Selection snapshot: {len(ranges)} clip(s)")
        return cls(ranges)

    def restore(self, project: Project) -> int:
        """
        Reselect, per recorded range, the first clip on the same track covering it.

        Glued outputs that cover the original range are picked up in place of
        the clips they replaced.

        Args:
            project: Project to restore into.

        Returns:
            Number of clips selected.
        """
        project.clear_selection()
        eps = project.epsilon()
        restored = 0
        for rec in self.ranges:
            track = project.tracks.get(rec.track_id)
            if track is None:
                continue
            for clip in project.clips_on_track(track):
                if clip.position <= rec.start + eps and clip.end >= rec.end - eps:
                    clip.selected = True
                    restored += 1
                    break
        logger.debug(f"Selection restored: {restored}/{len(self.ranges)}")
        return restored

    def __len__(self) -> int:
        return len(self.ranges)
