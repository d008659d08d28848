"""
Pre-Split: trim clips that straddle a time-window edge.

Only the in-window piece of each clip stays selected; the pieces outside the
window remain on their track untouched.

The split threshold (default 2 ms) is kept separate from the one-sample
unit merge epsilon.
"""

import logging
from typing import Iterable, List

from ..timeline import Clip, Project, TimeWindow
from .units import Unit, build_units

logger = logging.getLogger(__name__)

DEFAULT_SPLIT_THRESHOLD = 0.002  # seconds


def split_to_window(
    project: Project,
    clip: Clip,
    window: TimeWindow,
    threshold: float = DEFAULT_SPLIT_THRESHOLD,
) -> List[Clip]:
    """
    Split one clip at the window edges it straddles.

    Pieces outside the window are deselected and stay on their track.

    Args:
        project: Owning project.
        clip: Selected clip.
        window: Active time window.
        threshold: Minimum overhang (seconds) that triggers a split.

    Returns:
        The in-window piece as a one-element list, or [] when the clip lies
        entirely outside the window.
    """
    eps = project.epsilon()
    if clip.end <= window.start + eps or clip.position >= window.end - eps:
        project.deselect([clip])
        logger.debug(f"PRESPLIT outside window, deselected {clip!r}")
        return []

    inside = clip
    if inside.position < window.start - threshold and inside.end > window.start:
        right = project.split_clip(inside, window.start)
        if right is not None:
            project.deselect([inside])
            logger.debug(f"PRESPLIT head at {window.start:.3f}: kept {right!r}")
            inside = right

    if inside.end > window.end + threshold and inside.position < window.end:
        tail = project.split_clip(inside, window.end)
        if tail is not None:
            project.deselect([tail])
            logger.debug(f"PRESPLIT tail at {window.end:.3f}: dropped {tail!r}")

    inside.selected = True
    return [inside]


def presplit_units(
    project: Project,
    units: Iterable[Unit],
    window: TimeWindow,
    threshold: float = DEFAULT_SPLIT_THRESHOLD,
) -> List[Unit]:
    """
    Pre-split every member of the given units, then re-detect units.

    Args:
        project: Owning project.
        units: Units whose span does not align with the window.
        window: Active time window.
        threshold: Split threshold in seconds.

    Returns:
        Window-aligned units built from the in-window pieces.
    """
    kept: List[Clip] = []
    for unit in units:
        for clip in unit.members:
            kept.extend(split_to_window(project, clip, window, threshold))
    rebuilt = build_units(kept, project)
    logger.debug(f"PRESPLIT kept={len(kept)} clip(s) -> {len(rebuilt)} unit(s)")
    return rebuilt
