"""
Effect copy: put processing-track effects onto clip takes without rendering.
"""

import copy
import logging
from typing import Iterable, List, Optional

from ..config import CopyPosition, CopyScope
from ..timeline import Clip, Effect, Take, Track

logger = logging.getLogger(__name__)


def source_effects(track: Track, focus_index: Optional[int]) -> List[Effect]:
    """Focused effect only, or the whole chain when focus_index is None."""
    if focus_index is None:
        return list(track.effects)
    if 0 <= focus_index < len(track.effects):
        return [track.effects[focus_index]]
    return []


def _insert(take: Take, effects: List[Effect], position: CopyPosition) -> int:
    clones = [copy.deepcopy(fx) for fx in effects]
    if position is CopyPosition.HEAD:
        take.effects[0:0] = clones
    else:
        take.effects.extend(clones)
    return len(clones)


def copy_effects_to_clips(
    clips: Iterable[Clip],
    track: Track,
    focus_index: Optional[int],
    scope: CopyScope = CopyScope.ACTIVE,
    position: CopyPosition = CopyPosition.TAIL,
) -> int:
    """
    Copy effects from a track onto clip takes.

    Args:
        clips: Target clips.
        track: Track holding the effect(s).
        focus_index: Effect to copy; None copies the whole chain.
        scope: Active take only, or every take.
        position: Append (tail) or insert at the front (head).

    Returns:
        Number of effect copies made.
    """
    effects = source_effects(track, focus_index)
    if not effects:
        logger.warning(f"No effects to copy from {track!r}")
        return 0

    copied = 0
    for clip in clips:
        if scope is CopyScope.ALL_TAKES:
            takes = list(clip.takes)
        else:
            takes = [clip.active_take] if clip.active_take is not None else []
        for take in takes:
            copied += _insert(take, effects, position)

    logger.info(f"✅ Copied {copied} effect instance(s) from {track!r}")
    return copied


def copy_to_inactive_takes(clip: Clip, track: Track, focus_index: Optional[int]) -> int:
    """Replace the effects of every non-active take with the track effect(s)."""
    effects = source_effects(track, focus_index)
    copied = 0
    for idx, take in enumerate(clip.takes):
        if idx == clip.active_take_index:
            continue
        take.effects.clear()
        copied += _insert(take, effects, CopyPosition.TAIL)
    logger.debug(f"Copied {copied} effect instance(s) to inactive takes of {clip!r}")
    return copied
