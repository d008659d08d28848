"""
Time-Window Classification: choose a render strategy per unit.

Three outcomes:
- DIRECT: no window, or the window equals the unit span. Glue with handles.
- WINDOWED_SINGLE: the window touches exactly one unit without matching its
  span. Pre-split, glue inside the window without handles, render a new take.
- WINDOWED_GLOBAL: the window touches two or more units. All of them are
  glued together inside the window as one batch, then rendered per clip.

Exact equality wins: once any unit equals the window, no global batch is
formed and every other touched unit is rendered WINDOWED_SINGLE.
A unit that only touches a window edge has nothing inside it and is skipped.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ..timeline import TimeWindow
from .units import Unit

logger = logging.getLogger(__name__)


class RenderPath(str, Enum):
    DIRECT = "direct"
    WINDOWED_SINGLE = "windowed_single"
    WINDOWED_GLOBAL = "windowed_global"


@dataclass
class WindowPlan:
    """Classification result for one run."""

    window: Optional[TimeWindow]
    steps: List[Tuple[Unit, RenderPath]] = field(default_factory=list)
    batch: List[Unit] = field(default_factory=list)
    skipped: List[Unit] = field(default_factory=list)

    @property
    def direct(self) -> List[Unit]:
        return [u for u, path in self.steps if path is RenderPath.DIRECT]

    @property
    def windowed(self) -> List[Unit]:
        return [u for u, path in self.steps if path is RenderPath.WINDOWED_SINGLE]


def classify(units: List[Unit], window: Optional[TimeWindow], eps: float) -> WindowPlan:
    """
    Classify units against an optional time window.

    Args:
        units: Units from the unit detector.
        window: Active time window, or None.
        eps: Equality/overlap tolerance (one sample period).

    Returns:
        WindowPlan assigning each unit to a path, or to `skipped` when the
        window does not touch it or shares no more than eps of time with it.
    """
    plan = WindowPlan(window=window)

    if window is None:
        plan.steps = [(u, RenderPath.DIRECT) for u in units]
        logger.debug(f"PATH no window -> DIRECT x{len(units)}")
        return plan

    aligned = [u for u in units if u.equals_window(window, eps)]
    touched = [u for u in units if u.intersects(window, eps) and not u.equals_window(window, eps)]
    hit = [u for u in touched if u.overlap(window) > eps]
    for unit in touched:
        if not any(unit is h for h in hit):
            logger.debug(f"PATH {unit!r} only touches the window edge; skipped")

    if not aligned and len(hit) >= 2:
        plan.batch = hit
        windowed_path = None
    else:
        windowed_path = RenderPath.WINDOWED_SINGLE

    for unit in units:
        if any(unit is a for a in aligned):
            plan.steps.append((unit, RenderPath.DIRECT))
        elif any(unit is h for h in hit):
            if windowed_path is not None:
                plan.steps.append((unit, windowed_path))
        else:
            plan.skipped.append(unit)

    logger.debug(
        f"PATH window=[{window.start:.3f}..{window.end:.3f}] direct={len(plan.direct)} "
        f"windowed={len(plan.windowed)} global={len(plan.batch)} skipped={len(plan.skipped)}"
    )
    return plan
