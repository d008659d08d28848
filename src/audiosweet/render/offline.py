"""
Offline Render Engine.

In-process engine that performs glue and render operations directly on the
timeline model. It records which effects were audible at render time in
`Take.baked_effects` instead of processing samples, which makes it the
reference engine for sessions driven from the command line and for tests.
"""

import logging
import re
from typing import List, Optional, Tuple

from ..plan.units import build_units
from ..timeline import Clip, Project, Take, TimeWindow, Track
from .channels import RenderChannelMode
from .engine import RenderEngine, RenderOp, RenderRequest, TransientChannel

logger = logging.getLogger(__name__)

_EXT_RE = re.compile(r"\.[A-Za-z0-9]+$")


def _stem(name: str) -> str:
    return _EXT_RE.sub("", name or "")


class OfflineRenderEngine(RenderEngine):
    """Timeline-model render engine."""

    def __init__(self, project: Project, handle_seconds: float = 5.0):
        """
        Args:
            project: Project to operate on.
            handle_seconds: Head/tail context added by GLUE_WITH_HANDLES.
        """
        super().__init__(project)
        self.handle_seconds = handle_seconds
        self.requests: List[RenderRequest] = []
        self.handshakes: List[Optional[Tuple[str, int]]] = []
        self._counter = 0

    def render(self, request: RenderRequest) -> bool:
        self.requests.append(request)
        handshake = TransientChannel(self.project).read()
        self.handshakes.append(handshake)
        logger.debug(f"Offline engine: op={request.op.value} handshake={handshake}")

        selected = self.project.selected_clips()
        if not selected:
            logger.error("Offline engine: nothing selected")
            return False

        if request.op is RenderOp.GLUE_IN_WINDOW:
            return self._glue_in_window(selected, request)
        if request.op is RenderOp.GLUE_WITH_HANDLES:
            return self._glue_with_handles(selected, request)
        return self._render_new_take(selected[0], request)

    def _next_index(self) -> int:
        self._counter += 1
        return self._counter

    def _output_channels(self, track: Track, request: RenderRequest) -> int:
        if request.channel_mode is RenderChannelMode.MONO:
            return 1
        return track.channel_count

    def _baked(self, track: Track, takes: List[Take], request: RenderRequest) -> List[str]:
        baked: List[str] = []
        if request.take_fx:
            for take in takes:
                baked.extend(take.baked_effects)
                baked.extend(fx.name for fx in take.effects if fx.enabled)
        if request.track_fx:
            baked.extend(fx.name for fx in track.effects if fx.enabled)
        return baked

    def _glue_with_handles(self, selected: List[Clip], request: RenderRequest) -> bool:
        track_ids = {clip.track_id for clip in selected}
        if len(track_ids) != 1:
            logger.error(f"Offline engine: glue selection spans {len(track_ids)} tracks")
            return False

        track = self.project.track_of(selected[0])
        start = min(clip.position for clip in selected)
        end = max(clip.end for clip in selected)
        first = selected[0].active_take
        takes = [clip.active_take for clip in selected if clip.active_take is not None]

        output_take = Take(
            name=f"{_stem(first.name if first else '')}-glued-{self._next_index():02d}",
            source_channels=self._output_channels(track, request),
            start_offset=min(self.handle_seconds, start),
            baked_effects=self._baked(track, takes, request),
        )
        for clip in selected:
            self.project.remove_clip(clip)

        output = self.project.add_clip(track, start, end - start, takes=[output_take])
        self.project.select_only([output])
        logger.debug(f"Offline engine: glued {len(selected)} clip(s) -> {output!r}")
        return True

    def _glue_in_window(self, selected: List[Clip], request: RenderRequest) -> bool:
        window: Optional[TimeWindow] = request.window
        if window is None:
            logger.error("Offline engine: window glue without a window")
            return False

        eps = self.project.epsilon()
        outputs: List[Clip] = []
        for unit in build_units(selected, self.project):
            start = max(unit.start, window.start)
            end = min(unit.end, window.end)
            if end - start <= eps:
                continue

            inside: List[Clip] = []
            for clip in unit.members:
                piece = clip
                if piece.position < start - eps:
                    right = self.project.split_clip(piece, start)
                    if right is None:
                        continue
                    piece.selected = False
                    piece = right
                if piece.end > end + eps:
                    tail = self.project.split_clip(piece, end)
                    if tail is not None:
                        tail.selected = False
                if piece.position < end - eps and piece.end > start + eps:
                    inside.append(piece)

            if not inside:
                continue

            first = inside[0].active_take
            takes = [clip.active_take for clip in inside if clip.active_take is not None]
            glued_take = Take(
                name=f"{_stem(first.name if first else '')}-glued-{self._next_index():02d}",
                source_channels=max(clip.playback_channels() for clip in inside),
                baked_effects=self._baked(unit.track, takes, request),
            )
            for clip in inside:
                self.project.remove_clip(clip)
            outputs.append(self.project.add_clip(unit.track, start, end - start, takes=[glued_take]))

        self.project.select_only(outputs)
        logger.debug(f"Offline engine: window glue -> {len(outputs)} clip(s)")
        return bool(outputs)

    def _render_new_take(self, clip: Clip, request: RenderRequest) -> bool:
        track = self.project.track_of(clip)
        old = clip.active_take
        new_take = Take(
            name=f"{_stem(old.name if old else '')} render {self._next_index():03d}",
            source_channels=self._output_channels(track, request),
            start_offset=old.start_offset if old else 0.0,
            baked_effects=self._baked(track, [old] if old else [], request),
        )
        clip.takes.append(new_take)
        clip.active_take_index = len(clip.takes) - 1
        self.project.select_only([clip])
        logger.debug(f"Offline engine: rendered new take on {clip!r}")
        return True
