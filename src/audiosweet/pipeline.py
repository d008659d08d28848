"""
AudioSweet Orchestrator.

Sequences one run over the current clip selection:
1. Resolve the processing track / focused effect, check the selection
2. Snapshot selection, processing-track channels and effect enables
3. Build units, classify against the time window, pre-split if needed
4. Per unit: resolve channels, isolate effects, call the engine, rename,
   move the output back, restore
5. Restore everything and close the undo block

Engine failures are contained per unit; everything else aborts the run after
the snapshots have been restored.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .config import Action, RunSettings
from .errors import EngineCallError, NoFocusTargetError, NoSelectionError
from .plan.presplit import presplit_units
from .plan.selection import SelectionSnapshot
from .plan.units import Unit, build_units_from_selection
from .plan.window import RenderPath, classify
from .render.channels import ChannelPlan, resolve_channel_plan
from .render.engine import RenderEngine, RenderInvoker, RenderOp, RenderRequest, load_engine
from .render.fx_copy import copy_effects_to_clips, copy_to_inactive_takes
from .render.isolation import (
    ChannelSnapshot,
    EffectEnableSnapshot,
    isolated_effects,
    preserved_channel_count,
    preserved_track_channels,
)
from .render.metadata import embed_for_clip
from .render.naming import naming_token, next_name
from .timeline import Clip, Project, Track

logger = logging.getLogger(__name__)


@dataclass
class FocusTarget:
    """Processing track and (optionally) the focused effect on it."""

    track: Track
    effect_index: Optional[int] = None


@dataclass
class UnitResult:
    """Outcome for one unit (or one glued clip of a global batch)."""

    track_id: int
    start: float
    end: float
    path: RenderPath
    output: Optional[Clip] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunReport:
    """What one run did."""

    results: List[UnitResult] = field(default_factory=list)
    skipped: List[Unit] = field(default_factory=list)
    copied: int = 0

    @property
    def outputs(self) -> List[Clip]:
        return [r.output for r in self.results if r.output is not None]

    @property
    def failures(self) -> List[UnitResult]:
        return [r for r in self.results if r.error is not None]

    @property
    def ok(self) -> bool:
        return not self.failures


class AudioSweetPipeline:
    """Top-level orchestrator for one project."""

    def __init__(self, project: Project, settings: RunSettings, engine: Optional[RenderEngine] = None):
        """
        Args:
            project: Project whose selection is processed.
            settings: Frozen run settings.
            engine: Render engine; loaded from settings.engine when None.
        """
        self.project = project
        self.settings = settings
        self._engine = engine
        self._target: Optional[FocusTarget] = None
        self._token = ""
        self._invoker: Optional[RenderInvoker] = None

    def resolve_focus(self, focus: Optional[FocusTarget]) -> FocusTarget:
        """
        Resolve the processing track and focused effect.

        Chain mode without an explicit target uses the first selected track.

        Raises:
            NoFocusTargetError: No usable track/effect for the configured mode.
        """
        if focus is not None:
            idx = focus.effect_index
            valid_idx = idx is not None and 0 <= idx < len(focus.track.effects)
            if self.settings.focused and not valid_idx:
                raise NoFocusTargetError(
                    f"Focused effect index {idx} not found on {focus.track!r}"
                )
            if not valid_idx:
                focus = FocusTarget(focus.track, 0 if focus.track.effects else None)
            return focus

        if self.settings.focused:
            raise NoFocusTargetError("Focused-effect mode requires a focused effect")

        tracks = self.project.selected_tracks()
        if not tracks:
            raise NoFocusTargetError("Chain mode requires a focus target or a selected track")
        track = tracks[0]
        if not track.effects:
            logger.warning(f"{track!r} has no effects; rendering its empty chain")
        return FocusTarget(track, 0 if track.effects else None)

    def run(self, focus: Optional[FocusTarget] = None) -> RunReport:
        """
        Run the pipeline over the current selection.

        Args:
            focus: Processing track and focused effect.

        Returns:
            RunReport with one result per processed unit.

        Raises:
            NoFocusTargetError: Before any mutation.
            NoSelectionError: Before any mutation.
            EngineLoadError: After all snapshots are restored.
        """
        target = self.resolve_focus(focus)
        selected = self.project.selected_clips()
        if not selected:
            raise NoSelectionError("No clips selected")

        self._target = target
        self._token = naming_token(target.track, target.effect_index, self.settings)
        report = RunReport()

        logger.info(
            f"AudioSweet {self.settings.mode.value}/{self.settings.action.value} on "
            f"{target.track!r} fx={target.effect_index} clips={len(selected)}"
        )

        own_undo = not self.settings.external_undo
        if own_undo:
            self.project.begin_undo_block()

        selection = SelectionSnapshot.capture(self.project)
        effects = EffectEnableSnapshot.capture(target.track)
        channels = ChannelSnapshot.capture(target.track)
        try:
            if self.settings.action is Action.COPY:
                report.copied = copy_effects_to_clips(
                    selected,
                    target.track,
                    self._isolation_index(),
                    scope=self.settings.copy_scope,
                    position=self.settings.copy_position,
                )
            else:
                self._apply(report)
        finally:
            effects.restore()
            channels.restore()
            selection.restore(self.project)
            self.project.select(report.outputs)
            if own_undo:
                self.project.end_undo_block(self._undo_label())
            self._invoker = None

        if report.failures:
            logger.error(
                f"AudioSweet finished with {len(report.failures)} failure(s), "
                f"{len(report.outputs)} output(s)"
            )
        else:
            logger.info(f"✅ AudioSweet done: {len(report.outputs)} output(s), copied={report.copied}")
        return report

    # ------------------------------------------------------------------ apply

    def _apply(self, report: RunReport) -> None:
        project = self.project
        eps = project.epsilon()
        window = project.time_window

        units = build_units_from_selection(project)
        plan = classify(units, window, eps)
        report.skipped.extend(plan.skipped)
        for unit in plan.skipped:
            logger.info(f"Skipping {unit!r}: outside the time window")

        if not plan.steps and not plan.batch:
            logger.warning("No unit intersects the time window; nothing to render")
            return

        engine = self._engine
        if engine is None:
            engine = load_engine(self.settings.engine, project)
        self._invoker = RenderInvoker(project, engine)

        steps = []
        for unit, path in plan.steps:
            if path is RenderPath.WINDOWED_SINGLE:
                steps.extend(
                    (piece, path)
                    for piece in presplit_units(project, [unit], window, self.settings.split_threshold)
                )
            else:
                steps.append((unit, path))
        batch: List[Unit] = []
        if plan.batch:
            batch = presplit_units(project, plan.batch, window, self.settings.split_threshold)

        for idx, (unit, path) in enumerate(steps, 1):
            logger.debug(f"Unit {idx}/{len(steps)} {unit!r} path={path.value}")
            result = UnitResult(unit.track.track_id, unit.start, unit.end, path)
            try:
                if path is RenderPath.DIRECT:
                    result.output = self._render_direct(unit)
                else:
                    result.output = self._render_windowed(unit)
            except EngineCallError as e:
                logger.error(f"Unit {unit!r} failed: {e}")
                result.error = str(e)
            report.results.append(result)

        if batch:
            report.results.extend(self._render_global(batch))

    def _render_direct(self, unit: Unit) -> Clip:
        home = unit.track
        members = list(unit.members)
        with preserved_channel_count(home) as home_snapshot:
            plan = self._channel_plan(members, home_snapshot.channel_count)
            request = RenderRequest(op=RenderOp.GLUE_WITH_HANDLES, channel_mode=plan.mode)
            with self._on_processing_track(members, home, plan):
                output = self._invoker.render(request, plan)
                self._finish(output, home)
        self._after_render(output)
        return output

    def _render_windowed(self, unit: Unit) -> Clip:
        home = unit.track
        with preserved_track_channels([home]) as snapshots:
            self.project.select_only(unit.members)
            glued = self._invoker.glue_in_window(self.project.time_window)
            if len(glued) > 1:
                logger.warning(f"Window glue of {unit!r} produced {len(glued)} clips; using the first")
            return self._apply_to_clip(glued[0], home, snapshots[0].channel_count)

    def _render_global(self, batch: List[Unit]) -> List[UnitResult]:
        results: List[UnitResult] = []
        with preserved_track_channels(u.track for u in batch) as snapshots:
            source_counts = {s.track.track_id: s.channel_count for s in snapshots}
            self.project.select_only(clip for unit in batch for clip in unit.members)
            try:
                glued = self._invoker.glue_in_window(self.project.time_window)
            except EngineCallError as e:
                logger.error(f"Window glue of {len(batch)} unit(s) failed: {e}")
                return [
                    UnitResult(u.track.track_id, u.start, u.end, RenderPath.WINDOWED_GLOBAL, error=str(e))
                    for u in batch
                ]

            logger.debug(f"Global window glue -> {len(glued)} clip(s)")
            for clip in glued:
                home = self.project.track_of(clip)
                result = UnitResult(home.track_id, clip.position, clip.end, RenderPath.WINDOWED_GLOBAL)
                try:
                    result.output = self._apply_to_clip(clip, home, source_counts.get(home.track_id, home.channel_count))
                except EngineCallError as e:
                    logger.error(f"Render of {clip!r} failed: {e}")
                    result.error = str(e)
                results.append(result)
        return results

    def _apply_to_clip(self, clip: Clip, home: Track, source_channels: int) -> Clip:
        plan = self._channel_plan([clip], source_channels)
        request = RenderRequest(op=RenderOp.RENDER_NEW_TAKE, channel_mode=plan.mode)
        with self._on_processing_track([clip], home, plan):
            output = self._invoker.render(request, plan)
            self._finish(output, home)
        self._after_render(output)
        return output

    # ---------------------------------------------------------------- helpers

    def _isolation_index(self) -> Optional[int]:
        return self._target.effect_index if self.settings.focused else None

    def _channel_plan(self, clips: List[Clip], source_channels: int) -> ChannelPlan:
        return resolve_channel_plan(
            clips,
            self.settings.apply_mode,
            self.settings.multi_policy,
            source_channels,
            self._target.track.channel_count,
        )

    @contextmanager
    def _on_processing_track(self, clips: List[Clip], home: Track, plan: ChannelPlan) -> Iterator[None]:
        """
        Move clips onto the processing track for one render call.

        Channel count and effect enables of the processing track are restored
        on exit; clips that were not consumed by the engine go back home.
        """
        track = self._target.track
        with preserved_channel_count(track):
            try:
                for clip in clips:
                    self.project.move_clip(clip, track)
                with isolated_effects(track, self._isolation_index()), \
                        preserved_channel_count(track, plan.target_channels):
                    self.project.select_only(clips)
                    yield
            finally:
                for clip in clips:
                    if self.project.is_valid(clip) and clip.track_id != home.track_id:
                        self.project.move_clip(clip, home)

    def _finish(self, output: Clip, home: Track) -> None:
        take = output.active_take
        if take is not None:
            take.name = next_name(take.name, self._token, self.settings.max_fx_tokens)
        self.project.move_clip(output, home)
        logger.debug(f"Output {output!r} returned to {home!r}")

    def _after_render(self, output: Clip) -> None:
        """Time reference and apply-after-copy for a finished output, on every render path."""
        if self.settings.embed_time_reference:
            embed_for_clip(output, self.project.sample_rate)
        if self.settings.action is Action.APPLY_AFTER_COPY:
            copy_to_inactive_takes(output, self._target.track, self._isolation_index())

    def _undo_label(self) -> str:
        if self.settings.action is Action.COPY:
            return f"AudioSweet: copy {self._token or 'FX'}"
        return f"AudioSweet: apply {self._token or 'FX'}"
