"""
Render Invoker: synchronous call contract to an external render engine.

The engine works on the project's current clip selection:
- GLUE_WITH_HANDLES: glue selected clips with head/tail handles, effects baked
- GLUE_IN_WINDOW: consolidate selected clips inside the window, no handles
- RENDER_NEW_TAKE: render the selected clip into a new active take

Before each call the resolved channel policy is written to a transient
key/value channel, and cleared right after. A single attempt either yields
output or fails; there are no retries and no timeout.
"""

import importlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from ..errors import EngineCallError, EngineLoadError, MissingOutputSelectionError
from ..timeline import Clip, Project, TimeWindow
from .channels import ChannelPlan, RenderChannelMode

logger = logging.getLogger(__name__)

HANDSHAKE_NAMESPACE = "audiosweet"
KEY_CHANNEL_POLICY = "CHANNEL_POLICY"
KEY_SOURCE_TRACK_NCHAN = "SOURCE_TRACK_NCHAN"
POLICY_NONE = "none"


class RenderOp(str, Enum):
    GLUE_WITH_HANDLES = "glue"
    GLUE_IN_WINDOW = "glue_in_window"
    RENDER_NEW_TAKE = "render"


@dataclass(frozen=True)
class RenderRequest:
    """One engine call."""

    op: RenderOp
    channel_mode: RenderChannelMode = RenderChannelMode.MULTI
    take_fx: bool = True
    track_fx: bool = True
    window: Optional[TimeWindow] = None


class RenderEngine:
    """
    Base class for render engines.

    Engines are constructed with the project they operate on and must leave
    their output selected.
    """

    def __init__(self, project: Project):
        self.project = project

    def render(self, request: RenderRequest) -> bool:
        """
        Execute one render request against the current selection.

        Returns:
            True on success, False on failure (may also raise).
        """
        raise NotImplementedError


class TransientChannel:
    """Project-scoped key/value handshake read once by the engine."""

    def __init__(self, project: Project):
        self.project = project

    def write(self, plan: Optional[ChannelPlan]) -> None:
        if plan is None or plan.policy is None:
            policy = POLICY_NONE
        else:
            policy = plan.policy.value
        source_nchan = plan.source_track_channels if plan is not None else 0
        self.project.set_ext_state(HANDSHAKE_NAMESPACE, KEY_CHANNEL_POLICY, policy)
        self.project.set_ext_state(HANDSHAKE_NAMESPACE, KEY_SOURCE_TRACK_NCHAN, source_nchan)

    def read(self) -> Optional[Tuple[str, int]]:
        policy = self.project.get_ext_state(HANDSHAKE_NAMESPACE, KEY_CHANNEL_POLICY)
        if not policy:
            return None
        raw = self.project.get_ext_state(HANDSHAKE_NAMESPACE, KEY_SOURCE_TRACK_NCHAN, "0")
        try:
            nchan = int(raw)
        except ValueError:
            nchan = 0
        return policy, nchan

    def clear(self) -> None:
        self.project.delete_ext_state(HANDSHAKE_NAMESPACE, KEY_CHANNEL_POLICY)
        self.project.delete_ext_state(HANDSHAKE_NAMESPACE, KEY_SOURCE_TRACK_NCHAN)

    @contextmanager
    def opened(self, plan: Optional[ChannelPlan]) -> Iterator["TransientChannel"]:
        self.write(plan)
        try:
            yield self
        finally:
            self.clear()


def load_engine(reference: str, project: Project) -> RenderEngine:
    """
    Import and construct a render engine from a "module:attribute" reference.

    Args:
        reference: e.g. "audiosweet.render.offline:OfflineRenderEngine".
        project: Project handed to the engine factory.

    Returns:
        Engine instance.

    Raises:
        EngineLoadError: If the module, attribute or instance is unusable.
    """
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise EngineLoadError(f"Invalid engine reference {reference!r} (expected 'module:attribute')")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise EngineLoadError(f"Render engine not found: {reference}: {e}") from e

    try:
        engine = factory(project)
    except Exception as e:
        raise EngineLoadError(f"Render engine failed to initialize: {reference}: {e}") from e

    if not callable(getattr(engine, "render", None)):
        raise EngineLoadError(f"Render engine {reference} has no render()")

    logger.info(f"Render engine loaded: {reference}")
    return engine


class RenderInvoker:
    """Wraps an engine with the handshake and output-selection checks."""

    def __init__(self, project: Project, engine: RenderEngine):
        self.project = project
        self.engine = engine
        self.channel = TransientChannel(project)

    def _call(self, request: RenderRequest, plan: Optional[ChannelPlan]) -> None:
        logger.debug(
            f"Engine call op={request.op.value} channel_mode={request.channel_mode.value} "
            f"take_fx={request.take_fx} track_fx={request.track_fx} "
            f"selected={len(self.project.selected_clips())}"
        )
        with self.channel.opened(plan):
            try:
                ok = self.engine.render(request)
            except EngineCallError:
                raise
            except Exception as e:
                raise EngineCallError(f"Render engine error during {request.op.value}: {e}") from e
        if not ok:
            raise EngineCallError(f"Render engine reported failure during {request.op.value}")

    def render(self, request: RenderRequest, plan: Optional[ChannelPlan]) -> Clip:
        """
        Run a glue-with-handles or render-new-take request.

        Returns:
            The single output clip left selected by the engine.

        Raises:
            EngineCallError: Engine raised or returned False.
            MissingOutputSelectionError: Nothing selected after success.
        """
        self._call(request, plan)
        selected = self.project.selected_clips()
        if not selected:
            raise MissingOutputSelectionError(
                f"Render engine finished {request.op.value} but no clip is selected"
            )
        if len(selected) > 1:
            logger.warning(f"Engine left {len(selected)} clips selected; using the first")
        return selected[0]

    def glue_in_window(self, window: TimeWindow) -> List[Clip]:
        """
        Consolidate the selected clips inside the window (no handles, no effects).

        Returns:
            Glued clips left selected by the engine, in track/position order.
        """
        request = RenderRequest(
            op=RenderOp.GLUE_IN_WINDOW,
            take_fx=False,
            track_fx=False,
            window=window,
        )
        self._call(request, None)
        glued = self.project.selected_clips()
        if not glued:
            raise MissingOutputSelectionError("Window glue finished but no clip is selected")
        return glued
