"""
Unit tests for the render invoker, engine loading and the offline engine.
"""

import pytest
from unittest.mock import Mock

from audiosweet.config import ChannelPolicy
from audiosweet.errors import (
    EngineCallError,
    EngineLoadError,
    MissingOutputSelectionError,
    NoSelectionError,
)
from audiosweet.render.channels import ChannelPlan, RenderChannelMode
from audiosweet.render.engine import (
    HANDSHAKE_NAMESPACE,
    KEY_CHANNEL_POLICY,
    RenderInvoker,
    RenderOp,
    RenderRequest,
    TransientChannel,
    load_engine,
)
from audiosweet.render.offline import OfflineRenderEngine
from audiosweet.timeline import Effect, Project, TimeWindow


@pytest.fixture
def project():
    return Project(sample_rate=48000.0)


@pytest.fixture
def multi_plan():
    """Stereo SOURCE_PLAYBACK plan."""
    return ChannelPlan(
        mode=RenderChannelMode.MULTI,
        channels=2,
        policy=ChannelPolicy.SOURCE_PLAYBACK,
        source_track_channels=4,
    )


class TestTransientChannel:
    """Test the channel-policy handshake."""

    def test_write_read_clear(self, project, multi_plan):
        """Values written are read back until cleared."""
        channel = TransientChannel(project)

        channel.write(multi_plan)
        assert channel.read() == ("source_playback", 4)

        channel.clear()
        assert channel.read() is None
        assert project.ext_state == {}

    def test_mono_plan_announces_none(self, project):
        """A plan without policy is announced as 'none'."""
        plan = ChannelPlan(RenderChannelMode.MONO, 1, None, 2)
        channel = TransientChannel(project)

        channel.write(plan)

        assert project.get_ext_state(HANDSHAKE_NAMESPACE, KEY_CHANNEL_POLICY) == "none"

    def test_opened_clears_on_exception(self, project, multi_plan):
        """The handshake is cleared even when the call raises."""
        channel = TransientChannel(project)

        with pytest.raises(RuntimeError):
            with channel.opened(multi_plan):
                raise RuntimeError("engine crashed")

        assert channel.read() is None


class TestLoadEngine:
    """Test engine loading from a reference string."""

    def test_load_offline_engine(self, project):
        """The default reference loads the offline engine."""
        engine = load_engine("audiosweet.render.offline:OfflineRenderEngine", project)

        assert isinstance(engine, OfflineRenderEngine)
        assert engine.project is project

    @pytest.mark.parametrize("reference", [
        "no_colon_here",
        "audiosweet.render.does_not_exist:Engine",
        "audiosweet.render.offline:MissingEngine",
        "builtins:len",
        "builtins:str",
    ])
    def test_bad_reference(self, project, reference):
        """Unusable references raise EngineLoadError."""
        with pytest.raises(EngineLoadError):
            load_engine(reference, project)


class TestRenderInvoker:
    """Test the invoker contract."""

    def test_engine_exception_wrapped(self, project, multi_plan):
        """Exceptions from the engine become EngineCallError."""
        engine = Mock()
        engine.render.side_effect = RuntimeError("boom")
        invoker = RenderInvoker(project, engine)

        with pytest.raises(EngineCallError):
            invoker.render(RenderRequest(op=RenderOp.GLUE_WITH_HANDLES), multi_plan)
        assert project.ext_state == {}

    def test_pipeline_error_from_engine_wrapped(self, project, multi_plan):
        """A pipeline error raised inside the engine is still a failed call."""
        engine = Mock()
        engine.render.side_effect = NoSelectionError("engine lost the selection")

        with pytest.raises(EngineCallError) as exc_info:
            RenderInvoker(project, engine).render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE), multi_plan)
        assert isinstance(exc_info.value.__cause__, NoSelectionError)

    def test_engine_call_error_passes_through(self, project, multi_plan):
        engine = Mock()
        original = MissingOutputSelectionError("nothing left selected")
        engine.render.side_effect = original

        with pytest.raises(MissingOutputSelectionError) as exc_info:
            RenderInvoker(project, engine).render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE), multi_plan)
        assert exc_info.value is original

    def test_engine_false_is_failure(self, project, multi_plan):
        """An engine returning False is a failed call."""
        engine = Mock()
        engine.render.return_value = False

        with pytest.raises(EngineCallError):
            RenderInvoker(project, engine).render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE), multi_plan)

    def test_missing_output_selection(self, project, multi_plan):
        """Success with nothing selected is a missing-output failure."""
        engine = Mock()
        engine.render.return_value = True

        with pytest.raises(MissingOutputSelectionError):
            RenderInvoker(project, engine).render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE), multi_plan)

    def test_handshake_visible_during_call(self, project, multi_plan):
        """The engine sees the handshake; it is gone afterwards."""
        track = project.add_track("T")
        clip = project.add_clip(track, 0.0, 1.0, selected=True)
        seen = []

        def fake_render(request):
            seen.append(TransientChannel(project).read())
            return True

        engine = Mock()
        engine.render.side_effect = fake_render

        output = RenderInvoker(project, engine).render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE), multi_plan)

        assert output is clip
        assert seen == [("source_playback", 4)]
        assert TransientChannel(project).read() is None


class TestOfflineEngine:
    """Test the offline reference engine."""

    def test_glue_with_handles(self, project):
        """Touching clips are glued into one selected clip with effects baked."""
        fx = project.add_track("FX", effects=[Effect("EQ"), Effect("Comp", enabled=False)])
        a = project.add_clip(fx, 0.0, 2.0, "A.wav", selected=True)
        b = project.add_clip(fx, 2.0, 1.0, "B.wav", selected=True)
        engine = OfflineRenderEngine(project)

        assert engine.render(RenderRequest(op=RenderOp.GLUE_WITH_HANDLES)) is True

        (output,) = project.selected_clips()
        assert not project.is_valid(a)
        assert not project.is_valid(b)
        assert (output.position, output.end) == (0.0, 3.0)
        assert output.name == "A-glued-01"
        assert output.active_take.baked_effects == ["EQ"]

    def test_glue_in_window(self, project):
        """Window glue keeps only the in-window slice selected."""
        track = project.add_track("T")
        project.add_clip(track, 0.0, 10.0, "A", selected=True)
        engine = OfflineRenderEngine(project)

        ok = engine.render(RenderRequest(
            op=RenderOp.GLUE_IN_WINDOW, take_fx=False, track_fx=False, window=TimeWindow(2.0, 5.0),
        ))

        assert ok is True
        (glued,) = project.selected_clips()
        assert (glued.position, glued.end) == (2.0, 5.0)
        assert len(project.clips) == 3

    def test_render_new_take(self, project):
        """Rendering adds an active take to the selected clip."""
        track = project.add_track("T", channel_count=4)
        clip = project.add_clip(track, 0.0, 1.0, "A", selected=True)
        engine = OfflineRenderEngine(project)

        engine.render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE))

        assert len(clip.takes) == 2
        assert clip.active_take.name == "A render 001"
        assert clip.active_take.source_channels == 4

    def test_nothing_selected_fails(self, project):
        """The engine reports failure without a selection."""
        engine = OfflineRenderEngine(project)

        assert engine.render(RenderRequest(op=RenderOp.RENDER_NEW_TAKE)) is False
