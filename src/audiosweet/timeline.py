"""
Timeline host model for AudioSweet.

An arena of tracks and clips addressed by integer handles. Tracks are only
read and temporarily mutated by the pipeline; clips are created and destroyed
by split and glue operations.

- Clips belong to exactly one track and carry one or more takes
- Selection, time window and the key/value state namespace live on the Project
- Moving a clip onto a track with fewer channels auto-adjusts that track
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Tuple

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-6


class ChannelMode(str, Enum):
    """Active-take channel mode."""

    NORMAL = "normal"
    REVERSE_STEREO = "reverse_stereo"
    MONO_DOWNMIX = "mono_downmix"
    LEFT_ONLY = "left_only"
    RIGHT_ONLY = "right_only"
    MULTICHANNEL = "multichannel"


MONO_CHANNEL_MODES = frozenset(
    {ChannelMode.MONO_DOWNMIX, ChannelMode.LEFT_ONLY, ChannelMode.RIGHT_ONLY}
)


@dataclass(eq=False)
class Effect:
    """One effect slot on a track or take."""

    name: str
    enabled: bool = True


@dataclass(eq=False)
class Take:
    """One audio source attached to a clip."""

    name: str
    source_channels: int = 2
    channel_mode: ChannelMode = ChannelMode.NORMAL
    source_path: Optional[str] = None
    start_offset: float = 0.0
    effects: List[Effect] = field(default_factory=list)
    baked_effects: List[str] = field(default_factory=list)

    def playback_channels(self) -> int:
        """Channels actually heard: 1 for mono take modes, else the source count."""
        if self.channel_mode in MONO_CHANNEL_MODES:
            return 1
        return self.source_channels


@dataclass(eq=False)
class Clip:
    """A clip on a track. Identity is the clip_id handle."""

    clip_id: int
    track_id: int
    position: float
    length: float
    takes: List[Take] = field(default_factory=list)
    active_take_index: int = 0
    selected: bool = False

    @property
    def end(self) -> float:
        return self.position + self.length

    @property
    def active_take(self) -> Optional[Take]:
        if 0 <= self.active_take_index < len(self.takes):
            return self.takes[self.active_take_index]
        return None

    @property
    def name(self) -> str:
        take = self.active_take
        return take.name if take else ""

    def playback_channels(self) -> int:
        take = self.active_take
        if take is None:
            return 2
        return take.playback_channels()

    def source_channels(self) -> int:
        take = self.active_take
        if take is None:
            return 2
        return take.source_channels

    def __repr__(self) -> str:
        return (
            f"Clip(id={self.clip_id}, track={self.track_id}, "
            f"{self.position:.3f}..{self.end:.3f}, name={self.name!r})"
        )


@dataclass(eq=False)
class Track:
    """A track: channel count plus an ordered effect list."""

    track_id: int
    name: str = ""
    channel_count: int = 2
    effects: List[Effect] = field(default_factory=list)
    selected: bool = False

    def effect_states(self) -> List[bool]:
        return [fx.enabled for fx in self.effects]

    def __repr__(self) -> str:
        return f"Track(id={self.track_id}, name={self.name!r}, nchan={self.channel_count})"


@dataclass(frozen=True)
class TimeWindow:
    """Active editing range."""

    start: float
    end: float

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"TimeWindow end {self.end} precedes start {self.start}")

    @property
    def length(self) -> float:
        return self.end - self.start


class Project:
    """In-memory timeline: tracks, clips, selection, time window and state namespace."""

    def __init__(self, sample_rate: Optional[float] = 48000.0, auto_adjust_channels: bool = True):
        """
        Args:
            sample_rate: Project sample rate in Hz (None or <= 0 when unknown).
            auto_adjust_channels: Widen a track when a clip with more channels lands on it.
        """
        self.sample_rate = sample_rate
        self.auto_adjust_channels = auto_adjust_channels
        self.tracks: Dict[int, Track] = {}
        self.clips: Dict[int, Clip] = {}
        self.time_window: Optional[TimeWindow] = None
        self.ext_state: Dict[Tuple[str, str], str] = {}
        self.undo_history: List[str] = []
        self._undo_open = 0
        self._next_track_id = 1
        self._next_clip_id = 1

    # ------------------------------------------------------------------ tracks

    def add_track(
        self,
        name: str = "",
        channel_count: int = 2,
        effects: Optional[Iterable[Effect]] = None,
    ) -> Track:
        track = Track(
            track_id=self._next_track_id,
            name=name,
            channel_count=channel_count,
            effects=list(effects or []),
        )
        self.tracks[track.track_id] = track
        self._next_track_id += 1
        return track

    def track(self, track_id: int) -> Track:
        return self.tracks[track_id]

    def track_of(self, clip: Clip) -> Track:
        return self.tracks[clip.track_id]

    def selected_tracks(self) -> List[Track]:
        return [t for t in self.tracks.values() if t.selected]

    # ------------------------------------------------------------------- clips

    def add_clip(
        self,
        track: Track,
        position: float,
        length: float,
        name: str = "",
        source_channels: int = 2,
        channel_mode: ChannelMode = ChannelMode.NORMAL,
        takes: Optional[List[Take]] = None,
        selected: bool = False,
    ) -> Clip:
        """
        Create a clip on a track.

        Args:
            track: Owning track.
            position: Start time in seconds.
            length: Length in seconds.
            name: Name of the single take created when `takes` is not given.
            source_channels: Source channel count of that take.
            channel_mode: Channel mode of that take.
            takes: Explicit take list (first one active).
            selected: Initial selection state.

        Returns:
            The new Clip.
        """
        if takes is None:
            takes = [Take(name=name, source_channels=source_channels, channel_mode=channel_mode)]
        clip = Clip(
            clip_id=self._next_clip_id,
            track_id=track.track_id,
            position=position,
            length=length,
            takes=takes,
            selected=selected,
        )
        self.clips[clip.clip_id] = clip
        self._next_clip_id += 1
        return clip

    def is_valid(self, clip: Optional[Clip]) -> bool:
        """True while the clip still exists in the project."""
        return clip is not None and self.clips.get(clip.clip_id) is clip

    def remove_clip(self, clip: Clip) -> None:
        self.clips.pop(clip.clip_id, None)

    def clips_on_track(self, track: Track) -> List[Clip]:
        return sorted(
            (c for c in self.clips.values() if c.track_id == track.track_id),
            key=lambda c: (c.position, c.clip_id),
        )

    def move_clip(self, clip: Clip, track: Track) -> None:
        """Move a clip to another track, widening the track if needed."""
        if not self.is_valid(clip):
            logger.warning(f"move_clip: skipped invalid clip {clip!r}")
            return
        clip.track_id = track.track_id
        if self.auto_adjust_channels:
            needed = clip.playback_channels()
            if needed > track.channel_count:
                widened = needed + (needed % 2)
                logger.debug(f"{track!r} auto-adjusted to {widened} channels")
                track.channel_count = widened

    def split_clip(self, clip: Clip, at: float) -> Optional[Clip]:
        """
        Split a clip at a time position.

        Args:
            clip: Clip to split. Keeps the left part and its handle.
            at: Split time in seconds; must lie strictly inside the clip.

        Returns:
            The new right-hand clip, or None if `at` is not inside the clip.
        """
        if not (clip.position < at < clip.end):
            return None
        offset = at - clip.position
        right_takes = []
        for take in clip.takes:
            right = copy.deepcopy(take)
            right.start_offset = take.start_offset + offset
            right_takes.append(right)
        right_clip = Clip(
            clip_id=self._next_clip_id,
            track_id=clip.track_id,
            position=at,
            length=clip.end - at,
            takes=right_takes,
            active_take_index=clip.active_take_index,
            selected=clip.selected,
        )
        self._next_clip_id += 1
        self.clips[right_clip.clip_id] = right_clip
        clip.length = offset
        return right_clip

    # --------------------------------------------------------------- selection

    def selected_clips(self) -> List[Clip]:
        """Selected clips in track order, then position order."""
        order = {track_id: idx for idx, track_id in enumerate(self.tracks)}
        return sorted(
            (c for c in self.clips.values() if c.selected),
            key=lambda c: (order.get(c.track_id, len(order)), c.position, c.clip_id),
        )

    def clear_selection(self) -> None:
        for clip in self.clips.values():
            clip.selected = False

    def select(self, clips: Iterable[Clip]) -> None:
        for clip in clips:
            if self.is_valid(clip):
                clip.selected = True

    def deselect(self, clips: Iterable[Clip]) -> None:
        for clip in clips:
            clip.selected = False

    def select_only(self, clips: Iterable[Clip]) -> None:
        self.clear_selection()
        self.select(clips)

    # ------------------------------------------------------------------ timing

    def epsilon(self) -> float:
        """One sample period, or DEFAULT_EPSILON when the rate is unknown."""
        if self.sample_rate and self.sample_rate > 0:
            return 1.0 / self.sample_rate
        return DEFAULT_EPSILON

    # ---------------------------------------------------------- key/value state

    def get_ext_state(self, namespace: str, key: str, default: str = "") -> str:
        return self.ext_state.get((namespace, key), default)

    def set_ext_state(self, namespace: str, key: str, value: Any) -> None:
        self.ext_state[(namespace, key)] = str(value)

    def delete_ext_state(self, namespace: str, key: str) -> None:
        self.ext_state.pop((namespace, key), None)

    # -------------------------------------------------------------------- undo

    def begin_undo_block(self) -> None:
        self._undo_open += 1

    def end_undo_block(self, label: str) -> None:
        if self._undo_open <= 0:
            logger.warning(f"end_undo_block without begin: {label}")
            return
        self._undo_open -= 1
        self.undo_history.append(label)

    @property
    def undo_open(self) -> bool:
        return self._undo_open > 0

    # ------------------------------------------------------------ persistence

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """
        Build a project from a session dict (as stored in session JSON files).

        Args:
            data: Dict with sample_rate, optional time_window [start, end] and tracks.

        Returns:
            Project instance.
        """
        project = cls(sample_rate=data.get("sample_rate", 48000.0))
        window = data.get("time_window")
        if window:
            project.time_window = TimeWindow(float(window[0]), float(window[1]))

        for t in data.get("tracks", []):
            track = project.add_track(
                name=t.get("name", ""),
                channel_count=int(t.get("channels", 2)),
                effects=[_effect_from_dict(fx) for fx in t.get("effects", [])],
            )
            track.selected = bool(t.get("selected", False))
            for c in t.get("clips", []):
                takes = [_take_from_dict(tk) for tk in c.get("takes", [])] or None
                clip = project.add_clip(
                    track,
                    float(c["position"]),
                    float(c["length"]),
                    name=c.get("name", ""),
                    takes=takes,
                    selected=bool(c.get("selected", False)),
                )
                clip.active_take_index = int(c.get("active_take", 0))
        return project

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        tracks = []
        for track in self.tracks.values():
            tracks.append({
                "name": track.name,
                "channels": track.channel_count,
                "selected": track.selected,
                "effects": [{"name": fx.name, "enabled": fx.enabled} for fx in track.effects],
                "clips": [
                    {
                        "position": clip.position,
                        "length": clip.length,
                        "selected": clip.selected,
                        "active_take": clip.active_take_index,
                        "takes": [_take_to_dict(tk) for tk in clip.takes],
                    }
                    for clip in self.clips_on_track(track)
                ],
            })
        window = None
        if self.time_window is not None:
            window = [self.time_window.start, self.time_window.end]
        return {
            "sample_rate": self.sample_rate,
            "time_window": window,
            "tracks": tracks,
        }


def _effect_from_dict(data: Dict[str, Any]) -> Effect:
    return Effect(name=data.get("name", ""), enabled=bool(data.get("enabled", True)))


def _take_from_dict(data: Dict[str, Any]) -> Take:
    return Take(
        name=data.get("name", ""),
        source_channels=int(data.get("channels", 2)),
        channel_mode=ChannelMode(data.get("channel_mode", "normal")),
        source_path=data.get("source_path"),
        start_offset=float(data.get("start_offset", 0.0)),
        effects=[_effect_from_dict(fx) for fx in data.get("effects", [])],
        baked_effects=list(data.get("baked_effects", [])),
    )


def _take_to_dict(take: Take) -> Dict[str, Any]:
    return {
        "name": take.name,
        "channels": take.source_channels,
        "channel_mode": take.channel_mode.value,
        "source_path": take.source_path,
        "start_offset": take.start_offset,
        "effects": [{"name": fx.name, "enabled": fx.enabled} for fx in take.effects],
        "baked_effects": list(take.baked_effects),
    }
