"""
Data models for timeline recalculation.

Provides the interval model (timecodes and frame rounding), the document
model the edit operations work on (projects, tracks, clips, markers), and
the plan structures that carry computed positions from the recalculators
to the committer.
"""

import math
import os
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

# ============================================================================
# ERRORS
# ============================================================================


class RecutError(ValueError):
    """Base class for errors reported back to the user."""
    kind = "Edit"


class ConfigurationError(RecutError):
    """The project is not set up the way an operation requires."""
    kind = "Configuration"


class InputError(RecutError):
    """An operation was given nothing to work on, or unusable input."""
    kind = "Input"


class StateInconsistencyError(RecutError):
    """The document changed between planning and commit."""
    kind = "State"


# ============================================================================
# ENUMS
# ============================================================================

class RoundingMode(Enum):
    """Direction used when snapping a timecode to a frame boundary."""
    DOWN = "down"
    UP = "up"
    NEAREST = "nearest"


class TrackRole(Enum):
    """Role of a track in an edit operation, inferred from its name."""
    PRIMARY = "primary"
    EXCLUDED = "excluded"
    AUXILIARY = "auxiliary"


# ============================================================================
# TIMECODE - Fixed-precision time
# ============================================================================

TICKS_PER_MS = 10_000
TICKS_PER_SECOND = TICKS_PER_MS * 1000


@dataclass(frozen=True, order=True)
class Timecode:
    """
    A signed position or duration with 100ns precision.

    Stored as an integer tick count so sums and differences are exact.
    Conversions to frames are lossy and always go through an explicit
    rounding call.

    Examples:
        Timecode.from_milliseconds(1500)     # 1.5 seconds
        Timecode.from_frames(45, fps=30.0)   # 1.5 seconds
        Timecode.from_string("00:00:01:15", fps=30.0)
    """
    ticks: int = 0

    @classmethod
    def from_milliseconds(cls, ms: float) -> 'Timecode':
        return cls(int(round(ms * TICKS_PER_MS)))

    @classmethod
    def from_seconds(cls, seconds: float) -> 'Timecode':
        return cls(int(round(seconds * TICKS_PER_SECOND)))

    @classmethod
    def from_frames(cls, frames: int, fps: float) -> 'Timecode':
        return cls(int(round(frames * TICKS_PER_SECOND / fps)))

    @classmethod
    def zero(cls) -> 'Timecode':
        return cls(0)

    @classmethod
    def from_string(cls, tc: str, fps: float = 30.0) -> 'Timecode':
        """
        Create a Timecode from a string.

        Supported formats:
        - "1500ms" or "1500" - Milliseconds
        - "1.5s" - Seconds
        - "45f" - Frames
        - "HH:MM:SS:FF" - SMPTE timecode
        - "HH:MM:SS.mmm" or "MM:SS.mmm" - Clock time
        """
        if tc is None:
            return cls.zero()
        tc = str(tc).strip()
        if not tc:
            return cls.zero()

        negative = tc.startswith('-')
        body = tc.lstrip('+-')

        try:
            if body.endswith('ms'):
                value = cls.from_milliseconds(float(body[:-2]))
            elif body.endswith('s'):
                value = cls.from_seconds(float(body[:-1]))
            elif body.endswith('f'):
                value = cls.from_frames(int(body[:-1]), fps)
            elif ':' in body or ';' in body:
                parts = body.replace(';', ':').split(':')
                if len(parts) == 4:
                    h, m, s, f = map(int, parts)
                    value = cls.from_seconds(h * 3600 + m * 60 + s) + cls.from_frames(f, fps)
                elif len(parts) == 3:
                    h, m = int(parts[0]), int(parts[1])
                    value = cls.from_seconds(h * 3600 + m * 60 + float(parts[2]))
                elif len(parts) == 2:
                    value = cls.from_seconds(int(parts[0]) * 60 + float(parts[1]))
                else:
                    raise ValueError(tc)
            else:
                value = cls.from_milliseconds(float(body))
        except (ValueError, OverflowError):
            raise ValueError(f"Invalid timecode format: {tc}")

        return -value if negative else value

    def to_milliseconds(self) -> float:
        return self.ticks / TICKS_PER_MS

    def to_seconds(self) -> float:
        return self.ticks / TICKS_PER_SECOND

    def to_string(self) -> str:
        """Canonical document form, e.g. "1500ms" or "33.3333ms"."""
        ms = self.ticks / TICKS_PER_MS
        if self.ticks % TICKS_PER_MS == 0:
            return f"{self.ticks // TICKS_PER_MS}ms"
        return f"{ms:.4f}".rstrip('0').rstrip('.') + "ms"

    def to_smpte(self, fps: float = 30.0) -> str:
        """Convert to HH:MM:SS:FF (truncating to the frame)."""
        sign = "-" if self.ticks < 0 else ""
        total_frames = abs(self).frame_count(fps)
        per_second = int(round(fps))
        frames = total_frames % per_second
        total_secs = total_frames // per_second
        return (
            f"{sign}{total_secs // 3600:02d}:{(total_secs // 60) % 60:02d}:"
            f"{total_secs % 60:02d}:{frames:02d}"
        )

    # ------------------------------------------------------------------
    # Frame rounding
    # ------------------------------------------------------------------

    def frame_count(self, fps: float) -> int:
        """Whole frames contained in this timecode (truncates toward -inf)."""
        frames = math.floor(self.ticks * fps / TICKS_PER_SECOND)
        # from_frames rounds to the nearest tick, so a boundary can sit just
        # below its exact value
        if Timecode.from_frames(frames + 1, fps).ticks <= self.ticks:
            frames += 1
        return frames

    def is_frame_aligned(self, fps: float) -> bool:
        return Timecode.from_frames(self.frame_count(fps), fps) == self

    def round_to_frame(self, fps: float, mode: RoundingMode = RoundingMode.NEAREST) -> 'Timecode':
        """Snap to a frame boundary.

        UP returns the boundary following the truncated frame, so a value
        already on a boundary is returned unchanged only for DOWN and NEAREST.
        """
        frames = self.frame_count(fps)
        if mode == RoundingMode.DOWN:
            return Timecode.from_frames(frames, fps)
        if mode == RoundingMode.UP:
            return Timecode.from_frames(frames + 1, fps)
        exact = self.ticks * fps / TICKS_PER_SECOND
        return Timecode.from_frames(int(round(exact)), fps)

    def round_random_to_frame(self, fps: float, rng: random.Random) -> 'Timecode':
        """Snap down or up with equal probability, using the injected rng."""
        return Timecode.from_frames(self.frame_count(fps) + rng.randrange(2), fps)

    @staticmethod
    def round_without_redundancy(
        new_length: 'Timecode',
        old_length: 'Timecode',
        fps: float,
        rng: random.Random,
    ) -> 'Timecode':
        """
        Snap a rescaled length to a frame while avoiding the original length.

        A length already on a frame boundary is kept as long as it is neither
        the original length nor zero. Otherwise the two neighbouring
        boundaries are candidates; a candidate equal to the original length
        (or a zero round-down) is excluded, and between two valid candidates
        the rng decides. When round-down is zero and round-up is the
        original length there is no valid choice and round-up is returned.
        """
        if (new_length.is_frame_aligned(fps)
                and new_length != old_length and new_length.ticks > 0):
            return new_length

        down = new_length.round_to_frame(fps, RoundingMode.DOWN)
        up = new_length.round_to_frame(fps, RoundingMode.UP)

        if down == old_length or down.ticks <= 0:
            return up
        if up == old_length:
            return down
        return up if rng.randrange(2) else down

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def scale(self, factor: float) -> 'Timecode':
        return Timecode(int(round(self.ticks * factor)))

    def __add__(self, other: 'Timecode') -> 'Timecode':
        return Timecode(self.ticks + other.ticks)

    def __sub__(self, other: 'Timecode') -> 'Timecode':
        return Timecode(self.ticks - other.ticks)

    def __neg__(self) -> 'Timecode':
        return Timecode(-self.ticks)

    def __abs__(self) -> 'Timecode':
        return Timecode(abs(self.ticks))

    def __bool__(self) -> bool:
        return self.ticks != 0

    def __repr__(self) -> str:
        return f"Timecode({self.to_string()})"


# ============================================================================
# CONFIGURATION
# ============================================================================

# Speed factors of the packaged rescale macros.
SPEED_PRESETS = {
    "large_fast": 3.0,
    "small_fast": 1.0 / 0.9,
}

DEFAULT_SHIFT = Timecode.from_seconds(4.0)


@dataclass
class EditConfig:
    """Settings shared by every edit operation."""
    primary_track_name: str = "main"
    excluded_track_names: Tuple[str, ...] = ("music",)
    min_speed: float = 0.25
    max_speed: float = 4.0
    transition_label: str = "v"
    transition_tolerance: Timecode = field(
        default_factory=lambda: Timecode.from_milliseconds(10)
    )
    fast_forward_rate: float = 3.0
    cut_timestamp_unit: str = "ms"  # "ms" or "s"

    def __post_init__(self):
        if self.min_speed <= 0 or self.max_speed < self.min_speed:
            raise ConfigurationError(
                f"Invalid speed range: [{self.min_speed}, {self.max_speed}]"
            )
        if self.cut_timestamp_unit not in ("ms", "s"):
            raise ConfigurationError(
                f"Invalid cut timestamp unit '{self.cut_timestamp_unit}'. Valid units: ms, s"
            )

    @classmethod
    def from_env(cls) -> 'EditConfig':
        """Build a config from RECUT_* environment variables."""
        kwargs = {}
        if os.environ.get("RECUT_PRIMARY_TRACK"):
            kwargs["primary_track_name"] = os.environ["RECUT_PRIMARY_TRACK"]
        if os.environ.get("RECUT_EXCLUDED_TRACKS") is not None:
            kwargs["excluded_track_names"] = tuple(
                n.strip() for n in os.environ["RECUT_EXCLUDED_TRACKS"].split(',') if n.strip()
            )
        try:
            if os.environ.get("RECUT_MIN_SPEED"):
                kwargs["min_speed"] = float(os.environ["RECUT_MIN_SPEED"])
            if os.environ.get("RECUT_MAX_SPEED"):
                kwargs["max_speed"] = float(os.environ["RECUT_MAX_SPEED"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid speed limit in environment: {e}")
        if os.environ.get("RECUT_CUT_UNIT"):
            kwargs["cut_timestamp_unit"] = os.environ["RECUT_CUT_UNIT"].strip().lower()
        return cls(**kwargs)

    def is_transition_label(self, label: str) -> bool:
        return label.strip().lower() == self.transition_label.lower()


# ============================================================================
# DOCUMENT MODEL
# ============================================================================

@dataclass(eq=False)
class Marker:
    """A project-global, labeled point on the timeline."""
    position: Timecode
    label: str = ""

    def __repr__(self) -> str:
        return f"Marker({self.label!r} @ {self.position.to_string()})"


@dataclass(eq=False)
class Clip:
    """
    A placed interval of content on a track.

    Identity is the object itself: repositioning or resizing a clip never
    replaces it, so plans can hold on to clips across a commit.
    """
    start: Timecode
    length: Timecode
    name: str = ""
    fade_in: Timecode = field(default_factory=Timecode.zero)
    fade_out: Timecode = field(default_factory=Timecode.zero)
    playback_rate: float = 1.0
    selected: bool = False
    group_id: Optional[str] = None
    track: Optional['Track'] = field(default=None, repr=False)

    @property
    def end(self) -> Timecode:
        return self.start + self.length

    @property
    def index(self) -> int:
        if self.track is None:
            return -1
        return self.track.clips.index(self)

    def contains(self, position: Timecode) -> bool:
        return self.start <= position < self.end

    def supports_velocity_envelope(self) -> bool:
        return False

    def has_velocity_envelope(self) -> bool:
        return False

    @property
    def velocity_factor(self) -> float:
        return 1.0

    def reposition(self, new_start: Timecode, new_length: Optional[Timecode] = None) -> None:
        self.start = new_start
        if new_length is not None:
            self.length = new_length

    def set_playback_rate(self, rate: float, preserve_length: bool = True) -> None:
        """Change the playback rate, optionally stretching the clip to match."""
        if rate <= 0:
            raise InputError(f"Playback rate must be positive, got {rate}")
        if not preserve_length:
            self.length = self.length.scale(self.playback_rate / rate)
        self.playback_rate = rate

    def _copy_attributes(self) -> dict:
        return {
            'name': self.name,
            'playback_rate': self.playback_rate,
            'selected': self.selected,
            'group_id': self.group_id,
        }

    def split_at(self, offset: Timecode) -> 'Clip':
        """
        Split this clip at ``offset`` from its start.

        This clip keeps the left-hand part; the right-hand part is returned
        and inserted into the track directly after it.
        """
        if offset.ticks <= 0 or offset >= self.length:
            raise InputError(
                f"Split offset {offset.to_string()} outside clip '{self.name}' "
                f"(length {self.length.to_string()})"
            )
        right = type(self)(
            start=self.start + offset,
            length=self.length - offset,
            fade_out=self.fade_out,
            **self._copy_attributes(),
        )
        self.length = offset
        self.fade_out = Timecode.zero()
        if self.track is not None:
            self.track.insert_after(self, right)
        return right


@dataclass(eq=False)
class VideoClip(Clip):
    """Clip whose speed can be modulated by a velocity envelope.

    ``velocity`` is the envelope's constant compensation value, or None
    when the clip has no envelope.
    """
    velocity: Optional[float] = None

    def supports_velocity_envelope(self) -> bool:
        return True

    def has_velocity_envelope(self) -> bool:
        return self.velocity is not None

    @property
    def velocity_factor(self) -> float:
        return 1.0 if self.velocity is None else self.velocity

    def set_velocity(self, value: float) -> None:
        self.velocity = value

    def remove_velocity(self) -> None:
        self.velocity = None

    def _copy_attributes(self) -> dict:
        attrs = super()._copy_attributes()
        attrs['velocity'] = self.velocity
        return attrs


@dataclass(eq=False)
class AudioClip(Clip):
    """Audio clip; carries no velocity envelope."""


@dataclass(eq=False)
class Track:
    """An ordered container of clips."""
    name: Optional[str] = None
    kind: str = "video"
    clips: List[Clip] = field(default_factory=list)

    def __post_init__(self):
        for clip in self.clips:
            clip.track = self
        self.sort_clips()

    @property
    def is_video(self) -> bool:
        return self.kind == "video"

    def role(self, config: EditConfig) -> TrackRole:
        name = (self.name or "").strip().lower()
        if name == config.primary_track_name.lower():
            return TrackRole.PRIMARY
        if name in (n.lower() for n in config.excluded_track_names):
            return TrackRole.EXCLUDED
        return TrackRole.AUXILIARY

    def add(self, clip: Clip) -> Clip:
        clip.track = self
        self.clips.append(clip)
        self.sort_clips()
        return clip

    def insert_after(self, anchor: Clip, clip: Clip) -> None:
        clip.track = self
        self.clips.insert(self.clips.index(anchor) + 1, clip)

    def remove(self, clip: Clip) -> None:
        self.clips.remove(clip)
        clip.track = None

    def sort_clips(self) -> None:
        self.clips.sort(key=lambda c: c.start)

    def clip_at(self, position: Timecode) -> Optional[Clip]:
        """First clip whose [start, end) contains ``position``."""
        for clip in self.clips:
            if clip.contains(position):
                return clip
        return None

    @property
    def selected_clips(self) -> List[Clip]:
        return [c for c in self.clips if c.selected]


@dataclass
class Project:
    """All tracks and the project-global marker list."""
    name: str = "Untitled"
    frame_rate: float = 30.0
    tracks: List[Track] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)

    def __post_init__(self):
        self.markers.sort(key=lambda m: m.position)

    def add_track(self, track: Track) -> Track:
        self.tracks.append(track)
        return track

    def add_marker(self, marker: Marker) -> Marker:
        """Insert keeping the list ordered by position (stable for ties)."""
        index = len(self.markers)
        for i, existing in enumerate(self.markers):
            if existing.position > marker.position:
                index = i
                break
        self.markers.insert(index, marker)
        return marker

    def remove_marker(self, marker: Marker) -> None:
        self.markers.remove(marker)

    def has_marker(self, marker: Marker) -> bool:
        return any(m is marker for m in self.markers)

    def transition_markers(self, config: EditConfig) -> List[Marker]:
        return [m for m in self.markers if config.is_transition_label(m.label)]

    def primary_track(self, config: EditConfig) -> Track:
        """The video track named like the configured primary track."""
        for track in self.tracks:
            if track.is_video and track.role(config) == TrackRole.PRIMARY:
                return track
        raise ConfigurationError(
            f"No video track named '{config.primary_track_name}' found."
        )

    def auxiliary_tracks(self, primary: Track, config: EditConfig) -> List[Track]:
        """Tracks that follow the primary track (neither primary nor excluded)."""
        return [
            t for t in self.tracks
            if t is not primary and t.role(config) == TrackRole.AUXILIARY
        ]


# ============================================================================
# PLAN MODELS
# ============================================================================

@dataclass(frozen=True)
class TimingAdjustment:
    """
    Maps an old interval onto a new one.

    Positions inside [old_start, old_end) keep their relative position when
    mapped proportionally.
    """
    old_start: Timecode
    old_end: Timecode
    new_start: Timecode
    new_end: Timecode

    @property
    def offset(self) -> Timecode:
        return self.new_start - self.old_start

    @property
    def old_length(self) -> Timecode:
        return self.old_end - self.old_start

    @property
    def new_length(self) -> Timecode:
        return self.new_end - self.new_start

    def contains(self, position: Timecode) -> bool:
        return self.old_start <= position < self.old_end

    def map_flat(self, position: Timecode) -> Timecode:
        return position + self.offset

    def map_proportional(self, position: Timecode) -> Timecode:
        """Map by relative position; a zero-length old interval maps nothing."""
        if self.old_length.ticks == 0:
            return position
        relative = (position - self.old_start).ticks / self.old_length.ticks
        return self.new_start + self.new_length.scale(relative)


@dataclass(eq=False)
class ClipMove:
    """A planned change to one clip, recorded against its original values."""
    clip: Clip
    original_start: Timecode
    original_length: Timecode
    new_start: Timecode
    new_length: Optional[Timecode] = None
    new_fade_in: Optional[Timecode] = None
    new_fade_out: Optional[Timecode] = None
    new_playback_rate: Optional[float] = None
    new_velocity: Optional[float] = None
    clear_velocity: bool = False
    auxiliary: bool = False

    @classmethod
    def for_clip(cls, clip: Clip, new_start: Timecode, **changes) -> 'ClipMove':
        return cls(
            clip=clip,
            original_start=clip.start,
            original_length=clip.length,
            new_start=new_start,
            **changes,
        )

    @property
    def original_end(self) -> Timecode:
        return self.original_start + self.original_length

    @property
    def resulting_length(self) -> Timecode:
        return self.original_length if self.new_length is None else self.new_length

    @property
    def new_end(self) -> Timecode:
        return self.new_start + self.resulting_length

    @property
    def shift(self) -> Timecode:
        return self.new_start - self.original_start

    def to_adjustment(self) -> TimingAdjustment:
        return TimingAdjustment(
            old_start=self.original_start,
            old_end=self.original_end,
            new_start=self.new_start,
            new_end=self.new_end,
        )


@dataclass(eq=False)
class MarkerMove:
    """A planned marker reposition (applied as remove + insert)."""
    marker: Marker
    original_position: Timecode
    new_position: Timecode

    @property
    def label(self) -> str:
        return self.marker.label


@dataclass
class EditPlan:
    """Everything an operation will change, computed from original positions."""
    clip_moves: List[ClipMove] = field(default_factory=list)
    marker_moves: List[MarkerMove] = field(default_factory=list)
    adjustments: List[TimingAdjustment] = field(default_factory=list)

    @property
    def primary_moves(self) -> List[ClipMove]:
        return [m for m in self.clip_moves if not m.auxiliary]

    @property
    def auxiliary_moves(self) -> List[ClipMove]:
        return [m for m in self.clip_moves if m.auxiliary]

    @property
    def is_empty(self) -> bool:
        return not self.clip_moves and not self.marker_moves
