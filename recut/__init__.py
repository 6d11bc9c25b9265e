"""
Recut - timeline recalculation for nonlinear editing automation.

This package provides tools to:
- Collapse the gaps of a primary track while folding crossfades
- Shift everything after a cursor position
- Rescale the speed of selected clips and ripple the change
- Apply CSV cut lists (cuts and fast-forwards)
- Carry every change over to markers and grouped clips on other tracks
"""

from .commit import CommitSummary, PlanCommitter, commit_plan, describe_plan
from .cutlist import CutCommand, CutListResult, apply_cut_list, parse_cut_list, read_cut_list
from .editor import (
    EditResult,
    TimelineEditor,
    apply_cut_list_to_file,
    collapse_gaps,
    collapse_gaps_in_file,
    rescale_speed,
    shift_after_cursor,
)
from .groups import ClipGroup, GroupResolver
from .markers import MarkerRemapper
from .models import (
    SPEED_PRESETS,
    AudioClip,
    Clip,
    ClipMove,
    ConfigurationError,
    EditConfig,
    EditPlan,
    InputError,
    Marker,
    MarkerMove,
    Project,
    RecutError,
    RoundingMode,
    StateInconsistencyError,
    Timecode,
    TimingAdjustment,
    Track,
    TrackRole,
    VideoClip,
)
from .parser import TimelineParser, parse_timeline
from .propagation import AuxiliaryPropagator, PropagationMode
from .recalc import plan_collapse, plan_shift_after_cursor, plan_speed_rescale
from .writer import TimelineWriter, write_timeline

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",

    # Errors
    "RecutError",
    "ConfigurationError",
    "InputError",
    "StateInconsistencyError",

    # Time
    "Timecode",
    "RoundingMode",

    # Models
    "Clip",
    "VideoClip",
    "AudioClip",
    "Track",
    "TrackRole",
    "Marker",
    "Project",
    "EditConfig",
    "SPEED_PRESETS",

    # Plans
    "TimingAdjustment",
    "ClipMove",
    "MarkerMove",
    "EditPlan",

    # Core
    "GroupResolver",
    "ClipGroup",
    "MarkerRemapper",
    "AuxiliaryPropagator",
    "PropagationMode",
    "plan_collapse",
    "plan_shift_after_cursor",
    "plan_speed_rescale",
    "PlanCommitter",
    "CommitSummary",
    "commit_plan",
    "describe_plan",

    # Cut lists
    "CutCommand",
    "CutListResult",
    "parse_cut_list",
    "read_cut_list",
    "apply_cut_list",

    # Persistence
    "TimelineParser",
    "parse_timeline",
    "TimelineWriter",
    "write_timeline",

    # Editor
    "TimelineEditor",
    "EditResult",
    "collapse_gaps",
    "shift_after_cursor",
    "rescale_speed",
    "collapse_gaps_in_file",
    "apply_cut_list_to_file",
]
