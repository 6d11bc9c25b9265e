"""
Timeline Editor - load, edit, save workflow for the edit operations.

Each operation plans against the loaded project and commits the plan;
the cut list operation edits the primary track directly.
"""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .commit import CommitSummary, PlanCommitter, describe_plan
from .cutlist import CutListResult, apply_cut_list, parse_cut_list, read_cut_list
from .models import (
    DEFAULT_SHIFT,
    SPEED_PRESETS,
    EditConfig,
    EditPlan,
    InputError,
    Project,
    Timecode,
)
from .parser import TimelineParser
from .recalc import plan_collapse, plan_shift_after_cursor, plan_speed_rescale
from .writer import TimelineWriter

logger = logging.getLogger(__name__)


@dataclass
class EditResult:
    """Plan and commit summary of one operation."""
    operation: str
    plan: EditPlan
    summary: CommitSummary
    changes: List[str] = field(default_factory=list)


def resolve_speed_factor(speed_factor: Optional[float] = None, preset: Optional[str] = None) -> float:
    """Pick the speed factor from an explicit value or a named preset."""
    if speed_factor is not None:
        return float(speed_factor)
    if preset is None:
        raise InputError("Either a speed factor or a preset is required.")
    try:
        return SPEED_PRESETS[preset.strip().lower()]
    except KeyError:
        raise InputError(
            f"Unknown speed preset '{preset}'. Valid presets: {', '.join(SPEED_PRESETS)}"
        )


def _run_plan(project: Project, operation: str, plan: EditPlan) -> EditResult:
    changes = describe_plan(plan)
    summary = PlanCommitter(project).commit(plan)
    return EditResult(operation, plan, summary, changes)


def collapse_gaps(project: Project, config: Optional[EditConfig] = None) -> EditResult:
    """Close every gap on the primary track, keeping crossfades."""
    config = config or EditConfig()
    return _run_plan(project, "collapse_gaps", plan_collapse(project, config))


def shift_after_cursor(
    project: Project,
    cursor: Timecode,
    shift: Timecode = DEFAULT_SHIFT,
    config: Optional[EditConfig] = None,
) -> EditResult:
    """Push every primary clip at or after the cursor by ``shift``."""
    config = config or EditConfig()
    plan = plan_shift_after_cursor(project, cursor, shift, config)
    return _run_plan(project, "shift_after_cursor", plan)


def rescale_speed(
    project: Project,
    speed_factor: float,
    config: Optional[EditConfig] = None,
    rng: Optional[random.Random] = None,
) -> EditResult:
    """Change the speed of the selected primary clips, rippling the change."""
    config = config or EditConfig()
    plan = plan_speed_rescale(project, speed_factor, config, rng)
    return _run_plan(project, "rescale_speed", plan)


class TimelineEditor:
    """
    Handles the edit operations on a timeline file.

    Usage:
        editor = TimelineEditor("edit.xml")
        editor.collapse_gaps()
        editor.rescale_speed(preset="large_fast")
        editor.save("edit_modified.xml")
    """

    def __init__(
        self,
        timeline_path: str,
        config: Optional[EditConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """Load a timeline file for editing."""
        self.path = Path(timeline_path)
        self.config = config or EditConfig()
        self.rng = rng or random.Random()
        self.project = TimelineParser().parse_file(timeline_path)

    @property
    def fps(self) -> float:
        return self.project.frame_rate

    def _parse_time(self, tc: Union[str, Timecode]) -> Timecode:
        if isinstance(tc, Timecode):
            return tc
        try:
            return Timecode.from_string(tc, self.fps)
        except ValueError as e:
            raise InputError(str(e))

    def collapse_gaps(self) -> EditResult:
        return collapse_gaps(self.project, self.config)

    def shift_after_cursor(
        self,
        cursor: Union[str, Timecode],
        shift: Union[str, Timecode] = DEFAULT_SHIFT,
    ) -> EditResult:
        return shift_after_cursor(
            self.project, self._parse_time(cursor), self._parse_time(shift), self.config
        )

    def rescale_speed(
        self,
        speed_factor: Optional[float] = None,
        preset: Optional[str] = None,
    ) -> EditResult:
        factor = resolve_speed_factor(speed_factor, preset)
        return rescale_speed(self.project, factor, self.config, self.rng)

    def apply_cut_list(self, csv_path: Optional[str] = None, text: Optional[str] = None) -> CutListResult:
        """Apply a cut list from a CSV file or CSV text."""
        if csv_path is not None:
            commands = read_cut_list(csv_path, self.config)
        elif text is not None:
            commands = parse_cut_list(text, self.config)
        else:
            raise InputError("A cut list path or text is required.")
        result = apply_cut_list(self.project, commands, self.config)
        logger.info("Cut list: %d applied, %d skipped", result.applied, result.skipped)
        return result

    def save(self, output_path: Optional[str] = None) -> str:
        """Write the edited timeline to file."""
        out_path = output_path or str(self.path)
        return TimelineWriter().write_project(self.project, out_path)


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

def collapse_gaps_in_file(filepath: str, output_path: Optional[str] = None) -> str:
    """Convenience function to collapse the gaps of a timeline file."""
    editor = TimelineEditor(filepath)
    editor.collapse_gaps()
    return editor.save(output_path)


def apply_cut_list_to_file(filepath: str, csv_path: str, output_path: Optional[str] = None) -> str:
    """Convenience function to apply a cut list to a timeline file."""
    editor = TimelineEditor(filepath)
    editor.apply_cut_list(csv_path)
    return editor.save(output_path)
