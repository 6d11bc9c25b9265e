"""
Plan commit - applies an EditPlan to the project in a fixed order.

Markers first, in descending original position; then primary clips in
ascending track order, so each clip lands after its already placed
predecessor; then auxiliary clips. The whole plan is checked against the
live document before the first mutation.
"""

import logging
from dataclasses import dataclass
from typing import List

from .models import ClipMove, EditPlan, Marker, Project, StateInconsistencyError

logger = logging.getLogger(__name__)


@dataclass
class CommitSummary:
    """What a commit changed.

    ``clips_moved`` counts primary track clips; clips on the other tracks
    that followed them are counted in ``aux_clips_moved``.
    """
    clips_moved: int = 0
    clips_resized: int = 0
    markers_moved: int = 0
    aux_clips_moved: int = 0

    @property
    def total_changes(self) -> int:
        return (self.clips_moved + self.aux_clips_moved
                + self.clips_resized + self.markers_moved)


def _changes_clip(move: ClipMove) -> bool:
    return (
        move.new_start != move.original_start
        or (move.new_length is not None and move.new_length != move.original_length)
        or move.new_fade_in is not None
        or move.new_fade_out is not None
        or move.new_playback_rate is not None
        or move.new_velocity is not None
        or move.clear_velocity
    )


class PlanCommitter:
    """
    Applies edit plans to a project.

    Usage:
        summary = PlanCommitter(project).commit(plan)
    """

    def __init__(self, project: Project):
        self.project = project

    def verify(self, plan: EditPlan) -> None:
        """Raise StateInconsistencyError if the document drifted from the plan."""
        for move in plan.clip_moves:
            clip = move.clip
            if clip.track is None:
                raise StateInconsistencyError(
                    f"Clip '{clip.name}' is no longer on a track."
                )
            if clip.start != move.original_start or clip.length != move.original_length:
                raise StateInconsistencyError(
                    f"Clip '{clip.name}' changed since planning: expected "
                    f"{move.original_start.to_string()}+{move.original_length.to_string()}, "
                    f"found {clip.start.to_string()}+{clip.length.to_string()}."
                )
        for marker_move in plan.marker_moves:
            marker = marker_move.marker
            if not self.project.has_marker(marker) or marker.position != marker_move.original_position:
                raise StateInconsistencyError(
                    f"Marker '{marker.label}' at {marker_move.original_position.to_string()} "
                    f"changed since planning."
                )

    def commit(self, plan: EditPlan) -> CommitSummary:
        self.verify(plan)
        summary = CommitSummary()

        # Remove and re-add from the highest position down
        for marker_move in sorted(plan.marker_moves,
                                  key=lambda m: m.original_position, reverse=True):
            if marker_move.new_position == marker_move.original_position:
                continue
            self.project.remove_marker(marker_move.marker)
            self.project.add_marker(Marker(marker_move.new_position, marker_move.label))
            summary.markers_moved += 1

        for move in sorted(plan.primary_moves, key=lambda m: m.clip.index):
            self._apply(move, summary)

        for move in plan.auxiliary_moves:
            self._apply(move, summary)

        touched = {id(m.clip.track): m.clip.track for m in plan.clip_moves}
        for track in touched.values():
            track.sort_clips()

        logger.info("Committed plan: %d clip move(s), %d auxiliary move(s), %d resize(s), "
                    "%d marker move(s)", summary.clips_moved, summary.aux_clips_moved,
                    summary.clips_resized, summary.markers_moved)
        return summary

    def _apply(self, move: ClipMove, summary: CommitSummary) -> None:
        if not _changes_clip(move):
            return
        clip = move.clip
        if move.new_playback_rate is not None:
            clip.set_playback_rate(move.new_playback_rate, preserve_length=True)
        if move.new_velocity is not None:
            clip.set_velocity(move.new_velocity)
        elif move.clear_velocity:
            clip.remove_velocity()

        clip.reposition(move.new_start, move.new_length)
        if move.new_fade_in is not None:
            clip.fade_in = move.new_fade_in
        if move.new_fade_out is not None:
            clip.fade_out = move.new_fade_out

        if move.new_start != move.original_start:
            if move.auxiliary:
                summary.aux_clips_moved += 1
            else:
                summary.clips_moved += 1
        if move.new_length is not None and move.new_length != move.original_length:
            summary.clips_resized += 1


def commit_plan(project: Project, plan: EditPlan) -> CommitSummary:
    """Convenience wrapper around PlanCommitter."""
    return PlanCommitter(project).commit(plan)


def describe_plan(plan: EditPlan) -> List[str]:
    """One line per planned change, for logs and reports."""
    lines = []
    for move in plan.clip_moves:
        if not _changes_clip(move):
            continue
        kind = "aux" if move.auxiliary else "main"
        line = f"[{kind}] {move.clip.name or 'clip'}: {move.original_start.to_string()} -> {move.new_start.to_string()}"
        if move.new_length is not None and move.new_length != move.original_length:
            line += f" (length {move.original_length.to_string()} -> {move.new_length.to_string()})"
        lines.append(line)
    for marker_move in plan.marker_moves:
        lines.append(
            f"[marker] '{marker_move.label}': {marker_move.original_position.to_string()}"
            f" -> {marker_move.new_position.to_string()}"
        )
    return lines
