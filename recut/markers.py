"""
Marker remapping - keeps project markers attached to the clips they annotate.

Markers are matched against original clip positions and every result is
recorded in the plan; nothing is moved until the plan is committed.
Each marker is claimed by the first clip that accounts for it.
"""

import logging
import random
from typing import List, Optional, Tuple

from .models import (
    ClipMove,
    EditConfig,
    EditPlan,
    Marker,
    MarkerMove,
    Project,
    Timecode,
)

logger = logging.getLogger(__name__)


class MarkerRemapper:
    """
    Plans marker moves for clip moves of an edit plan.

    Usage:
        remapper = MarkerRemapper(project, config, plan)
        remapper.remap_for_move(move)
    """

    def __init__(self, project: Project, config: EditConfig, plan: EditPlan):
        self.project = project
        self.config = config
        self.plan = plan
        # Snapshot: positions are read once, before anything moves
        self._snapshot = [(m, m.position) for m in project.markers]
        self._claimed = set()

    def _claim(self, marker: Marker, new_position: Timecode, original: Timecode) -> None:
        self._claimed.add(id(marker))
        if new_position != original:
            self.plan.marker_moves.append(MarkerMove(marker, original, new_position))

    def is_claimed(self, marker: Marker) -> bool:
        return id(marker) in self._claimed

    def _is_transition(self, marker: Marker) -> bool:
        return self.config.is_transition_label(marker.label)

    def _in_end_window(self, position: Timecode, boundary: Timecode) -> bool:
        return boundary - self.config.transition_tolerance <= position <= boundary

    def find_transition_marker(self, boundary: Timecode) -> Optional[Marker]:
        """Latest transition marker at or shortly before ``boundary``."""
        candidates = [
            (m, pos) for m, pos in self._snapshot
            if self._is_transition(m) and self._in_end_window(pos, boundary)
        ]
        logger.debug(
            "Transition marker search near %s: %d candidate(s)",
            boundary.to_string(), len(candidates),
        )
        if not candidates:
            return None
        return max(candidates, key=lambda c: c[1])[0]

    def transition_markers_within(self, start: Timecode, end: Timecode) -> List[Tuple[Marker, Timecode]]:
        """Unclaimed transition markers in [start, end), with their positions."""
        return [
            (m, pos) for m, pos in self._snapshot
            if self._is_transition(m) and start <= pos < end and not self.is_claimed(m)
        ]

    def remap_for_move(self, move: ClipMove) -> None:
        """
        Move the markers of one clip along with it.

        Transition markers at the tail of the clip keep their distance to
        the clip's new end; other markers strictly inside the clip shift
        by the clip's start delta.
        """
        old_start, old_end = move.original_start, move.original_end
        shift = move.shift

        for marker, pos in self._snapshot:
            if self.is_claimed(marker):
                continue
            if self._is_transition(marker) and self._in_end_window(pos, old_end):
                offset_from_end = old_end - pos
                self._claim(marker, move.new_end - offset_from_end, pos)
            elif old_start < pos < old_end:
                self._claim(marker, pos + shift, pos)

    def remap_proportional(
        self,
        move: ClipMove,
        speed_modification: float,
        fps: float,
        rng: random.Random,
    ) -> None:
        """Rescale transition markers inside a clip whose speed changed.

        The marker's distance from the clip start is divided by the speed
        modification and snapped to a frame with a random tie-break.
        """
        for marker, original in self.transition_markers_within(move.original_start, move.original_end):
            relative = original - move.original_start
            scaled = relative.scale(1.0 / speed_modification)
            new_position = move.new_start + scaled.round_random_to_frame(fps, rng)
            self._claim(marker, new_position, original)
