"""
Auxiliary track propagation - carries primary track changes to other tracks.

Each group of auxiliary clips follows the primary clip its anchor starts
in. The anchor is mapped through that clip's timing adjustment; every
other member then moves by the anchor's offset so the group keeps its
internal layout.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional

from .groups import GroupResolver
from .models import ClipMove, EditConfig, Project, Timecode, TimingAdjustment, Track

logger = logging.getLogger(__name__)


class PropagationMode(Enum):
    """How an auxiliary clip follows the primary interval it starts in."""
    FLAT = "flat"                  # same offset as the primary clip
    PROPORTIONAL = "proportional"  # same relative position in the new interval


def find_adjustment(
    adjustments: Iterable[TimingAdjustment],
    position: Timecode,
) -> Optional[TimingAdjustment]:
    """First adjustment, in primary order, whose old interval holds ``position``."""
    for adjustment in sorted(adjustments, key=lambda a: a.old_start):
        if adjustment.contains(position):
            return adjustment
    return None


class AuxiliaryPropagator:
    """
    Plans moves for auxiliary clips from a list of primary adjustments.

    Usage:
        propagator = AuxiliaryPropagator(project, primary, config)
        moves = propagator.propagate(adjustments, PropagationMode.FLAT)
    """

    def __init__(
        self,
        project: Project,
        primary: Track,
        config: EditConfig,
        resolver: Optional[GroupResolver] = None,
    ):
        self.project = project
        self.primary = primary
        self.config = config
        self.resolver = resolver or GroupResolver.for_project(project, primary, config)

    def map_position(
        self,
        position: Timecode,
        adjustments: List[TimingAdjustment],
        mode: PropagationMode,
    ) -> Optional[Timecode]:
        adjustment = find_adjustment(adjustments, position)
        if adjustment is None:
            return None
        if mode == PropagationMode.PROPORTIONAL:
            return adjustment.map_proportional(position)
        return adjustment.map_flat(position)

    def propagate(
        self,
        adjustments: List[TimingAdjustment],
        mode: PropagationMode,
    ) -> List[ClipMove]:
        moves = []
        if not adjustments:
            return moves

        for group in self.resolver.groups:
            anchor = group.anchor
            new_anchor_start = self.map_position(anchor.start, adjustments, mode)
            if new_anchor_start is None:
                continue
            offset = new_anchor_start - anchor.start
            if not offset:
                continue
            for member in group.members:
                moves.append(ClipMove.for_clip(member, member.start + offset, auxiliary=True))
            logger.debug(
                "Group anchored at %s (%d clip(s)) shifted by %s",
                anchor.start.to_string(), len(group), offset.to_string(),
            )
        return moves
