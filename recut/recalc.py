"""
Recalculators - compute edit plans for the primary track.

Every recalculator reads original positions only and returns an EditPlan;
the document is not touched until the plan is committed. Moves for the
primary track are listed in track order, followed by the auxiliary moves
produced by propagation.
"""

import logging
import random
from typing import List, Optional, Tuple

from .markers import MarkerRemapper
from .models import (
    ClipMove,
    EditConfig,
    EditPlan,
    InputError,
    Project,
    Timecode,
    TimingAdjustment,
    Track,
)
from .propagation import AuxiliaryPropagator, PropagationMode, find_adjustment

logger = logging.getLogger(__name__)


def _primary_clips(project: Project, config: EditConfig) -> Tuple[Track, list]:
    """Primary track and its clips in start order; fails before any planning."""
    track = project.primary_track(config)
    if not track.clips:
        raise InputError(f"Track '{track.name}' has no clips.")
    return track, sorted(track.clips, key=lambda c: c.start)


def _propagate(
    plan: EditPlan,
    project: Project,
    primary: Track,
    config: EditConfig,
    mode: PropagationMode,
) -> None:
    plan.adjustments = [m.to_adjustment() for m in plan.primary_moves]
    propagator = AuxiliaryPropagator(project, primary, config)
    plan.clip_moves.extend(propagator.propagate(plan.adjustments, mode))


# ============================================================================
# COLLAPSE AND FOLD
# ============================================================================

def _fold_length(
    previous: ClipMove,
    clip,
    remapper: MarkerRemapper,
) -> Optional[Timecode]:
    """Crossfade length between ``previous`` and ``clip``, if they are joined by one.

    An authored transition marker near the previous clip's end takes
    precedence; otherwise matching fades on both clips are averaged.
    """
    marker = remapper.find_transition_marker(previous.original_end)
    if marker is not None:
        fade = previous.original_end - marker.position
        if fade.ticks > 0:
            logger.debug("Transition marker at %s, fade %s",
                         marker.position.to_string(), fade.to_string())
            return fade

    fade_out = previous.clip.fade_out
    fade_in = clip.fade_in
    if fade_out.ticks > 0 and fade_in.ticks > 0:
        return Timecode(int(round((fade_out.ticks + fade_in.ticks) / 2)))
    return None


def plan_collapse(project: Project, config: EditConfig) -> EditPlan:
    """
    Remove every gap on the primary track, folding crossfades.

    The first clip moves to zero and each following clip starts where the
    previous one now ends, or earlier by the fold length when the two are
    joined by a crossfade. Both fades of a fold are set to its length.
    """
    primary, clips = _primary_clips(project, config)
    plan = EditPlan()
    remapper = MarkerRemapper(project, config, plan)

    previous: Optional[ClipMove] = None
    for clip in clips:
        if previous is None:
            move = ClipMove.for_clip(clip, Timecode.zero())
        else:
            fold = _fold_length(previous, clip, remapper)
            if fold is not None:
                move = ClipMove.for_clip(clip, previous.new_end - fold, new_fade_in=fold)
                previous.new_fade_out = fold
            else:
                move = ClipMove.for_clip(clip, previous.new_end)

        logger.debug("Clip %d: %s -> %s", len(plan.clip_moves),
                     clip.start.to_string(), move.new_start.to_string())
        plan.clip_moves.append(move)
        remapper.remap_for_move(move)
        previous = move

    _propagate(plan, project, primary, config, PropagationMode.FLAT)
    return plan


# ============================================================================
# SHIFT AFTER CURSOR
# ============================================================================

def plan_shift_after_cursor(
    project: Project,
    cursor: Timecode,
    shift: Timecode,
    config: EditConfig,
) -> EditPlan:
    """Shift every primary clip starting at or after ``cursor`` by ``shift``."""
    primary, clips = _primary_clips(project, config)
    plan = EditPlan()
    remapper = MarkerRemapper(project, config, plan)

    for clip in clips:
        new_start = clip.start + shift if clip.start >= cursor else clip.start
        if new_start.ticks < 0:
            raise InputError(
                f"Shifting by {shift.to_string()} would move clip '{clip.name}' before zero."
            )
        move = ClipMove.for_clip(clip, new_start)
        plan.clip_moves.append(move)
        remapper.remap_for_move(move)

    _propagate(plan, project, primary, config, PropagationMode.FLAT)
    return plan


# ============================================================================
# SPEED RESCALE
# ============================================================================

def clamp_playback_rate(desired: float, config: EditConfig) -> Tuple[float, Optional[float]]:
    """Clamp a rate to the configured range.

    Returns the applied rate and the residual factor the velocity envelope
    has to supply, or None when the rate fits.
    """
    if desired > config.max_speed:
        return config.max_speed, desired / config.max_speed
    if desired < config.min_speed:
        return config.min_speed, desired / config.min_speed
    return desired, None


def _rescale_move(
    clip,
    speed_factor: float,
    fps: float,
    config: EditConfig,
    rng: random.Random,
) -> Tuple[ClipMove, float]:
    old_length = clip.length
    new_length = Timecode.round_without_redundancy(
        old_length.scale(1.0 / speed_factor), old_length, fps, rng
    )
    actual_speed = old_length.ticks / new_length.ticks

    desired = clip.playback_rate * clip.velocity_factor * actual_speed
    rate, residual = clamp_playback_rate(desired, config)

    move = ClipMove.for_clip(clip, clip.start, new_length=new_length, new_playback_rate=rate)
    if residual is not None:
        if clip.supports_velocity_envelope():
            move.new_velocity = residual
        else:
            logger.warning(
                "Clip '%s' has no velocity envelope; rate clamped to %.3f, residual %.3f dropped",
                clip.name, rate, residual,
            )
    elif clip.has_velocity_envelope():
        move.clear_velocity = True

    logger.debug("Clip '%s': length %s -> %s, rate %.4f -> %.4f",
                 clip.name, old_length.to_string(), new_length.to_string(),
                 clip.playback_rate, rate)
    return move, actual_speed


def plan_speed_rescale(
    project: Project,
    speed_factor: float,
    config: EditConfig,
    rng: Optional[random.Random] = None,
) -> EditPlan:
    """
    Speed up (or slow down) the selected primary clips by ``speed_factor``.

    Selected clips keep their start and change length. Unselected clips that
    start inside an already adjusted interval are repositioned proportionally
    and become adjustments themselves, so chained edits ripple down the
    track. The combined adjustments are then propagated proportionally to
    the auxiliary tracks.

    Args:
        project: Project to plan against
        speed_factor: 2.0 = twice as fast, 0.5 = half speed
        config: Edit settings (speed limits, track names)
        rng: Tie-break source for frame rounding
    """
    if speed_factor <= 0:
        raise InputError(f"Speed factor must be positive, got {speed_factor}")
    rng = rng or random.Random()
    primary, clips = _primary_clips(project, config)
    fps = project.frame_rate
    plan = EditPlan()
    remapper = MarkerRemapper(project, config, plan)
    adjustments: List[TimingAdjustment] = []

    for clip in clips:
        if clip.selected:
            if clip.length.ticks <= 0:
                logger.warning("Skipping zero-length clip '%s'", clip.name)
                continue
            move, actual_speed = _rescale_move(clip, speed_factor, fps, config, rng)
            remapper.remap_proportional(move, actual_speed, fps, rng)
        else:
            adjustment = find_adjustment(adjustments, clip.start)
            if adjustment is None:
                continue
            move = ClipMove.for_clip(clip, adjustment.map_proportional(clip.start))
            remapper.remap_for_move(move)
            logger.debug("Cascade: clip '%s' %s -> %s", clip.name,
                         clip.start.to_string(), move.new_start.to_string())

        plan.clip_moves.append(move)
        adjustments.append(move.to_adjustment())

    if not plan.clip_moves:
        logger.info("No selected clips on track '%s'", primary.name)
        return plan

    _propagate(plan, project, primary, config, PropagationMode.PROPORTIONAL)
    return plan
