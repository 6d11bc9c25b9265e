"""Tests for marker remapping around moved and rescaled clips."""

from recut.markers import MarkerRemapper
from recut.models import ClipMove, EditConfig, EditPlan, Marker, Project, Timecode, Track, VideoClip


def ms(value: float) -> Timecode:
    return Timecode.from_milliseconds(value)


class FixedRng:
    def __init__(self, value=0):
        self.value = value

    def randrange(self, n):
        return self.value


def _setup(markers, start=1000, length=1000):
    clip = VideoClip(start=ms(start), length=ms(length), name="A")
    project = Project(tracks=[Track(name="main", clips=[clip])], markers=markers)
    plan = EditPlan()
    return clip, project, plan, MarkerRemapper(project, EditConfig(), plan)


def _new_position(plan, marker):
    for move in plan.marker_moves:
        if move.marker is marker:
            return move.new_position
    return None


class TestRemapForMove:

    def test_inside_marker_shifts_with_clip(self):
        note = Marker(ms(1500), "note")
        clip, _, plan, remapper = _setup([note])
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(400)))
        assert _new_position(plan, note) == ms(900)

    def test_marker_on_clip_start_not_moved(self):
        edge = Marker(ms(1000), "note")
        clip, _, plan, remapper = _setup([edge])
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(400)))
        assert plan.marker_moves == []
        assert not remapper.is_claimed(edge)

    def test_transition_marker_keeps_distance_to_new_end(self):
        v = Marker(ms(1995), "v")
        clip, _, plan, remapper = _setup([v])
        move = ClipMove.for_clip(clip, ms(1000), new_length=ms(500))
        remapper.remap_for_move(move)
        # 5ms before the new end at 1500
        assert _new_position(plan, v) == ms(1495)

    def test_transition_marker_on_end_boundary(self):
        v = Marker(ms(2000), "V")
        clip, _, plan, remapper = _setup([v])
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(3000)))
        assert _new_position(plan, v) == ms(4000)

    def test_marker_near_end_follows_shift(self):
        v = Marker(ms(1950), "v")
        clip, _, plan, remapper = _setup([v])
        move = ClipMove.for_clip(clip, ms(1200))
        remapper.remap_for_move(move)
        assert _new_position(plan, v) == move.new_end - ms(50)

    def test_first_claim_wins(self):
        note = Marker(ms(1500), "note")
        clip, _, plan, remapper = _setup([note])
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(1000)))
        assert remapper.is_claimed(note)
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(5000)))
        assert plan.marker_moves == []

    def test_snapshot_positions_used(self):
        note = Marker(ms(1500), "note")
        clip, _, plan, remapper = _setup([note])
        note.position = ms(9000)
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(0)))
        assert plan.marker_moves[0].original_position == ms(1500)
        assert plan.marker_moves[0].new_position == ms(500)


class TestTransitionSearch:

    def test_latest_marker_in_window(self):
        early, late = Marker(ms(1992), "v"), Marker(ms(1997), "v")
        _, _, _, remapper = _setup([early, late])
        assert remapper.find_transition_marker(ms(2000)) is late

    def test_outside_window_ignored(self):
        _, _, _, remapper = _setup([Marker(ms(1980), "v"), Marker(ms(1999), "note")])
        assert remapper.find_transition_marker(ms(2000)) is None

    def test_within_range_skips_claimed(self):
        a, b = Marker(ms(1200), "v"), Marker(ms(1700), "v")
        clip, _, _, remapper = _setup([a, b])
        remapper.remap_for_move(ClipMove.for_clip(clip, ms(1000)))
        assert remapper.transition_markers_within(ms(1000), ms(2000)) == []


class TestRemapProportional:

    def test_marker_distance_scaled(self):
        v = Marker(ms(2500), "v")
        clip, _, plan, remapper = _setup([v], start=1000, length=3000)
        move = ClipMove.for_clip(clip, ms(1000), new_length=ms(2000))
        remapper.remap_proportional(move, 1.5, 30.0, FixedRng(0))
        assert _new_position(plan, v) == ms(2000)

    def test_non_transition_markers_untouched(self):
        note = Marker(ms(2500), "note")
        clip, _, plan, remapper = _setup([note], start=1000, length=3000)
        move = ClipMove.for_clip(clip, ms(1000), new_length=ms(2000))
        remapper.remap_proportional(move, 1.5, 30.0, FixedRng(0))
        assert plan.marker_moves == []
