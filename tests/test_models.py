"""Tests for recut data models: Timecode math, frame rounding, and the document model.

Covers the interval arithmetic and clip/track/project behaviour every edit
operation builds on.
"""

import random

import pytest

from recut.models import (
    AudioClip,
    ClipMove,
    ConfigurationError,
    EditConfig,
    EditPlan,
    InputError,
    Marker,
    Project,
    RoundingMode,
    Timecode,
    TimingAdjustment,
    Track,
    TrackRole,
    VideoClip,
)

FPS = 30.0


def ms(value: float) -> Timecode:
    return Timecode.from_milliseconds(value)


class FixedRng:
    """Tie-break source that always returns the same choice."""

    def __init__(self, value: int):
        self.value = value

    def randrange(self, n):
        return self.value


class TestTimecodeCreation:

    def test_from_milliseconds(self):
        assert ms(1500).ticks == 15_000_000

    def test_from_seconds(self):
        assert Timecode.from_seconds(1.5) == ms(1500)

    def test_from_frames(self):
        assert Timecode.from_frames(45, FPS) == ms(1500)

    def test_from_string_milliseconds(self):
        assert Timecode.from_string("1500ms") == ms(1500)

    def test_from_string_plain_number_is_milliseconds(self):
        assert Timecode.from_string("250") == ms(250)

    def test_from_string_seconds(self):
        assert Timecode.from_string("1.5s") == ms(1500)

    def test_from_string_frames(self):
        assert Timecode.from_string("45f", fps=FPS) == ms(1500)

    def test_from_string_smpte(self):
        assert Timecode.from_string("00:00:01:15", fps=FPS) == ms(1500)

    def test_from_string_clock(self):
        assert Timecode.from_string("00:01:30.500") == Timecode.from_seconds(90.5)

    def test_from_string_minutes_seconds(self):
        assert Timecode.from_string("01:02.5") == Timecode.from_seconds(62.5)

    def test_from_string_negative(self):
        assert Timecode.from_string("-200ms") == ms(-200)

    def test_from_empty_string(self):
        assert Timecode.from_string("") == Timecode.zero()

    def test_invalid_format_raises(self):
        with pytest.raises(ValueError, match="Invalid timecode format"):
            Timecode.from_string("not_a_timecode")

    @pytest.mark.parametrize("text", ["1e400", "1e400ms", "1e400s", "-1e400", "inf", "nan"])
    def test_non_finite_raises(self, text):
        with pytest.raises(ValueError, match="Invalid timecode format"):
            Timecode.from_string(text)


class TestTimecodeConversions:

    def test_to_milliseconds(self):
        assert ms(1234.5).to_milliseconds() == pytest.approx(1234.5)

    def test_to_seconds(self):
        assert ms(2500).to_seconds() == pytest.approx(2.5)

    def test_to_string_whole(self):
        assert ms(1500).to_string() == "1500ms"

    def test_to_string_fraction(self):
        assert Timecode.from_frames(1, FPS).to_string() == "33.3333ms"

    def test_to_string_round_trips(self):
        tc = ms(1234.5)
        assert Timecode.from_string(tc.to_string()) == tc

    def test_to_smpte(self):
        assert Timecode.from_seconds(90.5).to_smpte(FPS) == "00:01:30:15"

    def test_repr(self):
        assert repr(ms(10)) == "Timecode(10ms)"


class TestTimecodeArithmetic:

    def test_add_sub(self):
        assert ms(1000) + ms(250) == ms(1250)
        assert ms(1000) - ms(250) == ms(750)

    def test_negative(self):
        assert -ms(100) == ms(-100)
        assert abs(ms(-100)) == ms(100)

    def test_ordering(self):
        assert ms(100) < ms(200)
        assert ms(200) >= ms(200)
        assert max(ms(1), ms(3), ms(2)) == ms(3)

    def test_scale(self):
        assert ms(1000).scale(0.5) == ms(500)

    def test_truthiness(self):
        assert not Timecode.zero()
        assert ms(1)

    def test_hashable(self):
        assert len({ms(100), ms(100), ms(200)}) == 2


class TestFrameRounding:

    def test_frame_count_truncates(self):
        assert ms(1010).frame_count(FPS) == 30

    def test_frame_count_on_inexact_boundary(self):
        # one frame at 30fps is 333333 ticks, just below the exact value
        assert Timecode.from_frames(1, FPS).frame_count(FPS) == 1

    def test_round_down(self):
        assert ms(1010).round_to_frame(FPS, RoundingMode.DOWN) == ms(1000)

    def test_round_up(self):
        assert ms(1010).round_to_frame(FPS, RoundingMode.UP) == Timecode.from_frames(31, FPS)

    def test_round_nearest(self):
        assert ms(1010).round_to_frame(FPS, RoundingMode.NEAREST) == ms(1000)
        assert ms(1025).round_to_frame(FPS, RoundingMode.NEAREST) == Timecode.from_frames(31, FPS)

    def test_round_random_uses_rng(self):
        assert ms(1010).round_random_to_frame(FPS, FixedRng(0)) == ms(1000)
        assert ms(1010).round_random_to_frame(FPS, FixedRng(1)) == Timecode.from_frames(31, FPS)

    def test_is_frame_aligned(self):
        assert ms(1000).is_frame_aligned(FPS)
        assert not ms(1010).is_frame_aligned(FPS)


class TestRoundWithoutRedundancy:

    def test_aligned_length_kept(self):
        result = Timecode.round_without_redundancy(ms(1000), ms(5000), FPS, FixedRng(1))
        assert result == ms(1000)

    def test_aligned_original_length_rounds_up(self):
        result = Timecode.round_without_redundancy(ms(1000), ms(1000), FPS, FixedRng(0))
        assert result == Timecode.from_frames(31, FPS)

    def test_zero_round_down_rounds_up(self):
        result = Timecode.round_without_redundancy(ms(10), ms(500), FPS, FixedRng(0))
        assert result == Timecode.from_frames(1, FPS)

    def test_round_up_equal_to_original_rounds_down(self):
        result = Timecode.round_without_redundancy(ms(990), ms(1000), FPS, FixedRng(1))
        assert result == Timecode.from_frames(29, FPS)

    def test_tie_break_is_injected(self):
        down = Timecode.round_without_redundancy(ms(1010), ms(5000), FPS, FixedRng(0))
        up = Timecode.round_without_redundancy(ms(1010), ms(5000), FPS, FixedRng(1))
        assert down == ms(1000)
        assert up == Timecode.from_frames(31, FPS)

    def test_degenerate_case_returns_round_up(self):
        one_frame = Timecode.from_frames(1, FPS)
        result = Timecode.round_without_redundancy(ms(10), one_frame, FPS, FixedRng(0))
        assert result == one_frame

    def test_never_returns_original_length(self):
        rng = random.Random(7)
        for frames in range(2, 120):
            old = Timecode.from_frames(frames, FPS)
            for factor in (0.9, 1.0, 1.0 / 0.9, 1.01, 0.99, 3.0):
                new = old.scale(1.0 / factor)
                result = Timecode.round_without_redundancy(new, old, FPS, rng)
                assert result != old
                assert result.ticks > 0


class TestClip:

    def _track_with(self, clip):
        return Track(name="main", clips=[clip])

    def test_end(self):
        clip = VideoClip(start=ms(1000), length=ms(500))
        assert clip.end == ms(1500)

    def test_index_follows_track_order(self):
        a = VideoClip(start=ms(1000), length=ms(500))
        b = VideoClip(start=ms(0), length=ms(500))
        track = Track(name="main", clips=[a, b])
        assert track.clips == [b, a]
        assert a.index == 1 and b.index == 0

    def test_reposition_keeps_identity(self):
        clip = VideoClip(start=ms(0), length=ms(500))
        track = self._track_with(clip)
        clip.reposition(ms(200), ms(300))
        assert track.clips[0] is clip
        assert clip.start == ms(200) and clip.length == ms(300)

    def test_split_at(self):
        clip = VideoClip(start=ms(0), length=ms(1000), fade_in=ms(100),
                         fade_out=ms(200), velocity=1.5, group_id="g")
        track = self._track_with(clip)
        right = clip.split_at(ms(400))
        assert track.clips == [clip, right]
        assert clip.length == ms(400) and clip.fade_in == ms(100) and clip.fade_out == ms(0)
        assert right.start == ms(400) and right.length == ms(600)
        assert right.fade_in == ms(0) and right.fade_out == ms(200)
        assert right.velocity == 1.5 and right.group_id == "g"
        assert isinstance(right, VideoClip)

    def test_split_outside_clip_raises(self):
        clip = VideoClip(start=ms(0), length=ms(1000))
        self._track_with(clip)
        with pytest.raises(InputError):
            clip.split_at(ms(0))
        with pytest.raises(InputError):
            clip.split_at(ms(1000))

    def test_set_playback_rate_preserving_length(self):
        clip = VideoClip(start=ms(0), length=ms(1000))
        clip.set_playback_rate(2.0, preserve_length=True)
        assert clip.playback_rate == 2.0 and clip.length == ms(1000)

    def test_set_playback_rate_stretching(self):
        clip = VideoClip(start=ms(0), length=ms(1000))
        clip.set_playback_rate(2.0, preserve_length=False)
        assert clip.length == ms(500)

    def test_invalid_playback_rate(self):
        with pytest.raises(InputError):
            VideoClip(start=ms(0), length=ms(1000)).set_playback_rate(0)


class TestVelocityCapability:

    def test_video_clip_envelope(self):
        clip = VideoClip(start=ms(0), length=ms(1000))
        assert clip.supports_velocity_envelope()
        assert not clip.has_velocity_envelope()
        clip.set_velocity(1.25)
        assert clip.has_velocity_envelope() and clip.velocity_factor == 1.25
        clip.remove_velocity()
        assert not clip.has_velocity_envelope() and clip.velocity_factor == 1.0

    def test_audio_clip_has_no_envelope(self):
        clip = AudioClip(start=ms(0), length=ms(1000))
        assert not clip.supports_velocity_envelope()
        assert not clip.has_velocity_envelope()
        assert clip.velocity_factor == 1.0


class TestTrackAndProject:

    def test_track_roles(self):
        config = EditConfig()
        assert Track(name="Main").role(config) == TrackRole.PRIMARY
        assert Track(name="MUSIC").role(config) == TrackRole.EXCLUDED
        assert Track(name="broll").role(config) == TrackRole.AUXILIARY
        assert Track(name=None).role(config) == TrackRole.AUXILIARY

    def test_add_keeps_start_order(self):
        track = Track(name="main", clips=[VideoClip(start=ms(1000), length=ms(100))])
        early = track.add(VideoClip(start=ms(0), length=ms(100)))
        assert track.clips[0] is early
        assert early.track is track

    def test_clip_at_is_half_open(self):
        a = VideoClip(start=ms(0), length=ms(1000))
        b = VideoClip(start=ms(1000), length=ms(1000))
        track = Track(name="main", clips=[a, b])
        assert track.clip_at(ms(999)) is a
        assert track.clip_at(ms(1000)) is b
        assert track.clip_at(ms(2000)) is None

    def test_primary_track_found(self):
        main = Track(name="Main", kind="video")
        project = Project(tracks=[Track(name="broll"), main])
        assert project.primary_track(EditConfig()) is main

    def test_primary_track_must_be_video(self):
        project = Project(tracks=[Track(name="main", kind="audio")])
        with pytest.raises(ConfigurationError, match="No video track named 'main' found."):
            project.primary_track(EditConfig())

    def test_auxiliary_tracks_skip_primary_and_excluded(self):
        main = Track(name="main")
        broll = Track(name="broll")
        project = Project(tracks=[main, Track(name="music", kind="audio"), broll, Track(name=None)])
        aux = project.auxiliary_tracks(main, EditConfig())
        assert broll in aux and len(aux) == 2

    def test_markers_kept_sorted(self):
        project = Project()
        project.add_marker(Marker(ms(500), "b"))
        project.add_marker(Marker(ms(100), "a"))
        project.add_marker(Marker(ms(900), "c"))
        assert [m.label for m in project.markers] == ["a", "b", "c"]

    def test_transition_markers(self):
        project = Project(markers=[Marker(ms(100), "V"), Marker(ms(200), "note")])
        assert [m.label for m in project.transition_markers(EditConfig())] == ["V"]


class TestEditConfig:

    def test_defaults(self):
        config = EditConfig()
        assert config.min_speed == 0.25 and config.max_speed == 4.0
        assert config.transition_tolerance == ms(10)

    def test_invalid_speed_range(self):
        with pytest.raises(ConfigurationError):
            EditConfig(min_speed=2.0, max_speed=1.0)

    def test_invalid_cut_unit(self):
        with pytest.raises(ConfigurationError):
            EditConfig(cut_timestamp_unit="frames")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RECUT_PRIMARY_TRACK", "yeet")
        monkeypatch.setenv("RECUT_EXCLUDED_TRACKS", "music, vo")
        monkeypatch.setenv("RECUT_MAX_SPEED", "8")
        monkeypatch.setenv("RECUT_CUT_UNIT", "S")
        config = EditConfig.from_env()
        assert config.primary_track_name == "yeet"
        assert config.excluded_track_names == ("music", "vo")
        assert config.max_speed == 8.0
        assert config.cut_timestamp_unit == "s"

    def test_from_env_invalid_speed(self, monkeypatch):
        monkeypatch.setenv("RECUT_MIN_SPEED", "fast")
        with pytest.raises(ConfigurationError):
            EditConfig.from_env()


class TestTimingAdjustment:

    def test_contains_is_half_open(self):
        adj = TimingAdjustment(ms(1000), ms(2000), ms(1000), ms(1500))
        assert adj.contains(ms(1000))
        assert not adj.contains(ms(2000))

    def test_flat_mapping(self):
        adj = TimingAdjustment(ms(1000), ms(2000), ms(400), ms(1400))
        assert adj.map_flat(ms(1500)) == ms(900)

    def test_proportional_mapping(self):
        adj = TimingAdjustment(ms(1000), ms(2000), ms(1000), ms(1500))
        assert adj.map_proportional(ms(1500)) == ms(1250)

    def test_zero_length_is_noop(self):
        adj = TimingAdjustment(ms(1000), ms(1000), ms(3000), ms(3500))
        assert adj.map_proportional(ms(1000)) == ms(1000)

    def test_proportional_preserves_relative_position(self):
        adj = TimingAdjustment(ms(1000), ms(4000), ms(2500), ms(3700))
        for step in range(0, 3000, 37):
            point = ms(1000 + step)
            mapped = adj.map_proportional(point)
            expected_relative = (point - adj.old_start).ticks / adj.old_length.ticks
            reconstructed = adj.new_start + adj.new_length.scale(expected_relative)
            assert abs((mapped - reconstructed).ticks) <= 1
            assert adj.new_start <= mapped < adj.new_end


class TestPlanModels:

    def test_clip_move_snapshot(self):
        clip = VideoClip(start=ms(1000), length=ms(500))
        move = ClipMove.for_clip(clip, ms(200))
        clip.reposition(ms(5000))
        assert move.original_start == ms(1000)
        assert move.shift == ms(-800)
        assert move.new_end == ms(700)

    def test_to_adjustment(self):
        clip = VideoClip(start=ms(1000), length=ms(500))
        adj = ClipMove.for_clip(clip, ms(1000), new_length=ms(250)).to_adjustment()
        assert adj == TimingAdjustment(ms(1000), ms(1500), ms(1000), ms(1250))
        assert adj.new_length == ms(250)

    def test_plan_partitions_moves(self):
        a = VideoClip(start=ms(0), length=ms(100))
        b = VideoClip(start=ms(0), length=ms(100))
        plan = EditPlan(clip_moves=[
            ClipMove.for_clip(a, ms(10)),
            ClipMove.for_clip(b, ms(10), auxiliary=True),
        ])
        assert [m.clip for m in plan.primary_moves] == [a]
        assert [m.clip for m in plan.auxiliary_moves] == [b]
        assert not plan.is_empty
