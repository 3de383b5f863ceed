"""
Tests for the per-frame motion controller.

Frames are driven explicitly with tick(timestamp) and a fake clock so the
tests are deterministic.
"""

import asyncio

import pytest

from voicecue.motion import MotionController, MotionOptions, ScrollState
from voicecue.viewport import HeadlessViewport

FRAME: float = 1 / 60


class FakeClock:
    """Clock controlled by the test."""

    def __init__(self) -> None:
        self.now: float = 0.0

    def __call__(self) -> float:
        return self.now


class StubPosition:
    """Position source with a settable confirmed position."""

    def __init__(self, position: int = 0) -> None:
        self.position: int = position

    def get_confirmed_position(self) -> int:
        return self.position


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> StubPosition:
    return StubPosition()


@pytest.fixture
def viewport() -> HeadlessViewport:
    # 1000px viewport, 2000px of content between the padding: 20px per word
    return HeadlessViewport(scroll_height=3000, client_height=1000)


@pytest.fixture
def controller(viewport: HeadlessViewport, source: StubPosition, clock: FakeClock) -> MotionController:
    return MotionController(viewport, source, 100, clock=clock)


def run_frames(controller: MotionController, clock: FakeClock, count: int) -> None:
    for _ in range(count):
        clock.now += FRAME
        controller.tick(clock.now)


class TestGeometry:
    """Tests for the position to offset mapping."""

    def test_pixels_per_word(self, controller: MotionController) -> None:
        assert controller.pixels_per_word() == pytest.approx(20.0)

    def test_position_to_offset(self, controller: MotionController) -> None:
        # padding 500 + word position - caret 330
        assert controller.position_to_offset(0) == pytest.approx(170.0)
        assert controller.position_to_offset(50) == pytest.approx(1170.0)

    def test_offset_clamped_to_max_scroll(self, controller: MotionController) -> None:
        assert controller.position_to_offset(100) == pytest.approx(2000.0)

    def test_offset_never_negative(self, viewport: HeadlessViewport, source: StubPosition) -> None:
        controller = MotionController(viewport, source, 100, MotionOptions(caret_percent=90))
        assert controller.position_to_offset(0) == 0.0

    def test_non_scrollable_viewport(self, source: StubPosition) -> None:
        controller = MotionController(HeadlessViewport(800, 1000), source, 100)
        assert controller.position_to_offset(50) == 0.0

    def test_empty_script(self, viewport: HeadlessViewport, source: StubPosition) -> None:
        controller = MotionController(viewport, source, 0)
        assert controller.pixels_per_word() == 0.0
        assert controller.position_to_offset(5) == 0.0

    def test_caret_percent_clamped(self, controller: MotionController) -> None:
        controller.set_caret_percent(5)
        assert controller.caret_percent == 10
        controller.set_caret_percent(95)
        assert controller.caret_percent == 90
        controller.set_caret_percent(50)
        assert controller.caret_percent == 50

    def test_caret_moves_offset(self, controller: MotionController) -> None:
        controller.set_caret_percent(50)
        assert controller.position_to_offset(50) == pytest.approx(1000.0)


class TestPace:
    """Tests for speaking pace estimation."""

    def test_initial_pace(self, controller: MotionController) -> None:
        assert controller.speaking_pace == 2.5
        assert controller.calculate_base_speed() == pytest.approx(50.0)

    def test_first_update_sets_baseline_only(self, controller: MotionController) -> None:
        controller.update_pace(5, 1.0)
        assert controller.speaking_pace == 2.5

    def test_moving_average(self, controller: MotionController) -> None:
        controller.update_pace(0, 0.0)
        controller.update_pace(10, 2.0)  # 5 words/s
        assert controller.speaking_pace == pytest.approx(2.5 * 0.7 + 5.0 * 0.3)

    def test_long_gap_ignored(self, controller: MotionController) -> None:
        controller.update_pace(0, 0.0)
        controller.update_pace(10, 6.0)
        assert controller.speaking_pace == 2.5

    def test_pace_clamped(self, controller: MotionController) -> None:
        controller.update_pace(0, 0.0)
        controller.update_pace(100, 0.5)  # 200 words/s
        assert controller.speaking_pace == pytest.approx(2.5 * 0.7 + 10 * 0.3)

    def test_no_update_without_progress(self, controller: MotionController) -> None:
        controller.update_pace(10, 0.0)
        controller.update_pace(10, 1.0)
        assert controller.speaking_pace == 2.5


class TestLifecycle:
    """Tests for start, stop, reset and state notifications."""

    def test_start_without_loop(self, controller: MotionController) -> None:
        states: list[ScrollState] = []
        controller.subscribe(states.append)
        controller.start()
        assert controller.state is ScrollState.TRACKING
        assert states == [ScrollState.TRACKING]
        assert not controller.is_running

    def test_stop(self, controller: MotionController, source: StubPosition) -> None:
        source.position = 12
        states: list[ScrollState] = []
        controller.subscribe(states.append)
        controller.start()
        controller.stop()
        assert controller.state is ScrollState.STOPPED
        assert states == [ScrollState.TRACKING, ScrollState.STOPPED]
        assert source.get_confirmed_position() == 12

    def test_constructor_callback(self, viewport: HeadlessViewport, source: StubPosition) -> None:
        states: list[ScrollState] = []
        controller = MotionController(viewport, source, 100, on_state_change=states.append)
        controller.start()
        assert states == [ScrollState.TRACKING]

    def test_unsubscribe(self, controller: MotionController) -> None:
        states: list[ScrollState] = []
        unsubscribe = controller.subscribe(states.append)
        unsubscribe()
        controller.start()
        assert states == []

    def test_reset_places_first_word_at_caret(self, controller: MotionController, viewport: HeadlessViewport) -> None:
        controller.display_position = 40
        controller.speaking_pace = 6.0
        controller.is_catching_up = True
        controller.reset()
        assert viewport.scroll_top == pytest.approx(170.0)
        assert controller.display_position == 0
        assert controller.speaking_pace == 2.5
        assert not controller.is_catching_up
        assert controller.state is ScrollState.STOPPED

    def test_reset_offset_clamped_for_low_caret(self, controller: MotionController,
                                                viewport: HeadlessViewport) -> None:
        controller.set_caret_percent(80)
        controller.reset()
        assert viewport.scroll_top == 0.0
        assert viewport.scroll_top == controller.position_to_offset(0)

    def test_reset_offset_clamped_for_short_content(self, source: StubPosition) -> None:
        viewport = HeadlessViewport(scroll_height=800, client_height=1000, scroll_top=50)
        controller = MotionController(viewport, source, 100)
        controller.reset()
        assert viewport.scroll_top == 0.0

    def test_no_motion_while_stopped(self, controller: MotionController, clock: FakeClock,
                                     viewport: HeadlessViewport, source: StubPosition) -> None:
        source.position = 30
        run_frames(controller, clock, 30)
        assert viewport.history == []


class TestTick:
    """Tests for per-frame motion."""

    def test_long_frame_skipped(self, controller: MotionController, clock: FakeClock,
                                viewport: HeadlessViewport) -> None:
        viewport.scroll_top = 170
        controller.start()
        clock.now = 0.5
        controller.tick(clock.now)
        assert viewport.scroll_top == 170
        assert controller.last_timestamp == 0.5

    def test_scrolls_forward_while_tracking(self, controller: MotionController, clock: FakeClock,
                                            viewport: HeadlessViewport) -> None:
        viewport.scroll_top = 170
        controller.start()
        run_frames(controller, clock, 60)
        assert viewport.scroll_top > 170

    def test_display_position_follows_confirmed(self, controller: MotionController, clock: FakeClock,
                                                source: StubPosition) -> None:
        controller.start()
        source.position = 5
        run_frames(controller, clock, 1)
        assert 0 < controller.display_position < 5
        run_frames(controller, clock, 120)
        assert controller.display_position == 5

    def test_scroll_clamped(self, controller: MotionController, clock: FakeClock,
                            viewport: HeadlessViewport, source: StubPosition) -> None:
        viewport.scroll_top = 1990
        source.position = 100
        controller.display_position = 100
        controller.start()
        run_frames(controller, clock, 120)
        assert viewport.scroll_top <= 2000

    def test_holding_after_timeout(self, controller: MotionController, clock: FakeClock) -> None:
        states: list[ScrollState] = []
        controller.subscribe(states.append)
        controller.start()
        run_frames(controller, clock, int(4.9 * 60))
        assert controller.state is ScrollState.TRACKING
        run_frames(controller, clock, 20)
        assert controller.state is ScrollState.HOLDING
        assert states == [ScrollState.TRACKING, ScrollState.HOLDING]
        assert controller.calculate_base_speed() == 0.0

    def test_advance_resumes_tracking(self, controller: MotionController, clock: FakeClock,
                                      source: StubPosition) -> None:
        states: list[ScrollState] = []
        controller.subscribe(states.append)
        controller.start()
        run_frames(controller, clock, 6 * 60)
        assert controller.state is ScrollState.HOLDING

        source.position = 3
        controller.on_position_advanced(3, 0)
        assert controller.state is ScrollState.TRACKING
        assert states[-1] is ScrollState.TRACKING

    def test_holding_settles_on_confirmed_position(self, controller: MotionController, clock: FakeClock,
                                                   viewport: HeadlessViewport) -> None:
        viewport.scroll_top = 170
        controller.start()
        run_frames(controller, clock, 15 * 60)
        assert controller.state is ScrollState.HOLDING
        assert abs(viewport.scroll_top - controller.position_to_offset(0)) < 6


class TestCatchUp:
    """Tests for catch-up after a skip."""

    def test_small_advance_no_catch_up(self, controller: MotionController) -> None:
        controller.start()
        controller.on_position_advanced(8, 0)
        assert not controller.is_catching_up
        assert controller.display_position == 0

    def test_skip_enters_catch_up_without_full_snap(self, controller: MotionController) -> None:
        controller.start()
        controller.on_position_advanced(50, 0)
        assert controller.is_catching_up
        assert controller.display_position == 47

    def test_catch_up_exits_when_synced(self, controller: MotionController, clock: FakeClock,
                                        viewport: HeadlessViewport, source: StubPosition) -> None:
        viewport.scroll_top = 170
        controller.start()
        run_frames(controller, clock, 60)

        source.position = 50
        controller.on_position_advanced(50, 0)
        assert controller.is_catching_up

        frames: int = 0
        while controller.is_catching_up and frames < 900:
            run_frames(controller, clock, 1)
            frames += 1

        assert not controller.is_catching_up
        assert controller.display_position == 50
        assert viewport.scroll_top > controller.position_to_offset(45)

    def test_catch_up_ends_within_twice_deadband(self, controller: MotionController, clock: FakeClock,
                                                 viewport: HeadlessViewport, source: StubPosition) -> None:
        """A 10 -> 40 jump catches up and leaves catch-up only once nearly synced."""
        source.position = 10
        controller.display_position = 10
        viewport.scroll_top = controller.position_to_offset(10)
        controller.start()

        source.position = 40
        controller.on_position_advanced(40, 10)
        assert controller.is_catching_up
        assert 10 < controller.display_position < 40

        target: float = controller.position_to_offset(40)
        for _ in range(900):
            error_before: float = target - viewport.scroll_top
            run_frames(controller, clock, 1)
            if not controller.is_catching_up:
                break
        assert not controller.is_catching_up
        assert controller.display_position == 40
        assert abs(error_before) < 2 * controller.options.sync_deadband

    def test_catch_up_faster_than_normal(self) -> None:
        """The same gap closes faster after a skip than in normal tracking."""
        def distance_after_one_second(skip: bool) -> float:
            view = HeadlessViewport(scroll_height=3000, client_height=1000, scroll_top=170)
            stub = StubPosition()
            fake = FakeClock()
            controller = MotionController(view, stub, 100, clock=fake)
            controller.start()
            stub.position = 50
            if skip:
                controller.on_position_advanced(50, 0)
            else:
                controller.display_position = 47
            run_frames(controller, fake, 60)
            return view.scroll_top

        assert distance_after_one_second(True) > distance_after_one_second(False)


class TestFrameLoop:
    """Tests for the asyncio frame task."""

    @pytest.mark.asyncio
    async def test_start_schedules_frames(self, viewport: HeadlessViewport, source: StubPosition) -> None:
        controller = MotionController(viewport, source, 100, MotionOptions(frame_interval=0.005))
        controller.start()
        assert controller.is_running
        await asyncio.sleep(0.1)
        assert viewport.history

        controller.stop()
        assert not controller.is_running
        written: int = len(viewport.history)
        await asyncio.sleep(0.05)
        assert len(viewport.history) == written

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, viewport: HeadlessViewport, source: StubPosition) -> None:
        controller = MotionController(viewport, source, 100)
        controller.start()
        task = controller._frame_task
        controller.start()
        assert controller._frame_task is task
        controller.stop()
