"""
Unit tests for WheelCoalescer gesture handling.
"""

import pytest

from mdx_presenter import (
    WHEEL_CONSUMED,
    WHEEL_IGNORED,
    WHEEL_TRIGGERED,
    RevealStore,
    WheelCoalescer,
    WheelConfig,
    segment_document,
)

DOC = "# Slide\n\none\ntwo\nthree\nfour\nfive"


@pytest.fixture
def store():
    return RevealStore(segment_document(DOC))


@pytest.fixture
def coalescer(store, clock):
    return WheelCoalescer(store, WheelConfig(threshold=200, idle_reset_ms=300, cooldown_ms=500), clock=clock)


def visible_count(store):
    return sum(store.visibility(store.current_slide.id))


class TestCoalescing:
    def test_three_small_deltas_trigger_exactly_once(self, store, coalescer, clock):
        outcomes = [coalescer.handle(80, clock.advance(10)) for _ in range(3)]
        assert outcomes == [WHEEL_CONSUMED, WHEEL_CONSUMED, WHEEL_TRIGGERED]
        assert visible_count(store) == 2
        assert coalescer.accumulated == 0

    def test_after_trigger_cooldown_suppresses_without_accumulating(self, store, coalescer, clock):
        coalescer.handle(250, clock.advance(10))
        assert coalescer.handle(500, clock.advance(100)) == WHEEL_CONSUMED
        assert coalescer.accumulated == 0
        assert visible_count(store) == 2

    def test_after_cooldown_next_gesture_accumulates_anew(self, store, coalescer, clock):
        for _ in range(3):
            coalescer.handle(80, clock.advance(10))
        clock.advance(600)
        assert coalescer.handle(80, clock.now) == WHEEL_CONSUMED
        assert coalescer.accumulated == 80
        coalescer.handle(80, clock.advance(10))
        assert coalescer.handle(80, clock.advance(10)) == WHEEL_TRIGGERED
        assert visible_count(store) == 3

    def test_idle_gap_resets_accumulator(self, coalescer, clock):
        coalescer.handle(150, clock.advance(10))
        assert coalescer.handle(100, clock.advance(301)) == WHEEL_CONSUMED
        assert coalescer.accumulated == 100

    def test_gap_within_idle_window_keeps_accumulating(self, coalescer, clock):
        coalescer.handle(150, clock.advance(10))
        assert coalescer.handle(60, clock.advance(300)) == WHEEL_TRIGGERED

    def test_single_coarse_delta_triggers_once(self, store, coalescer, clock):
        assert coalescer.handle(1200, clock.advance(10)) == WHEEL_TRIGGERED
        assert visible_count(store) == 2

    def test_uses_clock_when_no_timestamp(self, store, coalescer, clock):
        assert coalescer.handle(200) == WHEEL_TRIGGERED
        assert coalescer.last_trigger_at == clock.now


class TestPassThrough:
    def test_backward_delta_ignored(self, coalescer, clock):
        assert coalescer.handle(-300, clock.advance(10)) == WHEEL_IGNORED
        assert coalescer.handle(0, clock.advance(10)) == WHEEL_IGNORED
        assert coalescer.accumulated == 0

    def test_fully_revealed_slide_ignored(self, store, coalescer, clock):
        while store.reveal_next():
            pass
        assert coalescer.handle(500, clock.advance(1000)) == WHEEL_IGNORED

    def test_no_slides_ignored(self, clock):
        coalescer = WheelCoalescer(RevealStore(), clock=clock)
        assert coalescer.handle(500) == WHEEL_IGNORED

    def test_never_reveals_past_last_segment(self, store, coalescer, clock):
        for _ in range(40):
            coalescer.handle(400, clock.advance(600))
        assert visible_count(store) == 6
        assert coalescer.handle(400, clock.advance(600)) == WHEEL_IGNORED


class TestStateHandling:
    def test_reset_clears_gesture_state(self, coalescer, clock):
        coalescer.handle(250, clock.advance(10))
        coalescer.reset()
        assert coalescer.accumulated == 0
        assert coalescer.last_event_at is None
        assert coalescer.last_trigger_at is None
        assert coalescer.handle(250, clock.advance(10)) == WHEEL_TRIGGERED

    def test_timestamps_going_backwards_start_over(self, coalescer):
        assert coalescer.handle(250, 50_000) == WHEEL_TRIGGERED
        # A reloaded page restarts its event clock near zero.
        assert coalescer.handle(250, 20) == WHEEL_TRIGGERED

    @pytest.mark.parametrize(
        "kwargs",
        [{"threshold": 0}, {"threshold": -5}, {"idle_reset_ms": -1}, {"cooldown_ms": -1}],
    )
    def test_config_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            WheelConfig(**kwargs)
