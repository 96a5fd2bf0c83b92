# tests/sim/test_clock.py
from datetime import UTC, datetime

import pytest

from pool_sim.sim.clock import SEC, TickClock, seconds, to_seconds


def test_advance_moves_by_whole_ticks():
    c = TickClock(250)
    assert c.advance() == 250
    assert c.advance() == 500
    assert c.tick == 2
    assert c.tick_s == 0.25


def test_reset_and_wall_mapping():
    c = TickClock(250, epoch=datetime(2025, 1, 1, tzinfo=UTC))
    c.advance()
    c.reset()
    assert (c.tick, c.now_ms) == (0, 0)
    assert c.to_wall(90 * SEC) == datetime(2025, 1, 1, 0, 1, 30, tzinfo=UTC)


def test_unit_helpers():
    assert seconds(1.5) == 1_500
    assert to_seconds(250) == 0.25
    with pytest.raises(ValueError):
        TickClock(0)
