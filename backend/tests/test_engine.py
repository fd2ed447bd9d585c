import numpy as np
import pytest

from souris.services.engine import CollisionEngine, GameState, Signal
from souris.services.terrain import FINISH, OFF_PATH, PATH, START
from souris.services.timer import Timer


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def corridor(width=60, height=20):
    """Horizontal corridor on rows 8..11: START x<6, PATH 6..49, FINISH 50..54."""
    grid = np.zeros((width, height), dtype=np.uint8)
    grid[2:6, 8:12] = START
    grid[6:50, 8:12] = PATH
    grid[50:55, 8:12] = FINISH
    return grid


def long_corridor(width=1000):
    grid = np.zeros((width, 5), dtype=np.uint8)
    grid[0, :] = START
    grid[1:, :] = PATH
    return grid


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def engine(clock):
    return CollisionEngine(corridor(), tolerance=2, timer=Timer(clock=clock))


def test_starts_idle(engine):
    assert engine.state is GameState.IDLE
    assert engine.signal is None
    assert engine.result is None


def test_start_requires_start_cell(engine):
    assert engine.start((20, 9)) is False
    assert engine.state is GameState.IDLE
    assert engine.start((3, 9)) is True
    assert engine.state is GameState.PLAYING
    assert engine.start_position == (3, 9)
    assert engine.last_position == (3, 9)


def test_start_out_of_bounds_is_refused(engine):
    assert engine.start((-1, 9)) is False
    assert engine.start((500, 500)) is False


def test_start_only_from_idle(engine):
    assert engine.start((3, 9))
    assert engine.start((4, 9)) is False
    assert engine.start_position == (3, 9)


def test_update_ignored_when_not_playing(engine):
    assert engine.update_position(20, 9) is None
    assert engine.state is GameState.IDLE
    assert engine.last_position is None


def test_update_ignored_after_terminal_state(engine):
    engine.start((3, 9))
    assert engine.update_position(20, 2) == Signal.COLLISION
    assert engine.update_position(20, 9) is None
    assert engine.state is GameState.LOST
    assert engine.signal is Signal.COLLISION
    assert engine.last_position == (20, 2)


def test_moving_along_path_continues(engine):
    engine.start((3, 9))
    for x in range(4, 40):
        assert engine.update_position(x, 9) is None
    assert engine.state is GameState.PLAYING
    assert engine.last_position == (39, 9)


def test_reaching_finish_wins_with_elapsed_time(engine, clock):
    engine.start((3, 9))
    for x in range(4, 47):
        clock.advance(0.05)
        assert engine.update_position(x, 9) is None
    clock.advance(0.05)
    assert engine.update_position(47, 9) is None
    clock.advance(0.05)
    # x=48 is within two cells of the finish column
    assert engine.update_position(48, 9) == Signal.FINISH
    assert engine.state is GameState.WON
    assert engine.result == pytest.approx(2.25)
    assert engine.chrono_centiseconds == 225


def test_elapsed_is_frozen_after_win(engine, clock):
    engine.start((3, 9))
    clock.advance(1.234)
    engine.update_position(30, 9)
    engine.update_position(52, 9)
    assert engine.result == 1.23
    clock.advance(10)
    assert engine.elapsed == 1.23


def test_collision_beyond_tolerance(engine):
    engine.start((3, 9))
    # Three rows above the band is outside a tolerance of two
    assert engine.update_position(20, 5) == Signal.COLLISION
    assert engine.state is GameState.LOST


def test_jitter_within_tolerance_is_forgiven(engine):
    engine.start((3, 9))
    assert engine.update_position(20, 6) is None
    assert engine.update_position(20, 13) is None
    assert engine.state is GameState.PLAYING


def test_zero_tolerance_requires_exact_cell(clock):
    engine = CollisionEngine(corridor(), tolerance=0, timer=Timer(clock=clock))
    engine.start((3, 9))
    assert engine.update_position(20, 7) == Signal.COLLISION


def test_out_of_bounds(engine):
    engine.start((3, 9))
    assert engine.update_position(-5, 9) == Signal.OUT_OF_BOUNDS
    assert engine.state is GameState.LOST


def test_finish_takes_priority_over_out_of_bounds(clock):
    grid = np.zeros((10, 10), dtype=np.uint8)
    grid[0, :] = START
    grid[1:9, :] = PATH
    grid[9, :] = FINISH
    engine = CollisionEngine(grid, tolerance=2, timer=Timer(clock=clock))
    engine.start((0, 5))
    engine.update_position(5, 5)
    assert engine.update_position(10, 5) == Signal.FINISH


def test_finish_takes_priority_over_collision(clock):
    grid = np.zeros((20, 10), dtype=np.uint8)
    grid[0:2, 4] = START
    grid[2:10, 4] = PATH
    grid[10:12, 4] = FINISH
    engine = CollisionEngine(grid, tolerance=2, timer=Timer(clock=clock))
    engine.start((1, 4))
    assert engine.update_position(7, 4) is None
    # Off the thin path, but within tolerance of the finish
    assert engine.update_position(12, 6) == Signal.FINISH


def test_teleport_boundary(clock):
    engine = CollisionEngine(long_corridor(), tolerance=0, timer=Timer(clock=clock))
    engine.start((0, 2))
    assert engine.update_position(400, 2) is None
    assert engine.state is GameState.PLAYING
    assert engine.update_position(801, 2) == Signal.TELEPORT
    assert engine.state is GameState.LOST
    # position is not recorded for a rejected jump
    assert engine.last_position == (400, 2)


def test_teleport_uses_euclidean_distance(clock):
    grid = np.full((500, 500), PATH, dtype=np.uint8)
    grid[0, 0] = START
    engine = CollisionEngine(grid, timer=Timer(clock=clock))
    engine.start((0, 0))
    # 283^2 + 283^2 > 400^2
    assert engine.update_position(283, 283) == Signal.TELEPORT


def test_teleport_checked_before_finish(clock):
    grid = long_corridor()
    grid[900:, :] = FINISH
    engine = CollisionEngine(grid, timer=Timer(clock=clock))
    engine.start((0, 2))
    assert engine.update_position(950, 2) == Signal.TELEPORT


@pytest.mark.parametrize('reason, signal', [
    ('abandoned', Signal.ABANDONED),
    ('clicked', Signal.CLICKED),
    ('something-else', Signal.ABANDONED),
])
def test_abandon(engine, reason, signal):
    engine.start((3, 9))
    assert engine.abandon(reason) == signal
    assert engine.state is GameState.LOST
    assert engine.result is None


def test_abandon_is_noop_when_idle(engine):
    assert engine.abandon('clicked') is None
    assert engine.state is GameState.IDLE


def test_reset_from_any_state(engine):
    engine.start((3, 9))
    engine.update_position(20, 0)
    assert engine.state is GameState.LOST
    engine.reset()
    assert engine.state is GameState.IDLE
    assert engine.signal is None
    assert engine.start_position is None
    assert engine.last_position is None
    assert engine.elapsed == 0.0
    assert engine.start((3, 9))


def test_reset_after_win_clears_result(engine):
    engine.start((3, 9))
    engine.update_position(50, 9)
    assert engine.state is GameState.WON
    engine.reset()
    assert engine.result is None
    assert engine.chrono_centiseconds is None


def test_to_dict_reports_chrono_only_on_win(engine, clock):
    engine.start((3, 9))
    assert engine.to_dict() == {'state': 'playing', 'signal': None, 'elapsed': 0.0}
    clock.advance(3.5)
    engine.update_position(51, 9)
    assert engine.to_dict() == {
        'state': 'won',
        'signal': 'finish',
        'elapsed': 3.5,
        'chronoCentiseconds': 350,
    }


def test_rejects_invalid_grid():
    with pytest.raises(ValueError):
        CollisionEngine(np.zeros(5, dtype=np.uint8))
    with pytest.raises(ValueError):
        CollisionEngine(corridor(), tolerance=-1)


def test_off_path_constant_matches_empty_cells():
    assert corridor()[0, 0] == OFF_PATH
