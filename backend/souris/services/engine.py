"""Collision and progress engine for one circuit attempt.

State pipeline: idle -> playing -> won | lost. Losing or winning is a
state transition plus a signal, never an exception, so callers can
render every outcome the same way. ``reset()`` is the only way out of a
terminal state.

The engine is not thread-safe; drive it from a single event source.
"""

import enum
import math
from typing import Optional, Tuple

import numpy as np

from .terrain import FINISH, PATH, START
from .timer import Timer

DEFAULT_TELEPORT_DISTANCE = 400.0
DEFAULT_TOLERANCE = 2


class GameState(str, enum.Enum):
    IDLE = 'idle'
    PLAYING = 'playing'
    WON = 'won'
    LOST = 'lost'


class Signal(str, enum.Enum):
    FINISH = 'finish'
    TELEPORT = 'teleport'
    OUT_OF_BOUNDS = 'out-of-bounds'
    COLLISION = 'collision'
    ABANDONED = 'abandoned'
    CLICKED = 'clicked'


ABANDON_REASONS = {
    'abandoned': Signal.ABANDONED,
    'clicked': Signal.CLICKED,
}


class CollisionEngine:
    def __init__(
        self,
        grid: np.ndarray,
        tolerance: int = DEFAULT_TOLERANCE,
        teleport_distance: float = DEFAULT_TELEPORT_DISTANCE,
        timer: Optional[Timer] = None,
    ):
        if grid is None or grid.ndim != 2:
            raise ValueError('grid must be a 2D terrain array')
        if tolerance < 0:
            raise ValueError('tolerance must be >= 0')
        self.grid = grid
        self.width, self.height = int(grid.shape[0]), int(grid.shape[1])
        self.tolerance = int(tolerance)
        self.teleport_distance = float(teleport_distance)
        self.timer = timer or Timer()
        self._state = GameState.IDLE
        self._signal: Optional[Signal] = None
        self._start_position: Optional[Tuple[int, int]] = None
        self._last_position: Optional[Tuple[int, int]] = None
        self._result: Optional[float] = None

    # ---- read-only views ----
    @property
    def state(self) -> GameState:
        return self._state

    @property
    def signal(self) -> Optional[Signal]:
        return self._signal

    @property
    def start_position(self) -> Optional[Tuple[int, int]]:
        return self._start_position

    @property
    def last_position(self) -> Optional[Tuple[int, int]]:
        return self._last_position

    @property
    def elapsed(self) -> float:
        return self.timer.elapsed

    @property
    def result(self) -> Optional[float]:
        """Frozen elapsed seconds of a won attempt, else None."""
        return self._result

    @property
    def chrono_centiseconds(self) -> Optional[int]:
        if self._result is None:
            return None
        return int(round(self._result * 100))

    # ---- grid helpers ----
    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def cell(self, x: int, y: int) -> Optional[int]:
        if not self.in_bounds(x, y):
            return None
        return int(self.grid[x, y])

    def _window(self, x: int, y: int) -> np.ndarray:
        """Cells of the (2*tolerance+1) box around (x, y), clipped to the grid."""
        r = self.tolerance
        x0, x1 = max(0, x - r), min(self.width, x + r + 1)
        y0, y1 = max(0, y - r), min(self.height, y + r + 1)
        if x0 >= x1 or y0 >= y1:
            return np.empty((0, 0), dtype=self.grid.dtype)
        return self.grid[x0:x1, y0:y1]

    def near_finish(self, x: int, y: int) -> bool:
        return bool((self._window(x, y) == FINISH).any())

    def on_track(self, x: int, y: int) -> bool:
        window = self._window(x, y)
        return bool(((window == PATH) | (window == START)).any())

    # ---- transitions ----
    def start(self, position) -> bool:
        """Begin an attempt from a START cell. Returns False if refused."""
        if self._state is not GameState.IDLE:
            return False
        x, y = int(position[0]), int(position[1])
        if self.cell(x, y) != START:
            return False
        self._start_position = (x, y)
        self._last_position = (x, y)
        self._signal = None
        self._result = None
        self.timer.start()
        self._state = GameState.PLAYING
        return True

    def update_position(self, x: int, y: int) -> Optional[Signal]:
        """Feed one cursor position; return the terminal signal, if any."""
        if self._state is not GameState.PLAYING:
            return None
        x, y = int(x), int(y)

        last_x, last_y = self._last_position
        if math.hypot(x - last_x, y - last_y) > self.teleport_distance:
            return self._lose(Signal.TELEPORT)

        self._last_position = (x, y)

        # Finish before adherence: near the goal both can be within tolerance
        if self.near_finish(x, y):
            return self._win()
        if not self.in_bounds(x, y):
            return self._lose(Signal.OUT_OF_BOUNDS)
        if not self.on_track(x, y):
            return self._lose(Signal.COLLISION)
        return None

    def abandon(self, reason: str = 'abandoned') -> Optional[Signal]:
        """Cursor left the play area or a button was pressed mid-play."""
        if self._state is not GameState.PLAYING:
            return None
        signal = ABANDON_REASONS.get(reason, Signal.ABANDONED)
        return self._lose(signal)

    def reset(self) -> None:
        self._state = GameState.IDLE
        self._signal = None
        self._start_position = None
        self._last_position = None
        self._result = None
        self.timer.reset()

    def _win(self) -> Signal:
        self._result = self.timer.stop()
        self._state = GameState.WON
        self._signal = Signal.FINISH
        return self._signal

    def _lose(self, signal: Signal) -> Signal:
        self.timer.stop()
        self._state = GameState.LOST
        self._signal = signal
        return signal

    def to_dict(self) -> dict:
        payload = {
            'state': self._state.value,
            'signal': self._signal.value if self._signal else None,
            'elapsed': round(self.elapsed, 2),
        }
        if self._state is GameState.WON:
            payload['chronoCentiseconds'] = self.chrono_centiseconds
        return payload
