import time
from typing import Callable, Optional


class Timer:
    """Monotonic stopwatch.

    ``elapsed`` can be sampled as often as a display needs it (every
    animation frame on the client); the value used as a result is the
    delta between :meth:`start` and :meth:`stop`, rounded to hundredths.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, precision: int = 2):
        self._clock = clock
        self.precision = precision
        self._started_at: Optional[float] = None
        self._frozen: float = 0.0
        self.running = False

    def start(self) -> None:
        self._started_at = self._clock()
        self._frozen = 0.0
        self.running = True

    def stop(self) -> float:
        if self.running:
            self._frozen = round(self._clock() - self._started_at, self.precision)
            self.running = False
        return self._frozen

    def reset(self) -> None:
        self._started_at = None
        self._frozen = 0.0
        self.running = False

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def elapsed(self) -> float:
        if self.running:
            return max(0.0, self._clock() - self._started_at)
        return self._frozen

    def formatted(self, precision: Optional[int] = None) -> str:
        digits = self.precision if precision is None else precision
        return f"{self.elapsed:.{digits}f}"
