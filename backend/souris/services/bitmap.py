"""Circuit image to terrain grid.

The grid is a read-only ``uint8`` numpy array indexed ``grid[x][y]``
(shape ``(width, height)``), one terrain code per source pixel.
"""

import io
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .terrain import FINISH, OFF_PATH, PATH, START, classify_array

logger = logging.getLogger(__name__)

# A PATH cell with at least this many OFF_PATH neighbours is noise
NOISE_NEIGHBOUR_THRESHOLD = 6

_default_executor: Optional[ThreadPoolExecutor] = None
_default_workers = 2


class ImageLoadError(Exception):
    """The circuit image could not be read or decoded."""


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode PNG/JPEG/... bytes into an (H, W, 4) RGBA array."""
    if not image_bytes:
        raise ImageLoadError("Empty image data")
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            rgba = img.convert('RGBA')
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError(f"Unable to decode circuit image: {exc}") from exc
    return np.asarray(rgba, dtype=np.uint8)


def _off_path_neighbour_counts(grid: np.ndarray) -> np.ndarray:
    """Count OFF_PATH cells among the 8 neighbours of every interior cell."""
    off = (grid == OFF_PATH).astype(np.uint8)
    counts = np.zeros((grid.shape[0] - 2, grid.shape[1] - 2), dtype=np.uint8)
    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            counts += off[1 + dx:off.shape[0] - 1 + dx, 1 + dy:off.shape[1] - 1 + dy]
    return counts


def cleanup_noise(grid: np.ndarray) -> np.ndarray:
    """Turn isolated interior PATH cells into OFF_PATH.

    Every pass reads an untouched snapshot of the previous pass. Passes
    repeat until nothing changes, so cleaning an already clean grid is a
    no-op. Border cells are never reclassified.
    """
    cleaned = np.array(grid, dtype=np.uint8, copy=True)
    if cleaned.shape[0] < 3 or cleaned.shape[1] < 3:
        return cleaned
    passes = 0
    while True:
        removed = cleanup_pass(cleaned)
        if not removed:
            break
        passes += 1
        logger.debug("[bitmap-cleanup] pass=%d removed=%d", passes, removed)
    return cleaned


def cleanup_pass(grid: np.ndarray) -> int:
    """Run one snapshot pass over ``grid`` in place; returns cells removed."""
    if grid.shape[0] < 3 or grid.shape[1] < 3:
        return 0
    snapshot = grid.copy()
    noisy = (snapshot[1:-1, 1:-1] == PATH) & (
        _off_path_neighbour_counts(snapshot) >= NOISE_NEIGHBOUR_THRESHOLD
    )
    grid[1:-1, 1:-1][noisy] = OFF_PATH
    return int(noisy.sum())


def build(image_bytes: bytes) -> np.ndarray:
    """Decode, classify and clean a circuit image into a terrain grid.

    Raises :class:`ImageLoadError` if the image cannot be decoded; no
    partial grid is ever returned.
    """
    rgba = decode_image(image_bytes)
    # Pixel arrays are row-major (y, x); the grid is addressed [x][y]
    grid = np.ascontiguousarray(classify_array(rgba).T)
    grid = cleanup_noise(grid)
    grid.setflags(write=False)
    logger.debug("[bitmap-build] width=%d height=%d", grid.shape[0], grid.shape[1])
    return grid


def configure_default_executor(max_workers: int) -> None:
    """Set the worker count used when the shared pool is first created."""
    global _default_workers
    _default_workers = max(1, int(max_workers))


def _get_default_executor() -> ThreadPoolExecutor:
    global _default_executor
    if _default_executor is None:
        _default_executor = ThreadPoolExecutor(
            max_workers=_default_workers, thread_name_prefix='bitmap'
        )
    return _default_executor


def build_async(image_bytes: bytes, executor: Optional[Executor] = None) -> Future:
    """Run :func:`build` on an executor and return its future.

    The computation shares no state with the caller; dropping the future
    is the only cancellation needed.
    """
    pool = executor if executor is not None else _get_default_executor()
    return pool.submit(build, image_bytes)


class BitmapBuilder:
    """Single entry point over the synchronous and offloaded build paths."""

    def __init__(self, offload: bool = True, executor: Optional[Executor] = None):
        self.offload = offload
        self.executor = executor

    def submit(self, image_bytes: bytes) -> Future:
        if self.offload:
            return build_async(image_bytes, self.executor)
        future: Future = Future()
        try:
            future.set_result(build(image_bytes))
        except ImageLoadError as exc:
            future.set_exception(exc)
        return future

    def build(self, image_bytes: bytes, timeout: Optional[float] = None) -> np.ndarray:
        return self.submit(image_bytes).result(timeout=timeout)


def _positions_of(grid: np.ndarray, code: int) -> List[Tuple[int, int]]:
    xs, ys = np.nonzero(grid == code)
    return [(int(x), int(y)) for x, y in zip(xs, ys)]


def find_start_positions(grid: np.ndarray) -> List[Tuple[int, int]]:
    """All (x, y) cells holding START."""
    if grid is None or grid.size == 0:
        return []
    return _positions_of(grid, START)


def find_end_positions(grid: np.ndarray) -> List[Tuple[int, int]]:
    """All (x, y) cells holding FINISH."""
    if grid is None or grid.size == 0:
        return []
    return _positions_of(grid, FINISH)
