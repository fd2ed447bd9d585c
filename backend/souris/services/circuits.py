import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .bitmap import BitmapBuilder, ImageLoadError, find_end_positions, find_start_positions
from .security import generate_session_token


class CircuitNotFound(ImageLoadError):
    """No image asset exists for the requested circuit."""


@dataclass
class CircuitData:
    circuit: int
    grid: np.ndarray
    token: str
    image_path: str
    start_positions: List[Tuple[int, int]] = field(default_factory=list)
    end_positions: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return f"parcours{self.circuit}"

    @property
    def width(self) -> int:
        return int(self.grid.shape[0])

    @property
    def height(self) -> int:
        return int(self.grid.shape[1])

    def to_dict(self) -> dict:
        return {
            'circuit': self.circuit,
            'name': self.name,
            'width': self.width,
            'height': self.height,
            'startPositions': len(self.start_positions),
            'endPositions': len(self.end_positions),
        }


def circuit_image_path(circuits_dir: str, circuit_id: int) -> str:
    return os.path.join(circuits_dir, f"parcours{int(circuit_id)}.png")


def read_circuit_image(circuits_dir: str, circuit_id: int) -> bytes:
    path = circuit_image_path(circuits_dir, circuit_id)
    if not os.path.isfile(path):
        raise CircuitNotFound(f"Unable to load the image of circuit {circuit_id}")
    with open(path, 'rb') as fh:
        return fh.read()


def load_circuit(circuit_id: int, circuits_dir: str, builder: Optional[BitmapBuilder] = None,
                 preferences=None) -> CircuitData:
    """Build the terrain grid of a circuit and open a new signing session.

    Every load issues a fresh token; the grid is rebuilt each time.
    """
    builder = builder or BitmapBuilder(offload=False)
    image_bytes = read_circuit_image(circuits_dir, circuit_id)
    grid = builder.build(image_bytes)
    if preferences is not None:
        preferences.save_last_circuit(circuit_id)
    return CircuitData(
        circuit=int(circuit_id),
        grid=grid,
        token=generate_session_token(),
        image_path=circuit_image_path(circuits_dir, circuit_id),
        start_positions=find_start_positions(grid),
        end_positions=find_end_positions(grid),
    )
