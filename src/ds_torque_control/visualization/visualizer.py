"""
Display sink for a control run.

The control loop only ever calls update() and is_running(); everything a
visualizer draws besides the robot (reference trajectories) is handed to it
before the run starts.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple
import numpy as np

from ..core.contracts import RobotState

Rgba = Tuple[float, float, float, float]
DEFAULT_RGBA: Rgba = (0.1, 0.3, 0.9, 0.8)


class Visualizer(ABC):
    """Renders the robot and the reference trajectories it was given."""

    def __init__(self):
        self.trajectories: List[Tuple[np.ndarray, np.ndarray]] = []

    def add_trajectory(self, points: np.ndarray, rgba: Sequence[float] = DEFAULT_RGBA) -> "Visualizer":
        """
        Add an (N, 3) reference trajectory drawn in the given RGBA color.

        Raises:
            ValueError: points are not 3-D positions or the color is not RGBA
        """
        points = np.asarray(points, dtype=float)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Trajectory must be (N, 3), got {points.shape}")
        color = np.asarray(rgba, dtype=np.float32).reshape(-1)
        if color.shape != (4,):
            raise ValueError(f"Color must be RGBA, got {color.size} values")
        self.trajectories.append((points, color))
        self.on_trajectories_changed()
        return self

    def on_trajectories_changed(self) -> None:
        """Hook for backends that redraw as soon as a trajectory is added."""
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Open the display; False when it is not available."""

    @abstractmethod
    def update(self, state: Optional[RobotState] = None) -> None:
        """Called once per control tick, must not block the loop."""

    @abstractmethod
    def is_running(self) -> bool:
        """False once the user has closed the display."""

    @abstractmethod
    def shutdown(self) -> None:
        ...
