"""
Reference trajectories recorded by demonstration.

A demo directory holds:
    dynamics_params.yaml   learned DS parameters, with the workspace offset
    trajectory_<k>.csv     one 3-D position per row (comma or whitespace separated)

Trajectories are stored relative to the demo frame; the offset from
dynamics_params.yaml is added to every row to express them in the world frame.
"""

from pathlib import Path
from typing import List, Optional, Union
import numpy as np
import yaml

from .errors import ConfigurationError

PathLike = Union[str, Path]


def load_demo_offset(yaml_path: PathLike) -> np.ndarray:
    """
    Read the workspace offset of a demo.

    The offset may live at the top level or under a 'dynamics' section.
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise ConfigurationError(f"Demo parameters not found: {yaml_path}")
    with open(yaml_path, "r") as f:
        data = yaml.safe_load(f) or {}

    offset = data.get("offset")
    if offset is None and isinstance(data.get("dynamics"), dict):
        offset = data["dynamics"].get("offset")
    if offset is None:
        raise ConfigurationError(f"No 'offset' in {yaml_path}")

    offset = np.asarray(offset, dtype=float).reshape(-1)
    if offset.shape != (3,):
        raise ConfigurationError(f"Offset in {yaml_path} must have 3 elements, got {offset.size}")
    return offset


def load_trajectory(path: PathLike, offset: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Load an (N, 3) trajectory, shifted by offset.

    Raises:
        ConfigurationError: missing file or rows that are not 3-vectors
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Trajectory file not found: {path}")

    # Commas become whitespace so both layouts go through the same loadtxt call
    with open(path, "r") as f:
        lines = [line.replace(",", " ") for line in f]
    if not any(line.strip() and not line.lstrip().startswith("#") for line in lines):
        raise ConfigurationError(f"Trajectory file is empty: {path}")

    try:
        trajectory = np.loadtxt(lines, dtype=float, comments="#", ndmin=2)
    except ValueError as e:
        raise ConfigurationError(f"{path}: {e}") from None
    if trajectory.shape[1] != 3:
        raise ConfigurationError(f"{path}: expected 3 values per row, got {trajectory.shape[1]}")

    if offset is not None:
        trajectory = trajectory + np.asarray(offset, dtype=float).reshape(1, 3)
    return trajectory


def load_trajectories(
    demo_dir: PathLike, count: int = 1, offset: Optional[np.ndarray] = None
) -> List[np.ndarray]:
    """Load trajectory_1.csv .. trajectory_<count>.csv from a demo directory."""
    demo_dir = Path(demo_dir)
    return [
        load_trajectory(demo_dir / f"trajectory_{k}.csv", offset)
        for k in range(1, count + 1)
    ]


def save_trajectory(path: PathLike, trajectory: np.ndarray) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(path, np.asarray(trajectory, dtype=float).reshape(-1, 3), delimiter=",", fmt="%.9f")
    return path


class TrajectoryRecorder:
    """Collects end-effector positions during a run and writes them as CSV."""

    def __init__(self, path: Optional[PathLike] = None):
        self.path = None if path is None else Path(path)
        self._samples: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, position: np.ndarray):
        self._samples.append(np.asarray(position, dtype=float).reshape(3).copy())

    def as_array(self) -> np.ndarray:
        if not self._samples:
            return np.zeros((0, 3))
        return np.vstack(self._samples)

    def save(self) -> Optional[Path]:
        if self.path is None or not self._samples:
            return None
        saved = save_trajectory(self.path, self.as_array())
        print(f"✓ Recorded {len(self)} samples to {saved}")
        return saved
