from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional
import numpy as np
from scipy.spatial.transform import Rotation

'''
Separation of Concerns

- `RobotState` = raw joint data read once per tick (positions/velocities)
- `Pose` = where the end-effector is or should be (position + rotation matrix)
- `JointCommand` = what to send to the actuators (torques)
- `LoopState` / `StopReason` = where the control loop is in its lifecycle and why it ended

Controllers read RobotState, query the robot model, and return a torque vector.
Nothing in here is mutated after construction.
'''

_ROTATION_TOL = 1e-5


@dataclass(frozen=True)
class TimeStamp:
    t: float  # seconds, simulated or monotonic


@dataclass(frozen=True)
class Pose:
    """End-effector pose. `rotation` is always a proper rotation matrix."""
    position: np.ndarray  # (3,)
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))  # (3, 3)

    def __post_init__(self):
        position = np.asarray(self.position, dtype=float).reshape(-1)
        rotation = np.asarray(self.rotation, dtype=float)
        if position.shape != (3,):
            raise ValueError(f"Pose position must have 3 elements, got {position.shape}")
        if rotation.shape != (3, 3):
            raise ValueError(f"Pose rotation must be 3x3, got {rotation.shape}")
        if not np.allclose(rotation @ rotation.T, np.eye(3), atol=_ROTATION_TOL) \
                or np.linalg.det(rotation) <= 0.0:
            raise ValueError("Pose rotation is not a proper rotation matrix")
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "rotation", rotation)

    @classmethod
    def from_quaternion(cls, position: np.ndarray, quaternion: np.ndarray) -> "Pose":
        """Build from a quaternion given as (x, y, z, w)."""
        return cls(position, Rotation.from_quat(quaternion).as_matrix())

    @classmethod
    def from_rotation(cls, position: np.ndarray, rotation: Rotation) -> "Pose":
        return cls(position, rotation.as_matrix())

    def quaternion(self) -> np.ndarray:
        """Orientation as (x, y, z, w)."""
        return Rotation.from_matrix(self.rotation).as_quat()


@dataclass(frozen=True)
class RobotState:
    """Joint-space state of the arm at one tick."""
    stamp: TimeStamp

    q: np.ndarray   # (n,) Joint positions [rad]
    dq: np.ndarray  # (n,) Joint velocities [rad/s]

    tau: Optional[np.ndarray] = None  # (n,) Last applied joint torques [Nm]


@dataclass(frozen=True)
class JointCommand:
    stamp: TimeStamp
    tau: np.ndarray  # (n,) Joint torques [Nm]


class LoopState(Enum):
    RUNNING = auto()
    STOPPED = auto()


class StopReason(Enum):
    DURATION = auto()
    STEP_FAILED = auto()
    GOAL_REACHED = auto()
    VIEWER_CLOSED = auto()
    INFEASIBLE = auto()
    INTERRUPTED = auto()
