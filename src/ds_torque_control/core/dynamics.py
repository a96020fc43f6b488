"""
Dynamical systems generating the desired motion fed to the torque controllers.

TaskSpaceDynamics produces the end-effector command [linear; angular], either
from local feedback laws or from an external process over a ReferenceStream.
ConfigurationSpaceDynamics drives the joints toward a comfortable posture and
is used to bias the redundancy of the arm.
"""

from typing import Optional
import numpy as np

from .contracts import Pose
from .errors import StreamError
from .feedback import Feedback, GainLike
from .ports import ReferenceStream
from .spatial import Euclidean, Rotation3

FALLBACK_LAST = "last"
FALLBACK_LOCAL = "local"


class TaskSpaceDynamics:
    """
    End-effector dynamical system with an optional external source.

    Local mode:
        linear  = position feedback on (position, linear velocity)
        angular = orientation feedback if track_orientation, zero otherwise
    External mode:
        linear  = reply of stream.request(position, 3), used verbatim
        angular = zero

    A failed or timed-out request never propagates out of update(): the
    command falls back to the last external reply ('last') or to the local
    law ('local') for that tick.
    """

    def __init__(
        self,
        position_stiffness: GainLike = 5.0,
        position_damping: Optional[GainLike] = None,
        orientation_stiffness: GainLike = 1.0,
        orientation_damping: Optional[GainLike] = None,
        track_orientation: bool = False,
        stream: Optional[ReferenceStream] = None,
        fallback: str = FALLBACK_LOCAL,
    ):
        """
        Args:
            position_stiffness: Translational stiffness (scalar / diagonal / 3x3)
            position_damping: Translational damping (None = zero)
            orientation_stiffness: Rotational stiffness (scalar / diagonal / 3x3)
            orientation_damping: Rotational damping (None = zero)
            track_orientation: Compute the angular command in local mode
            stream: External source of the linear command (None = local only)
            fallback: 'last' or 'local', used when the stream fails
        """
        if fallback not in (FALLBACK_LAST, FALLBACK_LOCAL):
            raise ValueError(f"Unknown stream fallback '{fallback}'")

        self.position = Feedback(Euclidean(3), position_stiffness, position_damping)
        self.orientation = Feedback(Rotation3(), orientation_stiffness, orientation_damping)
        self.track_orientation = track_orientation
        self.stream = stream
        self.fallback = fallback

        self.output = np.zeros(6)
        self._external = False
        self._last_external: Optional[np.ndarray] = None
        self._stream_down = False
        self.request_count = 0
        self.fallback_count = 0

    @property
    def external(self) -> bool:
        return self._external

    def set_external(self, value: bool) -> "TaskSpaceDynamics":
        value = bool(value)
        if value and self.stream is None:
            raise ValueError("External dynamics requested but no reference stream is configured")
        if value != self._external:
            print(f"[TASK DS] {'Activating external' if value else 'Deactivating external'} dynamics")
        self._external = value
        return self

    def set_reference(self, pose: Pose, twist: Optional[np.ndarray] = None) -> "TaskSpaceDynamics":
        twist = np.zeros(6) if twist is None else np.asarray(twist, dtype=float).reshape(-1)
        self.position.set_reference(pose.position, twist[:3])
        self.orientation.set_reference(pose.rotation, twist[3:])
        return self

    def update(self, pose: Pose, twist: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Compute the task-space command for the current end-effector state.

        Args:
            pose: Current end-effector pose
            twist: Current end-effector twist [linear; angular] (None = zero)

        Returns:
            (6,) command [linear; angular]
        """
        twist = np.zeros(6) if twist is None else np.asarray(twist, dtype=float).reshape(-1)
        u = np.zeros(6)

        if self._external:
            u[:3] = self._external_command(pose, twist)
        else:
            u[:3] = self.position(pose.position, twist[:3])
            if self.track_orientation:
                u[3:] = self.orientation(pose.rotation, twist[3:])

        self.output = u
        return u

    def _external_command(self, pose: Pose, twist: np.ndarray) -> np.ndarray:
        self.request_count += 1
        try:
            reply = np.asarray(self.stream.request(pose.position, 3), dtype=float).reshape(-1)
        except StreamError as e:
            self.fallback_count += 1
            if not self._stream_down:
                print(f"[TASK DS] Stream unavailable ({e}), falling back to '{self.fallback}' command")
                self._stream_down = True
            if self.fallback == FALLBACK_LAST and self._last_external is not None:
                return self._last_external
            return self.position(pose.position, twist[:3])

        if self._stream_down:
            print("[TASK DS] Stream recovered")
            self._stream_down = False
        self._last_external = reply
        return reply


class ConfigurationSpaceDynamics(Feedback):
    """
    Joint-space feedback law driving the arm toward a target posture.

    The output is the desired joint acceleration used as the state reference
    of the inverse-dynamics QP; it only shapes the null-space motion.
    """

    def __init__(
        self,
        target: np.ndarray,
        stiffness: GainLike = 1.0,
        damping: Optional[GainLike] = 0.1,
    ):
        target = np.asarray(target, dtype=float).reshape(-1)
        super().__init__(Euclidean(target.size), stiffness, damping, reference=target)
        self.output = np.zeros(self.dim)

    def update(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        self.output = self(q, dq)
        return self.output


def joint_midpoint(lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """Middle of each joint's allowed range."""
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    return lower + 0.5 * (upper - lower)
