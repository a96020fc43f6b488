"""
Spaces the feedback laws operate on.

Each space knows its tangent dimension, how to coerce a value into its own
representation and how to take the difference between a reference and a
current value. Rotations are handled with mink's SO(3) Lie group so that the
difference is the geodesic (log map) error, not a component-wise subtraction.
"""

from typing import Any
import numpy as np
import mink
from scipy.spatial.transform import Rotation

from .contracts import Pose
from .errors import ConfigurationError


def as_so3(value: Any) -> mink.SO3:
    """
    Convert a rotation given in any supported representation to mink.SO3.

    Accepts mink.SO3, scipy Rotation, a 3x3 rotation matrix, or a Pose.
    """
    if isinstance(value, mink.SO3):
        return value
    if isinstance(value, Pose):
        return mink.SO3.from_matrix(value.rotation)
    if isinstance(value, Rotation):
        # scipy quaternions are (x, y, z, w), mink wants (w, x, y, z)
        x, y, z, w = value.as_quat()
        return mink.SO3(wxyz=np.array([w, x, y, z]))
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != (3, 3):
        raise ConfigurationError(f"Cannot interpret array of shape {matrix.shape} as a rotation")
    return mink.SO3.from_matrix(matrix)


class Euclidean:
    """R^n with plain vector subtraction."""

    def __init__(self, dim: int):
        self.dim = int(dim)

    def coerce(self, value: Any) -> np.ndarray:
        vec = np.asarray(value, dtype=float).reshape(-1)
        if vec.shape != (self.dim,):
            raise ConfigurationError(f"Expected a vector of size {self.dim}, got {vec.shape}")
        return vec

    def difference(self, target: Any, current: Any) -> np.ndarray:
        return self.coerce(target) - self.coerce(current)

    def __repr__(self):
        return f"Euclidean({self.dim})"


class Rotation3:
    """SO(3); the difference is the world-frame rotation vector log(R_t R_c^T)."""
    dim = 3

    def coerce(self, value: Any) -> mink.SO3:
        return as_so3(value)

    def difference(self, target: Any, current: Any) -> np.ndarray:
        return (as_so3(target) @ as_so3(current).inverse()).log()

    def __repr__(self):
        return "Rotation3()"


class PoseSpace:
    """Position x SO(3), tangent vector ordered [linear; angular]."""
    dim = 6

    def __init__(self):
        self._rot = Rotation3()

    def coerce(self, value: Any) -> Pose:
        if not isinstance(value, Pose):
            raise ConfigurationError(f"Expected a Pose, got {type(value).__name__}")
        return value

    def difference(self, target: Any, current: Any) -> np.ndarray:
        target, current = self.coerce(target), self.coerce(current)
        return np.concatenate([
            target.position - current.position,
            self._rot.difference(target.rotation, current.rotation),
        ])

    def __repr__(self):
        return "PoseSpace()"
