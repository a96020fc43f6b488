"""
Proportional-derivative feedback law on an arbitrary space.

    u = K_p · diff(x_r, x) + K_d · (dx_r - dx)

where `diff` is the space's own difference operator (plain subtraction on R^n,
geodesic log map on SO(3)). Gains are fixed at construction; the reference may
be replaced at any time. Evaluating the law has no side effects.
"""

from typing import Any, Optional, Union, Sequence
import numpy as np

from .errors import ConfigurationError

GainLike = Union[float, Sequence[float], Sequence[Sequence[float]], np.ndarray]


def gain_matrix(value: Optional[GainLike], dim: int, name: str = "gain") -> np.ndarray:
    """
    Build a (dim, dim) gain matrix.

    Accepts None (zeros), a scalar (scaled identity), a vector of length dim
    (diagonal) or a full (dim, dim) matrix.
    """
    if value is None:
        return np.zeros((dim, dim))
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return float(arr) * np.eye(dim)
    if arr.ndim == 1 and arr.size == dim:
        return np.diag(arr)
    if arr.shape == (dim, dim):
        return arr.copy()
    raise ConfigurationError(f"{name} of shape {arr.shape} does not match dimension {dim}")


class Feedback:
    """
    PD feedback law.

    Example:
        pos = Feedback(Euclidean(3), stiffness=5.0, damping=2.0 * np.sqrt(5.0))
        pos.set_reference(np.array([0.5, 0.0, 0.4]))
        u = pos(x, dx)
    """

    def __init__(
        self,
        space,
        stiffness: Optional[GainLike] = None,
        damping: Optional[GainLike] = None,
        reference: Any = None,
        reference_velocity: Optional[np.ndarray] = None,
    ):
        """
        Args:
            space: Space providing `dim`, `coerce` and `difference`
            stiffness: K_p, scalar / diagonal / full matrix
            damping: K_d, scalar / diagonal / full matrix
            reference: Initial reference value (None = no stiffness term until set)
            reference_velocity: Initial reference velocity (None = zero)
        """
        self.space = space
        self.dim = space.dim
        self.stiffness = gain_matrix(stiffness, self.dim, "stiffness")
        self.damping = gain_matrix(damping, self.dim, "damping")

        self.reference = None
        self.reference_velocity = np.zeros(self.dim)
        if reference is not None:
            self.set_reference(reference, reference_velocity)

    def set_reference(self, value: Any, velocity: Optional[np.ndarray] = None) -> "Feedback":
        self.reference = self.space.coerce(value)
        self.set_reference_velocity(velocity)
        return self

    def set_reference_velocity(self, velocity: Optional[np.ndarray]) -> "Feedback":
        if velocity is None:
            self.reference_velocity = np.zeros(self.dim)
            return self
        velocity = np.asarray(velocity, dtype=float).reshape(-1)
        if velocity.shape != (self.dim,):
            raise ConfigurationError(
                f"Reference velocity of shape {velocity.shape} does not match dimension {self.dim}"
            )
        self.reference_velocity = velocity
        return self

    def __call__(self, value: Any, velocity: Optional[np.ndarray] = None) -> np.ndarray:
        u = np.zeros(self.dim)
        if self.reference is not None:
            u += self.stiffness @ self.space.difference(self.reference, value)
        dx = np.zeros(self.dim) if velocity is None else np.asarray(velocity, dtype=float).reshape(-1)
        u += self.damping @ (self.reference_velocity - dx)
        return u

    def __repr__(self):
        return f"Feedback({self.space!r})"
