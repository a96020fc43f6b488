"""
Per-tick quadratic program reconciling task command, posture and robot limits.

Decision vector:
    x = [ddq (n) ; tau (n, if input_cost) ; s (6, if slack_cost)]

Objective:
    1/2 |ddq - ddq_ref|_Q^2 + 1/2 |tau - tau_ref|_R^2 + 1/2 |s|_S^2

Equalities:
    task, acceleration mode:  J ddq - s = a_des - Jdot dq
    task, velocity mode:      dt J ddq - s = v_des - J dq
    model constraint:         M ddq - tau = -h

Inequalities (boxes on ddq over the horizon dt, intersected):
    position:      q + dt dq + dt^2/2 ddq in [q_min, q_max]
    velocity:      dq + dt ddq in [-v_max, v_max]
    acceleration:  ddq in [-a_max, a_max]
    effort:        tau in [-tau_max, tau_max]

Problems are built as dense qpsolvers Problems, the same solver layer mink
uses for its differential IK.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import numpy as np
import qpsolvers
from qpsolvers.exceptions import ProblemError, SolverError

from .errors import ConfigurationError, InfeasibleProblemError
from .ports import RobotModel

TASK_DIM = 6
TASK_ACCELERATION = "acceleration"
TASK_VELOCITY = "velocity"
LIMIT_NAMES = ("position", "velocity", "acceleration", "effort")


@dataclass(frozen=True)
class QPSpec:
    """Costs and constraints of the inverse-dynamics QP. Weights are diagonals."""
    state_cost: Sequence[float]
    input_cost: Optional[Sequence[float]] = None
    slack_cost: Optional[Sequence[float]] = None
    model_constraint: bool = False
    task_mode: str = TASK_ACCELERATION
    limits: Tuple[str, ...] = ("position", "velocity", "acceleration")
    horizon_dt: float = 0.01
    solver: str = "quadprog"
    regularization: float = 1e-9
    bound_tol: float = 1e-9


@dataclass
class QPSolution:
    x: np.ndarray
    acceleration: np.ndarray
    torque: Optional[np.ndarray] = None
    slack: Optional[np.ndarray] = None


def _weights(values: Sequence[float], size: int, name: str) -> np.ndarray:
    w = np.asarray(values, dtype=float).reshape(-1)
    if w.size == 1:
        w = np.full(size, float(w[0]))
    if w.shape != (size,):
        raise ConfigurationError(f"{name} needs {size} weights, got {w.size}")
    if np.any(w <= 0.0):
        raise ConfigurationError(f"{name} weights must be strictly positive")
    return w


class QuadraticControl:
    """
    Inverse-dynamics / inverse-kinematics QP on top of a RobotModel.

    Example:
        qp = QuadraticControl(model, QPSpec(state_cost=[1.0] * 7, slack_cost=[30.0] * 6))
        sol = qp.solve(q, dq, task_command, state_reference=config_ds.output)
        ddq = sol.acceleration
    """

    def __init__(self, model: RobotModel, spec: QPSpec):
        self.model = model
        self.spec = spec
        n = model.dof

        if spec.task_mode not in (TASK_ACCELERATION, TASK_VELOCITY):
            raise ConfigurationError(f"Unknown task mode '{spec.task_mode}'")
        unknown = set(spec.limits) - set(LIMIT_NAMES)
        if unknown:
            raise ConfigurationError(f"Unknown limits {sorted(unknown)}")
        if spec.horizon_dt <= 0.0:
            raise ConfigurationError("horizon_dt must be positive")

        self.Q = _weights(spec.state_cost, n, "state_cost")
        self.R = None if spec.input_cost is None else _weights(spec.input_cost, n, "input_cost")
        self.S = None if spec.slack_cost is None else _weights(spec.slack_cost, TASK_DIM, "slack_cost")

        if spec.model_constraint and self.R is None:
            raise ConfigurationError("model_constraint needs torque variables (set input_cost)")
        if "effort" in spec.limits and self.R is None:
            raise ConfigurationError("effort limits need torque variables (set input_cost)")

        self.n = n
        self.n_input = 0 if self.R is None else n
        self.n_slack = 0 if self.S is None else TASK_DIM
        self.n_vars = self.n + self.n_input + self.n_slack

        # Cost matrix is constant
        diag = np.concatenate([self.Q] + ([self.R] if self.R is not None else [])
                              + ([self.S] if self.S is not None else []))
        self._P = np.diag(diag + spec.regularization)

    # --- variable slices -------------------------------------------------

    @property
    def acc_slice(self) -> slice:
        return slice(0, self.n)

    @property
    def input_slice(self) -> slice:
        return slice(self.n, self.n + self.n_input)

    @property
    def slack_slice(self) -> slice:
        return slice(self.n + self.n_input, self.n_vars)

    # --- problem assembly ------------------------------------------------

    def acceleration_bounds(self, q: np.ndarray, dq: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Intersection of the enabled position/velocity/acceleration boxes on ddq."""
        dt = self.spec.horizon_dt
        lb = np.full(self.n, -np.inf)
        ub = np.full(self.n, np.inf)

        if "position" in self.spec.limits:
            q_min, q_max = self.model.position_limits()
            lb = np.maximum(lb, 2.0 * (q_min - q - dt * dq) / dt**2)
            ub = np.minimum(ub, 2.0 * (q_max - q - dt * dq) / dt**2)
        if "velocity" in self.spec.limits:
            v_max = self.model.velocity_limits()
            lb = np.maximum(lb, (-v_max - dq) / dt)
            ub = np.minimum(ub, (v_max - dq) / dt)
        if "acceleration" in self.spec.limits:
            a_max = self.model.acceleration_limits()
            lb = np.maximum(lb, -a_max)
            ub = np.minimum(ub, a_max)
        return lb, ub

    def build_problem(
        self,
        q: np.ndarray,
        dq: np.ndarray,
        task_command: np.ndarray,
        state_reference: Optional[np.ndarray] = None,
        input_reference: Optional[np.ndarray] = None,
    ) -> qpsolvers.Problem:
        q = np.asarray(q, dtype=float)
        dq = np.asarray(dq, dtype=float)
        task_command = np.asarray(task_command, dtype=float).reshape(-1)
        if task_command.shape != (TASK_DIM,):
            raise ConfigurationError(f"Task command must have {TASK_DIM} elements, got {task_command.size}")

        # Linear cost term
        c = np.zeros(self.n_vars)
        if state_reference is not None:
            c[self.acc_slice] = -self.Q * np.asarray(state_reference, dtype=float)
        if self.R is not None and input_reference is not None:
            c[self.input_slice] = -self.R * np.asarray(input_reference, dtype=float)

        # Task equality
        J = self.model.jacobian(q)
        A_task = np.zeros((TASK_DIM, self.n_vars))
        if self.spec.task_mode == TASK_ACCELERATION:
            A_task[:, self.acc_slice] = J
            b_task = task_command - self.model.jacobian_derivative(q, dq) @ dq
        else:
            A_task[:, self.acc_slice] = self.spec.horizon_dt * J
            b_task = task_command - J @ dq
        if self.S is not None:
            A_task[:, self.slack_slice] = -np.eye(TASK_DIM)
        A_rows, b_rows = [A_task], [b_task]

        # Dynamics equality
        if self.spec.model_constraint:
            A_dyn = np.zeros((self.n, self.n_vars))
            A_dyn[:, self.acc_slice] = self.model.mass_matrix(q)
            A_dyn[:, self.input_slice] = -np.eye(self.n)
            A_rows.append(A_dyn)
            b_rows.append(-self.model.nonlinear_effects(q, dq))

        # Boxes, as G x <= h on finite sides only
        lb = np.full(self.n_vars, -np.inf)
        ub = np.full(self.n_vars, np.inf)
        lb[self.acc_slice], ub[self.acc_slice] = self.acceleration_bounds(q, dq)
        if "effort" in self.spec.limits:
            tau_max = self.model.effort_limits()
            lb[self.input_slice], ub[self.input_slice] = -tau_max, tau_max

        conflict = np.flatnonzero(lb > ub + self.spec.bound_tol)
        if conflict.size:
            raise InfeasibleProblemError(
                f"Contradictory limits on decision variables {conflict.tolist()}",
                self.spec.solver,
            )

        G, h = self._box_inequalities(lb, ub)
        return qpsolvers.Problem(
            self._P, c, G, h, np.vstack(A_rows), np.concatenate(b_rows)
        )

    def _box_inequalities(self, lb: np.ndarray, ub: np.ndarray):
        eye = np.eye(self.n_vars)
        upper = np.isfinite(ub)
        lower = np.isfinite(lb)
        if not upper.any() and not lower.any():
            return None, None
        G = np.vstack([eye[upper], -eye[lower]])
        h = np.concatenate([ub[upper], -lb[lower]])
        return G, h

    # --- solve -----------------------------------------------------------

    def solve(
        self,
        q: np.ndarray,
        dq: np.ndarray,
        task_command: np.ndarray,
        state_reference: Optional[np.ndarray] = None,
        input_reference: Optional[np.ndarray] = None,
    ) -> QPSolution:
        """
        Solve the QP of the current tick.

        Args:
            q: Joint positions
            dq: Joint velocities
            task_command: Desired task-space acceleration (or velocity), (6,)
            state_reference: Desired joint acceleration (None = zero)
            input_reference: Feed-forward torque reference (None = zero)

        Returns:
            QPSolution with the stacked vector and its blocks

        Raises:
            InfeasibleProblemError: limits are contradictory or the solver fails
        """
        problem = self.build_problem(q, dq, task_command, state_reference, input_reference)
        try:
            solution = qpsolvers.solve_problem(problem, solver=self.spec.solver)
        except (ProblemError, SolverError, ValueError) as e:
            raise InfeasibleProblemError(f"QP solver failed: {e}", self.spec.solver) from e

        if not solution.found or solution.x is None:
            raise InfeasibleProblemError("QP has no feasible solution", self.spec.solver)

        x = np.asarray(solution.x, dtype=float)
        return QPSolution(
            x=x,
            acceleration=x[self.acc_slice].copy(),
            torque=x[self.input_slice].copy() if self.n_input else None,
            slack=x[self.slack_slice].copy() if self.n_slack else None,
        )
