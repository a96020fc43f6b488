"""
Shared fixtures: a 7-DOF double-integrator arm and a scripted reference stream.

FakeArm is both the robot model and the robot interface:
    position = base + q[:3], rotation = identity
    J = [I_6 | 0], M = I, h(q, dq) = g (constant)
    step(): ddq = tau - g, semi-implicit Euler
"""

from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest

from ds_torque_control.core.contracts import JointCommand, Pose, RobotState, TimeStamp
from ds_torque_control.core.errors import StreamTimeoutError

PROJECT_ROOT = Path(__file__).parent.parent
PANDA_XML = PROJECT_ROOT / "assets" / "franka" / "panda.xml"

GRAVITY = np.array([0.0, 2.0, 0.0, 1.0, 0.0, 0.0, 0.5])
BASE = np.array([0.4, 0.0, 0.5])


class FakeArm:
    dof = 7

    def __init__(self, q=None, dq=None, dt: float = 1e-3, fail_at_step: Optional[int] = None):
        self.q = np.zeros(7) if q is None else np.asarray(q, dtype=float).copy()
        self.dq = np.zeros(7) if dq is None else np.asarray(dq, dtype=float).copy()
        self.dt = dt
        self.t = 0.0
        self.tau = np.zeros(7)
        self.commands = []
        self.steps = 0
        self.fail_at_step = fail_at_step
        self.shut_down = False

    # --- RobotModel ------------------------------------------------------

    def frame_pose(self, q):
        return Pose(BASE + np.asarray(q)[:3])

    def frame_velocity(self, q, dq):
        return self.jacobian(q) @ dq

    def jacobian(self, q):
        return np.eye(6, 7)

    def jacobian_derivative(self, q, dq):
        return np.zeros((6, 7))

    def mass_matrix(self, q):
        return np.eye(7)

    def nonlinear_effects(self, q, dq):
        return GRAVITY.copy()

    def gravity(self, q):
        return GRAVITY.copy()

    def position_limits(self):
        return np.full(7, -3.0), np.full(7, 3.0)

    def velocity_limits(self):
        return np.full(7, 10.0)

    def acceleration_limits(self):
        return np.full(7, 50.0)

    def effort_limits(self):
        return np.full(7, 100.0)

    # --- RobotInterface --------------------------------------------------

    def get_state(self):
        return RobotState(TimeStamp(self.t), self.q.copy(), self.dq.copy(), self.tau.copy())

    def send_command(self, cmd: JointCommand):
        self.tau = np.asarray(cmd.tau, dtype=float).copy()
        self.commands.append(self.tau)

    def step(self):
        self.steps += 1
        if self.fail_at_step is not None and self.steps >= self.fail_at_step:
            return False
        ddq = self.tau - GRAVITY
        self.dq = self.dq + self.dt * ddq
        self.q = self.q + self.dt * self.dq
        self.t += self.dt
        return True

    def shutdown(self):
        self.shut_down = True


class FakeStream:
    """ReferenceStream answering with handler(value), or failing on demand."""

    def __init__(self, handler: Optional[Callable[[np.ndarray], np.ndarray]] = None):
        self.handler = handler or (lambda value: np.zeros(3))
        self.fail = False
        self.requests = []

    def request(self, value, size):
        self.requests.append(np.asarray(value, dtype=float).copy())
        if self.fail:
            raise StreamTimeoutError("fake://stream", 5)
        return np.asarray(self.handler(value), dtype=float).reshape(size)


@pytest.fixture
def arm():
    return FakeArm()


@pytest.fixture
def stream():
    return FakeStream()
