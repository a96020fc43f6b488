"""
Operational-space damping controller.

The task-space dynamical system turns the end-effector state into a desired
twist; a pose feedback law with damping (and optional stiffness) converts the
twist error into a wrench mapped to joint torques through J^T:

    F   = K (x_r - x) + D (v_des - v)
    tau = J^T F + h(q, dq)
"""

from typing import Optional
import numpy as np

from .base import BaseTorqueController
from ..contracts import Pose, RobotState
from ..dynamics import TaskSpaceDynamics
from ..feedback import Feedback, GainLike
from ..ports import RobotModel
from ..spatial import PoseSpace


class OperationalSpaceController(BaseTorqueController):
    """
    Task-space PD controller producing torques directly.

    Example:
        controller = OperationalSpaceController(
            model, target, TaskSpaceDynamics(position_stiffness=5.0),
            damping=[20.0, 20.0, 20.0, 1.0, 1.0, 1.0],
        )
        tau = controller.action(state)
    """

    def __init__(
        self,
        model: RobotModel,
        target: Pose,
        task: TaskSpaceDynamics,
        damping: GainLike = (20.0, 20.0, 20.0, 1.0, 1.0, 1.0),
        stiffness: Optional[GainLike] = None,
        compensate_nonlinear: bool = True,
    ):
        """
        Args:
            model: Robot model
            target: Task-space target pose
            task: Task-space dynamical system (outputs a desired twist)
            damping: 6x6 twist damping (scalar / diagonal / full)
            stiffness: 6x6 pose stiffness (None = pure damping control)
            compensate_nonlinear: Add gravity + Coriolis feed-forward
        """
        super().__init__(model, target, task)
        self.wrench = Feedback(PoseSpace(), stiffness, damping, reference=target)
        self.compensate_nonlinear = compensate_nonlinear

    def set_target(self, target: Pose) -> "OperationalSpaceController":
        super().set_target(target)
        self.wrench.set_reference(target)
        return self

    def action(self, state: RobotState) -> np.ndarray:
        pose = self.model.frame_pose(state.q)
        jac = self.model.jacobian(state.q)
        twist = jac @ state.dq

        desired_twist = self.task.update(pose, twist)
        self.wrench.set_reference_velocity(desired_twist)
        tau = jac.T @ self.wrench(pose, twist)

        if self.compensate_nonlinear:
            tau = tau + self.feedforward(state)
        self.last_torque = tau
        return tau
