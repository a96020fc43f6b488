"""
Abstract base class for torque controllers.

This module defines the interface that all controller variants implement
(operational-space PD, inverse-kinematics QP, inverse-dynamics QP), so the
control loop can drive any of them through a single action(state) call.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
import numpy as np

from ..contracts import Pose, RobotState
from ..dynamics import TaskSpaceDynamics
from ..ports import RobotModel


class BaseTorqueController(ABC):
    """
    Abstract base class for joint-torque controllers.

    Every controller owns a TaskSpaceDynamics generating the end-effector
    command and borrows the robot model for read-only queries. The returned
    torques are the full actuator command (feed-forward terms included).

    Example usage:
        controller = InverseDynamicsController(model, target, task, ...)
        tau = controller.action(robot_state)
    """

    def __init__(self, model: RobotModel, target: Pose, task: TaskSpaceDynamics):
        """
        Initialize base controller.

        Args:
            model: Robot model used for kinematics/dynamics queries
            target: Task-space target pose
            task: Task-space dynamical system
        """
        self.model = model
        self.task = task
        self.target = target
        self.task.set_reference(target)

        # Last computed command (None until the first tick)
        self.last_torque: Optional[np.ndarray] = None

    @abstractmethod
    def action(self, state: RobotState) -> np.ndarray:
        """
        Compute the joint torques for the current state.

        Args:
            state: Current robot state (joint positions, velocities)

        Returns:
            (n,) joint torque command

        Raises:
            InfeasibleProblemError: QP-based variants when the tick has no solution
        """
        pass

    @property
    def external(self) -> bool:
        return self.task.external

    def set_external_dynamics(self, value: bool) -> "BaseTorqueController":
        self.task.set_external(value)
        return self

    def set_target(self, target: Pose) -> "BaseTorqueController":
        self.target = target
        self.task.set_reference(target)
        return self

    def feedforward(self, state: RobotState) -> np.ndarray:
        """Torque compensating gravity and Coriolis effects at the current state."""
        return self.model.nonlinear_effects(state.q, state.dq)

    def end_effector(self, state: RobotState) -> Tuple[Pose, np.ndarray]:
        """Current end-effector pose and twist."""
        return self.model.frame_pose(state.q), self.model.frame_velocity(state.q, state.dq)
