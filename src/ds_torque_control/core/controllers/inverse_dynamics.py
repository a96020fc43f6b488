"""
Model-free QP controller with a downstream joint-space PD.

The QP only decides joint accelerations (no torque variables, no dynamics
constraint). The solution is integrated over the controller step into a joint
position reference, which a stiff joint PD tracks with gravity compensation:

    q_ref = q + dt dq + dt^2/2 ddq
    tau   = K (q_ref - q) - D dq + g(q)
"""

from typing import Optional
import numpy as np

from .base import BaseTorqueController
from ..contracts import Pose, RobotState
from ..dynamics import ConfigurationSpaceDynamics, TaskSpaceDynamics
from ..feedback import Feedback, GainLike
from ..ports import RobotModel
from ..qp import QPSolution, QPSpec, QuadraticControl
from ..spatial import Euclidean


class InverseDynamicsController(BaseTorqueController):
    """
    Acceleration-level QP controller.

    Example:
        controller = InverseDynamicsController(
            model, target, task, configuration,
            QPSpec(state_cost=[1.0] * 7, slack_cost=[30, 30, 30, 10, 10, 10]),
            joint_stiffness=[950, 950, 950, 950, 500, 500, 50],
            joint_damping=[10, 10, 10, 10, 10, 10, 1],
        )
    """

    def __init__(
        self,
        model: RobotModel,
        target: Pose,
        task: TaskSpaceDynamics,
        configuration: ConfigurationSpaceDynamics,
        spec: QPSpec,
        joint_stiffness: GainLike,
        joint_damping: GainLike,
        dt: Optional[float] = None,
    ):
        """
        Args:
            model: Robot model
            target: Task-space target pose
            task: Task-space dynamical system (desired acceleration)
            configuration: Joint-space dynamical system (posture bias)
            spec: QP costs/limits (torque variables are not used)
            joint_stiffness: Joint PD stiffness
            joint_damping: Joint PD damping
            dt: Integration step for the joint reference (None = spec.horizon_dt)
        """
        super().__init__(model, target, task)
        self.configuration = configuration
        self.qp = QuadraticControl(model, spec)
        self.dt = spec.horizon_dt if dt is None else dt
        self.joint = Feedback(Euclidean(model.dof), joint_stiffness, joint_damping)
        self.last_solution: Optional[QPSolution] = None

    def action(self, state: RobotState) -> np.ndarray:
        self.configuration.update(state.q, state.dq)

        pose, twist = self.end_effector(state)
        self.task.update(pose, twist)

        sol = self.qp.solve(
            state.q, state.dq, self.task.output,
            state_reference=self.configuration.output,
        )
        self.last_solution = sol

        dt = self.dt
        q_ref = state.q + dt * state.dq + 0.5 * dt * dt * sol.acceleration
        self.joint.set_reference(q_ref)
        tau = self.joint(state.q, state.dq) + self.model.gravity(state.q)
        self.last_torque = tau
        return tau
