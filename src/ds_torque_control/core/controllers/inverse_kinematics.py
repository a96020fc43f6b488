"""
Model-based QP controller returning actuator torques directly.

The QP decides joint accelerations and torques together, linked by the
equations of motion (M ddq + h = tau), with effort limits on the torques and
a feed-forward torque reference equal to the non-linear effects. Only the
torque block of the solution is sent to the actuators.
"""

from typing import Optional
import numpy as np

from .base import BaseTorqueController
from ..contracts import Pose, RobotState
from ..dynamics import ConfigurationSpaceDynamics, TaskSpaceDynamics
from ..errors import ConfigurationError
from ..ports import RobotModel
from ..qp import QPSolution, QPSpec, QuadraticControl


class InverseKinematicsController(BaseTorqueController):
    """
    Torque-producing QP controller.

    Per tick:
        1. configuration DS -> desired joint acceleration (state reference)
        2. non-linear effects -> torque reference
        3. task DS -> desired end-effector acceleration
        4. QP over [ddq; tau; s] -> tau
    """

    def __init__(
        self,
        model: RobotModel,
        target: Pose,
        task: TaskSpaceDynamics,
        configuration: ConfigurationSpaceDynamics,
        spec: QPSpec,
    ):
        """
        Args:
            model: Robot model
            target: Task-space target pose
            task: Task-space dynamical system (desired acceleration)
            configuration: Joint-space dynamical system (posture bias)
            spec: QP costs/limits; must carry an input cost and the model constraint
        """
        if spec.input_cost is None or not spec.model_constraint:
            raise ConfigurationError("InverseKinematicsController needs input_cost and model_constraint")
        super().__init__(model, target, task)
        self.configuration = configuration
        self.qp = QuadraticControl(model, spec)
        self.last_solution: Optional[QPSolution] = None

    def action(self, state: RobotState) -> np.ndarray:
        self.configuration.update(state.q, state.dq)
        tau_ref = self.feedforward(state)

        pose, twist = self.end_effector(state)
        self.task.update(pose, twist)

        sol = self.qp.solve(
            state.q, state.dq, self.task.output,
            state_reference=self.configuration.output,
            input_reference=tau_ref,
        )
        self.last_solution = sol
        self.last_torque = sol.torque
        return sol.torque
