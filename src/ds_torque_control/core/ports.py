from __future__ import annotations
from typing import Protocol, Tuple
import numpy as np
from .contracts import RobotState, JointCommand, Pose


class RobotModel(Protocol):
    """
    Protocol for the kinematic/dynamic model of the controlled arm.

    All queries are pure functions of the joint state passed in; implementations
    must not touch the state of the simulated or physical robot.
    Twists and Jacobian rows are ordered [linear; angular] and expressed in
    world-aligned axes at the controlled frame.
    """
    dof: int

    def frame_pose(self, q: np.ndarray) -> Pose: ...

    def frame_velocity(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray: ...

    def jacobian(self, q: np.ndarray) -> np.ndarray: ...

    def jacobian_derivative(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray: ...

    def mass_matrix(self, q: np.ndarray) -> np.ndarray: ...

    def nonlinear_effects(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        """Gravity + Coriolis/centrifugal generalized forces."""
        ...

    def gravity(self, q: np.ndarray) -> np.ndarray: ...

    def position_limits(self) -> Tuple[np.ndarray, np.ndarray]: ...

    def velocity_limits(self) -> np.ndarray: ...

    def acceleration_limits(self) -> np.ndarray: ...

    def effort_limits(self) -> np.ndarray: ...


class RobotInterface(Protocol):
    """
    Protocol for robot interface wrappers.

    Standardizes how the control loop talks to the actuated robot,
    regardless of whether it is simulated (MuJoCo) or physical.
    """
    def get_state(self) -> RobotState:
        """
        Get current robot state.

        Returns:
            RobotState with current joint positions and velocities
        """
        ...

    def send_command(self, cmd: JointCommand) -> None:
        """
        Send joint command to robot.

        Args:
            cmd: Joint command carrying the torques to apply
        """
        ...

    def step(self) -> bool:
        """
        Advance the robot by one control period.

        Returns:
            False if the underlying simulation/driver signals termination
        """
        ...

    def shutdown(self) -> None:
        """Shutdown robot connection and cleanup resources."""
        ...


class ReferenceStream(Protocol):
    """Request/response source of task-space commands living in another process."""
    def request(self, value: np.ndarray, size: int) -> np.ndarray: ...


class TorqueController(Protocol):
    """Anything that maps a robot state to a joint torque vector."""
    external: bool

    def action(self, state: RobotState) -> np.ndarray: ...

    def feedforward(self, state: RobotState) -> np.ndarray:
        """Model-based torque commanded when no solution is available."""
        ...

    def set_external_dynamics(self, value: bool) -> "TorqueController": ...
