"""
Build a torque controller from its YAML description.
"""

from enum import Enum
from typing import Optional

from .base import BaseTorqueController
from .inverse_dynamics import InverseDynamicsController
from .inverse_kinematics import InverseKinematicsController
from .operational_space import OperationalSpaceController
from ..config import ControllerConfig, GainConfig, QPConfig, TaskDynamicsConfig
from ..contracts import Pose
from ..dynamics import ConfigurationSpaceDynamics, FALLBACK_LOCAL, TaskSpaceDynamics, joint_midpoint
from ..errors import ConfigurationError
from ..ports import ReferenceStream, RobotModel
from ..qp import QPSpec

DEFAULT_OS_DAMPING = (20.0, 20.0, 20.0, 1.0, 1.0, 1.0)
DEFAULT_CONFIGURATION_GAINS = GainConfig(stiffness=2.0, damping=0.1)


class ControllerKind(str, Enum):
    OPERATIONAL_SPACE = "os"
    INVERSE_KINEMATICS = "ik"
    INVERSE_DYNAMICS = "id"


def make_task_dynamics(
    config: TaskDynamicsConfig,
    stream: Optional[ReferenceStream] = None,
    fallback: str = FALLBACK_LOCAL,
) -> TaskSpaceDynamics:
    return TaskSpaceDynamics(
        position_stiffness=config.position.stiffness,
        position_damping=config.position.damping,
        orientation_stiffness=config.orientation.stiffness,
        orientation_damping=config.orientation.damping,
        track_orientation=config.track_orientation,
        stream=stream,
        fallback=fallback,
    )


def make_qp_spec(config: QPConfig, horizon_dt: float) -> QPSpec:
    return QPSpec(
        state_cost=config.state_cost,
        input_cost=config.input_cost,
        slack_cost=config.slack_cost,
        model_constraint=config.model_constraint,
        task_mode=config.task_mode,
        limits=config.limits,
        horizon_dt=horizon_dt,
        solver=config.solver,
    )


def make_configuration_dynamics(model: RobotModel, gains: Optional[GainConfig]) -> ConfigurationSpaceDynamics:
    """Posture dynamics pulling the joints toward the middle of their range."""
    gains = gains or DEFAULT_CONFIGURATION_GAINS
    return ConfigurationSpaceDynamics(
        joint_midpoint(*model.position_limits()), gains.stiffness, gains.damping
    )


def make_controller(
    config: ControllerConfig,
    model: RobotModel,
    target: Pose,
    stream: Optional[ReferenceStream] = None,
    fallback: str = FALLBACK_LOCAL,
) -> BaseTorqueController:
    """
    Create the controller variant named by config.kind.

    Args:
        config: Controller section of the demo configuration
        model: Robot model
        target: Task-space target pose (trajectory start)
        stream: External source of the task command (None = local only)
        fallback: Stream fallback policy ('last' or 'local')

    Raises:
        ConfigurationError: unknown kind or missing section for the variant
    """
    try:
        kind = ControllerKind(config.kind)
    except ValueError:
        kinds = [k.value for k in ControllerKind]
        raise ConfigurationError(f"Unknown controller kind '{config.kind}', expected one of {kinds}") from None

    task = make_task_dynamics(config.task, stream, fallback)

    if kind is ControllerKind.OPERATIONAL_SPACE:
        gains = config.operational or GainConfig(stiffness=None, damping=DEFAULT_OS_DAMPING)
        return OperationalSpaceController(
            model, target, task, damping=gains.damping, stiffness=gains.stiffness
        )

    if config.qp is None:
        raise ConfigurationError(f"Controller '{kind.value}' needs a 'qp' section")
    spec = make_qp_spec(config.qp, config.horizon_dt)
    configuration = make_configuration_dynamics(model, config.configuration)

    if kind is ControllerKind.INVERSE_KINEMATICS:
        return InverseKinematicsController(model, target, task, configuration, spec)

    if config.joint is None:
        raise ConfigurationError("Controller 'id' needs a 'joint' section with PD gains")
    return InverseDynamicsController(
        model, target, task, configuration, spec,
        joint_stiffness=config.joint.stiffness,
        joint_damping=config.joint.damping,
    )
