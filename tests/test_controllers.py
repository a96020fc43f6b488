import numpy as np
import pytest

from ds_torque_control.core.config import ControllerConfig, GainConfig, QPConfig, TaskDynamicsConfig
from ds_torque_control.core.contracts import Pose
from ds_torque_control.core.controllers import (
    InverseDynamicsController,
    InverseKinematicsController,
    OperationalSpaceController,
    make_controller,
)
from ds_torque_control.core.dynamics import ConfigurationSpaceDynamics, TaskSpaceDynamics
from ds_torque_control.core.errors import ConfigurationError
from ds_torque_control.core.qp import QPSpec

from conftest import BASE, GRAVITY, FakeStream

SLACK = [1.0e3] * 6


def _configuration():
    return ConfigurationSpaceDynamics(np.zeros(7), stiffness=2.0, damping=0.1)


def _ik_spec():
    return QPSpec(
        state_cost=[1.0] * 7, input_cost=[0.1] * 7, slack_cost=SLACK,
        model_constraint=True, limits=("position", "velocity", "acceleration", "effort"),
    )


class TestOperationalSpace:
    def test_at_target_only_compensates_nonlinear_effects(self, arm):
        controller = OperationalSpaceController(arm, Pose(BASE), TaskSpaceDynamics(position_stiffness=5.0))
        tau = controller.action(arm.get_state())
        assert np.allclose(tau, GRAVITY)
        assert np.array_equal(controller.last_torque, tau)

    def test_damps_toward_desired_twist(self, arm):
        target = Pose(BASE + np.array([0.1, 0.0, 0.0]))
        controller = OperationalSpaceController(arm, target, TaskSpaceDynamics(position_stiffness=5.0))
        tau = controller.action(arm.get_state())
        # v_des = 5 * 0.1, F = 20 * v_des
        expected = GRAVITY.copy()
        expected[0] += 10.0
        assert np.allclose(tau, expected)

    def test_without_compensation(self, arm):
        controller = OperationalSpaceController(
            arm, Pose(BASE), TaskSpaceDynamics(), compensate_nonlinear=False
        )
        assert np.allclose(controller.action(arm.get_state()), 0.0)

    def test_set_target_moves_reference(self, arm):
        controller = OperationalSpaceController(arm, Pose(BASE), TaskSpaceDynamics(position_stiffness=1.0))
        controller.set_target(Pose(BASE + np.array([0.0, 0.0, 0.2])))
        tau = controller.action(arm.get_state())
        assert np.isclose(tau[2] - GRAVITY[2], 20.0 * 0.2)

    def test_external_flag_is_forwarded(self, arm):
        task = TaskSpaceDynamics(stream=FakeStream())
        controller = OperationalSpaceController(arm, Pose(BASE), task)
        assert not controller.external
        controller.set_external_dynamics(True)
        assert controller.external and task.external


class TestInverseKinematics:
    def test_torque_satisfies_model(self, arm):
        target = Pose(BASE + np.array([0.05, 0.0, 0.0]))
        task = TaskSpaceDynamics(position_stiffness=25.0, position_damping=10.0)
        controller = InverseKinematicsController(arm, target, task, _configuration(), _ik_spec())

        tau = controller.action(arm.get_state())

        sol = controller.last_solution
        assert np.allclose(tau, sol.acceleration + GRAVITY, atol=1e-6)
        assert sol.acceleration[0] > 0.0

    def test_needs_torque_variables(self, arm):
        with pytest.raises(ValueError):
            InverseKinematicsController(
                arm, Pose(BASE), TaskSpaceDynamics(), _configuration(),
                QPSpec(state_cost=[1.0] * 7, slack_cost=SLACK),
            )


class TestInverseDynamics:
    def test_joint_pd_on_integrated_reference(self, arm):
        target = Pose(BASE + np.array([0.0, 0.05, 0.0]))
        task = TaskSpaceDynamics(position_stiffness=25.0, position_damping=10.0)
        spec = QPSpec(state_cost=[1.0] * 7, slack_cost=SLACK, horizon_dt=0.01)
        K = np.array([950.0, 950.0, 950.0, 950.0, 500.0, 500.0, 50.0])
        controller = InverseDynamicsController(
            arm, target, task, _configuration(), spec, joint_stiffness=K, joint_damping=10.0,
        )

        tau = controller.action(arm.get_state())

        ddq = controller.last_solution.acceleration
        assert np.allclose(tau, K * 0.5 * 0.01**2 * ddq + GRAVITY)
        assert ddq[1] > 0.0


def _controller_config(kind, **kwargs):
    task = TaskDynamicsConfig(
        position=GainConfig(stiffness=5.0, damping=0.0),
        orientation=GainConfig(stiffness=1.0, damping=0.0),
    )
    return ControllerConfig(kind=kind, task=task, **kwargs)


class TestFactory:
    qp = QPConfig(
        state_cost=(1.0,) * 7, input_cost=(0.1,) * 7, slack_cost=(1.0e6,) * 6,
        model_constraint=True, limits=("position", "velocity", "acceleration", "effort"),
    )

    def test_operational_space(self, arm):
        controller = make_controller(_controller_config("os"), arm, Pose(BASE))
        assert isinstance(controller, OperationalSpaceController)

    def test_inverse_kinematics(self, arm):
        controller = make_controller(_controller_config("ik", qp=self.qp), arm, Pose(BASE))
        assert isinstance(controller, InverseKinematicsController)
        assert np.allclose(controller.configuration.reference, 0.0)

    def test_inverse_dynamics(self, arm):
        qp = QPConfig(state_cost=(1.0,) * 7, slack_cost=(30.0,) * 6)
        config = _controller_config("id", qp=qp, joint=GainConfig(stiffness=100.0, damping=10.0))
        assert isinstance(make_controller(config, arm, Pose(BASE)), InverseDynamicsController)

    def test_stream_is_wired_into_task(self, arm):
        stream = FakeStream()
        controller = make_controller(_controller_config("os"), arm, Pose(BASE), stream, "last")
        assert controller.task.stream is stream
        assert controller.task.fallback == "last"

    def test_unknown_kind(self, arm):
        with pytest.raises(ConfigurationError):
            make_controller(_controller_config("mpc"), arm, Pose(BASE))

    def test_qp_section_required(self, arm):
        with pytest.raises(ConfigurationError):
            make_controller(_controller_config("ik"), arm, Pose(BASE))

    def test_joint_gains_required_for_id(self, arm):
        with pytest.raises(ConfigurationError):
            make_controller(_controller_config("id", qp=self.qp), arm, Pose(BASE))
