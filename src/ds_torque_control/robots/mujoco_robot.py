"""
MuJoCo backend for the robot model and the simulated robot.

MuJoCoModel answers kinematic/dynamic queries on its own MjData, so a
controller can evaluate any joint state without disturbing the simulation.
MuJoCoSimulation owns the simulated state and is the only writer of it.
"""

from pathlib import Path
from typing import Optional, Sequence, Tuple
import mujoco
import numpy as np

from ..core.contracts import JointCommand, Pose, RobotState, TimeStamp
from ..core.errors import ConfigurationError

FRAME_SITE = "site"
FRAME_BODY = "body"

_FRAME_OBJECTS = {
    FRAME_SITE: mujoco.mjtObj.mjOBJ_SITE,
    FRAME_BODY: mujoco.mjtObj.mjOBJ_BODY,
}


def load_mujoco_model(xml_path: str) -> mujoco.MjModel:
    """Load an MJCF file, reporting a missing file as a configuration error."""
    path = Path(xml_path)
    if not path.exists():
        raise ConfigurationError(f"MuJoCo model not found: {path}")
    print(f"Loading MuJoCo model from: {path}")
    model = mujoco.MjModel.from_xml_path(path.as_posix())
    print(f"✓ Model loaded: {model.nq} DOF total, {model.nu} actuators")
    return model


def _limits(values: Optional[Sequence[float]], dof: int, name: str) -> np.ndarray:
    if values is None:
        return np.full(dof, np.inf)
    values = np.asarray(values, dtype=float).reshape(-1)
    if values.size == 1:
        values = np.full(dof, float(values[0]))
    if values.shape != (dof,):
        raise ConfigurationError(f"{name} needs {dof} values, got {values.size}")
    return values


class MuJoCoModel:
    """
    RobotModel backed by a MuJoCo model.

    The arm is the first `dof` hinge joints of the model (extra joints such as
    gripper fingers are held at zero for the queries). Jacobian rows are
    [linear; angular] in world-aligned axes at the frame origin.

    Example:
        model = MuJoCoModel(mujoco.MjModel.from_xml_path(xml), frame="attachment_site")
        J = model.jacobian(q)
    """

    def __init__(
        self,
        model: mujoco.MjModel,
        frame: str,
        frame_type: str = FRAME_SITE,
        velocity_limits: Optional[Sequence[float]] = None,
        acceleration_limits: Optional[Sequence[float]] = None,
        dof: Optional[int] = None,
        fd_step: float = 1e-6,
    ):
        """
        Args:
            model: MuJoCo model
            frame: Name of the controlled frame (site or body)
            frame_type: 'site' or 'body'
            velocity_limits: Joint velocity limits (None = unbounded)
            acceleration_limits: Joint acceleration limits (None = unbounded)
            dof: Number of arm joints (None = number of actuators)
            fd_step: Time step of the finite difference used for Jdot
        """
        if frame_type not in _FRAME_OBJECTS:
            raise ConfigurationError(f"Unknown frame type '{frame_type}'")
        frame_id = mujoco.mj_name2id(model, _FRAME_OBJECTS[frame_type], frame)
        if frame_id < 0:
            raise ConfigurationError(f"No {frame_type} named '{frame}' in the MuJoCo model")

        self.model = model
        self.data = mujoco.MjData(model)
        self.frame = frame
        self.frame_type = frame_type
        self.frame_id = frame_id
        self.dof = int(dof if dof is not None else min(model.nu, model.nv))
        self.fd_step = fd_step

        self._vel_limits = _limits(velocity_limits, self.dof, "velocity_limits")
        self._acc_limits = _limits(acceleration_limits, self.dof, "acceleration_limits")

        self._jacp = np.zeros((3, model.nv))
        self._jacr = np.zeros((3, model.nv))
        self._M = np.zeros((model.nv, model.nv))

    def _forward(self, q: np.ndarray, dq: Optional[np.ndarray] = None):
        self.data.qpos[:] = 0.0
        self.data.qvel[:] = 0.0
        self.data.qpos[:self.dof] = q
        if dq is not None:
            self.data.qvel[:self.dof] = dq
        mujoco.mj_forward(self.model, self.data)

    def _frame_jacobian(self) -> np.ndarray:
        if self.frame_type == FRAME_SITE:
            mujoco.mj_jacSite(self.model, self.data, self._jacp, self._jacr, self.frame_id)
        else:
            mujoco.mj_jacBody(self.model, self.data, self._jacp, self._jacr, self.frame_id)
        return np.vstack([self._jacp[:, :self.dof], self._jacr[:, :self.dof]])

    def frame_pose(self, q: np.ndarray) -> Pose:
        self._forward(q)
        if self.frame_type == FRAME_SITE:
            position = self.data.site_xpos[self.frame_id]
            rotation = self.data.site_xmat[self.frame_id]
        else:
            position = self.data.xpos[self.frame_id]
            rotation = self.data.xmat[self.frame_id]
        return Pose(position.copy(), rotation.reshape(3, 3).copy())

    def frame_velocity(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        return self.jacobian(q) @ np.asarray(dq, dtype=float)

    def jacobian(self, q: np.ndarray) -> np.ndarray:
        self._forward(q)
        return self._frame_jacobian()

    def jacobian_derivative(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        """Time derivative of the Jacobian along dq (forward difference)."""
        q = np.asarray(q, dtype=float)
        dq = np.asarray(dq, dtype=float)
        J = self.jacobian(q)

        qpos = np.zeros(self.model.nq)
        qvel = np.zeros(self.model.nv)
        qpos[:self.dof] = q
        qvel[:self.dof] = dq
        mujoco.mj_integratePos(self.model, qpos, qvel, self.fd_step)
        J_next = self.jacobian(qpos[:self.dof])
        return (J_next - J) / self.fd_step

    def mass_matrix(self, q: np.ndarray) -> np.ndarray:
        """Joint-space inertia, built column by column with mj_mulM."""
        self._forward(q)
        unit = np.zeros(self.model.nv)
        column = np.zeros(self.model.nv)
        for i in range(self.dof):
            unit[i] = 1.0
            mujoco.mj_mulM(self.model, self.data, column, unit)
            self._M[:, i] = column
            unit[i] = 0.0
        return self._M[:self.dof, :self.dof].copy()

    def nonlinear_effects(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        self._forward(q, dq)
        return self.data.qfrc_bias[:self.dof].copy()

    def gravity(self, q: np.ndarray) -> np.ndarray:
        self._forward(q)
        return self.data.qfrc_bias[:self.dof].copy()

    def position_limits(self) -> Tuple[np.ndarray, np.ndarray]:
        limited = self.model.jnt_limited[:self.dof].astype(bool)
        ranges = self.model.jnt_range[:self.dof]
        lower = np.where(limited, ranges[:, 0], -np.inf)
        upper = np.where(limited, ranges[:, 1], np.inf)
        return lower, upper

    def velocity_limits(self) -> np.ndarray:
        return self._vel_limits

    def acceleration_limits(self) -> np.ndarray:
        return self._acc_limits

    def effort_limits(self) -> np.ndarray:
        limited = self.model.actuator_ctrllimited[:self.dof].astype(bool)
        ranges = np.abs(self.model.actuator_ctrlrange[:self.dof])
        return np.where(limited, ranges.max(axis=1), np.inf)


class MuJoCoSimulation:
    """
    Simulated robot: owns the MjData and advances it by one timestep per step().

    The actuators are expected to be torque motors on the arm joints, so the
    torque command is written straight to data.ctrl.
    """

    def __init__(self, model: mujoco.MjModel, dof: Optional[int] = None):
        self.model = model
        self.data = mujoco.MjData(model)
        self.dof = int(dof if dof is not None else min(model.nu, model.nv))
        self.dt = float(model.opt.timestep)
        self.step_count = 0

    def reset(self, q: np.ndarray, dq: Optional[np.ndarray] = None) -> RobotState:
        """Place the arm at q (and dq) and recompute derived quantities."""
        mujoco.mj_resetData(self.model, self.data)
        self.data.qpos[:self.dof] = q
        if dq is not None:
            self.data.qvel[:self.dof] = dq
        mujoco.mj_forward(self.model, self.data)
        self.step_count = 0
        return self.get_state()

    def get_state(self) -> RobotState:
        return RobotState(
            stamp=TimeStamp(float(self.data.time)),
            q=self.data.qpos[:self.dof].copy(),
            dq=self.data.qvel[:self.dof].copy(),
            tau=self.data.actuator_force[:self.dof].copy(),
        )

    def send_command(self, cmd: JointCommand) -> None:
        self.data.ctrl[:self.dof] = cmd.tau

    def step(self) -> bool:
        """
        Advance the physics by one timestep.

        Returns:
            False if the simulation diverged (MuJoCo flagged bad accelerations
            or the state is no longer finite)
        """
        bad_qacc = mujoco.mjtWarning.mjWARN_BADQACC
        warnings_before = self.data.warning[bad_qacc].number
        mujoco.mj_step(self.model, self.data)
        self.step_count += 1

        if self.data.warning[bad_qacc].number > warnings_before:
            return False
        return bool(np.all(np.isfinite(self.data.qpos)) and np.all(np.isfinite(self.data.qvel)))

    def shutdown(self) -> None:
        print(f"✓ Simulation stopped after {self.step_count} steps (t={self.data.time:.3f}s)")
