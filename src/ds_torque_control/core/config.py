from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import numpy as np
import yaml

from .errors import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent  # Repository root


@dataclass(frozen=True)
class RobotConfig:
    name: str
    mujoco_xml_path: str
    frame: str
    velocity_limits: Tuple[float, ...]
    acceleration_limits: Tuple[float, ...]


@dataclass(frozen=True)
class DemoFilesConfig:
    root: str
    trajectories: int = 1


@dataclass(frozen=True)
class LoopConfig:
    dt: float = 1e-3
    duration_s: float = 40.0
    realtime: bool = True
    activation_tol_m: float = 0.01
    goal_tol_m: Optional[float] = None
    infeasible_policy: str = "gravity"


@dataclass(frozen=True)
class StreamConfig:
    address: str = "tcp://localhost:5511"
    timeout_ms: int = 5
    fallback: str = "local"


@dataclass(frozen=True)
class GainConfig:
    stiffness: Any = 0.0
    damping: Any = 0.0


@dataclass(frozen=True)
class TaskDynamicsConfig:
    position: GainConfig
    orientation: GainConfig
    track_orientation: bool = False


@dataclass(frozen=True)
class QPConfig:
    state_cost: Tuple[float, ...]
    input_cost: Optional[Tuple[float, ...]] = None
    slack_cost: Optional[Tuple[float, ...]] = None
    model_constraint: bool = False
    task_mode: str = "acceleration"
    limits: Tuple[str, ...] = ("position", "velocity", "acceleration")
    solver: str = "quadprog"


@dataclass(frozen=True)
class ControllerConfig:
    kind: str
    task: TaskDynamicsConfig
    horizon_dt: float = 0.01
    configuration: Optional[GainConfig] = None
    qp: Optional[QPConfig] = None
    joint: Optional[GainConfig] = None
    operational: Optional[GainConfig] = None


@dataclass(frozen=True)
class DemoConfig:
    robot: RobotConfig
    demo: DemoFilesConfig
    loop: LoopConfig
    stream: StreamConfig
    controller: ControllerConfig
    target_rotation: np.ndarray = field(default_factory=lambda: np.eye(3))


def _expand(path: str) -> str:
    """Resolve ${PROJECT_ROOT} token in paths."""
    return str(path).replace("${PROJECT_ROOT}", str(PROJECT_ROOT))


def _section(data: Dict[str, Any], key: str, where: str = "config") -> Dict[str, Any]:
    try:
        value = data[key]
    except (KeyError, TypeError):
        raise ConfigurationError(f"Missing '{key}' section in {where}") from None
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' in {where} must be a mapping")
    return value


def _floats(value: Optional[List[float]]) -> Optional[Tuple[float, ...]]:
    if value is None:
        return None
    if np.isscalar(value):
        return (float(value),)
    return tuple(float(v) for v in value)


def _gains(data: Optional[Dict[str, Any]]) -> Optional[GainConfig]:
    if data is None:
        return None
    return GainConfig(stiffness=data.get("stiffness", 0.0), damping=data.get("damping", 0.0))


def _qp(data: Optional[Dict[str, Any]]) -> Optional[QPConfig]:
    if data is None:
        return None
    if "state_cost" not in data:
        raise ConfigurationError("Missing 'state_cost' in controller.qp")
    return QPConfig(
        state_cost=_floats(data["state_cost"]),
        input_cost=_floats(data.get("input_cost")),
        slack_cost=_floats(data.get("slack_cost")),
        model_constraint=bool(data.get("model_constraint", False)),
        task_mode=data.get("task_mode", "acceleration"),
        limits=tuple(data.get("limits", ("position", "velocity", "acceleration"))),
        solver=data.get("solver", "quadprog"),
    )


def parse_config(data: Dict[str, Any]) -> DemoConfig:
    """Build a DemoConfig from an already parsed YAML mapping."""
    robot = _section(data, "robot")
    demo = _section(data, "demo")
    ctrl = _section(data, "controller")
    task = _section(ctrl, "task", "controller")
    loop = data.get("loop") or {}
    stream = data.get("stream") or {}
    target = data.get("target") or {}

    try:
        robot_config = RobotConfig(
            name=robot["name"],
            mujoco_xml_path=_expand(robot["mujoco_xml_path"]),
            frame=robot["frame"],
            velocity_limits=_floats(robot["velocity_limits"]),
            acceleration_limits=_floats(robot["acceleration_limits"]),
        )
        demo_config = DemoFilesConfig(
            root=_expand(demo["root"]),
            trajectories=int(demo.get("trajectories", 1)),
        )
        task_config = TaskDynamicsConfig(
            position=_gains(_section(task, "position", "controller.task")),
            orientation=_gains(task.get("orientation") or {}),
            track_orientation=bool(task.get("track_orientation", False)),
        )
        controller_config = ControllerConfig(
            kind=ctrl["kind"],
            task=task_config,
            horizon_dt=float(ctrl.get("horizon_dt", 0.01)),
            configuration=_gains(ctrl.get("configuration")),
            qp=_qp(ctrl.get("qp")),
            joint=_gains(ctrl.get("joint")),
            operational=_gains(ctrl.get("operational")),
        )
    except KeyError as e:
        raise ConfigurationError(f"Missing required key {e}") from None

    goal_tol = loop.get("goal_tol_m")
    loop_config = LoopConfig(
        dt=float(loop.get("dt", 1e-3)),
        duration_s=float(loop.get("duration_s", 40.0)),
        realtime=bool(loop.get("realtime", True)),
        activation_tol_m=float(loop.get("activation_tol_m", 0.01)),
        goal_tol_m=None if goal_tol is None else float(goal_tol),
        infeasible_policy=loop.get("infeasible_policy", "gravity"),
    )
    stream_config = StreamConfig(
        address=stream.get("address", "tcp://localhost:5511"),
        timeout_ms=int(stream.get("timeout_ms", 5)),
        fallback=stream.get("fallback", "local"),
    )

    rotation = np.asarray(target.get("rotation", np.eye(3)), dtype=float)
    if rotation.shape != (3, 3):
        raise ConfigurationError(f"target.rotation must be 3x3, got {rotation.shape}")

    return DemoConfig(
        robot=robot_config,
        demo=demo_config,
        loop=loop_config,
        stream=stream_config,
        controller=controller_config,
        target_rotation=rotation,
    )


def load_config(path: str) -> DemoConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} is empty or not a mapping")
    return parse_config(data)
