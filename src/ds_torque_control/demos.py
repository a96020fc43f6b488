"""Trajectory-following torque control demos on a simulated Franka Panda.

Each demo:
- loads a demonstration (trajectories + workspace offset) from disk
- drives the arm to the start of the first trajectory with local dynamics
- switches to the external dynamical system streamed over ZeroMQ
- stops on goal proximity, duration, viewer close or Ctrl+C

Usage:
    1. Start a dynamical system server (or any REP server on tcp://localhost:5511):
       python examples/ds_server.py 1

    2. Run a controller variant:
       python examples/sim_os.py 1 --visualize
       python examples/sim_ik.py 1 --plot
       python examples/sim_id.py 2 --record demo_id_0.csv --no-realtime
"""

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

from .core.config import PROJECT_ROOT, DemoConfig, load_config
from .core.contracts import Pose, StopReason
from .core.control_loop import TrajectoryControlLoop
from .core.controllers import BaseTorqueController, ControllerKind, make_controller
from .core.dynamics import joint_midpoint
from .core.ports import ReferenceStream
from .core.trajectory import TrajectoryRecorder, load_demo_offset, load_trajectories
from .robots.mujoco_robot import MuJoCoModel, MuJoCoSimulation, load_mujoco_model
from .stream.zmq_stream import DEFAULT_ADDRESS, Replier, Requester

DEFAULT_DEMO = "1"
CONFIG_DIR = PROJECT_ROOT / "configs"

# Trajectories from this index on are drawn in red
HIGHLIGHT_FROM = 4


def default_config_path(kind: str) -> Path:
    return CONFIG_DIR / f"sim_{kind}.yaml"


def _print_demo_banner(config: DemoConfig, demo_dir: Path, trajectories: List[np.ndarray], offset: np.ndarray):
    print("=" * 60)
    print(f"Demo: {demo_dir.name} ({config.controller.kind.upper()} controller)")
    print("=" * 60)
    print(f"Robot: {config.robot.name} (frame '{config.robot.frame}')")
    print(f"Trajectories: {len(trajectories)} loaded from {demo_dir}")
    print(f"Workspace offset: {offset}")
    print(f"Trajectory start: {trajectories[0][0]}")
    print(f"Reference stream: {config.stream.address} "
          f"(timeout {config.stream.timeout_ms} ms, fallback '{config.stream.fallback}')")
    print("=" * 60)
    print()


def demo_directory_name(demo: str) -> str:
    return demo if str(demo).startswith("demo_") else f"demo_{demo}"


@dataclass
class DemoSetup:
    """Everything a demo run is made of, ready for loop.run()."""
    name: str
    trajectories: List[np.ndarray]
    offset: np.ndarray
    model: MuJoCoModel
    simulation: MuJoCoSimulation
    controller: BaseTorqueController
    loop: TrajectoryControlLoop


def build_demo(
    config: DemoConfig,
    stream: ReferenceStream,
    demo: str = DEFAULT_DEMO,
    visualize: bool = False,
    recorder: Optional[TrajectoryRecorder] = None,
    realtime: Optional[bool] = None,
    duration_s: Optional[float] = None,
) -> DemoSetup:
    """
    Build the simulation, controller and loop for a demo.

    Args:
        config: Demo configuration
        stream: Source of the external task command
        demo: Demo number or directory name ('1' -> demo_1)
        visualize: Open the MuJoCo viewer
        recorder: Recorder of the end-effector positions while external
        realtime: Override config.loop.realtime
        duration_s: Override config.loop.duration_s
    """
    demo_name = demo_directory_name(demo)
    demo_dir = Path(config.demo.root) / demo_name

    # 1. Demonstration data
    offset = load_demo_offset(demo_dir / "dynamics_params.yaml")
    trajectories = load_trajectories(demo_dir, config.demo.trajectories, offset)
    _print_demo_banner(config, demo_dir, trajectories, offset)

    # 2. Model and simulation, starting at the middle of the joint ranges
    mj_model = load_mujoco_model(config.robot.mujoco_xml_path)
    mj_model.opt.timestep = config.loop.dt
    model = MuJoCoModel(
        mj_model,
        frame=config.robot.frame,
        velocity_limits=config.robot.velocity_limits,
        acceleration_limits=config.robot.acceleration_limits,
    )
    sim = MuJoCoSimulation(mj_model, dof=model.dof)
    initial_state = sim.reset(joint_midpoint(*model.position_limits()))
    print(f"Initial joint configuration: {initial_state.q}")
    print(f"Initial EE position: {model.frame_pose(initial_state.q).position}\n")

    # 3. Controller, targeting the start of the first trajectory
    target = Pose(trajectories[0][0], config.target_rotation)
    controller = make_controller(config.controller, model, target, stream, config.stream.fallback)

    # 4. Optional visualization
    visualizer = None
    if visualize:
        from .visualization.mujoco import BLUE, GREEN, RED, MuJoCoVisualizer

        base_color = BLUE if config.controller.kind == ControllerKind.OPERATIONAL_SPACE.value else GREEN
        visualizer = MuJoCoVisualizer(
            mj_model, sim.data,
            camera_config={'distance': 2.0, 'elevation': -20, 'azimuth': 135, 'lookat': [0.4, 0.0, 0.4]},
        )
        for k, trajectory in enumerate(trajectories, start=1):
            visualizer.add_trajectory(trajectory, RED if k >= HIGHLIGHT_FROM else base_color)
        if not visualizer.initialize():
            print("⚠ Visualization failed to initialize, continuing without it")
            visualizer = None

    loop = TrajectoryControlLoop(
        sim,
        controller,
        model,
        start=target.position,
        activation_tol=config.loop.activation_tol_m,
        goal=offset if config.loop.goal_tol_m is not None else None,
        goal_tol=config.loop.goal_tol_m,
        recorder=recorder,
        dt=config.loop.dt,
        duration_s=config.loop.duration_s if duration_s is None else duration_s,
        realtime=config.loop.realtime if realtime is None else realtime,
        infeasible_policy=config.loop.infeasible_policy,
        visualizer=visualizer,
    )
    return DemoSetup(demo_name, trajectories, offset, model, sim, controller, loop)


def run_demo(
    config: DemoConfig,
    demo: str = DEFAULT_DEMO,
    visualize: bool = False,
    plot: bool = False,
    record: Optional[str] = None,
    realtime: Optional[bool] = None,
    duration_s: Optional[float] = None,
) -> StopReason:
    """
    Run a demo against the reference stream server named in the configuration.

    Args:
        config: Demo configuration
        demo: Demo number or directory name ('1' -> demo_1)
        visualize: Open the MuJoCo viewer
        plot: Plot reference vs. executed trajectory at the end
        record: CSV path for the end-effector positions recorded while external
        realtime: Override config.loop.realtime
        duration_s: Override config.loop.duration_s

    Returns:
        Why the loop stopped
    """
    recorder = TrajectoryRecorder(record) if (record or plot) else None
    stream = Requester(config.stream.address, config.stream.timeout_ms)
    try:
        setup = build_demo(
            config, stream, demo,
            visualize=visualize, recorder=recorder, realtime=realtime, duration_s=duration_s,
        )
        reason = setup.loop.run()
    finally:
        stream.close()

    if recorder is not None:
        recorder.save()
        if plot:
            from .visualization.plotting import plot_trajectories

            plot_trajectories(
                setup.trajectories, recorder.as_array(),
                title=f"{setup.name}: {config.controller.kind.upper()} controller",
            )
    return reason


def build_parser(kind: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f'Trajectory-following torque control demo ({kind.upper()} controller)'
    )
    parser.add_argument(
        'demo',
        nargs='?',
        default=DEFAULT_DEMO,
        help=f'Demo number, selects configs/demos/demo_<demo> (default: {DEFAULT_DEMO})'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=str(default_config_path(kind)),
        help='Controller configuration YAML'
    )
    parser.add_argument(
        '--visualize',
        action='store_true',
        help='Enable MuJoCo visualization'
    )
    parser.add_argument(
        '--plot',
        action='store_true',
        help='Plot reference vs. executed trajectory at the end'
    )
    parser.add_argument(
        '--record',
        type=str,
        default=None,
        help='Write end-effector positions recorded while external to this CSV'
    )
    parser.add_argument(
        '--no-realtime',
        action='store_true',
        help='Run as fast as possible instead of pacing to wall-clock time'
    )
    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Simulated duration in seconds (default: from config)'
    )
    return parser


def main(kind: str, argv: Optional[List[str]] = None) -> int:
    """Entry point shared by the sim_os / sim_ik / sim_id demos."""
    args = build_parser(kind).parse_args(argv)
    config = load_config(args.config)
    if config.controller.kind != kind:
        print(f"⚠ Config {args.config} describes a '{config.controller.kind}' controller, running it as such")

    reason = run_demo(
        config,
        demo=args.demo,
        visualize=args.visualize,
        plot=args.plot,
        record=args.record,
        realtime=False if args.no_realtime else None,
        duration_s=args.duration,
    )
    return 1 if reason in (StopReason.STEP_FAILED, StopReason.INFEASIBLE) else 0


def main_os(argv: Optional[List[str]] = None) -> int:
    return main(ControllerKind.OPERATIONAL_SPACE.value, argv)


def main_ik(argv: Optional[List[str]] = None) -> int:
    return main(ControllerKind.INVERSE_KINEMATICS.value, argv)


def main_id(argv: Optional[List[str]] = None) -> int:
    return main(ControllerKind.INVERSE_DYNAMICS.value, argv)


class LinearDynamics:
    """
    First-order linear dynamical system x_dot = -gain (x - attractor),
    with the speed clipped to max_speed.
    """

    def __init__(self, attractor: np.ndarray, gain: float = 1.0, max_speed: float = 0.2):
        self.attractor = np.asarray(attractor, dtype=float).reshape(3)
        self.gain = gain
        self.max_speed = max_speed

    def __call__(self, position: np.ndarray) -> np.ndarray:
        velocity = -self.gain * (np.asarray(position, dtype=float).reshape(3) - self.attractor)
        speed = np.linalg.norm(velocity)
        if speed > self.max_speed:
            velocity *= self.max_speed / speed
        return velocity


def serve_main(argv: Optional[List[str]] = None) -> int:
    """Serve a linear dynamical system converging to the demo's offset."""
    parser = argparse.ArgumentParser(
        description='Reference stream server answering positions with a linear DS velocity'
    )
    parser.add_argument('demo', nargs='?', default=DEFAULT_DEMO, help='Demo number (default: 1)')
    parser.add_argument('--demos-root', type=str, default=str(CONFIG_DIR / "demos"), help='Demo directory root')
    parser.add_argument('--address', type=str, default=DEFAULT_ADDRESS.replace("localhost", "*"),
                        help='Bind address (default: tcp://*:5511)')
    parser.add_argument('--gain', type=float, default=1.0, help='Convergence rate (1/s)')
    parser.add_argument('--max-speed', type=float, default=0.2, help='Speed bound (m/s)')
    args = parser.parse_args(argv)

    demo_name = demo_directory_name(args.demo)
    offset = load_demo_offset(Path(args.demos_root) / demo_name / "dynamics_params.yaml")
    dynamics = LinearDynamics(offset, args.gain, args.max_speed)
    print(f"Attractor: {offset}, gain {args.gain}, max speed {args.max_speed} m/s")

    server = Replier(args.address, dynamics)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nKeyboard interrupt received...")
    finally:
        server.close()
        print(f"✓ Served {server.request_count} requests")
    return 0
