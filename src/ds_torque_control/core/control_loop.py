"""
control_loop.py
Fixed-timestep torque control loop.

Provides generic infrastructure for:
- One controller tick per period (read state, compute torque, command, step)
- Wall-clock pacing with loop_rate_limiters
- Infeasible-tick handling policies
- Statistics tracking
- Lifecycle management (run, stop reasons, cleanup)
"""

import time
from typing import Optional
import numpy as np
from loop_rate_limiters import RateLimiter

from .contracts import JointCommand, LoopState, Pose, RobotState, StopReason
from .errors import ConfigurationError, InfeasibleProblemError
from .ports import RobotInterface, RobotModel, TorqueController
from .trajectory import TrajectoryRecorder

POLICY_GRAVITY = "gravity"
POLICY_HOLD = "hold"
POLICY_HALT = "halt"
INFEASIBLE_POLICIES = (POLICY_GRAVITY, POLICY_HOLD, POLICY_HALT)


class ControlLoop:
    """
    Single-rate control loop driving a torque controller on a robot interface.

    Each tick:
        1. state = robot.get_state()
        2. tau = controller.action(state)
        3. robot.send_command(tau)
        4. robot.step()
        5. t += dt
        6. on_iteration_end(state)

    The loop stops when the step fails, t exceeds duration_s, the viewer is
    closed, stop() is called from a hook, or Ctrl+C is pressed.
    """

    def __init__(
        self,
        robot: RobotInterface,
        controller: TorqueController,
        dt: float = 1e-3,
        duration_s: Optional[float] = None,
        realtime: bool = True,
        infeasible_policy: str = POLICY_GRAVITY,
        visualizer=None,
    ):
        """
        Args:
            robot: Robot interface (simulated or physical)
            controller: Controller producing joint torques
            dt: Control period (seconds)
            duration_s: Simulated duration to run (None = until stopped)
            realtime: Pace iterations to wall-clock time
            infeasible_policy: 'gravity', 'hold' or 'halt'
            visualizer: Optional Visualizer updated every tick
        """
        if dt <= 0.0:
            raise ConfigurationError("Control period dt must be positive")
        if infeasible_policy not in INFEASIBLE_POLICIES:
            raise ConfigurationError(
                f"Unknown infeasible policy '{infeasible_policy}', expected one of {INFEASIBLE_POLICIES}"
            )

        self.robot = robot
        self.controller = controller
        self.dt = dt
        self.duration_s = duration_s
        self.realtime = realtime
        self.infeasible_policy = infeasible_policy
        self.visualizer = visualizer

        # Loop state
        self.state = LoopState.RUNNING
        self.stop_reason: Optional[StopReason] = None
        self.t = 0.0
        self.iteration_counter = 0
        self.infeasible_count = 0
        self._last_tau: Optional[np.ndarray] = None
        self._infeasible_streak = False

    def _print_configuration(self):
        """Print loop configuration."""
        print("=" * 60)
        print("Torque Control Loop Configuration")
        print("=" * 60)
        print(f"Controller: {type(self.controller).__name__}")
        print(f"Frequency: {1.0 / self.dt:.1f} Hz (dt = {self.dt * 1e3:.2f} ms)")
        duration = "until stopped" if self.duration_s is None else f"{self.duration_s:.1f}s"
        print(f"Duration: {duration}")
        print(f"Real-time pacing: {'on' if self.realtime else 'off'}")
        print(f"Infeasible policy: {self.infeasible_policy}")
        print("=" * 60)
        print()

    @property
    def running(self) -> bool:
        return self.state is LoopState.RUNNING

    def stop(self, reason: StopReason = StopReason.INTERRUPTED):
        """Request the loop to stop; the first reason given wins."""
        if self.state is LoopState.RUNNING:
            self.state = LoopState.STOPPED
            self.stop_reason = reason

    def should_continue(self) -> bool:
        """
        Check if loop should continue running.

        Can be overridden to add custom termination conditions.
        """
        return self.running

    def on_iteration_start(self):
        """Hook called before each tick."""
        pass

    def on_iteration_end(self, state: RobotState):
        """
        Hook called after each tick.

        Args:
            state: Robot state the tick's command was computed from
        """
        pass

    def compute_torque(self, state: RobotState) -> Optional[np.ndarray]:
        """
        Run the controller, applying the infeasible policy on failure.

        Returns:
            Torque to command, or None when the loop must halt
        """
        try:
            tau = np.asarray(self.controller.action(state), dtype=float)
        except InfeasibleProblemError as e:
            self.infeasible_count += 1
            if not self._infeasible_streak:
                print(f"[LOOP] ✗ Infeasible tick at t={self.t:.3f}s ({e}), policy '{self.infeasible_policy}'")
                self._infeasible_streak = True
            if self.infeasible_policy == POLICY_HALT:
                self.stop(StopReason.INFEASIBLE)
                return None
            if self.infeasible_policy == POLICY_HOLD and self._last_tau is not None:
                return self._last_tau
            return np.asarray(self.controller.feedforward(state), dtype=float)

        if self._infeasible_streak:
            print(f"[LOOP] ✓ Feasible again at t={self.t:.3f}s")
            self._infeasible_streak = False
        self._last_tau = tau
        return tau

    def tick(self) -> bool:
        """
        Execute one control period.

        Returns:
            True if the loop is still running afterwards
        """
        if not self.running:
            return False

        state = self.robot.get_state()
        tau = self.compute_torque(state)
        if tau is None:
            return False

        self.robot.send_command(JointCommand(stamp=state.stamp, tau=tau))
        if not self.robot.step():
            print(f"[LOOP] ✗ Robot step failed at t={self.t:.3f}s")
            self.stop(StopReason.STEP_FAILED)
            return False

        self.t += self.dt
        self.iteration_counter += 1
        self.on_iteration_end(state)

        if self.visualizer is not None:
            self.visualizer.update(state)
            if not self.visualizer.is_running():
                self.stop(StopReason.VIEWER_CLOSED)

        if self.duration_s is not None and self.t > self.duration_s:
            self.stop(StopReason.DURATION)
        return self.running

    def cleanup(self):
        """Release the visualizer and the robot connection."""
        if self.visualizer is not None:
            self.visualizer.shutdown()
        self.robot.shutdown()

    def run(self) -> StopReason:
        """
        Run the loop until a stop condition triggers.

        Returns:
            Why the loop stopped
        """
        self._print_configuration()
        print("Starting control loop...")
        print("Press Ctrl+C to stop\n")

        rate = RateLimiter(frequency=1.0 / self.dt, warn=False) if self.realtime else None
        wall_start = time.time()

        try:
            while self.should_continue():
                self.on_iteration_start()
                self.tick()
                if rate is not None:
                    rate.sleep()
        except KeyboardInterrupt:
            print("\nKeyboard interrupt received...")
            self.stop(StopReason.INTERRUPTED)
        finally:
            elapsed = time.time() - wall_start
            self.cleanup()
            self.print_statistics(elapsed)

        return self.stop_reason

    def print_statistics(self, elapsed: float):
        """
        Print execution statistics.

        Args:
            elapsed: Total wall-clock time (seconds)
        """
        print("\n" + "=" * 60)
        print("Execution Statistics:")
        print(f"  Stop reason: {self.stop_reason.name if self.stop_reason else 'none'}")
        print(f"  Wall time: {elapsed:.2f}s")
        print(f"  Simulated time: {self.t:.3f}s")
        print(f"  Total iterations: {self.iteration_counter}")
        if elapsed > 0:
            print(f"  Average frequency: {self.iteration_counter / elapsed:.1f} Hz")
        print(f"  Infeasible ticks: {self.infeasible_count}")
        task = getattr(self.controller, "task", None)
        if task is not None and getattr(task, "stream", None) is not None:
            print(f"  Stream requests: {task.request_count} (fallbacks: {task.fallback_count})")
        print("=" * 60)


class TrajectoryControlLoop(ControlLoop):
    """
    Control loop for the trajectory-following demos.

    The controller first converges locally to the trajectory start. Once the
    end-effector is within activation_tol of it, the external dynamics are
    switched on and stay on for the rest of the run. While external, the
    end-effector positions are recorded and the run ends on goal proximity.
    """

    def __init__(
        self,
        robot: RobotInterface,
        controller: TorqueController,
        model: RobotModel,
        start: np.ndarray,
        activation_tol: float = 0.01,
        goal: Optional[np.ndarray] = None,
        goal_tol: Optional[float] = None,
        recorder: Optional[TrajectoryRecorder] = None,
        **kwargs,
    ):
        """
        Args:
            robot: Robot interface
            controller: Torque controller (its target should be the trajectory start)
            model: Robot model used to locate the end-effector
            start: Trajectory start position (3,)
            activation_tol: Distance to start that switches on external dynamics (m)
            goal: Trajectory end position (3,), None disables the goal check
            goal_tol: Distance to goal that ends the run (m)
            recorder: Optional recorder of end-effector positions while external
            **kwargs: Forwarded to ControlLoop
        """
        super().__init__(robot, controller, **kwargs)
        self.model = model
        self.start = np.asarray(start, dtype=float).reshape(3)
        self.activation_tol = activation_tol
        self.goal = None if goal is None else np.asarray(goal, dtype=float).reshape(3)
        self.goal_tol = goal_tol
        self.recorder = recorder
        self.activation_time: Optional[float] = None
        self.last_position: Optional[np.ndarray] = None

    def on_iteration_end(self, state: RobotState):
        pose: Pose = self.model.frame_pose(state.q)
        position = pose.position
        self.last_position = position

        if not self.controller.external:
            if np.linalg.norm(position - self.start) <= self.activation_tol:
                self.controller.set_external_dynamics(True)
                self.activation_time = self.t
                print(f"[LOOP] ✓ Reached trajectory start at t={self.t:.3f}s, following external dynamics")
            return

        if self.recorder is not None:
            self.recorder.record(position)

        if self.goal is not None and self.goal_tol is not None:
            if np.linalg.norm(position - self.goal) <= self.goal_tol:
                print(f"[LOOP] ✓ Goal reached at t={self.t:.3f}s")
                self.stop(StopReason.GOAL_REACHED)

    def print_statistics(self, elapsed: float):
        super().print_statistics(elapsed)
        if self.activation_time is None:
            print("  External dynamics: never activated")
        else:
            print(f"  External dynamics: active since t={self.activation_time:.3f}s")
        if self.recorder is not None:
            print(f"  Recorded samples: {len(self.recorder)}")
