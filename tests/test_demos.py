from pathlib import Path

import numpy as np
import pytest

from ds_torque_control.core.contracts import StopReason
from ds_torque_control.core.config import load_config
from ds_torque_control.core.trajectory import load_demo_offset
from ds_torque_control.demos import LinearDynamics, build_demo, build_parser, default_config_path, run_demo

from conftest import FakeStream


class TestCommandLine:
    def test_defaults(self):
        args = build_parser("os").parse_args([])
        assert args.demo == "1"
        assert args.config.endswith("sim_os.yaml")
        assert not args.visualize and not args.plot and not args.no_realtime
        assert args.record is None and args.duration is None

    def test_flags(self):
        args = build_parser("id").parse_args(
            ["2", "--visualize", "--plot", "--record", "out.csv", "--no-realtime", "--duration", "3.5"]
        )
        assert args.demo == "2"
        assert args.visualize and args.plot and args.no_realtime
        assert args.record == "out.csv"
        assert args.duration == 3.5

    def test_default_config_exists(self):
        for kind in ("os", "ik", "id"):
            assert default_config_path(kind).exists()


class TestLinearDynamics:
    def test_points_to_attractor(self):
        ds = LinearDynamics(np.array([0.5, 0.0, 0.35]), gain=1.0, max_speed=10.0)
        assert np.allclose(ds(np.array([0.6, 0.0, 0.35])), [-0.1, 0.0, 0.0])

    def test_speed_is_clipped(self):
        ds = LinearDynamics(np.zeros(3), gain=10.0, max_speed=0.2)
        assert np.isclose(np.linalg.norm(ds(np.array([1.0, 1.0, 0.0]))), 0.2)


class TestRunDemo:
    def test_short_headless_run_without_server(self, tmp_path):
        # No stream server is running: the loop never reaches external mode in
        # this short window, and the run ends on duration.
        config = load_config(default_config_path("os"))
        reason = run_demo(
            config, demo="1", record=str(tmp_path / "demo_os_0.csv"), realtime=False, duration_s=0.05,
        )
        assert reason is StopReason.DURATION


class TestStreamedDemo:
    """Whole pipeline on the Panda model, with LinearDynamics answering the stream."""

    @pytest.mark.parametrize("kind", ["os", "ik", "id"])
    def test_reaches_start_then_follows_stream_to_attractor(self, kind):
        config = load_config(default_config_path(kind))
        offset = load_demo_offset(Path(config.demo.root) / "demo_1" / "dynamics_params.yaml")
        stream = FakeStream(LinearDynamics(offset, gain=1.0, max_speed=0.2))
        setup = build_demo(config, stream, "1", realtime=False, duration_s=20.0)
        loop = setup.loop

        reason = loop.run()

        assert reason in (StopReason.DURATION, StopReason.GOAL_REACHED)
        assert loop.activation_time is not None
        assert setup.controller.external
        # One request per tick after activation: external mode never lapsed
        ticks_after = loop.iteration_counter - round(loop.activation_time / loop.dt)
        assert setup.controller.task.request_count == ticks_after
        assert setup.controller.task.fallback_count == 0
        assert np.linalg.norm(loop.last_position - setup.offset) <= 0.05
