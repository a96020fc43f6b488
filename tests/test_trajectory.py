import numpy as np
import pytest

from ds_torque_control.core.errors import ConfigurationError
from ds_torque_control.core.trajectory import (
    TrajectoryRecorder,
    load_demo_offset,
    load_trajectories,
    load_trajectory,
    save_trajectory,
)

from conftest import PROJECT_ROOT

DEMOS = PROJECT_ROOT / "configs" / "demos"


class TestTrajectoryFiles:
    def test_offset_round_trip(self, tmp_path):
        samples = np.array([[0.1, 0.2, 0.3], [-0.4, 0.5, 0.0], [0.0, 0.0, 0.0]])
        offset = np.array([0.5, -0.1, 0.35])
        path = save_trajectory(tmp_path / "trajectory_1.csv", samples)

        loaded = load_trajectory(path, offset)

        assert np.allclose(loaded - offset, samples)

    def test_whitespace_separated(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("# x y z\n1 2 3\n\n4\t5\t6\n")
        assert np.allclose(load_trajectory(path), [[1, 2, 3], [4, 5, 6]])

    def test_inline_comments_and_comment_only_file(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("0.1, 0.2, 0.3  # start\n0.0, 0.0, 0.0\n")
        assert np.allclose(load_trajectory(path), [[0.1, 0.2, 0.3], [0.0, 0.0, 0.0]])
        path.write_text("# header only\n")
        with pytest.raises(ConfigurationError):
            load_trajectory(path)

    def test_single_row_is_two_dimensional(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("1,2,3\n")
        assert load_trajectory(path).shape == (1, 3)

    def test_wrong_width_everywhere(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("1,2\n3,4\n")
        with pytest.raises(ConfigurationError):
            load_trajectory(path)

    def test_wrong_row_width(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("1,2,3\n1,2\n")
        with pytest.raises(ConfigurationError):
            load_trajectory(path)

    def test_non_numeric_row(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("a,b,c\n")
        with pytest.raises(ConfigurationError):
            load_trajectory(path)

    def test_missing_or_empty(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_trajectory(tmp_path / "missing.csv")
        (tmp_path / "empty.csv").write_text("")
        with pytest.raises(ConfigurationError):
            load_trajectory(tmp_path / "empty.csv")

    def test_shipped_demo(self):
        offset = load_demo_offset(DEMOS / "demo_1" / "dynamics_params.yaml")
        trajectories = load_trajectories(DEMOS / "demo_1", 7, offset)
        assert len(trajectories) == 7
        for trajectory in trajectories:
            assert trajectory.shape[1] == 3
            # Demonstrations converge to the attractor
            assert np.allclose(trajectory[-1], offset)


class TestDemoOffset:
    def test_top_level(self, tmp_path):
        path = tmp_path / "dynamics_params.yaml"
        path.write_text("offset: [0.5, 0.0, 0.3]\n")
        assert np.allclose(load_demo_offset(path), [0.5, 0.0, 0.3])

    def test_under_dynamics(self, tmp_path):
        path = tmp_path / "dynamics_params.yaml"
        path.write_text("dynamics:\n  offset: [0.1, 0.2, 0.3]\n")
        assert np.allclose(load_demo_offset(path), [0.1, 0.2, 0.3])

    def test_both_shipped_layouts(self):
        a = load_demo_offset(DEMOS / "demo_1" / "dynamics_params.yaml")
        b = load_demo_offset(DEMOS / "demo_2" / "dynamics_params.yaml")
        assert np.allclose(a, b)

    def test_missing_offset(self, tmp_path):
        path = tmp_path / "dynamics_params.yaml"
        path.write_text("dynamics:\n  gain: 1.0\n")
        with pytest.raises(ConfigurationError):
            load_demo_offset(path)

    def test_wrong_size(self, tmp_path):
        path = tmp_path / "dynamics_params.yaml"
        path.write_text("offset: [0.5, 0.0]\n")
        with pytest.raises(ConfigurationError):
            load_demo_offset(path)


class TestRecorder:
    def test_records_and_saves(self, tmp_path):
        recorder = TrajectoryRecorder(tmp_path / "out" / "demo_os_0.csv")
        recorder.record([0.1, 0.2, 0.3])
        recorder.record(np.array([0.4, 0.5, 0.6]))

        path = recorder.save()

        assert len(recorder) == 2
        assert np.allclose(load_trajectory(path), [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]])

    def test_nothing_written_without_samples_or_path(self, tmp_path):
        assert TrajectoryRecorder(tmp_path / "x.csv").save() is None
        recorder = TrajectoryRecorder()
        recorder.record(np.zeros(3))
        assert recorder.save() is None
        assert recorder.as_array().shape == (1, 3)
