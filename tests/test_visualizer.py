import numpy as np
import pytest

from ds_torque_control.visualization import Visualizer


class RecordingVisualizer(Visualizer):
    def __init__(self):
        super().__init__()
        self.redraws = 0

    def on_trajectories_changed(self):
        self.redraws += 1

    def initialize(self):
        return True

    def update(self, state=None):
        pass

    def is_running(self):
        return True

    def shutdown(self):
        pass


class TestReferenceTrajectories:
    def test_added_trajectories_are_kept_in_order(self):
        viewer = RecordingVisualizer()
        first = np.zeros((4, 3))
        second = np.ones((2, 3))

        viewer.add_trajectory(first).add_trajectory(second, (0.9, 0.1, 0.1, 0.8))

        assert len(viewer.trajectories) == 2
        assert np.array_equal(viewer.trajectories[1][0], second)
        assert np.allclose(viewer.trajectories[1][1], [0.9, 0.1, 0.1, 0.8])
        assert viewer.trajectories[0][1].dtype == np.float32
        assert viewer.redraws == 2

    def test_rejects_non_positions(self):
        with pytest.raises(ValueError):
            RecordingVisualizer().add_trajectory(np.zeros((5, 2)))

    def test_rejects_non_rgba(self):
        with pytest.raises(ValueError):
            RecordingVisualizer().add_trajectory(np.zeros((5, 3)), (1.0, 0.0, 0.0))

    def test_cannot_instantiate_interface(self):
        with pytest.raises(TypeError):
            Visualizer()
