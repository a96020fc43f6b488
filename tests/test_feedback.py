import numpy as np
import pytest

from ds_torque_control.core.contracts import Pose
from ds_torque_control.core.errors import ConfigurationError
from ds_torque_control.core.feedback import Feedback, gain_matrix
from ds_torque_control.core.spatial import Euclidean, PoseSpace, Rotation3


class TestGainMatrix:
    def test_none_is_zero(self):
        assert np.array_equal(gain_matrix(None, 3), np.zeros((3, 3)))

    def test_scalar_is_scaled_identity(self):
        assert np.array_equal(gain_matrix(2.0, 3), 2.0 * np.eye(3))

    def test_vector_is_diagonal(self):
        assert np.array_equal(gain_matrix([1.0, 2.0, 3.0], 3), np.diag([1.0, 2.0, 3.0]))

    def test_full_matrix_is_kept(self):
        K = np.arange(9.0).reshape(3, 3)
        assert np.array_equal(gain_matrix(K, 3), K)

    def test_dimension_mismatch_raises(self):
        with pytest.raises(ConfigurationError):
            gain_matrix([1.0, 2.0], 3)


class TestFeedback:
    def test_zero_error_gives_zero_output(self):
        law = Feedback(Euclidean(3), stiffness=5.0, damping=2.0, reference=[0.1, 0.2, 0.3])
        assert np.allclose(law([0.1, 0.2, 0.3], np.zeros(3)), 0.0)

    def test_pd_law(self):
        law = Feedback(Euclidean(2), stiffness=[2.0, 3.0], damping=0.5, reference=[1.0, 1.0])
        law.set_reference_velocity([0.2, 0.0])
        u = law([0.0, 2.0], [0.0, 1.0])
        assert np.allclose(u, [2.0 * 1.0 + 0.5 * 0.2, 3.0 * -1.0 + 0.5 * -1.0])

    def test_no_reference_means_damping_only(self):
        law = Feedback(Euclidean(3), stiffness=100.0, damping=2.0)
        assert np.allclose(law(np.ones(3), [1.0, 0.0, 0.0]), [-2.0, 0.0, 0.0])

    def test_reference_can_be_replaced(self):
        law = Feedback(Euclidean(1), stiffness=1.0, reference=[0.0])
        law.set_reference([2.0])
        assert np.allclose(law([0.5]), [1.5])

    def test_reference_dimension_mismatch_raises(self):
        law = Feedback(Euclidean(3), stiffness=1.0)
        with pytest.raises(ConfigurationError):
            law.set_reference([1.0, 2.0])
        with pytest.raises(ConfigurationError):
            law.set_reference(np.zeros(3), velocity=np.zeros(4))

    def test_gain_dimension_mismatch_raises(self):
        with pytest.raises(ConfigurationError):
            Feedback(Rotation3(), stiffness=np.eye(4))

    def test_pose_space_stacks_linear_and_angular(self):
        theta = 0.2
        rotation = np.array([
            [np.cos(theta), -np.sin(theta), 0.0],
            [np.sin(theta), np.cos(theta), 0.0],
            [0.0, 0.0, 1.0],
        ])
        law = Feedback(PoseSpace(), stiffness=1.0, reference=Pose([1.0, 0.0, 0.0], rotation))
        u = law(Pose(np.zeros(3)))
        assert np.allclose(u, [1.0, 0.0, 0.0, 0.0, 0.0, theta])
