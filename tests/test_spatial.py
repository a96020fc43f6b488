import mink
import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from ds_torque_control.core.contracts import Pose
from ds_torque_control.core.errors import ConfigurationError
from ds_torque_control.core.spatial import Euclidean, Rotation3, as_so3


def _wxyz(rotation: Rotation) -> np.ndarray:
    x, y, z, w = rotation.as_quat()
    return np.array([w, x, y, z])


class TestRotationDifference:
    target = Rotation.from_rotvec([0.1, -0.4, 0.3])
    current = Rotation.from_rotvec([-0.2, 0.1, 0.05])

    def test_zero_for_identical_rotations(self):
        assert np.allclose(Rotation3().difference(self.target, self.target), 0.0)

    def test_recovers_world_frame_rotation_vector(self):
        w = np.array([0.05, -0.1, 0.2])
        target = Rotation.from_rotvec(w) * self.current
        assert np.allclose(Rotation3().difference(target, self.current), w, atol=1e-9)

    def test_invariant_to_representation(self):
        space = Rotation3()
        as_matrix = space.difference(self.target.as_matrix(), self.current.as_matrix())
        as_scipy = space.difference(self.target, self.current)
        as_mink = space.difference(mink.SO3(wxyz=_wxyz(self.target)), mink.SO3(wxyz=_wxyz(self.current)))
        as_exp = space.difference(mink.SO3.exp(self.target.as_rotvec()), mink.SO3.exp(self.current.as_rotvec()))
        as_pose = space.difference(Pose(np.zeros(3), self.target.as_matrix()), self.current)

        for other in (as_scipy, as_mink, as_exp, as_pose):
            assert np.allclose(as_matrix, other, atol=1e-9)

    def test_geodesic_not_componentwise(self):
        # Pi/2 about z: the error norm is the angle
        target = Rotation.from_euler("z", np.pi / 2)
        diff = Rotation3().difference(target, Rotation.identity())
        assert np.isclose(np.linalg.norm(diff), np.pi / 2)

    def test_rejects_non_rotation_input(self):
        with pytest.raises(ConfigurationError):
            as_so3(np.zeros(4))


class TestEuclidean:
    def test_difference_is_subtraction(self):
        assert np.allclose(Euclidean(3).difference([1.0, 2.0, 3.0], [0.5, 0.5, 0.5]), [0.5, 1.5, 2.5])

    def test_size_checked(self):
        with pytest.raises(ConfigurationError):
            Euclidean(3).coerce([1.0, 2.0])


class TestPose:
    def test_rejects_improper_rotation(self):
        with pytest.raises(ValueError):
            Pose(np.zeros(3), np.diag([1.0, 1.0, -1.0]))

    def test_rejects_non_orthonormal_matrix(self):
        with pytest.raises(ValueError):
            Pose(np.zeros(3), 2.0 * np.eye(3))

    def test_rejects_bad_position(self):
        with pytest.raises(ValueError):
            Pose(np.zeros(2))

    def test_quaternion_constructors_agree(self):
        rotation = Rotation.from_rotvec([0.3, 0.2, -0.1])
        a = Pose.from_quaternion([0.1, 0.2, 0.3], rotation.as_quat())
        b = Pose.from_rotation([0.1, 0.2, 0.3], rotation)
        assert np.allclose(a.rotation, b.rotation)
        assert np.allclose(Rotation.from_quat(a.quaternion()).as_matrix(), rotation.as_matrix())
