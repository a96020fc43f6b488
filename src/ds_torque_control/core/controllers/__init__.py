"""
Controllers package for joint-torque control.

This package provides the abstract base class, the three controller
variants (operational-space, inverse-kinematics QP, inverse-dynamics QP)
and a factory building them from configuration.
"""

from .base import BaseTorqueController
from .factory import ControllerKind, make_controller
from .inverse_dynamics import InverseDynamicsController
from .inverse_kinematics import InverseKinematicsController
from .operational_space import OperationalSpaceController

__all__ = [
    'BaseTorqueController',
    'ControllerKind',
    'InverseDynamicsController',
    'InverseKinematicsController',
    'OperationalSpaceController',
    'make_controller',
]
