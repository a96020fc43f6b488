"""
Robot backends implementing the RobotModel and RobotInterface ports.
"""

from .mujoco_robot import MuJoCoModel, MuJoCoSimulation, load_mujoco_model

__all__ = [
    'MuJoCoModel',
    'MuJoCoSimulation',
    'load_mujoco_model',
]
