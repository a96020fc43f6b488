from .mujoco_viewer import BLUE, GREEN, RED, MuJoCoVisualizer

__all__ = ['BLUE', 'GREEN', 'RED', 'MuJoCoVisualizer']
