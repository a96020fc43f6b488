"""
Optional visualization components: the MuJoCo viewer and trajectory plots.
"""

from .visualizer import Visualizer

__all__ = ['Visualizer']
