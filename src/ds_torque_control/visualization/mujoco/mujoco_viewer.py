"""
MuJoCo-specific visualizer.
Wraps MuJoCo viewer as optional component with asynchronous rendering.

The passive viewer runs in a separate thread and renders at display refresh rate (~60 Hz).
The control loop calls update() every iteration without blocking - viewer.sync()
only hands the current data over to the render thread.

Reference trajectories are drawn as small spheres in the viewer's user scene.
"""

from typing import Optional
import mujoco
import mujoco.viewer
import numpy as np

from ..visualizer import Visualizer
from ...core.contracts import RobotState

BLUE = (0.1, 0.3, 0.9, 0.8)
GREEN = (0.1, 0.7, 0.2, 0.8)
RED = (0.9, 0.1, 0.1, 0.8)


class MuJoCoVisualizer(Visualizer):
    """
    MuJoCo visualization implementation with asynchronous rendering.

    Uses MuJoCo's passive viewer which runs rendering in a separate thread.
    The update() method is non-blocking and can be called at control rate
    without impacting loop timing.
    """

    def __init__(
        self,
        model: mujoco.MjModel,
        data: mujoco.MjData,
        camera_config: Optional[dict] = None,
        marker_radius: float = 0.004,
        marker_stride: int = 5,
    ):
        """
        Args:
            model: MuJoCo model
            data: MuJoCo data of the running simulation
            camera_config: Camera settings (dict with 'distance', 'elevation', 'azimuth', 'lookat')
            marker_radius: Radius of trajectory markers (m)
            marker_stride: Draw every n-th trajectory sample
        """
        super().__init__()
        self.model = model
        self.data = data
        self.camera_config = camera_config or {}
        self.marker_radius = marker_radius
        self.marker_stride = max(1, int(marker_stride))
        self.viewer = None
        self.viewer_context = None

    def on_trajectories_changed(self) -> None:
        # Markers queued before initialize() are drawn when the viewer opens
        if self.viewer is not None:
            self._draw_markers()

    def initialize(self) -> bool:
        """
        Launch MuJoCo passive viewer.

        Returns:
            True if successful, False otherwise
        """
        try:
            self.viewer_context = mujoco.viewer.launch_passive(self.model, self.data)
            self.viewer = self.viewer_context.__enter__()
        except Exception as e:
            print(f"✗ Failed to initialize MuJoCo viewer: {e}")
            self.viewer = None
            self.viewer_context = None
            return False
        self._setup_camera()
        self._draw_markers()
        print("✓ MuJoCo viewer initialized (asynchronous rendering enabled)")
        return True

    def update(self, state: Optional[RobotState] = None) -> None:
        """
        Update viewer (non-blocking).

        Args:
            state: Unused, the viewer reads the simulation data directly
        """
        if self.viewer is not None:
            self.viewer.sync()

    def is_running(self) -> bool:
        if self.viewer is None:
            return False
        return self.viewer.is_running()

    def shutdown(self) -> None:
        """Close viewer and clean up resources."""
        if self.viewer_context is not None:
            self.viewer_context.__exit__(None, None, None)
            self.viewer_context = None
            self.viewer = None
            print("✓ MuJoCo viewer closed")

    def _draw_markers(self):
        scene = self.viewer.user_scn
        identity = np.eye(3).flatten()
        size = np.array([self.marker_radius, 0.0, 0.0])
        with self.viewer.lock():
            scene.ngeom = 0
            for points, rgba in self.trajectories:
                for point in points[::self.marker_stride]:
                    if scene.ngeom >= scene.maxgeom:
                        print("⚠ Viewer marker budget exhausted, trajectory truncated")
                        return
                    mujoco.mjv_initGeom(
                        scene.geoms[scene.ngeom],
                        type=mujoco.mjtGeom.mjGEOM_SPHERE,
                        size=size,
                        pos=point,
                        mat=identity,
                        rgba=rgba,
                    )
                    scene.ngeom += 1

    def _setup_camera(self):
        """Configure camera position from camera_config."""
        self.viewer.cam.distance = self.camera_config.get('distance', 2.0)
        self.viewer.cam.elevation = self.camera_config.get('elevation', -20)
        self.viewer.cam.azimuth = self.camera_config.get('azimuth', 135)

        lookat = self.camera_config.get('lookat', None)
        if lookat is not None:
            if isinstance(lookat, (list, tuple, np.ndarray)) and len(lookat) == 3:
                self.viewer.cam.lookat[:] = lookat
            elif isinstance(lookat, dict):
                # Relative adjustments like {'x': 0.5, 'y': 0.0, 'z': 1.0}
                self.viewer.cam.lookat[0] += lookat.get('x', 0.0)
                self.viewer.cam.lookat[1] += lookat.get('y', 0.0)
                self.viewer.cam.lookat[2] += lookat.get('z', 0.0)
