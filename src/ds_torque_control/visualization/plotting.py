"""
Matplotlib plots of reference trajectories against the executed motion.
"""

from typing import Optional, Sequence
import numpy as np
import matplotlib.pyplot as plt

AXES = ("x", "y", "z")


def plot_trajectories(
    references: Sequence[np.ndarray],
    recorded: Optional[np.ndarray] = None,
    title: str = "End-Effector Trajectories",
    save_path: Optional[str] = None,
    show: bool = True,
):
    """
    Plot reference trajectories in 3-D and per axis, with the recorded path on top.

    Args:
        references: List of (N, 3) demonstrated trajectories (world frame)
        recorded: (M, 3) end-effector positions recorded during the run
        title: Figure title
        save_path: Optional path to save figure
        show: Call plt.show() at the end

    Returns:
        The matplotlib figure
    """
    fig = plt.figure(figsize=(14, 8))
    fig.suptitle(title, fontsize=14, fontweight='bold')

    ax3d = fig.add_subplot(1, 2, 1, projection='3d')
    axes = [fig.add_subplot(3, 2, 2 * (i + 1)) for i in range(3)]

    colors = plt.cm.tab10(np.linspace(0, 1, max(len(references), 1)))
    for k, (trajectory, color) in enumerate(zip(references, colors), start=1):
        ax3d.plot(trajectory[:, 0], trajectory[:, 1], trajectory[:, 2],
                  color=color, linewidth=1.5, alpha=0.7, label=f'Demo {k}')
        ax3d.scatter(*trajectory[0], color=color, marker='o', s=20)
        for i, ax in enumerate(axes):
            ax.plot(trajectory[:, i], color=color, linewidth=1.0, alpha=0.7)

    if recorded is not None and len(recorded):
        ax3d.plot(recorded[:, 0], recorded[:, 1], recorded[:, 2],
                  color='k', linewidth=2.5, label='Executed')
        for i, ax in enumerate(axes):
            ax.plot(recorded[:, i], color='k', linewidth=2.0)

    ax3d.set_xlabel('x (m)')
    ax3d.set_ylabel('y (m)')
    ax3d.set_zlabel('z (m)')
    ax3d.legend(loc='upper left', fontsize=9)

    for name, ax in zip(AXES, axes):
        ax.set_ylabel(f'{name} (m)', fontsize=11, fontweight='bold')
        ax.grid(True, alpha=0.3)
    axes[-1].set_xlabel('Sample', fontsize=11, fontweight='bold')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"✓ Plot saved to: {save_path}")

    if show:
        plt.show()
    return fig
