"""
Geometry helpers turning particle snapshots into drawable boids.

Each boid is drawn as an isosceles triangle pointing along its velocity.
Everything here works on snapshot arrays and never touches the simulation.
"""

from __future__ import annotations

import numpy as np


# Triangle in boid-local units: nose on +x, two tail corners behind.
BOID_SHAPE = np.array(
    [
        (1.0, 0.0),
        (-0.6, 0.5),
        (-0.6, -0.5),
    ],
    dtype=np.float64,
)

BOID_COLOR = (230, 236, 255, 255)


def heading_angles(velocities) -> np.ndarray:
    """Angle of each velocity vector in radians; zero velocity faces +x."""
    v = np.asarray(velocities, dtype=np.float64).reshape(-1, 2)
    return np.arctan2(v[:, 1], v[:, 0])


def boid_triangles(positions, velocities, size: float) -> np.ndarray:
    """
    Oriented triangles for every boid.

    Args:
        positions: (n, 2) boid centers
        velocities: (n, 2) velocities, used only for orientation
        size: Nose-to-center length in world units

    Returns:
        (n, 3, 2) array of triangle vertices
    """
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    ang = heading_angles(velocities)
    cos_a = np.cos(ang)[:, None]
    sin_a = np.sin(ang)[:, None]

    local = BOID_SHAPE * float(size)
    lx = local[:, 0][None, :]
    ly = local[:, 1][None, :]
    out = np.empty((pos.shape[0], 3, 2), dtype=np.float64)
    out[:, :, 0] = pos[:, 0:1] + lx * cos_a - ly * sin_a
    out[:, :, 1] = pos[:, 1:2] + lx * sin_a + ly * cos_a
    return out


def world_to_screen(
    vertices: np.ndarray,
    *,
    limit: float,
    width: int,
    height: int,
    margin: float = 10.0,
) -> np.ndarray:
    """
    Map world coordinates in [-limit, limit]^2 to window pixels.

    The domain keeps its aspect ratio and is centered in the window.
    """
    scale = (min(width, height) - 2.0 * margin) / (2.0 * float(limit))
    scale = max(scale, 1e-9)
    out = np.asarray(vertices, dtype=np.float64) * scale
    out[..., 0] += width * 0.5
    out[..., 1] += height * 0.5
    return out


def flat_vertices(triangles: np.ndarray, z: float = 0.0) -> list[float]:
    """Flatten (n, 3, 2) triangles to x, y, z triples for a vertex list."""
    tri = np.asarray(triangles, dtype=np.float32).reshape(-1, 2)
    xyz = np.empty((tri.shape[0], 3), dtype=np.float32)
    xyz[:, :2] = tri
    xyz[:, 2] = z
    return xyz.ravel().tolist()
