"""
Boid steering: alignment, cohesion and separation from a neighbor set.

Each rule yields a direction that is normalized (unless it is too short to
have a meaningful direction, in which case the rule is skipped) and scaled by
its own weight; the three are summed into a velocity delta.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from flock_sim2d.params import FlockParams


def _weighted_unit(vx: float, vy: float, weight: float, eps: float) -> tuple[float, float]:
    mag = math.hypot(vx, vy)
    if mag <= eps or weight == 0.0:
        return 0.0, 0.0
    s = weight / mag
    return vx * s, vy * s


def steering_components(
    x: float,
    y: float,
    neighbor_positions: np.ndarray,
    neighbor_velocities: np.ndarray,
    *,
    separation_epsilon: float = 1e-6,
) -> tuple[tuple[float, float], tuple[float, float], tuple[float, float]]:
    """
    Raw (unnormalized) alignment, cohesion and separation vectors.

    Args:
        x, y: Position of the steering particle
        neighbor_positions: (k, 2) array, k >= 1
        neighbor_velocities: (k, 2) array
        separation_epsilon: Lower bound on the distance used to scale each
            separation term (coincident neighbors)

    Returns:
        ((ax, ay), (cx, cy), (sx, sy))
    """
    npos = np.asarray(neighbor_positions, dtype=np.float64).reshape(-1, 2)
    nvel = np.asarray(neighbor_velocities, dtype=np.float64).reshape(-1, 2)

    align = nvel.mean(axis=0)
    center = npos.mean(axis=0)

    away = (x, y) - npos
    dist = np.sqrt(np.einsum("ij,ij->i", away, away))
    sep = (away / np.maximum(dist, separation_epsilon)[:, None]).mean(axis=0)

    return (
        (float(align[0]), float(align[1])),
        (float(center[0]) - x, float(center[1]) - y),
        (float(sep[0]), float(sep[1])),
    )


def compute_steering(
    x: float,
    y: float,
    neighbor_positions,
    neighbor_velocities,
    params: "FlockParams",
) -> tuple[float, float]:
    """Velocity delta for one particle; (0, 0) without neighbors."""
    npos = np.asarray(neighbor_positions, dtype=np.float64).reshape(-1, 2)
    if npos.shape[0] == 0:
        return 0.0, 0.0

    (ax, ay), (cx, cy), (sx, sy) = steering_components(
        x, y, npos, neighbor_velocities, separation_epsilon=params.separation_epsilon
    )
    eps = params.vector_epsilon
    dax, day = _weighted_unit(ax, ay, params.alignment_weight, eps)
    dcx, dcy = _weighted_unit(cx, cy, params.cohesion_weight, eps)
    dsx, dsy = _weighted_unit(sx, sy, params.separation_weight, eps)

    dvx = dax + dcx + dsx
    dvy = day + dcy + dsy

    max_force = params.max_force
    if max_force > 0.0:
        mag = math.hypot(dvx, dvy)
        if mag > max_force:
            s = max_force / mag
            dvx *= s
            dvy *= s
    return dvx, dvy
