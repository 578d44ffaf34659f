from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from flock_sim2d.core.store import Particle

if TYPE_CHECKING:
    from flock_sim2d.params import FlockParams


def clamp_speed(vx: float, vy: float, max_speed: float) -> tuple[float, float]:
    if max_speed <= 0.0:
        return vx, vy
    speed2 = vx * vx + vy * vy
    if speed2 > max_speed * max_speed:
        s = math.sqrt(speed2)
        scale = max_speed / s
        return vx * scale, vy * scale
    return vx, vy


def fit_float32_speed(vx: float, vy: float, max_speed: float) -> tuple[float, float]:
    """
    Round a velocity to float32 without letting its norm exceed ``max_speed``.

    Rounding a clamped float64 velocity to the float32 store can land one ulp
    above the cap; such components are stepped toward zero until it fits.
    """
    fx = np.float32(vx)
    fy = np.float32(vy)
    if max_speed <= 0.0:
        return float(fx), float(fy)
    zero = np.float32(0.0)
    while math.hypot(float(fx), float(fy)) > max_speed or float(np.hypot(fx, fy)) > max_speed:
        fx = np.nextafter(fx, zero)
        fy = np.nextafter(fy, zero)
    return float(fx), float(fy)


def apply_boundary(
    x: float,
    y: float,
    vx: float,
    vy: float,
    *,
    limit: float,
    clamp: bool = True,
) -> tuple[float, float, float, float]:
    """Reflect the velocity on each axis whose coordinate left [-limit, limit]."""
    if x > limit or x < -limit:
        vx = -vx
        if clamp:
            x = limit if x > limit else -limit
    if y > limit or y < -limit:
        vy = -vy
        if clamp:
            y = limit if y > limit else -limit
    return x, y, vx, vy


def integrate_particle(particle: Particle, delta: tuple[float, float], params: "FlockParams") -> Particle:
    """
    Advance one particle by one step.

    Velocity takes the steering delta and is clamped to ``max_speed``; a
    particle slower than ``min_speed`` is restarted at ``idle_speed`` along +x
    so it never freezes. The velocity is rounded to the store's float32
    precision without crossing ``max_speed``. Position then moves by the
    velocity and the boundary policy is applied per axis.
    """
    vx = particle.vx + delta[0]
    vy = particle.vy + delta[1]

    vx, vy = clamp_speed(vx, vy, params.max_speed)
    if math.hypot(vx, vy) < params.min_speed:
        vx, vy = params.idle_speed, 0.0
    vx, vy = fit_float32_speed(vx, vy, params.max_speed)

    x = particle.x + vx
    y = particle.y + vy
    x, y, vx, vy = apply_boundary(
        x, y, vx, vy,
        limit=params.boundary_limit,
        clamp=params.boundary_policy == "reflect_clamp",
    )
    return Particle(x=x, y=y, vx=vx, vy=vy)
