"""
Initial condition generators for the flock.

Available modes:
- random: Uniform positions over the whole domain, small uniform velocities
- clusters: Gaussian clumps of boids, each clump sharing a drift direction
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING

from flock_sim2d.core.store import Particle, ParticleStore

if TYPE_CHECKING:
    from flock_sim2d.params import FlockParams


def create_random_flock(params: "FlockParams", rng: random.Random) -> list[Particle]:
    """
    Uniform positions in [-limit, limit]^2, velocities uniform in
    [-initial_speed, initial_speed]^2.
    """
    b = float(params.boundary_limit)
    v = float(params.initial_speed)
    out: list[Particle] = []
    for _ in range(int(params.particle_count)):
        out.append(
            Particle(
                x=rng.uniform(-b, b),
                y=rng.uniform(-b, b),
                vx=rng.uniform(-v, v),
                vy=rng.uniform(-v, v),
            )
        )
    return out


def create_clustered_flock(params: "FlockParams", rng: random.Random) -> list[Particle]:
    """
    Boids gathered in ``cluster_count`` Gaussian clumps of width
    ``cluster_sigma``. Each clump drifts along its own heading with some
    per-boid jitter, which gives alignment something to work on.
    """
    b = float(params.boundary_limit)
    sigma = float(params.cluster_sigma)
    speed = float(params.initial_speed)
    inner = b * 0.8

    clumps: list[tuple[float, float, float]] = []
    for _ in range(int(params.cluster_count)):
        clumps.append((rng.uniform(-inner, inner), rng.uniform(-inner, inner), rng.random() * (2.0 * math.pi)))

    out: list[Particle] = []
    for _ in range(int(params.particle_count)):
        cx, cy, heading = clumps[rng.randrange(len(clumps))]
        x = max(-b, min(b, cx + rng.gauss(0.0, sigma)))
        y = max(-b, min(b, cy + rng.gauss(0.0, sigma)))
        a = heading + rng.gauss(0.0, 0.35)
        s = speed * (0.5 + 0.5 * rng.random())
        out.append(Particle(x=x, y=y, vx=math.cos(a) * s, vy=math.sin(a) * s))
    return out


def create_store(params: "FlockParams", rng: random.Random) -> ParticleStore:
    if params.init_mode == "clusters":
        particles = create_clustered_flock(params, rng)
    else:
        particles = create_random_flock(params, rng)
    return ParticleStore.from_particles(particles)
