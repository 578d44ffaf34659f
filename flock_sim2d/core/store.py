"""
Particle storage for the 2-D flock.

Particles live in two flat float32 arrays (positions and velocities, shape
``(n, 2)``) addressed by index. The store is created once per run and
mutated in place each step; the presentation side only ever sees
read-only snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

import numpy as np


@dataclass(slots=True)
class Particle:
    x: float
    y: float
    vx: float
    vy: float


@dataclass(frozen=True)
class ParticleSnapshot:
    """Read-only copy of the particle buffer taken between steps."""
    positions: np.ndarray
    velocities: np.ndarray

    def __len__(self) -> int:
        return int(self.positions.shape[0])


def _as_pairs(values, name: str) -> np.ndarray:
    arr = np.array(values, dtype=np.float32)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=np.float32)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must have shape (n, 2), got {arr.shape}")
    return arr


class ParticleStore:
    def __init__(self, positions, velocities) -> None:
        self.positions = _as_pairs(positions, "positions")
        self.velocities = _as_pairs(velocities, "velocities")
        if self.positions.shape != self.velocities.shape:
            raise ValueError(
                f"positions and velocities differ in length: "
                f"{self.positions.shape[0]} != {self.velocities.shape[0]}"
            )

    @classmethod
    def empty(cls) -> "ParticleStore":
        return cls(np.zeros((0, 2)), np.zeros((0, 2)))

    @classmethod
    def from_particles(cls, particles: Iterable[Particle]) -> "ParticleStore":
        items = list(particles)
        if not items:
            return cls.empty()
        return cls([(p.x, p.y) for p in items], [(p.vx, p.vy) for p in items])

    def count(self) -> int:
        return int(self.positions.shape[0])

    def __len__(self) -> int:
        return self.count()

    def _check(self, i: int) -> None:
        if not 0 <= i < self.count():
            raise IndexError(f"particle index {i} out of range (count={self.count()})")

    def get(self, i: int) -> Particle:
        self._check(i)
        px, py = self.positions[i]
        vx, vy = self.velocities[i]
        return Particle(x=float(px), y=float(py), vx=float(vx), vy=float(vy))

    def set(self, i: int, particle: Particle) -> None:
        self._check(i)
        self.positions[i, 0] = particle.x
        self.positions[i, 1] = particle.y
        self.velocities[i, 0] = particle.vx
        self.velocities[i, 1] = particle.vy

    def particles(self) -> Iterator[Particle]:
        for i in range(self.count()):
            yield self.get(i)

    def snapshot(self) -> ParticleSnapshot:
        pos = self.positions.copy()
        vel = self.velocities.copy()
        pos.flags.writeable = False
        vel.flags.writeable = False
        return ParticleSnapshot(positions=pos, velocities=vel)
