"""
Export utilities for flock snapshots.

This module writes simulation state to disk:
- CSV: One row per boid with position, velocity and heading
- Summary: Plain-text statistics, optionally with quadtree shape

Usage:
    >>> from flock_sim2d.utils.export import export_particles_csv
    >>> export_particles_csv(sim.snapshot(), "output.csv")
"""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from flock_sim2d.core.store import ParticleSnapshot
    from flock_sim2d.physics.quadtree import QuadTree


@dataclass
class ExportStats:
    """Statistics from an export operation."""
    file_path: Path
    particle_count: int
    mean_speed: float
    timestamp: str


def export_particles_csv(
    snapshot: "ParticleSnapshot",
    output_path: str | Path,
    *,
    include_velocity: bool = True,
    frame: int | None = None,
) -> ExportStats:
    """
    Export a particle snapshot to a CSV file.

    Args:
        snapshot: Read-only particle snapshot
        output_path: Path to output CSV file
        include_velocity: Include vx, vy, speed and heading columns
        frame: Optional step number written as the first column

    Returns:
        ExportStats with export details
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    header = ["index", "x", "y"]
    if include_velocity:
        header.extend(["vx", "vy", "speed", "heading"])
    if frame is not None:
        header.insert(0, "frame")

    pos = np.asarray(snapshot.positions, dtype=np.float64)
    vel = np.asarray(snapshot.velocities, dtype=np.float64)
    n = int(pos.shape[0])
    speeds = np.hypot(vel[:, 0], vel[:, 1]) if n else np.zeros(0)
    mean_speed = float(speeds.mean()) if n else 0.0

    timestamp = datetime.now().isoformat()
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)

        writer.writerow([f"# Flock 2D Export - {timestamp}"])
        writer.writerow([f"# Particles: {n}"])
        writer.writerow(header)

        for i in range(n):
            row = []
            if frame is not None:
                row.append(frame)
            row.extend([i, f"{pos[i, 0]:.6f}", f"{pos[i, 1]:.6f}"])
            if include_velocity:
                row.extend([
                    f"{vel[i, 0]:.6f}",
                    f"{vel[i, 1]:.6f}",
                    f"{speeds[i]:.6f}",
                    f"{math.atan2(vel[i, 1], vel[i, 0]):.6f}",
                ])
            writer.writerow(row)

    return ExportStats(
        file_path=output_path,
        particle_count=n,
        mean_speed=mean_speed,
        timestamp=timestamp,
    )


def export_summary(
    snapshot: "ParticleSnapshot",
    output_path: str | Path,
    *,
    tree: "QuadTree | None" = None,
) -> Path:
    """
    Export summary statistics to a text file.

    Args:
        snapshot: Read-only particle snapshot
        output_path: Path to output file
        tree: Quadtree of the last step, adds a tree section when given

    Returns:
        Path to the created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    pos = np.asarray(snapshot.positions, dtype=np.float64)
    vel = np.asarray(snapshot.velocities, dtype=np.float64)
    n = int(pos.shape[0])

    if n:
        cx, cy = (float(c) for c in pos.mean(axis=0))
        speeds = np.hypot(vel[:, 0], vel[:, 1])
        avg_speed = float(speeds.mean())
        max_speed = float(speeds.max())
        # polarization: |mean unit heading|, 1 = fully aligned flock
        nonzero = speeds > 0.0
        if nonzero.any():
            units = vel[nonzero] / speeds[nonzero][:, None]
            order = float(np.hypot(*units.mean(axis=0)))
        else:
            order = 0.0
    else:
        cx = cy = 0.0
        avg_speed = max_speed = order = 0.0

    lines = [
        "Flock 2D Simulation Summary",
        f"Generated: {datetime.now().isoformat()}",
        "",
        f"Particles: {n}",
        "",
        "Center:",
        f"  X: {cx:.4f}",
        f"  Y: {cy:.4f}",
        "",
        "Velocity Statistics:",
        f"  Average speed: {avg_speed:.6f}",
        f"  Max speed: {max_speed:.6f}",
        f"  Polarization: {order:.4f}",
    ]
    if tree is not None:
        leaves = sum(1 for _ in tree.leaves())
        lines.extend([
            "",
            "Quadtree:",
            f"  Nodes: {len(tree.nodes)}",
            f"  Leaves: {leaves}",
            f"  Depth: {tree.max_depth()}",
            f"  Over-capacity leaves: {tree.overflow_leaves()}",
        ])

    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return output_path
