#!/usr/bin/env python3
"""
Performance benchmark for the 2-D flock.

Compares neighbor search backends and full steps:
- Quadtree build + bounded query (O(n log n) per step)
- Brute-force scan (O(n^2) per step)
- Full simulation step, single- and multi-threaded

Usage:
    python -m flock_sim2d.utils.benchmark [--particles 2000] [--iterations 5]
"""

from __future__ import annotations

import argparse
import random
import sys
import time

import numpy as np

from flock_sim2d.core.sim import FlockSim
from flock_sim2d.params import FlockParams
from flock_sim2d.physics.neighbors import brute_force_neighbors, query_neighbors
from flock_sim2d.physics.quadtree import build_quadtree


SWEEP_COUNTS = [250, 500, 1000, 2000, 4000]


def generate_positions(n: int, seed: int = 42, limit: float = 1.0) -> np.ndarray:
    """Generate random positions in the domain."""
    rng = random.Random(seed)
    return np.array([(rng.uniform(-limit, limit), rng.uniform(-limit, limit)) for _ in range(n)], dtype=np.float64)


def _mean_std_ms(times: list[float]) -> tuple[float, float]:
    mean = sum(times) / len(times)
    std = (sum((t - mean) ** 2 for t in times) / len(times)) ** 0.5
    return mean * 1000.0, std * 1000.0


def benchmark_quadtree(positions: np.ndarray, params: FlockParams, iterations: int = 5) -> tuple[float, float]:
    """Build the tree and query every particle once."""
    times = []
    n = positions.shape[0]
    for _ in range(iterations):
        t0 = time.perf_counter()
        tree = build_quadtree(
            positions,
            boundary_limit=params.boundary_limit,
            max_particles_per_leaf=params.max_particles_per_leaf,
            max_tree_depth=params.max_tree_depth,
        )
        for i in range(n):
            x, y = positions[i]
            query_neighbors(
                tree, float(x), float(y), params.perception_radius,
                cap=params.neighbor_cap, exclude=i, stack_capacity=params.query_stack_capacity,
            )
        times.append(time.perf_counter() - t0)
    return _mean_std_ms(times)


def benchmark_brute_force(positions: np.ndarray, params: FlockParams, iterations: int = 5) -> tuple[float, float]:
    """Scan all particles for every particle."""
    times = []
    n = positions.shape[0]
    for _ in range(iterations):
        t0 = time.perf_counter()
        for i in range(n):
            x, y = positions[i]
            brute_force_neighbors(positions, float(x), float(y), params.perception_radius, cap=params.neighbor_cap, exclude=i)
        times.append(time.perf_counter() - t0)
    return _mean_std_ms(times)


def benchmark_step(n: int, workers: int, iterations: int = 5) -> tuple[float, float]:
    """Full simulation step (build + query + steer + integrate)."""
    params = FlockParams(particle_count=n, workers=workers, seed=7).clamp()
    times = []
    with FlockSim(params) as sim:
        for _ in range(iterations):
            t0 = time.perf_counter()
            sim.step()
            times.append(time.perf_counter() - t0)
    return _mean_std_ms(times)


def run_benchmark(n_particles: int, iterations: int, workers: int = 4) -> dict:
    """Run full benchmark suite."""
    print(f"\n{'='*60}")
    print(f"Benchmark: {n_particles} particles, {iterations} iterations")
    print(f"{'='*60}")

    params = FlockParams(particle_count=n_particles).clamp()

    print("Generating particles...", end=" ", flush=True)
    positions = generate_positions(n_particles, limit=params.boundary_limit)
    print("done")

    results = {}

    print("Quadtree build + query...", end=" ", flush=True)
    qt_time, qt_std = benchmark_quadtree(positions, params, iterations=iterations)
    print(f"{qt_time:.2f} ± {qt_std:.2f} ms")
    results["quadtree"] = qt_time

    print("Brute force query...", end=" ", flush=True)
    bf_time, bf_std = benchmark_brute_force(positions, params, iterations=iterations)
    print(f"{bf_time:.2f} ± {bf_std:.2f} ms")
    results["brute_force"] = bf_time

    print("Full step (1 worker)...", end=" ", flush=True)
    s1_time, s1_std = benchmark_step(n_particles, 1, iterations=iterations)
    print(f"{s1_time:.2f} ± {s1_std:.2f} ms")
    results["step_1"] = s1_time

    print(f"Full step ({workers} workers)...", end=" ", flush=True)
    sn_time, sn_std = benchmark_step(n_particles, workers, iterations=iterations)
    print(f"{sn_time:.2f} ± {sn_std:.2f} ms")
    results[f"step_{workers}"] = sn_time

    print(f"\n{'='*60}")
    print("Summary:")
    speedup = results["brute_force"] / results["quadtree"] if results["quadtree"] > 0 else 0.0
    print(f"  Quadtree: {results['quadtree']:.2f} ms ({speedup:.1f}x faster than brute force)")
    print(f"  Brute force: {results['brute_force']:.2f} ms")
    print(f"  Step x1: {results['step_1']:.2f} ms, step x{workers}: {results[f'step_{workers}']:.2f} ms")

    return results


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark 2-D flock neighbor search")
    parser.add_argument("--particles", "-n", type=int, default=2000, help="Number of particles")
    parser.add_argument("--iterations", "-i", type=int, default=5, help="Benchmark iterations")
    parser.add_argument("--workers", "-w", type=int, default=4, help="Threads for the multi-worker step")
    parser.add_argument("--sweep", action="store_true", help="Run sweep over particle counts")
    args = parser.parse_args(argv)

    print("Flock 2D Performance Benchmark")
    print(f"Platform: {sys.platform}")
    print(f"NumPy: {np.__version__}")

    iterations = max(1, args.iterations)
    if args.sweep:
        for n in SWEEP_COUNTS:
            run_benchmark(n, iterations, workers=args.workers)
    else:
        run_benchmark(args.particles, iterations, workers=args.workers)


if __name__ == "__main__":
    main()
