from __future__ import annotations

import logging
import math
import random
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from flock_sim2d.params import FlockParams
from flock_sim2d.core.init_conditions import create_store
from flock_sim2d.core.store import ParticleSnapshot, ParticleStore
from flock_sim2d.physics.flocking import compute_steering
from flock_sim2d.physics.integrator import integrate_particle
from flock_sim2d.physics.neighbors import NeighborSolver, make_neighbor_solver
from flock_sim2d.physics.quadtree import QuadTree, build_quadtree


logger = logging.getLogger(__name__)


class FlockSim:
    def __init__(self, params: FlockParams, store: ParticleStore | None = None) -> None:
        self.params = params
        self._rng = random.Random(params.seed)
        self.store: ParticleStore = ParticleStore.empty()
        self.last_tree: QuadTree | None = None
        self.last_build_ms: float | None = None
        self.last_update_ms: float | None = None
        self.steps_done = 0

        self._solver: NeighborSolver | None = None
        self._solver_key: tuple | None = None
        self._pool: ThreadPoolExecutor | None = None
        self._pool_workers = 0

        if store is None:
            self.reset()
        else:
            self.store = store

    def reset(self) -> None:
        p = self.params
        self._rng = random.Random(p.seed)
        self.store = create_store(p, self._rng)
        self.last_tree = None
        self.steps_done = 0
        logger.info("[reset] %d particles, init_mode=%s", self.store.count(), p.init_mode)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
            self._pool_workers = 0

    def __enter__(self) -> "FlockSim":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def count(self) -> int:
        return self.store.count()

    def snapshot(self) -> ParticleSnapshot:
        return self.store.snapshot()

    def _ensure_solver(self) -> NeighborSolver:
        p = self.params
        key = (p.neighbor_backend, p.perception_radius, p.neighbor_cap, p.query_stack_capacity)
        if self._solver is None or self._solver_key != key:
            self._solver = make_neighbor_solver(p)
            self._solver_key = key
        return self._solver

    def _ensure_pool(self, workers: int) -> ThreadPoolExecutor:
        if self._pool is None or self._pool_workers != workers:
            self.close()
            self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="flock")
            self._pool_workers = workers
        return self._pool

    def build_tree(self) -> QuadTree:
        p = self.params
        return build_quadtree(
            self.store.positions,
            boundary_limit=p.boundary_limit,
            max_particles_per_leaf=p.max_particles_per_leaf,
            max_tree_depth=p.max_tree_depth,
        )

    def _update_particle(
        self,
        i: int,
        tree: QuadTree,
        velocities: np.ndarray,
        solver: NeighborSolver,
    ) -> None:
        # dispatch is rounded up to whole work groups; trailing slots are no-ops
        if i >= self.store.count():
            return
        nbrs = solver.neighbors_of(tree, i)
        x, y = tree.positions[i]
        if nbrs:
            delta = compute_steering(float(x), float(y), tree.positions[nbrs], velocities[nbrs], self.params)
        else:
            delta = (0.0, 0.0)
        particle = self.store.get(i)
        self.store.set(i, integrate_particle(particle, delta, self.params))

    def _run_group(self, group: int, tree: QuadTree, velocities: np.ndarray, solver: NeighborSolver) -> None:
        size = self.params.workgroup_size
        for i in range(group * size, (group + 1) * size):
            self._update_particle(i, tree, velocities, solver)

    def step(self) -> None:
        """
        Advance the flock by one step.

        Phase 1 builds the quadtree from the current positions. Phase 2 runs
        query, steering and integration for every particle, in work groups
        spread over the thread pool; each particle reads the positions frozen
        in the tree plus a frozen velocity copy, and writes only its own slot.
        Joining every group is the barrier that ends the step.
        """
        p = self.params
        n = self.store.count()

        t0 = time.perf_counter()
        tree = self.build_tree()
        self.last_tree = tree
        self.last_build_ms = (time.perf_counter() - t0) * 1000.0

        if n == 0:
            self.last_update_ms = 0.0
            self.steps_done += 1
            return

        velocities = self.store.velocities.astype(np.float64)
        velocities.flags.writeable = False
        solver = self._ensure_solver()
        solver.reset_stats()

        groups = math.ceil(n / p.workgroup_size)
        t0 = time.perf_counter()
        if p.workers <= 1 or groups <= 1:
            for g in range(groups):
                self._run_group(g, tree, velocities, solver)
        else:
            pool = self._ensure_pool(p.workers)
            futures = [pool.submit(self._run_group, g, tree, velocities, solver) for g in range(groups)]
            for fut in futures:
                # re-raises a failed group: a partial step is a failed run
                fut.result()
        self.last_update_ms = (time.perf_counter() - t0) * 1000.0
        self.steps_done += 1

        logger.debug(
            "[step] #%d n=%d nodes=%d splits=%d overflow_leaves=%d build=%.2fms update=%.2fms",
            self.steps_done,
            n,
            len(tree.nodes),
            tree.split_count,
            tree.overflow_leaves(),
            self.last_build_ms,
            self.last_update_ms,
        )

    def run(self, steps: int) -> None:
        for _ in range(max(0, int(steps))):
            self.step()

    def average_speed(self) -> float:
        if self.store.count() == 0:
            return 0.0
        v = self.store.velocities.astype(np.float64)
        return float(np.mean(np.sqrt(np.einsum("ij,ij->i", v, v))))

    def validate_state(self) -> list[str]:
        issues: list[str] = []
        p = self.params
        eps = 1e-6
        b = float(p.boundary_limit)
        check_bounds = p.boundary_policy == "reflect_clamp"

        for i in range(self.store.count()):
            pt = self.store.get(i)
            if not (
                math.isfinite(pt.x)
                and math.isfinite(pt.y)
                and math.isfinite(pt.vx)
                and math.isfinite(pt.vy)
            ):
                issues.append(f"particle {i} has non-finite position/velocity")
                continue

            if check_bounds and (abs(pt.x) > b + eps or abs(pt.y) > b + eps):
                issues.append(f"particle {i} out of domain bounds")
            if p.max_speed > 0.0 and math.hypot(pt.vx, pt.vy) > p.max_speed:
                issues.append(f"particle {i} exceeds max_speed")

        return issues
