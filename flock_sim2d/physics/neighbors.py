"""
Neighbor-range queries over the per-step quadtree.

This module provides two ways of answering "which particles lie strictly
within ``radius`` of a point":
- Quadtree: bounded explicit-stack walk, O(log n) per query
- Brute force: O(n) scan of every particle, the reference for testing

Both cap the result at ``cap`` indices. Past the cap the result is
truncated, and which particles survive depends on traversal order, so only
untruncated results are comparable between the two.

Example:
    >>> import numpy as np
    >>> from flock_sim2d.physics.quadtree import build_quadtree
    >>> from flock_sim2d.physics.neighbors import query_neighbors
    >>> pos = np.array([[0.0, 0.0], [0.05, 0.0], [0.5, 0.5]])
    >>> tree = build_quadtree(pos, boundary_limit=1.0)
    >>> query_neighbors(tree, 0.0, 0.0, 0.1, cap=10, exclude=0)
    [1]
"""

from __future__ import annotations

import math
import threading
import time

import numpy as np

from flock_sim2d.physics.quadtree import QuadTree


DEFAULT_NEIGHBOR_CAP = 10
DEFAULT_STACK_CAPACITY = 64


def required_stack_capacity(max_tree_depth: int) -> int:
    """Worst-case stack height of a depth-first walk: 3 pending siblings per level plus 4 children."""
    return 3 * max(0, int(max_tree_depth)) + 4


def query_neighbors(
    tree: QuadTree,
    x: float,
    y: float,
    radius: float,
    *,
    cap: int = DEFAULT_NEIGHBOR_CAP,
    exclude: int = -1,
    stack_capacity: int = DEFAULT_STACK_CAPACITY,
) -> list[int]:
    """
    Collect up to ``cap`` particle indices strictly within ``radius`` of (x, y).

    Args:
        tree: Tree built for the current step
        x, y: Query point
        radius: Search radius (exclusive)
        cap: Maximum number of indices returned
        exclude: Index to skip (the querying particle itself), -1 for none
        stack_capacity: Size of the explicit traversal stack

    Returns:
        Particle indices in traversal order, at most ``cap`` of them.

    Raises:
        RuntimeError: If the traversal would overflow ``stack_capacity``
            (the tree is deeper than the stack was sized for).
    """
    found: list[int] = []
    if cap <= 0 or radius <= 0.0 or tree.particle_count() == 0:
        return found

    r2 = radius * radius
    nodes = tree.nodes
    indices = tree.indices
    positions = tree.positions

    lim = tree.boundary_limit
    inf = math.inf

    stack = [0]
    while stack:
        node = nodes[stack.pop()]

        # nearest point of the box to the query point; faces on the domain edge
        # are open: particles outside the domain live in edge leaves
        lo_x = -inf if node.min_x <= -lim else node.min_x
        hi_x = inf if node.max_x >= lim else node.max_x
        lo_y = -inf if node.min_y <= -lim else node.min_y
        hi_y = inf if node.max_y >= lim else node.max_y
        nx = min(max(x, lo_x), hi_x)
        ny = min(max(y, lo_y), hi_y)
        dx = nx - x
        dy = ny - y
        if (dx * dx) + (dy * dy) >= r2:
            continue

        if node.is_leaf():
            if node.bucket_count == 0:
                continue
            bucket = indices[node.bucket_start:node.bucket_start + node.bucket_count]
            d = positions[bucket] - (x, y)
            inside = bucket[np.einsum("ij,ij->i", d, d) < r2]
            for j in inside.tolist():
                if j == exclude:
                    continue
                found.append(j)
                if len(found) >= cap:
                    return found
            continue

        if len(stack) + 4 > stack_capacity:
            raise RuntimeError(
                f"neighbor query stack overflow: capacity {stack_capacity} "
                f"too small for depth {node.depth + 1}"
            )
        # reversed so child 0 is popped first
        stack.extend(reversed(node.children))

    return found


def brute_force_neighbors(
    positions,
    x: float,
    y: float,
    radius: float,
    *,
    cap: int = DEFAULT_NEIGHBOR_CAP,
    exclude: int = -1,
) -> list[int]:
    """Reference O(n) scan with the same contract as ``query_neighbors`` (index order)."""
    if cap <= 0 or radius <= 0.0:
        return []
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    if pos.shape[0] == 0:
        return []
    d = pos - (x, y)
    hits = np.flatnonzero(np.einsum("ij,ij->i", d, d) < radius * radius)
    found: list[int] = []
    for j in hits.tolist():
        if j == exclude:
            continue
        found.append(j)
        if len(found) >= cap:
            break
    return found


class NeighborSolver:
    """
    Base interface for neighbor backends.

    Subclasses answer one query per particle against the state frozen at
    the start of the step.
    """

    name = "base"

    def __init__(self, *, radius: float, cap: int = DEFAULT_NEIGHBOR_CAP) -> None:
        self.radius = float(radius)
        self.cap = int(cap)
        self.query_count = 0
        self.query_time_ms = 0.0
        self._stats_lock = threading.Lock()

    def neighbors_of(self, tree: QuadTree, i: int) -> list[int]:
        raise NotImplementedError

    def reset_stats(self) -> None:
        with self._stats_lock:
            self.query_count = 0
            self.query_time_ms = 0.0

    def _timed(self, fn, *args, **kwargs) -> list[int]:
        t0 = time.perf_counter()
        out = fn(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        # work groups share one solver across pool threads
        with self._stats_lock:
            self.query_time_ms += elapsed_ms
            self.query_count += 1
        return out


class QuadtreeNeighborSolver(NeighborSolver):
    """Bounded stack walk over the step's quadtree."""

    name = "quadtree"

    def __init__(
        self,
        *,
        radius: float,
        cap: int = DEFAULT_NEIGHBOR_CAP,
        stack_capacity: int = DEFAULT_STACK_CAPACITY,
    ) -> None:
        super().__init__(radius=radius, cap=cap)
        self.stack_capacity = int(stack_capacity)

    def neighbors_of(self, tree: QuadTree, i: int) -> list[int]:
        x, y = tree.positions[i]
        return self._timed(
            query_neighbors,
            tree,
            float(x),
            float(y),
            self.radius,
            cap=self.cap,
            exclude=i,
            stack_capacity=self.stack_capacity,
        )


class BruteForceNeighborSolver(NeighborSolver):
    """O(n) scan per particle. Ignores the tree except for its frozen positions."""

    name = "brute_force"

    def neighbors_of(self, tree: QuadTree, i: int) -> list[int]:
        x, y = tree.positions[i]
        return self._timed(
            brute_force_neighbors,
            tree.positions,
            float(x),
            float(y),
            self.radius,
            cap=self.cap,
            exclude=i,
        )


def make_neighbor_solver(params) -> NeighborSolver:
    if params.neighbor_backend == "brute_force":
        return BruteForceNeighborSolver(radius=params.perception_radius, cap=params.neighbor_cap)
    return QuadtreeNeighborSolver(
        radius=params.perception_radius,
        cap=params.neighbor_cap,
        stack_capacity=params.query_stack_capacity,
    )
