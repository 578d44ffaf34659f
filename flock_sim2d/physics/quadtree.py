"""
Bucketed quadtree rebuilt from scratch every simulation step.

The tree is stored arena-style: a flat list of ``QuadNode`` records whose
``children`` hold indices into the same list, and one reordered particle
index buffer in which every leaf owns a contiguous slice (its bucket).

The build works like this:
1. Start with a single root leaf covering ``[-limit, limit]^2`` whose
   bucket is the whole index buffer.
2. Pop any leaf holding more than ``max_particles_per_leaf`` indices and
   not yet at ``max_tree_depth``.
3. Split it at the midpoint into four contiguous node slots and counting-sort
   its bucket slice by quadrant so each child's bucket is again contiguous.
4. Repeat until no leaf is over capacity (or every such leaf sits at the
   depth cap, where overflow is accepted).

Constants:
    NO_CHILD: Sentinel stored in all four child slots of a leaf
    MAX_PARTICLES_PER_LEAF: Default bucket capacity before splitting
    MAX_TREE_DEPTH: Default depth cap

Example:
    >>> import numpy as np
    >>> from flock_sim2d.physics.quadtree import build_quadtree
    >>> pos = np.array([[0.0, 0.0], [0.05, 0.0], [0.5, 0.5]])
    >>> tree = build_quadtree(pos, boundary_limit=1.0, max_particles_per_leaf=1)
    >>> sorted(int(i) for bucket in tree.leaf_buckets() for i in bucket)
    [0, 1, 2]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

import numpy as np


NO_CHILD = 0xFFFFFFFF
LEAF_CHILDREN = (NO_CHILD, NO_CHILD, NO_CHILD, NO_CHILD)
MAX_PARTICLES_PER_LEAF = 10
MAX_TREE_DEPTH = 6


@dataclass(slots=True)
class QuadNode:
    """
    One axis-aligned cell of the quadtree.

    A node is either a leaf (all four ``children`` equal ``NO_CHILD``) that
    owns ``indices[bucket_start:bucket_start + bucket_count]``, or an
    internal node with four valid children and ``bucket_count == 0``.

    Attributes:
        min_x, min_y, max_x, max_y: Extent of the cell
        children: Child node indices ordered bottom-left, bottom-right,
            top-left, top-right
        bucket_start, bucket_count: Range into the tree's index buffer
        depth: Distance from the root (root = 0)
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    children: tuple[int, int, int, int] = LEAF_CHILDREN
    bucket_start: int = 0
    bucket_count: int = 0
    depth: int = 0

    def is_leaf(self) -> bool:
        return self.children[0] == NO_CHILD

    def midpoint(self) -> tuple[float, float]:
        return (self.min_x + self.max_x) * 0.5, (self.min_y + self.max_y) * 0.5


@dataclass(slots=True)
class QuadTree:
    """Flattened tree for one step: nodes, bucketed index buffer, frozen positions."""
    nodes: list[QuadNode]
    indices: np.ndarray
    positions: np.ndarray
    boundary_limit: float = 1.0
    max_particles_per_leaf: int = MAX_PARTICLES_PER_LEAF
    max_tree_depth: int = MAX_TREE_DEPTH
    split_count: int = field(default=0)

    @property
    def root(self) -> QuadNode:
        return self.nodes[0]

    def particle_count(self) -> int:
        return int(self.indices.shape[0])

    def leaves(self) -> Iterator[QuadNode]:
        for node in self.nodes:
            if node.is_leaf():
                yield node

    def leaf_buckets(self) -> Iterator[np.ndarray]:
        for node in self.leaves():
            yield self.indices[node.bucket_start:node.bucket_start + node.bucket_count]

    def max_depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def overflow_leaves(self) -> int:
        """Count leaves holding more than the nominal capacity (depth-capped)."""
        return sum(1 for node in self.leaves() if node.bucket_count > self.max_particles_per_leaf)


def quadrant_of(x: float, y: float, mid_x: float, mid_y: float) -> int:
    """Quadrant index of a point; coordinates equal to the midpoint go lower/left."""
    return (0 if x <= mid_x else 1) | (0 if y <= mid_y else 2)


def child_bounds(node: QuadNode, quadrant: int) -> tuple[float, float, float, float]:
    mid_x, mid_y = node.midpoint()
    if quadrant & 1:
        x0, x1 = mid_x, node.max_x
    else:
        x0, x1 = node.min_x, mid_x
    if quadrant & 2:
        y0, y1 = mid_y, node.max_y
    else:
        y0, y1 = node.min_y, mid_y
    return x0, y0, x1, y1


def _split(tree_nodes: list[QuadNode], node_index: int, indices: np.ndarray, positions: np.ndarray) -> list[int]:
    node = tree_nodes[node_index]
    start = node.bucket_start
    end = start + node.bucket_count
    bucket = indices[start:end]
    mid_x, mid_y = node.midpoint()

    pts = positions[bucket]
    quadrant = (pts[:, 0] > mid_x).astype(np.intp) | ((pts[:, 1] > mid_y).astype(np.intp) << 1)

    # counting sort: per-quadrant counts give each child's offset, the stable
    # scatter keeps original index order inside every child bucket
    counts = np.bincount(quadrant, minlength=4)
    offsets = np.zeros(4, dtype=np.intp)
    offsets[1:] = np.cumsum(counts)[:-1]
    indices[start:end] = bucket[np.argsort(quadrant, kind="stable")]

    first = len(tree_nodes)
    for q in range(4):
        x0, y0, x1, y1 = child_bounds(node, q)
        tree_nodes.append(
            QuadNode(
                x0, y0, x1, y1,
                bucket_start=start + int(offsets[q]),
                bucket_count=int(counts[q]),
                depth=node.depth + 1,
            )
        )
    node.children = (first, first + 1, first + 2, first + 3)
    node.bucket_count = 0
    return [first + q for q in range(4)]


def build_quadtree(
    positions,
    *,
    boundary_limit: float = 1.0,
    max_particles_per_leaf: int = MAX_PARTICLES_PER_LEAF,
    max_tree_depth: int = MAX_TREE_DEPTH,
) -> QuadTree:
    pos = np.array(positions, dtype=np.float64).reshape(-1, 2)
    pos.flags.writeable = False
    n = int(pos.shape[0])
    limit = float(boundary_limit)
    capacity = max(1, int(max_particles_per_leaf))
    depth_cap = max(0, int(max_tree_depth))

    indices = np.arange(n, dtype=np.uint32)
    nodes = [QuadNode(-limit, -limit, limit, limit, bucket_start=0, bucket_count=n, depth=0)]

    splits = 0
    pending = [0]
    while pending:
        ni = pending.pop()
        node = nodes[ni]
        if node.bucket_count <= capacity or node.depth >= depth_cap:
            continue
        for child in _split(nodes, ni, indices, pos):
            if nodes[child].bucket_count > capacity:
                pending.append(child)
        splits += 1

    indices.flags.writeable = False
    return QuadTree(
        nodes=nodes,
        indices=indices,
        positions=pos,
        boundary_limit=limit,
        max_particles_per_leaf=capacity,
        max_tree_depth=depth_cap,
        split_count=splits,
    )
