from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class FlockParams:
    width: int = 1024
    height: int = 768
    background: tuple[int, int, int] = (8, 10, 18)

    init_mode: str = "random"  # random | clusters
    particle_count: int = 2000
    initial_speed: float = 0.01
    cluster_count: int = 6
    cluster_sigma: float = 0.12

    boundary_limit: float = 1.0  # domain: [-limit, +limit]^2
    boundary_policy: str = "reflect_clamp"  # reflect_clamp | reflect

    max_particles_per_leaf: int = 10
    max_tree_depth: int = 6
    query_stack_capacity: int = 64

    neighbor_backend: str = "quadtree"  # quadtree | brute_force
    perception_radius: float = 0.1
    neighbor_cap: int = 10

    alignment_weight: float = 0.0005
    cohesion_weight: float = 0.0003
    separation_weight: float = 0.0008
    max_force: float = 0.0  # 0 = no clamp on the steering delta
    separation_epsilon: float = 1e-6
    vector_epsilon: float = 1e-9

    max_speed: float = 0.01
    min_speed: float = 1e-6
    idle_speed: float = 0.001

    workers: int = 1
    workgroup_size: int = 256

    boid_size: float = 0.01
    target_fps: int = 60
    log_level: str = "INFO"
    seed: int = 1

    def clamp(self) -> "FlockParams":
        self.width = max(320, int(self.width))
        self.height = max(240, int(self.height))
        self.init_mode = str(self.init_mode or "random").strip().lower()
        if self.init_mode not in {"random", "clusters"}:
            self.init_mode = "random"
        self.particle_count = max(0, int(self.particle_count))
        self.initial_speed = max(0.0, float(self.initial_speed))
        self.cluster_count = max(1, int(self.cluster_count))
        self.cluster_sigma = max(0.0, float(self.cluster_sigma))

        self.boundary_limit = max(1e-3, float(self.boundary_limit))
        self.boundary_policy = str(self.boundary_policy or "reflect_clamp").strip().lower()
        if self.boundary_policy not in {"reflect_clamp", "reflect"}:
            self.boundary_policy = "reflect_clamp"

        self.max_particles_per_leaf = max(1, int(self.max_particles_per_leaf))
        self.max_tree_depth = max(0, min(24, int(self.max_tree_depth)))
        # a depth-first walk holds at most 3 siblings per level plus one set of 4 children
        self.query_stack_capacity = max(3 * self.max_tree_depth + 4, int(self.query_stack_capacity))

        self.neighbor_backend = str(self.neighbor_backend or "quadtree").strip().lower()
        if self.neighbor_backend in {"brute", "direct"}:
            self.neighbor_backend = "brute_force"
        if self.neighbor_backend not in {"quadtree", "brute_force"}:
            self.neighbor_backend = "quadtree"
        self.perception_radius = max(0.0, float(self.perception_radius))
        self.neighbor_cap = max(0, int(self.neighbor_cap))

        self.alignment_weight = max(0.0, float(self.alignment_weight))
        self.cohesion_weight = max(0.0, float(self.cohesion_weight))
        self.separation_weight = max(0.0, float(self.separation_weight))
        self.max_force = max(0.0, float(self.max_force))
        self.separation_epsilon = max(1e-12, float(self.separation_epsilon))
        self.vector_epsilon = max(0.0, float(self.vector_epsilon))

        self.max_speed = max(0.0, float(self.max_speed))
        self.min_speed = max(0.0, float(self.min_speed))
        self.idle_speed = max(0.0, float(self.idle_speed))
        if self.max_speed > 0.0:
            self.idle_speed = min(self.idle_speed, self.max_speed)

        self.workers = max(1, min(64, int(self.workers)))
        self.workgroup_size = max(1, int(self.workgroup_size))

        self.boid_size = max(1e-5, float(self.boid_size))
        self.target_fps = max(10, int(self.target_fps))
        self.log_level = str(self.log_level or "INFO").strip().upper()
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            self.log_level = "INFO"
        self.seed = int(self.seed)
        return self

    def validate(self) -> list[str]:
        warnings: list[str] = []

        if self.max_speed <= 0.0:
            warnings.append("max_speed=0 disables the speed clamp.")
        elif self.idle_speed <= self.min_speed:
            warnings.append("idle_speed should exceed min_speed or particles can stay frozen.")

        if self.perception_radius <= 0.0:
            warnings.append("perception_radius=0: no particle will ever see a neighbor.")
        elif self.perception_radius > self.boundary_limit:
            warnings.append("perception_radius exceeds boundary_limit: neighbor search degenerates to a full scan.")

        if self.neighbor_cap == 0:
            warnings.append("neighbor_cap=0 disables all flocking forces.")

        if self.alignment_weight == 0.0 and self.cohesion_weight == 0.0 and self.separation_weight == 0.0:
            warnings.append("all flocking weights are zero: particles only drift.")

        if self.neighbor_backend == "brute_force" and self.particle_count > 5000:
            warnings.append("neighbor_backend=brute_force is O(n^2) per step; expect slow steps.")

        if self.init_mode != "clusters" and (self.cluster_count != 6 or abs(self.cluster_sigma - 0.12) > 1e-12):
            warnings.append("cluster_count/cluster_sigma ignored unless init_mode=clusters.")

        if self.workers > 1 and self.particle_count <= self.workgroup_size:
            warnings.append("workers > 1 has no effect with a single work group.")

        return warnings

    @classmethod
    def load(cls, path: str | Path) -> "FlockParams":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("parameter file must contain a JSON object.")
        # Older files spelled the search radius as "radius".
        if "radius" in data and "perception_radius" not in data:
            data["perception_radius"] = data["radius"]
        if "background" in data and isinstance(data["background"], list):
            data["background"] = tuple(data["background"])
        filtered: dict[str, Any] = {k: v for k, v in data.items() if k in cls.__annotations__}
        return cls(**filtered).clamp()

    def save(self, path: str | Path) -> None:
        data = asdict(self)
        Path(path).write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
