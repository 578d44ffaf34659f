import math
import unittest

import numpy as np

from flock_sim2d.core.sim import FlockSim
from flock_sim2d.core.store import Particle, ParticleStore
from flock_sim2d.params import FlockParams


class TestSim(unittest.TestCase):
    def test_reset_creates_requested_flock(self) -> None:
        params = FlockParams(particle_count=300, seed=3).clamp()
        with FlockSim(params) as sim:
            self.assertEqual(sim.count(), 300)
            self.assertEqual(sim.steps_done, 0)
            sim.step()
            self.assertEqual(sim.validate_state(), [])

    def test_empty_flock_steps_are_noops(self) -> None:
        params = FlockParams(particle_count=0).clamp()
        with FlockSim(params) as sim:
            sim.run(5)
            self.assertEqual(sim.count(), 0)
            self.assertEqual(sim.steps_done, 5)
            self.assertIsNotNone(sim.last_tree)
            self.assertTrue(sim.last_tree.root.is_leaf())
            self.assertEqual(sim.last_tree.root.bucket_count, 0)
            self.assertEqual(sim.average_speed(), 0.0)

    def test_steps_preserve_invariants(self) -> None:
        params = FlockParams(
            particle_count=600,
            seed=7,
            alignment_weight=0.002,
            cohesion_weight=0.002,
            separation_weight=0.004,
        ).clamp()
        with FlockSim(params) as sim:
            sim.run(20)
            self.assertEqual(sim.count(), 600)
            self.assertEqual(sim.validate_state(), [])
            tree = sim.last_tree
            collected = sorted(int(i) for bucket in tree.leaf_buckets() for i in bucket)
            self.assertEqual(collected, list(range(600)))

    def test_workers_do_not_change_results(self) -> None:
        """Threaded work groups produce exactly the sequential result."""
        results = []
        for workers in (1, 4):
            params = FlockParams(particle_count=900, workers=workers, workgroup_size=64, seed=11).clamp()
            with FlockSim(params) as sim:
                sim.run(5)
                snap = sim.snapshot()
                results.append((snap.positions.copy(), snap.velocities.copy()))
        np.testing.assert_array_equal(results[0][0], results[1][0])
        np.testing.assert_array_equal(results[0][1], results[1][1])

    def test_stored_velocities_never_exceed_max_speed(self) -> None:
        """The cap holds on the float32 store itself, with no tolerance."""
        rng = np.random.default_rng(5)
        n = 2000
        positions = rng.uniform(-1.0, 1.0, size=(n, 2))
        angles = rng.uniform(0.0, 2.0 * np.pi, size=n)
        speeds = rng.uniform(0.0, 1.4, size=n)
        velocities = np.stack([speeds * np.cos(angles), speeds * np.sin(angles)], axis=1)
        params = FlockParams(particle_count=0, max_speed=0.01).clamp()
        with FlockSim(params, store=ParticleStore(positions, velocities)) as sim:
            for _ in range(3):
                sim.step()
                fastest = max(math.hypot(float(vx), float(vy)) for vx, vy in sim.store.velocities)
                self.assertLessEqual(fastest, params.max_speed)
                self.assertEqual(sim.validate_state(), [])

    def test_query_counters_exact_with_threads(self) -> None:
        params = FlockParams(particle_count=900, workers=4, workgroup_size=64, seed=11).clamp()
        with FlockSim(params) as sim:
            sim.step()
            self.assertEqual(sim._ensure_solver().query_count, 900)

    def test_backends_agree_without_truncation(self) -> None:
        """With a cap above any neighbor count, the backend does not change the step."""
        results = []
        for backend in ("quadtree", "brute_force"):
            params = FlockParams(
                particle_count=200,
                neighbor_backend=backend,
                neighbor_cap=1000,
                perception_radius=0.15,
                separation_weight=0.0,
                seed=13,
            ).clamp()
            with FlockSim(params) as sim:
                sim.step()
                results.append(sim.snapshot().velocities.copy())
        np.testing.assert_allclose(results[0], results[1], rtol=0, atol=1e-7)

    def test_partial_last_group_is_handled(self) -> None:
        """Particle counts that do not fill the last work group still update every particle."""
        params = FlockParams(particle_count=10, workgroup_size=4, workers=3, seed=2).clamp()
        with FlockSim(params) as sim:
            before = sim.snapshot().positions.copy()
            sim.step()
            after = sim.snapshot().positions
            self.assertEqual(sim.count(), 10)
            self.assertTrue(np.all(np.any(before != after, axis=1)))

    def test_dispatch_overrun_is_ignored(self) -> None:
        params = FlockParams(particle_count=3, seed=1).clamp()
        with FlockSim(params) as sim:
            tree = sim.build_tree()
            velocities = sim.store.velocities.astype(np.float64)
            before = sim.snapshot()
            sim._update_particle(3, tree, velocities, sim._ensure_solver())
            sim._update_particle(255, tree, velocities, sim._ensure_solver())
            after = sim.snapshot()
            np.testing.assert_array_equal(before.positions, after.positions)
            np.testing.assert_array_equal(before.velocities, after.velocities)

    def test_isolated_particle_only_integrates(self) -> None:
        """A particle with no neighbors keeps its velocity and moves by it."""
        params = FlockParams(particle_count=0, perception_radius=0.1).clamp()
        store = ParticleStore.from_particles([Particle(0.0, 0.0, 0.004, 0.003), Particle(0.8, 0.8, 0.0, 0.002)])
        with FlockSim(params, store=store) as sim:
            sim.step()
            p = sim.store.get(0)
            self.assertAlmostEqual(p.vx, 0.004, places=6)
            self.assertAlmostEqual(p.vy, 0.003, places=6)
            self.assertAlmostEqual(p.x, 0.004, places=6)
            self.assertAlmostEqual(p.y, 0.003, places=6)

    def test_pair_reads_frozen_state(self) -> None:
        """Two mirrored neighbors get mirrored updates regardless of update order."""
        params = FlockParams(
            particle_count=0,
            alignment_weight=0.0,
            cohesion_weight=0.0,
            separation_weight=0.001,
            max_speed=0.01,
        ).clamp()
        store = ParticleStore.from_particles([Particle(-0.02, 0.0, 0.0, 0.0), Particle(0.02, 0.0, 0.0, 0.0)])
        with FlockSim(params, store=store) as sim:
            sim.step()
            a = sim.store.get(0)
            b = sim.store.get(1)
            self.assertAlmostEqual(a.vx, -0.001, places=6)
            self.assertAlmostEqual(b.vx, 0.001, places=6)
            self.assertAlmostEqual(a.x, -b.x, places=6)

    def test_reset_restores_seeded_state(self) -> None:
        params = FlockParams(particle_count=50, seed=21).clamp()
        with FlockSim(params) as sim:
            first = sim.snapshot().positions.copy()
            sim.run(3)
            sim.reset()
            np.testing.assert_array_equal(first, sim.snapshot().positions)
            self.assertEqual(sim.steps_done, 0)

    def test_validate_state_flags_nan(self) -> None:
        params = FlockParams(particle_count=1).clamp()
        sim = FlockSim(params)
        sim.step()

        self.assertEqual(sim.validate_state(), [])

        sim.store.set(0, Particle(float("nan"), 0.0, 0.0, 0.0))
        issues = sim.validate_state()
        self.assertTrue(any("non-finite" in issue for issue in issues))

    def test_validate_state_flags_bounds_and_speed(self) -> None:
        params = FlockParams(particle_count=0).clamp()
        store = ParticleStore.from_particles([Particle(1.5, 0.0, 0.0, 0.0), Particle(0.0, 0.0, 0.5, 0.0)])
        sim = FlockSim(params, store=store)
        issues = sim.validate_state()
        self.assertTrue(any("out of domain bounds" in issue for issue in issues))
        self.assertTrue(any("exceeds max_speed" in issue for issue in issues))

    def test_average_speed(self) -> None:
        params = FlockParams(particle_count=0).clamp()
        store = ParticleStore.from_particles([Particle(0.0, 0.0, 0.003, 0.004), Particle(0.5, 0.5, 0.0, 0.001)])
        sim = FlockSim(params, store=store)
        self.assertTrue(math.isclose(sim.average_speed(), 0.003, rel_tol=1e-5))


if __name__ == "__main__":
    unittest.main()
