"""Tests for per-particle integration and the boundary policy."""

import math
import random
import unittest

import numpy as np

from flock_sim2d.core.store import Particle
from flock_sim2d.params import FlockParams
from flock_sim2d.physics.integrator import apply_boundary, clamp_speed, fit_float32_speed, integrate_particle


class TestClampSpeed(unittest.TestCase):
    def test_fast_velocity_scaled_to_max(self) -> None:
        vx, vy = clamp_speed(0.3, 0.4, 0.1)
        self.assertAlmostEqual(math.hypot(vx, vy), 0.1)
        self.assertAlmostEqual(vx / vy, 0.75)

    def test_slow_velocity_untouched(self) -> None:
        self.assertEqual(clamp_speed(0.003, -0.004, 0.01), (0.003, -0.004))

    def test_zero_max_disables_clamp(self) -> None:
        self.assertEqual(clamp_speed(3.0, 4.0, 0.0), (3.0, 4.0))


class TestFitFloat32Speed(unittest.TestCase):
    def test_float32_result_never_exceeds_cap(self) -> None:
        """Clamped velocities stay under the cap after rounding to float32."""
        rng = random.Random(17)
        for max_speed in (0.01, 0.1, 0.0123):
            for _ in range(2000):
                a = rng.uniform(0.0, 2.0 * math.pi)
                m = rng.uniform(0.0, 1.4)
                vx, vy = clamp_speed(m * math.cos(a), m * math.sin(a), max_speed)
                fx, fy = fit_float32_speed(vx, vy, max_speed)
                self.assertEqual(fx, float(np.float32(fx)))
                self.assertEqual(fy, float(np.float32(fy)))
                self.assertLessEqual(math.hypot(fx, fy), max_speed)
                self.assertLessEqual(float(np.hypot(np.float32(fx), np.float32(fy))), max_speed)

    def test_direction_kept(self) -> None:
        fx, fy = fit_float32_speed(0.006, 0.008, 0.01)
        self.assertAlmostEqual(fx, 0.006, places=8)
        self.assertAlmostEqual(fy, 0.008, places=8)

    def test_zero_cap_only_rounds(self) -> None:
        fx, fy = fit_float32_speed(3.0, 4.0, 0.0)
        self.assertEqual((fx, fy), (3.0, 4.0))


class TestApplyBoundary(unittest.TestCase):
    def test_inside_is_unchanged(self) -> None:
        self.assertEqual(apply_boundary(0.5, -0.5, 0.01, 0.02, limit=1.0), (0.5, -0.5, 0.01, 0.02))

    def test_reflect_clamp_per_axis(self) -> None:
        x, y, vx, vy = apply_boundary(1.004, 0.2, 0.008, 0.001, limit=1.0, clamp=True)
        self.assertEqual((x, y), (1.0, 0.2))
        self.assertEqual((vx, vy), (-0.008, 0.001))

        x, y, vx, vy = apply_boundary(-1.01, -1.02, -0.01, -0.02, limit=1.0, clamp=True)
        self.assertEqual((x, y), (-1.0, -1.0))
        self.assertEqual((vx, vy), (0.01, 0.02))

    def test_reflect_only_keeps_position(self) -> None:
        x, y, vx, vy = apply_boundary(1.004, 0.2, 0.008, 0.001, limit=1.0, clamp=False)
        self.assertEqual(x, 1.004)
        self.assertEqual(vx, -0.008)

    def test_boundary_value_is_inside(self) -> None:
        """Exactly on the limit does not reflect."""
        self.assertEqual(apply_boundary(1.0, -1.0, 0.01, -0.01, limit=1.0), (1.0, -1.0, 0.01, -0.01))


class TestIntegrateParticle(unittest.TestCase):
    def setUp(self) -> None:
        self.params = FlockParams(max_speed=0.01, min_speed=1e-6, idle_speed=0.001).clamp()

    def test_speed_clamped_for_any_delta(self) -> None:
        rng = random.Random(3)
        for _ in range(500):
            p = Particle(
                rng.uniform(-1, 1), rng.uniform(-1, 1), rng.uniform(-0.01, 0.01), rng.uniform(-0.01, 0.01)
            )
            delta = (rng.uniform(-5, 5), rng.uniform(-5, 5))
            out = integrate_particle(p, delta, self.params)
            self.assertLessEqual(math.hypot(out.vx, out.vy), self.params.max_speed * (1 + 1e-12))

    def test_position_advances_by_new_velocity(self) -> None:
        p = Particle(0.0, 0.0, 0.002, 0.0)
        out = integrate_particle(p, (0.0, 0.001), self.params)
        self.assertAlmostEqual(out.vx, 0.002)
        self.assertAlmostEqual(out.vy, 0.001)
        self.assertAlmostEqual(out.x, 0.002)
        self.assertAlmostEqual(out.y, 0.001)

    def test_stalled_particle_gets_idle_velocity(self) -> None:
        p = Particle(0.1, 0.1, 0.0, 0.0)
        out = integrate_particle(p, (0.0, 0.0), self.params)
        self.assertAlmostEqual(out.vx, 0.001)
        self.assertEqual(out.vy, 0.0)
        self.assertAlmostEqual(out.x, 0.101)

    def test_cancelled_velocity_gets_idle_velocity(self) -> None:
        p = Particle(0.1, 0.1, 0.005, 0.005)
        out = integrate_particle(p, (-0.005, -0.005), self.params)
        self.assertAlmostEqual(out.vx, 0.001)
        self.assertEqual(out.vy, 0.0)

    def test_reflect_clamp_keeps_particles_in_domain(self) -> None:
        rng = random.Random(5)
        b = self.params.boundary_limit
        for _ in range(500):
            p = Particle(rng.uniform(-b, b), rng.uniform(-b, b), rng.uniform(-0.01, 0.01), rng.uniform(-0.01, 0.01))
            out = integrate_particle(p, (rng.uniform(-1, 1), rng.uniform(-1, 1)), self.params)
            self.assertLessEqual(abs(out.x), b)
            self.assertLessEqual(abs(out.y), b)

    def test_reflect_clamp_contains_large_unclamped_velocities(self) -> None:
        """Containment does not depend on the speed cap."""
        params = FlockParams(max_speed=0.0, boundary_policy="reflect_clamp").clamp()
        rng = random.Random(23)
        b = params.boundary_limit
        for _ in range(500):
            p = Particle(rng.uniform(-b, b), rng.uniform(-b, b), rng.uniform(-50, 50), rng.uniform(-50, 50))
            out = integrate_particle(p, (rng.uniform(-10, 10), rng.uniform(-10, 10)), params)
            self.assertLessEqual(abs(out.x), b)
            self.assertLessEqual(abs(out.y), b)

        out = integrate_particle(Particle(0.9, -0.9, 7.5, -12.0), (0.0, 0.0), params)
        self.assertEqual((out.x, out.y), (1.0, -1.0))
        self.assertEqual((out.vx, out.vy), (-7.5, 12.0))

    def test_reflect_policy_flips_velocity_without_clamping(self) -> None:
        params = FlockParams(boundary_policy="reflect", max_speed=0.01).clamp()
        p = Particle(0.995, 0.0, 0.01, 0.0)
        out = integrate_particle(p, (0.0, 0.0), params)
        self.assertAlmostEqual(out.x, 1.005)
        self.assertAlmostEqual(out.vx, -0.01)


if __name__ == "__main__":
    unittest.main()
