"""Tests for the flat particle store."""

import numpy as np
import pytest

from flock_sim2d.core.store import Particle, ParticleStore


class TestParticleStore:
    """Tests for index-addressed access."""

    def test_count_and_get(self):
        """Stored values come back as float particles."""
        store = ParticleStore([(0.0, 0.5), (-0.25, 0.75)], [(0.01, 0.0), (0.0, -0.01)])
        assert store.count() == 2
        assert len(store) == 2
        p = store.get(1)
        assert p.x == pytest.approx(-0.25)
        assert p.y == pytest.approx(0.75)
        assert p.vy == pytest.approx(-0.01)

    def test_set_mutates_only_that_slot(self):
        """set(i) writes slot i in place."""
        store = ParticleStore([(0.0, 0.0), (0.5, 0.5)], [(0.0, 0.0), (0.0, 0.0)])
        store.set(0, Particle(x=0.1, y=0.2, vx=0.003, vy=-0.004))
        assert store.get(0).x == pytest.approx(0.1)
        assert store.get(0).vx == pytest.approx(0.003)
        assert store.get(1) == Particle(x=0.5, y=0.5, vx=0.0, vy=0.0)

    def test_storage_is_float32(self):
        """Buffers hold float32 pairs."""
        store = ParticleStore([(0.0, 0.0)], [(0.0, 0.0)])
        assert store.positions.dtype == np.float32
        assert store.velocities.shape == (1, 2)

    def test_out_of_range_raises(self):
        """Regular callers get an IndexError for bad indices."""
        store = ParticleStore([(0.0, 0.0)], [(0.0, 0.0)])
        with pytest.raises(IndexError):
            store.get(1)
        with pytest.raises(IndexError):
            store.set(-1, Particle(0.0, 0.0, 0.0, 0.0))

    def test_mismatched_lengths_rejected(self):
        """Positions and velocities must pair up."""
        with pytest.raises(ValueError):
            ParticleStore([(0.0, 0.0), (1.0, 1.0)], [(0.0, 0.0)])

    def test_bad_shape_rejected(self):
        """Each entry needs exactly two components."""
        with pytest.raises(ValueError):
            ParticleStore([(0.0, 0.0, 0.0)], [(0.0, 0.0, 0.0)])

    def test_empty_store(self):
        """An empty store has no particles and an empty snapshot."""
        store = ParticleStore.empty()
        assert store.count() == 0
        assert list(store.particles()) == []
        assert len(store.snapshot()) == 0

    def test_from_particles(self):
        """Round trip through Particle records."""
        parts = [Particle(0.25, -0.5, 0.001, 0.002), Particle(0.0, 0.0, -0.001, 0.0)]
        store = ParticleStore.from_particles(parts)
        assert store.count() == 2
        assert store.get(0).x == pytest.approx(0.25)
        assert store.get(1).vx == pytest.approx(-0.001)

    def test_snapshot_is_read_only_copy(self):
        """Snapshots are detached from later mutation and cannot be written."""
        store = ParticleStore([(0.0, 0.0)], [(0.01, 0.0)])
        snap = store.snapshot()
        store.set(0, Particle(0.5, 0.5, 0.0, 0.0))
        assert snap.positions[0, 0] == 0.0
        with pytest.raises(ValueError):
            snap.positions[0, 0] = 1.0
