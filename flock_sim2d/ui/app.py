from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from flock_sim2d.core.sim import FlockSim
from flock_sim2d.params import FlockParams
from flock_sim2d.utils.export import export_particles_csv, export_summary
from flock_sim2d.utils.log import setup_logging


logger = logging.getLogger(__name__)

PARAMS_FILE = "params.json"


class FlockSimApp:
    def __init__(self, params: FlockParams) -> None:
        self.params = params
        self.sim = FlockSim(params)
        self._running = True
        self._sim_time = 0.0
        self._fps_t0 = time.monotonic()
        self._fps_steps = 0
        self._steps_per_s = 0.0

    def _step(self, dt: float) -> None:
        if not self._running:
            return
        self.sim.step()
        self._sim_time += dt
        self._fps_steps += 1
        now = time.monotonic()
        if now - self._fps_t0 >= 1.0:
            self._steps_per_s = self._fps_steps / (now - self._fps_t0)
            self._fps_t0 = now
            self._fps_steps = 0

    def _get_caption(self) -> str:
        build = self.sim.last_build_ms or 0.0
        update = self.sim.last_update_ms or 0.0
        state = "" if self._running else " [paused]"
        return (
            f"flock 2d | n={self.sim.count()} | step {self.sim.steps_done} | "
            f"{self._steps_per_s:.1f} steps/s | build {build:.1f} ms | update {update:.1f} ms{state}"
        )

    def _on_key(self, symbol: int, modifiers: int) -> None:  # noqa: ARG002
        from pyglet.window import key  # type: ignore

        if symbol == key.SPACE:
            self._running = not self._running
        elif symbol == key.R:
            self.sim.reset()

    def run_view(self) -> None:
        from flock_sim2d.rendering.pyglet_renderer import run_pyglet

        p = self.params
        try:
            run_pyglet(
                width=p.width,
                height=p.height,
                background_rgb=tuple(p.background),  # type: ignore[arg-type]
                limit=p.boundary_limit,
                boid_size=p.boid_size,
                get_snapshot=self.sim.snapshot,
                step_simulation=self._step,
                get_caption=self._get_caption,
                on_key=self._on_key,
                target_fps=p.target_fps,
            )
        finally:
            self.sim.close()

    def run_headless(self, steps: int, *, log_every: int = 0) -> list[str]:
        t0 = time.perf_counter()
        try:
            for k in range(max(0, int(steps))):
                self.sim.step()
                if log_every > 0 and (k + 1) % log_every == 0:
                    logger.info(
                        "[run] step %d/%d avg_speed=%.6f build=%.2fms update=%.2fms",
                        k + 1,
                        steps,
                        self.sim.average_speed(),
                        self.sim.last_build_ms or 0.0,
                        self.sim.last_update_ms or 0.0,
                    )
        finally:
            self.sim.close()
        elapsed = time.perf_counter() - t0
        logger.info("[run] %d steps in %.2fs", steps, elapsed)
        return self.sim.validate_state()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="2-D boids flocking with a per-step quadtree")
    parser.add_argument("--params", type=Path, default=None, help=f"JSON parameter file (e.g. {PARAMS_FILE})")
    parser.add_argument("--particles", "-n", type=int, default=None, help="Override particle_count")
    parser.add_argument("--steps", "-s", type=int, default=200, help="Steps to run headless")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Override workers")
    parser.add_argument("--seed", type=int, default=None, help="Override seed")
    parser.add_argument("--backend", choices=["quadtree", "brute_force"], default=None, help="Neighbor backend")
    parser.add_argument("--log-every", type=int, default=50, help="Log progress every N steps (0 = off)")
    parser.add_argument("--export", type=Path, default=None, help="Write final snapshot CSV here")
    parser.add_argument("--summary", type=Path, default=None, help="Write a text summary here")
    parser.add_argument("--save-params", type=Path, default=None, help="Write effective parameters as JSON")
    parser.add_argument("--view", action="store_true", help="Open the pyglet viewer instead of running headless")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


def load_params(args: argparse.Namespace) -> FlockParams:
    params = FlockParams.load(args.params) if args.params is not None else FlockParams()
    if args.particles is not None:
        params.particle_count = args.particles
    if args.workers is not None:
        params.workers = args.workers
    if args.seed is not None:
        params.seed = args.seed
    if args.backend is not None:
        params.neighbor_backend = args.backend
    if args.log_level is not None:
        params.log_level = args.log_level
    return params.clamp()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    params = load_params(args)
    setup_logging(params.log_level)

    for warning in params.validate():
        logger.warning("[params] %s", warning)
    if args.save_params is not None:
        params.save(args.save_params)
        logger.info("[params] saved to %s", args.save_params)

    app = FlockSimApp(params)
    if args.view:
        app.run_view()
        return 0

    issues = app.run_headless(args.steps, log_every=args.log_every)

    if args.export is not None:
        stats = export_particles_csv(app.sim.snapshot(), args.export, frame=app.sim.steps_done)
        logger.info("[export] %d particles to %s", stats.particle_count, stats.file_path)
    if args.summary is not None:
        path = export_summary(app.sim.snapshot(), args.summary, tree=app.sim.last_tree)
        logger.info("[export] summary to %s", path)

    if issues:
        for issue in issues[:20]:
            logger.error("[state] %s", issue)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
