from __future__ import annotations

import logging
from typing import Callable

from flock_sim2d.core.store import ParticleSnapshot
from . import drawing as drawing_mod


logger = logging.getLogger(__name__)


def run_pyglet(
    *,
    width: int,
    height: int,
    background_rgb: tuple[int, int, int],
    limit: float,
    boid_size: float,
    get_snapshot: Callable[[], ParticleSnapshot],
    step_simulation: Callable[[float], None],
    get_caption: Callable[[], str] | None = None,
    on_key: Callable[[int, int], None] | None = None,
    target_fps: int = 60,
    title: str = "flock 2d",
) -> None:
    try:
        import pyglet  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("Missing dependency: install pyglet (pip install pyglet).") from e

    from pyglet import gl  # type: ignore

    window = pyglet.window.Window(width=width, height=height, caption=title, resizable=True, vsync=True)

    bg_r, bg_g, bg_b = background_rgb
    gl.glClearColor(bg_r / 255.0, bg_g / 255.0, bg_b / 255.0, 1.0)
    gl.glEnable(gl.GL_BLEND)
    gl.glBlendFunc(gl.GL_SRC_ALPHA, gl.GL_ONE_MINUS_SRC_ALPHA)

    fps_display = pyglet.window.FPSDisplay(window)
    program = pyglet.graphics.get_default_shader()

    vertex_list = None
    vertex_count = 0

    def upload() -> None:
        nonlocal vertex_list, vertex_count
        snap = get_snapshot()
        tris = drawing_mod.boid_triangles(snap.positions, snap.velocities, boid_size)
        tris = drawing_mod.world_to_screen(tris, limit=limit, width=window.width, height=window.height)
        verts = drawing_mod.flat_vertices(tris)
        count = len(verts) // 3

        if vertex_list is not None and count != vertex_count:
            vertex_list.delete()
            vertex_list = None
        if count == 0:
            vertex_count = 0
            return
        if vertex_list is None:
            vertex_list = program.vertex_list(
                count,
                gl.GL_TRIANGLES,
                position=("f", verts),
                colors=("Bn", list(drawing_mod.BOID_COLOR) * count),
            )
            vertex_count = count
        else:
            vertex_list.position[:] = verts

    @window.event
    def on_draw() -> None:
        window.clear()
        upload()
        if vertex_list is not None:
            program.use()
            vertex_list.draw(gl.GL_TRIANGLES)
            program.stop()
        fps_display.draw()

    @window.event
    def on_key_press(symbol: int, modifiers: int) -> None:
        from pyglet.window import key  # type: ignore

        if symbol == key.ESCAPE:
            window.close()
            pyglet.app.exit()
            return
        if on_key is not None:
            on_key(symbol, modifiers)

    def tick(dt: float) -> None:
        step_simulation(dt)
        window.set_caption(get_caption() if get_caption is not None else title)

    logger.info("[viewer] opening %dx%d window", width, height)
    pyglet.clock.schedule_interval(tick, 1.0 / max(10, target_fps))
    pyglet.app.run()
