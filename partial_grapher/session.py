"""Per-session coordinator for the three-surface plot.

Purpose
-------
``SurfacePlotter`` ties the pieces together for one user session:

- ``PlotState`` holds the raw input texts, the active tab and the last
  error message.
- A plot action runs :class:`~partial_grapher.pipeline.PlotPipeline` once
  and stores the resulting :class:`~partial_grapher.pipeline.SurfaceSet`.
- Only the active tab's target is drawn right away; the other two are
  marked stale and drawn from the stored surfaces the first time they are
  shown.

Recompute rule
--------------
Surfaces are recomputed only by :meth:`SurfacePlotter.plot` (an explicit
action, or the debounced auto-plot when ``auto_plot_delay_ms`` is set).
Editing inputs marks the session dirty but computes nothing. Switching tabs
never recomputes.

Failure policy
--------------
A failed cycle records ``PlotState.last_error`` and leaves the stored
surfaces and every drawn figure exactly as they were.

Examples
--------
>>> plotter = SurfacePlotter()
>>> plotter.set_expression("x^2 + y^2")
>>> plotter.set_x_range("-2,2")
>>> plotter.set_y_range("-2,2")
>>> surfaces = plotter.plot_blocking()  # doctest: +SKIP
>>> plotter.select_tab("dx")  # doctest: +SKIP
True
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, Hashable, Optional, Union

from .config import PlotterConfig
from .debouncing import Debouncer
from .errors import SurfacePlotError
from .pipeline import PlotPipeline, SurfaceSet
from .rendering import DrawListener, RenderingRuntime, SurfaceRenderer
from .surface_kinds import SurfaceKind
from .tab_controller import TabController

__all__ = ["PlotState", "SurfacePlotter"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

CycleListener = Callable[[Optional[SurfaceSet]], None]


@dataclass
class PlotState:
    """Mutable input and status state of one session."""

    expression_text: str = ""
    x_range_text: str = ""
    y_range_text: str = ""
    active_tab: SurfaceKind = SurfaceKind.ORIGINAL
    last_error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Return True when all three input texts are non-blank."""
        return all(
            text.strip()
            for text in (self.expression_text, self.x_range_text, self.y_range_text)
        )


class SurfacePlotter:
    """Coordinate inputs, plot cycles, tab switches and drawing for one session.

    Parameters
    ----------
    config : PlotterConfig, optional
        Session configuration. Defaults to the pipeline's config, or
        ``PlotterConfig()``.
    pipeline : PlotPipeline, optional
        Computation collaborator.
    runtime : RenderingRuntime, optional
        Plotting-library acquisition, shared across plot cycles.
    renderer_factory : callable, optional
        ``factory(graph_objects_module) -> SurfaceRenderer``; called once,
        after the runtime is first acquired.
    """

    def __init__(
        self,
        *,
        config: Optional[PlotterConfig] = None,
        pipeline: Optional[PlotPipeline] = None,
        runtime: Optional[RenderingRuntime] = None,
        renderer_factory: Optional[Callable[[ModuleType], SurfaceRenderer]] = None,
    ) -> None:
        if config is None:
            config = pipeline.config if pipeline is not None else PlotterConfig()
        self.config = config
        self.pipeline = pipeline or PlotPipeline(config=config)
        self.runtime = runtime or RenderingRuntime()
        self._renderer_factory = renderer_factory or (lambda go: SurfaceRenderer(go, self.config))
        self._renderer: Optional[SurfaceRenderer] = None
        self._draw_listeners: Dict[Hashable, DrawListener] = {}
        self._cycle_listeners: Dict[Hashable, CycleListener] = {}

        self.state = PlotState()
        self.tabs = TabController(self.state.active_tab)
        self.tabs.observe(self._on_tab_changed)

        self._surfaces: Optional[SurfaceSet] = None
        self._dirty = False
        self._generation = 0
        self._cycle_lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()

        self._debouncer: Optional[Debouncer] = None
        if config.auto_plot_delay_ms is not None:
            self._debouncer = Debouncer(self.request_plot, delay_ms=config.auto_plot_delay_ms)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_expression(self, text: str) -> None:
        self._set_input("expression_text", text)

    def set_x_range(self, text: str) -> None:
        self._set_input("x_range_text", text)

    def set_y_range(self, text: str) -> None:
        self._set_input("y_range_text", text)

    def _set_input(self, field: str, text: str) -> None:
        value = "" if text is None else str(text)
        if getattr(self.state, field) == value:
            return
        setattr(self.state, field, value)
        self._dirty = True
        if self._debouncer is not None and self.state.is_complete:
            self._debouncer()

    @property
    def is_dirty(self) -> bool:
        """Return True when inputs changed since the last successful plot."""
        return self._dirty

    # ------------------------------------------------------------------
    # Plot cycles
    # ------------------------------------------------------------------

    async def plot(self) -> Optional[SurfaceSet]:
        """Run one plot cycle with the current inputs.

        Returns
        -------
        SurfaceSet or None
            The new surfaces, or ``None`` when the cycle failed (see
            ``state.last_error``) or was superseded by a newer request.

        Notes
        -----
        Cycle listeners are called once per finished cycle, successful or
        not. Superseded requests do not notify.
        """
        self._generation += 1
        generation = self._generation
        try:
            graph_objects = await self.runtime.acquire()
        except SurfacePlotError as exc:
            self._record_failure(exc)
            self._notify_cycle(None)
            return None

        if generation != self._generation:
            logger.debug("plot request %d superseded by %d", generation, self._generation)
            return None
        result = self._run_cycle(graph_objects)
        self._notify_cycle(result)
        return result

    def plot_blocking(self) -> Optional[SurfaceSet]:
        """Run :meth:`plot` to completion from synchronous code (no running loop)."""
        return asyncio.run(self.plot())

    def request_plot(self) -> Any:
        """Start a plot from an event handler, inside or outside an event loop.

        Inside a running loop the cycle is scheduled as a task and the task is
        returned; otherwise it runs to completion and its result is returned.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self.plot_blocking()
        task = loop.create_task(self.plot())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _run_cycle(self, graph_objects: ModuleType) -> Optional[SurfaceSet]:
        with self._cycle_lock:
            renderer = self._ensure_renderer(graph_objects)
            state = self.state
            try:
                surfaces = self.pipeline.plot(
                    state.expression_text,
                    state.x_range_text,
                    state.y_range_text,
                    self.tabs.active,
                )
            except SurfacePlotError as exc:
                self._record_failure(exc)
                return None

            self._surfaces = surfaces
            self._dirty = False
            state.last_error = None

            active = self.tabs.active
            if self.config.render_all_eagerly:
                for kind in SurfaceKind:
                    self._draw(renderer, kind)
                self.tabs.mark_stale(except_kinds=tuple(SurfaceKind))
            else:
                self._draw(renderer, active)
                self.tabs.mark_stale(except_kinds=(active,))
            return surfaces

    def _record_failure(self, exc: SurfacePlotError) -> None:
        self.state.last_error = str(exc)
        logger.warning("plot failed (%s): %s", type(exc).__name__, exc)

    def _notify_cycle(self, result: Optional[SurfaceSet]) -> None:
        for callback in list(self._cycle_listeners.values()):
            callback(result)

    def add_cycle_listener(self, callback: CycleListener) -> Hashable:
        """Call ``callback(surfaces_or_none)`` after every finished plot cycle.

        Covers button-driven and debounced plots alike; read
        ``state.last_error`` inside the callback to tell failures apart.
        """
        key = f"cycle_listener:{len(self._cycle_listeners) + 1}"
        self._cycle_listeners[key] = callback
        return key

    def remove_cycle_listener(self, key: Hashable) -> None:
        self._cycle_listeners.pop(key, None)

    # ------------------------------------------------------------------
    # Tabs and drawing
    # ------------------------------------------------------------------

    def select_tab(self, kind: Union[SurfaceKind, str]) -> bool:
        """Switch the visible surface. Never recomputes."""
        return self.tabs.select(kind)

    def _on_tab_changed(self, previous: SurfaceKind, current: SurfaceKind) -> None:
        self.state.active_tab = current
        if self._surfaces is None or self._renderer is None:
            return
        if self.tabs.is_stale(current):
            self._draw(self._renderer, current)

    def _draw(self, renderer: SurfaceRenderer, kind: SurfaceKind) -> None:
        if self._surfaces is None:
            raise RuntimeError(f"Cannot draw {kind.value!r} before a successful plot.")
        surface = self._surfaces[kind]
        renderer.draw(
            kind.target_id,
            surface.grid,
            color_scheme=self.config.color_scheme_for(kind),
            title=self.config.title_for(kind),
        )
        self.tabs.clear_stale(kind)

    def _ensure_renderer(self, graph_objects: ModuleType) -> SurfaceRenderer:
        if self._renderer is None:
            self._renderer = self._renderer_factory(graph_objects)
            for callback in self._draw_listeners.values():
                self._renderer.add_listener(callback)
        return self._renderer

    def add_draw_listener(self, callback: DrawListener) -> Hashable:
        """Call ``callback(target_id, figure)`` whenever a target is (re)drawn."""
        key = f"draw_listener:{len(self._draw_listeners) + 1}"
        self._draw_listeners[key] = callback
        if self._renderer is not None:
            self._renderer.add_listener(callback)
        return key

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def surfaces(self) -> Optional[SurfaceSet]:
        """Return the surfaces of the last successful plot, if any."""
        return self._surfaces

    @property
    def renderer(self) -> Optional[SurfaceRenderer]:
        return self._renderer

    def figure(self, kind: Union[SurfaceKind, str]) -> Optional[Any]:
        """Return the drawn figure for ``kind``; ``None`` while the target is empty."""
        if self._renderer is None:
            return None
        return self._renderer.figure(SurfaceKind.coerce(kind).target_id)

    def summary(self) -> str:
        """Return the derivative summary of the last successful plot."""
        if self._surfaces is None:
            return ""
        return (
            f"∂f/∂x = {self._surfaces.dx.expression_text}\n"
            f"∂f/∂y = {self._surfaces.dy.expression_text}"
        )

    def close(self) -> None:
        """End the session: drop pending auto-plots and scheduled tasks."""
        if self._debouncer is not None:
            self._debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
