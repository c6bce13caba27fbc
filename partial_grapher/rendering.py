"""Rendering boundary: lazy Plotly acquisition and in-place surface drawing.

Purpose
-------
``RenderingRuntime`` loads ``plotly.graph_objects`` on first use and caches
it for the rest of the session. Acquisition is asynchronous and idempotent:
callers that arrive while a load is in flight await the same task instead
of starting another one.

``SurfaceRenderer`` keeps one Plotly figure per target id
(``plot-original``, ``plot-dx``, ``plot-dy``). Drawing to an existing target
updates its surface trace in place, so repeated plots never accumulate
traces.

Examples
--------
>>> import asyncio
>>> runtime = RenderingRuntime()
>>> go = asyncio.run(runtime.acquire())  # doctest: +SKIP
>>> renderer = SurfaceRenderer(go)  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

from .config import PlotterConfig
from .errors import RenderingUnavailable
from .surface_sampler import SurfaceGrid

__all__ = ["RenderingRuntime", "SurfaceRenderer", "DrawListener"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

PLOTLY_MODULE = "plotly.graph_objects"

Loader = Callable[[], Awaitable[ModuleType]]
DrawListener = Callable[[str, Any], None]


async def _import_in_thread(module_name: str = PLOTLY_MODULE) -> ModuleType:
    return await asyncio.to_thread(importlib.import_module, module_name)


class RenderingRuntime:
    """Memoized asynchronous acquisition of the plotting library.

    Parameters
    ----------
    loader : callable, optional
        Zero-argument coroutine function returning the graph-objects module.
        Defaults to importing ``plotly.graph_objects`` in a worker thread.
    """

    def __init__(self, loader: Optional[Loader] = None) -> None:
        self._loader: Loader = loader or _import_in_thread
        self._module: Optional[ModuleType] = None
        self._inflight: Optional[asyncio.Future] = None
        self.load_attempts = 0

    @property
    def is_ready(self) -> bool:
        return self._module is not None

    @property
    def module(self) -> ModuleType:
        """Return the acquired module or raise if :meth:`acquire` has not completed."""
        if self._module is None:
            raise RenderingUnavailable("Plotting runtime has not been acquired yet.")
        return self._module

    async def acquire(self) -> ModuleType:
        """Return the plotting module, loading it at most once per success.

        Raises
        ------
        RenderingUnavailable
            If loading fails. The failure is not cached; a later call retries.
        """
        if self._module is not None:
            return self._module
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(self._load())
            self._inflight = task
        return await asyncio.shield(task)

    async def _load(self) -> ModuleType:
        self.load_attempts += 1
        logger.debug("loading plotting runtime (attempt %d)", self.load_attempts)
        try:
            module = await self._loader()
        except RenderingUnavailable:
            raise
        except Exception as exc:
            raise RenderingUnavailable(f"Failed to load the plotting library: {exc}") from exc
        finally:
            self._inflight = None
        self._module = module
        logger.info("plotting runtime ready")
        return module


class SurfaceRenderer:
    """Draw :class:`SurfaceGrid` data into one Plotly figure per target id.

    Parameters
    ----------
    graph_objects : module
        ``plotly.graph_objects`` (normally from :class:`RenderingRuntime`).
    config : PlotterConfig, optional
        Scene layout defaults (camera, z range, height).
    figure_factory : callable, optional
        Builds a new figure; defaults to ``graph_objects.Figure``. Pass
        ``graph_objects.FigureWidget`` for live notebook widgets.
    """

    def __init__(
        self,
        graph_objects: ModuleType,
        config: Optional[PlotterConfig] = None,
        *,
        figure_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._go = graph_objects
        self._config = config or PlotterConfig()
        self._figure_factory = figure_factory or graph_objects.Figure
        self._figures: Dict[str, Any] = {}
        self._listeners: Dict[Hashable, DrawListener] = {}
        self._listener_counter = 0
        self.draw_counts: Dict[str, int] = {}

    @property
    def targets(self) -> tuple[str, ...]:
        return tuple(self._figures)

    def figure(self, target_id: str) -> Optional[Any]:
        """Return the figure drawn at ``target_id``, or ``None`` if it is still empty."""
        return self._figures.get(target_id)

    def add_listener(self, callback: DrawListener) -> Hashable:
        """Call ``callback(target_id, figure)`` after every draw."""
        self._listener_counter += 1
        key = f"draw_listener:{self._listener_counter}"
        self._listeners[key] = callback
        return key

    def remove_listener(self, key: Hashable) -> None:
        self._listeners.pop(key, None)

    def _scene_layout(self, title: str) -> Dict[str, Any]:
        cfg = self._config
        eye_x, eye_y, eye_z = cfg.camera_eye
        return {
            "title": {"text": title},
            "scene": {
                "camera": {"eye": {"x": eye_x, "y": eye_y, "z": eye_z}},
                "zaxis": {"range": list(cfg.z_range)},
            },
            "margin": {"l": 0, "r": 0, "t": 30, "b": 0},
            "paper_bgcolor": "rgba(0,0,0,0)",
            "plot_bgcolor": "rgba(0,0,0,0)",
            "showlegend": True,
            "height": cfg.height,
        }

    def draw(self, target_id: str, grid: SurfaceGrid, *, color_scheme: str, title: str) -> Any:
        """Create or update the surface at ``target_id``.

        Returns
        -------
        figure
            The figure now showing ``grid``.
        """
        trace = {
            "x": grid.xs,
            "y": grid.ys,
            "z": grid.z,
            "colorscale": color_scheme,
            "showscale": False,
            "name": title,
        }
        fig = self._figures.get(target_id)
        if fig is None:
            fig = self._figure_factory(
                data=[self._go.Surface(**trace)],
                layout=self._scene_layout(title),
            )
            self._figures[target_id] = fig
        else:
            fig.data[0].update(**trace)
            fig.update_layout(title_text=title)

        self.draw_counts[target_id] = self.draw_counts.get(target_id, 0) + 1
        logger.debug("drew %s (%dx%d)", target_id, len(grid.xs), len(grid.ys))

        for callback in list(self._listeners.values()):
            callback(target_id, fig)
        return fig
