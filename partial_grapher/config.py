"""Session-level plotting configuration.

``PlotterConfig`` gathers every tunable of the pipeline in one frozen value so
that a session, its sampler and its renderer agree on the same numbers. It is
validated on construction; use :meth:`PlotterConfig.with_overrides` to derive
variants.

Examples
--------
>>> from partial_grapher.config import PlotterConfig
>>> cfg = PlotterConfig(step=0.2)
>>> cfg.step
0.2
>>> cfg.with_overrides(render_all_eagerly=True).render_all_eagerly
True
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .surface_kinds import SurfaceKind

DEFAULT_STEP = 0.5
DEFAULT_MAX_CELLS = 250_000


def _default_color_schemes() -> dict[SurfaceKind, str]:
    return {
        SurfaceKind.ORIGINAL: "Viridis",
        SurfaceKind.DX: "Bluered",
        SurfaceKind.DY: "Electric",
    }


def _default_titles() -> dict[SurfaceKind, str]:
    return {
        SurfaceKind.ORIGINAL: "Original function",
        SurfaceKind.DX: "Partial derivative with respect to x",
        SurfaceKind.DY: "Partial derivative with respect to y",
    }


@dataclass(frozen=True)
class PlotterConfig:
    """Tunables for sampling, rendering and recomputation.

    Parameters
    ----------
    step : float
        Sampling resolution shared by both axes. Must be finite and ``> 0``.
    max_cells : int
        Ceiling on ``Nx * Ny`` for one grid; larger domains fail fast with
        :class:`~partial_grapher.errors.DomainTooLarge`.
    deadline_s : float or None
        Optional wall-clock budget for one sampling pass.
    render_all_eagerly : bool
        Draw all three targets after a plot instead of only the active one.
    auto_plot_delay_ms : int or None
        When set, input edits schedule a debounced plot after this delay.
    color_schemes, titles : dict
        Per-surface Plotly colour scale name and figure title.
    z_range : tuple[float, float]
        Fixed z-axis range of every scene.
    camera_eye : tuple[float, float, float]
        Initial scene camera position.
    height : int
        Figure height in pixels.
    """

    step: float = DEFAULT_STEP
    max_cells: int = DEFAULT_MAX_CELLS
    deadline_s: Optional[float] = None
    render_all_eagerly: bool = False
    auto_plot_delay_ms: Optional[int] = None
    color_schemes: dict[SurfaceKind, str] = field(default_factory=_default_color_schemes)
    titles: dict[SurfaceKind, str] = field(default_factory=_default_titles)
    z_range: tuple[float, float] = (-100.0, 100.0)
    camera_eye: tuple[float, float, float] = (1.5, 1.5, 1.5)
    height: int = 500

    def __post_init__(self) -> None:
        if not math.isfinite(self.step) or self.step <= 0:
            raise ValueError(f"step must be a finite number > 0, got {self.step!r}")
        if int(self.max_cells) < 1:
            raise ValueError(f"max_cells must be >= 1, got {self.max_cells!r}")
        if self.deadline_s is not None and not self.deadline_s > 0:
            raise ValueError(f"deadline_s must be > 0 or None, got {self.deadline_s!r}")
        if self.auto_plot_delay_ms is not None and self.auto_plot_delay_ms <= 0:
            raise ValueError("auto_plot_delay_ms must be > 0 or None")
        missing = [kind.value for kind in SurfaceKind if kind not in self.color_schemes]
        missing += [kind.value for kind in SurfaceKind if kind not in self.titles]
        if missing:
            raise ValueError(f"Missing per-surface settings for: {sorted(set(missing))}")
        lo, hi = self.z_range
        if not lo < hi:
            raise ValueError(f"z_range must satisfy low < high, got {self.z_range!r}")

    def with_overrides(self, **changes: Any) -> "PlotterConfig":
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)

    def color_scheme_for(self, kind: SurfaceKind) -> str:
        return self.color_schemes[kind]

    def title_for(self, kind: SurfaceKind) -> str:
        return self.titles[kind]
