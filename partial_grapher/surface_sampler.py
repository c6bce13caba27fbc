"""Sample an evaluator over a rectangular ``(x, y)`` domain.

Purpose
-------
Produce a :class:`SurfaceGrid` for one compiled expression. The grid is
always complete: a point where the evaluator fails becomes ``NaN`` and
sampling continues. Only structural problems (no usable evaluator, an
empty or oversized domain, a blown deadline) abort the pass.

Architecture notes
------------------
Coordinates are computed by index (``min + i * step``) rather than by
repeated addition, with a small tolerance on the point count and a clamp
to ``max``, so ``[0, 1]`` at ``step=0.5`` always yields ``[0, 0.5, 1]``.

``z`` is stored with one row per ``y`` value (shape ``(Ny, Nx)``), which is
the layout Plotly's surface trace expects.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from .config import DEFAULT_MAX_CELLS
from .errors import DomainTooLarge, GridGenerationFailed, SamplingTimeout
from .range_parser import Interval

__all__ = ["Domain", "SurfaceGrid", "SurfaceSampler", "axis_values"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

# Relative slack when counting steps; absorbs (max - min) / step drift.
_STEP_EPS = 1e-9

# Anything with ``evaluate(bindings)`` or a plain ``f(bindings)`` callable.
Evaluator = Any


@dataclass(frozen=True)
class Domain:
    """Sampling domain: two intervals and one shared step."""

    x: Interval
    y: Interval
    step: float

    def __post_init__(self) -> None:
        if not isinstance(self.step, (int, float)) or not math.isfinite(self.step) or self.step <= 0:
            raise ValueError(f"Domain step must be a finite number > 0, got {self.step!r}")

    @property
    def nx(self) -> int:
        return _point_count(self.x, self.step)

    @property
    def ny(self) -> int:
        return _point_count(self.y, self.step)

    @property
    def cell_count(self) -> int:
        return self.nx * self.ny


def _point_count(interval: Interval, step: float) -> int:
    span = (interval.max - interval.min) / step
    if not math.isfinite(span):
        raise DomainTooLarge(
            f"Range [{interval.min!r}, {interval.max!r}] at step {step!r} has too many samples."
        )
    return int(math.floor(span + _STEP_EPS * max(1.0, span))) + 1


def axis_values(interval: Interval, step: float) -> np.ndarray:
    """Return ``min, min + step, ...`` up to and including ``max`` when it lands on a step."""
    n = _point_count(interval, step)
    values = interval.min + step * np.arange(n, dtype=float)
    return np.minimum(values, interval.max)


def _read_only(values: np.ndarray) -> np.ndarray:
    out = np.array(values, dtype=float, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True)
class SurfaceGrid:
    """Immutable sampled height field.

    Attributes
    ----------
    xs : numpy.ndarray
        Ordered x coordinates, length ``Nx``.
    ys : numpy.ndarray
        Ordered y coordinates, length ``Ny``.
    z : numpy.ndarray
        Heights with shape ``(Ny, Nx)``; ``z[j, i]`` is ``f(xs[i], ys[j])``.
        Failed points hold ``NaN``.
    """

    xs: np.ndarray
    ys: np.ndarray
    z: np.ndarray

    def __post_init__(self) -> None:
        if self.z.shape != (len(self.ys), len(self.xs)):
            raise GridGenerationFailed(
                f"z has shape {self.z.shape}, expected {(len(self.ys), len(self.xs))}"
            )
        object.__setattr__(self, "xs", _read_only(self.xs))
        object.__setattr__(self, "ys", _read_only(self.ys))
        object.__setattr__(self, "z", _read_only(self.z))

    @property
    def shape(self) -> tuple[int, int]:
        return self.z.shape  # type: ignore[return-value]

    @property
    def failed_cells(self) -> int:
        return int(np.count_nonzero(np.isnan(self.z)))

    @property
    def finite_fraction(self) -> float:
        return 1.0 - self.failed_cells / self.z.size

    def value_at(self, x: float, y: float) -> float:
        """Return the sampled height at grid coordinates ``(x, y)``."""
        i = int(np.argmin(np.abs(self.xs - x)))
        j = int(np.argmin(np.abs(self.ys - y)))
        return float(self.z[j, i])


def _resolve_point_function(evaluator: Evaluator) -> Callable[[Mapping[str, float]], Any]:
    if evaluator is None:
        raise GridGenerationFailed("No evaluator supplied for sampling.")
    evaluate = getattr(evaluator, "evaluate", None)
    if callable(evaluate):
        return evaluate
    if callable(evaluator):
        return evaluator
    raise GridGenerationFailed(
        f"Evaluator of type {type(evaluator).__name__} is neither callable nor has evaluate()."
    )


class SurfaceSampler:
    """Evaluate a point function on every ``(x, y)`` of a :class:`Domain`.

    Parameters
    ----------
    max_cells : int
        Ceiling on ``Nx * Ny``; exceeding it raises :class:`DomainTooLarge`
        before any evaluation happens.
    deadline_s : float or None
        Optional wall-clock budget for one pass; exceeding it raises
        :class:`SamplingTimeout`.
    """

    def __init__(self, *, max_cells: int = DEFAULT_MAX_CELLS, deadline_s: Optional[float] = None) -> None:
        if int(max_cells) < 1:
            raise ValueError("max_cells must be >= 1")
        self.max_cells = int(max_cells)
        self.deadline_s = deadline_s

    def coordinates(self, domain: Domain) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(xs, ys)`` for ``domain`` after checking the cell ceiling."""
        if domain is None:
            raise GridGenerationFailed("No domain supplied for sampling.")
        cells = domain.cell_count
        if cells > self.max_cells:
            raise DomainTooLarge(
                f"Domain needs {domain.nx} x {domain.ny} = {cells} samples; "
                f"the limit is {self.max_cells}. Use a larger step or narrower ranges."
            )
        xs = axis_values(domain.x, domain.step)
        ys = axis_values(domain.y, domain.step)
        if xs.size == 0 or ys.size == 0:
            raise GridGenerationFailed("Domain contains no sample points.")
        return xs, ys

    def sample(
        self,
        evaluator: Evaluator,
        domain: Domain,
        *,
        coordinates: Optional[tuple[np.ndarray, np.ndarray]] = None,
    ) -> SurfaceGrid:
        """Sample ``evaluator`` over ``domain``.

        Parameters
        ----------
        evaluator : object
            Either an object with ``evaluate(bindings)`` (such as
            :class:`~partial_grapher.expression_engine.CompiledExpression`) or
            a callable taking the bindings mapping.
        domain : Domain
            Where to sample.
        coordinates : tuple of numpy.ndarray, optional
            Precomputed ``(xs, ys)`` from :meth:`coordinates`, so several
            surfaces can share the identical grid.

        Returns
        -------
        SurfaceGrid
            Fully populated grid; failed points are ``NaN``.
        """
        point = _resolve_point_function(evaluator)
        xs, ys = coordinates if coordinates is not None else self.coordinates(domain)

        started = time.perf_counter()
        deadline = started + self.deadline_s if self.deadline_s is not None else None
        z = np.empty((len(ys), len(xs)), dtype=float)
        failures = 0

        for j, y in enumerate(ys):
            if deadline is not None and time.perf_counter() > deadline:
                raise SamplingTimeout(
                    f"Sampling exceeded {self.deadline_s:.3g}s after {j} of {len(ys)} rows."
                )
            y_value = float(y)
            for i, x in enumerate(xs):
                try:
                    value = float(point({"x": float(x), "y": y_value}))
                except Exception:
                    value = math.nan
                if not math.isfinite(value):
                    value = math.nan
                    failures += 1
                z[j, i] = value

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "sampled %dx%d grid in %.1f ms (%d failed point(s))",
                len(xs),
                len(ys),
                1000.0 * (time.perf_counter() - started),
                failures,
            )
        return SurfaceGrid(xs=xs, ys=ys, z=z)
