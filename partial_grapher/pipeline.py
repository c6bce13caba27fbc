"""Expression + ranges -> three sampled surfaces.

Purpose
-------
``PlotPipeline`` runs one plot cycle: it validates both ranges, compiles
the expression, derives and compiles both partial derivatives, and samples
all three on one shared grid. It does not draw anything; the session hands
the resulting :class:`SurfaceSet` to the renderer.

Every step is a failure boundary. A failing step raises and nothing after
it runs, so callers either get all three surfaces or none.

Examples
--------
>>> pipeline = PlotPipeline()
>>> surfaces = pipeline.plot("x^2 + y^2", "-1,1", "-1,1")  # doctest: +SKIP
>>> surfaces.dx.expression_text  # doctest: +SKIP
'2*x'
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Optional, Union

from .config import PlotterConfig
from .errors import InvalidExpression, InvalidInput
from .expression_engine import ExpressionEngine
from .range_parser import RangeParser
from .surface_kinds import DERIVATIVE_KINDS, SurfaceKind
from .surface_sampler import Domain, SurfaceGrid, SurfaceSampler

__all__ = ["NamedSurface", "SurfaceSet", "PlotPipeline"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class NamedSurface:
    """One sampled surface and the expression text it came from."""

    kind: SurfaceKind
    grid: SurfaceGrid
    expression_text: str

    @property
    def target_id(self) -> str:
        return self.kind.target_id

    @property
    def derived_expression_text(self) -> Optional[str]:
        """Derivative text for ``dx``/``dy``; ``None`` for the original."""
        return None if self.kind is SurfaceKind.ORIGINAL else self.expression_text


class SurfaceSet(Mapping):
    """Read-only mapping ``SurfaceKind -> NamedSurface`` holding all three kinds."""

    __slots__ = ("_surfaces", "domain")

    def __init__(self, surfaces: Mapping[SurfaceKind, NamedSurface], domain: Domain) -> None:
        missing = [kind.value for kind in SurfaceKind if kind not in surfaces]
        if missing:
            raise ValueError(f"SurfaceSet is missing: {missing}")
        self._surfaces = {kind: surfaces[kind] for kind in SurfaceKind}
        self.domain = domain

    def __getitem__(self, key: Union[SurfaceKind, str]) -> NamedSurface:
        return self._surfaces[SurfaceKind.coerce(key)]

    def __iter__(self) -> Iterator[SurfaceKind]:
        return iter(self._surfaces)

    def __len__(self) -> int:
        return len(self._surfaces)

    @property
    def original(self) -> NamedSurface:
        return self._surfaces[SurfaceKind.ORIGINAL]

    @property
    def dx(self) -> NamedSurface:
        return self._surfaces[SurfaceKind.DX]

    @property
    def dy(self) -> NamedSurface:
        return self._surfaces[SurfaceKind.DY]

    def __repr__(self) -> str:
        shape = self.original.grid.shape
        return f"SurfaceSet(f={self.original.expression_text!r}, grid={shape[1]}x{shape[0]})"


class PlotPipeline:
    """Orchestrate range parsing, symbolic work and sampling for one plot.

    Parameters
    ----------
    engine : ExpressionEngine, optional
        Symbolic collaborator; any object with ``compile`` and
        ``differentiate`` works.
    sampler : SurfaceSampler, optional
        Defaults to one built from ``config``.
    range_parser : RangeParser, optional
    config : PlotterConfig, optional
        Supplies the sampling step (and sampler limits when ``sampler`` is
        not given).
    """

    def __init__(
        self,
        engine: Optional[ExpressionEngine] = None,
        sampler: Optional[SurfaceSampler] = None,
        range_parser: Optional[RangeParser] = None,
        config: Optional[PlotterConfig] = None,
    ) -> None:
        self.config = config or PlotterConfig()
        self.engine = engine or ExpressionEngine()
        self.sampler = sampler or SurfaceSampler(
            max_cells=self.config.max_cells, deadline_s=self.config.deadline_s
        )
        self.range_parser = range_parser or RangeParser()

    def domain_for(self, x_range_text: str, y_range_text: str) -> Domain:
        """Parse both range texts into a :class:`Domain` at the configured step."""
        try:
            x_interval = self.range_parser.parse(x_range_text)
        except InvalidInput as exc:
            raise type(exc)(f"X range: {exc}") from exc
        try:
            y_interval = self.range_parser.parse(y_range_text)
        except InvalidInput as exc:
            raise type(exc)(f"Y range: {exc}") from exc
        return Domain(x=x_interval, y=y_interval, step=self.config.step)

    def plot(
        self,
        expression_text: str,
        x_range_text: str,
        y_range_text: str,
        active_tab: Union[SurfaceKind, str] = SurfaceKind.ORIGINAL,
    ) -> SurfaceSet:
        """Compute the original surface and both partial-derivative surfaces.

        Parameters
        ----------
        expression_text : str
            Formula in ``x`` and ``y``.
        x_range_text, y_range_text : str
            ``"min,max"`` texts.
        active_tab : SurfaceKind or str
            Tab visible when the plot was requested. All three surfaces are
            computed regardless; the active one is sampled first.

        Returns
        -------
        SurfaceSet

        Raises
        ------
        InvalidInput
            Either range is malformed (``InvalidRangeFormat`` /
            ``InvalidRangeValue``).
        InvalidExpression
            The expression or a derivative text does not compile.
        DifferentiationFailed
            A partial derivative cannot be formed.
        DomainTooLarge, GridGenerationFailed
            Sampling cannot start or finish.
        """
        active = SurfaceKind.coerce(active_tab)
        started = time.perf_counter()

        domain = self.domain_for(x_range_text, y_range_text)

        compiled = {SurfaceKind.ORIGINAL: self.engine.compile(expression_text)}
        texts = {SurfaceKind.ORIGINAL: compiled[SurfaceKind.ORIGINAL].text}

        for kind in DERIVATIVE_KINDS:
            texts[kind] = self.engine.differentiate(expression_text, kind.variable)

        for kind in DERIVATIVE_KINDS:
            try:
                compiled[kind] = self.engine.compile(texts[kind])
            except InvalidExpression as exc:
                raise InvalidExpression(
                    f"Derivative {kind.tab_label} = {texts[kind]!r} could not be compiled: {exc}"
                ) from exc

        coordinates = self.sampler.coordinates(domain)
        order = [active] + [kind for kind in SurfaceKind if kind is not active]
        surfaces: dict[SurfaceKind, NamedSurface] = {}
        for kind in order:
            grid = self.sampler.sample(compiled[kind], domain, coordinates=coordinates)
            surfaces[kind] = NamedSurface(kind=kind, grid=grid, expression_text=texts[kind])

        result = SurfaceSet(surfaces, domain)
        logger.info(
            "plot(f=%r) -> %s in %.1f ms; df/dx=%s df/dy=%s",
            texts[SurfaceKind.ORIGINAL],
            f"{domain.nx}x{domain.ny}",
            1000.0 * (time.perf_counter() - started),
            texts[SurfaceKind.DX],
            texts[SurfaceKind.DY],
        )
        return result
