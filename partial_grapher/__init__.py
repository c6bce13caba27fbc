"""Top-level public API for the ``partial_grapher`` package.

Plot a two-variable expression and its two partial derivatives as 3-D
surfaces:

>>> from partial_grapher import SurfacePlotterApp
>>> SurfacePlotterApp()  # doctest: +SKIP

The computation layer can be used without widgets:

>>> from partial_grapher import PlotPipeline
>>> surfaces = PlotPipeline().plot("sin(x)*y", "-3,3", "-3,3")  # doctest: +SKIP
>>> surfaces.dx.expression_text  # doctest: +SKIP
'y*cos(x)'
"""

from .config import PlotterConfig
from .errors import (
    DifferentiationFailed,
    DomainTooLarge,
    EvaluationError,
    GridGenerationFailed,
    InvalidExpression,
    InvalidInput,
    InvalidRangeFormat,
    InvalidRangeValue,
    RenderingUnavailable,
    SamplingTimeout,
    SurfacePlotError,
)
from .expression_engine import CompiledExpression, ExpressionEngine
from .pipeline import NamedSurface, PlotPipeline, SurfaceSet
from .range_parser import Interval, RangeParser, parse_range
from .rendering import RenderingRuntime, SurfaceRenderer
from .session import PlotState, SurfacePlotter
from .surface_kinds import SurfaceKind
from .surface_sampler import Domain, SurfaceGrid, SurfaceSampler
from .tab_controller import TabController


def __getattr__(name: str):
    # Widgets pull in ipywidgets/IPython; load them only when asked for.
    if name == "SurfacePlotterApp":
        from .app import SurfacePlotterApp

        return SurfacePlotterApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CompiledExpression",
    "DifferentiationFailed",
    "Domain",
    "DomainTooLarge",
    "EvaluationError",
    "ExpressionEngine",
    "GridGenerationFailed",
    "Interval",
    "InvalidExpression",
    "InvalidInput",
    "InvalidRangeFormat",
    "InvalidRangeValue",
    "NamedSurface",
    "PlotPipeline",
    "PlotState",
    "PlotterConfig",
    "RangeParser",
    "RenderingRuntime",
    "RenderingUnavailable",
    "SamplingTimeout",
    "SurfaceGrid",
    "SurfaceKind",
    "SurfacePlotError",
    "SurfacePlotter",
    "SurfacePlotterApp",
    "SurfaceRenderer",
    "SurfaceSampler",
    "TabController",
    "parse_range",
]
