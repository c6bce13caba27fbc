"""Exception taxonomy for the surface plotting pipeline.

Two failure classes exist and must not be confused:

- **Whole-cycle failures** derive from :class:`SurfacePlotError`. Any of them
  aborts a plot cycle; previously rendered surfaces stay as they were.
- **Point failures** (:class:`EvaluationError`) are raised by a single
  evaluator call. The sampler turns them into ``NaN`` cells and keeps going;
  they never escape a sampling pass.
"""

from __future__ import annotations

__all__ = [
    "SurfacePlotError",
    "InvalidInput",
    "InvalidRangeFormat",
    "InvalidRangeValue",
    "InvalidExpression",
    "DifferentiationFailed",
    "GridGenerationFailed",
    "SamplingTimeout",
    "DomainTooLarge",
    "RenderingUnavailable",
    "EvaluationError",
]


class SurfacePlotError(Exception):
    """Base class for failures that abort a whole plot cycle."""


class InvalidInput(SurfacePlotError, ValueError):
    """Raised when user-supplied range text cannot be used."""


class InvalidRangeFormat(InvalidInput):
    """Raised when a range text does not split into exactly two tokens."""


class InvalidRangeValue(InvalidInput):
    """Raised when a range token is not a finite number or ``min > max``."""


class InvalidExpression(SurfacePlotError, ValueError):
    """Raised when expression text (original or derivative) fails to parse or compile."""


class DifferentiationFailed(SurfacePlotError):
    """Raised when a symbolic partial derivative cannot be produced."""


class GridGenerationFailed(SurfacePlotError):
    """Raised on structural sampling failures (bad evaluator, empty domain)."""


class SamplingTimeout(GridGenerationFailed):
    """Raised when a sampling pass runs past its configured deadline."""


class DomainTooLarge(SurfacePlotError):
    """Raised before sampling when the grid would exceed the cell ceiling."""


class RenderingUnavailable(SurfacePlotError):
    """Raised when the plotting runtime cannot be acquired."""


class EvaluationError(ArithmeticError):
    """Raised by a compiled expression when one point cannot be evaluated."""
