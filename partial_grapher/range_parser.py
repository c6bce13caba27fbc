"""Turn ``"min,max"`` text into a validated :class:`Interval`."""

from __future__ import annotations

import math
from dataclasses import dataclass

import sympy as sp

from .errors import InvalidRangeFormat, InvalidRangeValue

__all__ = ["Interval", "RangeParser", "parse_range", "parse_bound"]


@dataclass(frozen=True)
class Interval:
    """Closed interval ``[min, max]`` with finite bounds and ``min <= max``."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise InvalidRangeValue(f"Interval bounds must be finite, got [{self.min}, {self.max}]")
        if self.min > self.max:
            raise InvalidRangeValue(f"Range minimum {self.min} is greater than maximum {self.max}")

    @property
    def width(self) -> float:
        return self.max - self.min

    def __iter__(self):
        yield self.min
        yield self.max


def parse_bound(token: str) -> float:
    """Convert one trimmed range token to a finite real float.

    Plain float literals are tried first. Anything else is read as a constant
    SymPy expression (``pi``, ``-2*pi``, ``sqrt(2)``) and evaluated.

    Raises
    ------
    InvalidRangeValue
        If the token is empty, symbolic, non-real, NaN or infinite.
    """
    s = token.strip()
    if s == "":
        raise InvalidRangeValue("Range bound is empty.")

    try:
        value = float(s)
    except ValueError:
        value = _evaluate_constant(s)

    if not math.isfinite(value):
        raise InvalidRangeValue(f"Range bound {token!r} is not a finite number.")
    return value


def _evaluate_constant(s: str) -> float:
    try:
        expr = sp.sympify(s)
    except Exception as exc:
        raise InvalidRangeValue(f"Range bound {s!r} is not a number.") from exc

    if not isinstance(expr, sp.Expr) or expr.free_symbols:
        raise InvalidRangeValue(f"Range bound {s!r} is not a number.")

    try:
        val = complex(expr.evalf())
    except (TypeError, ValueError) as exc:
        raise InvalidRangeValue(f"Range bound {s!r} is not a number.") from exc
    if val.imag != 0:
        raise InvalidRangeValue(f"Range bound {s!r} is not real.")
    return val.real


def parse_range(text: str) -> Interval:
    """Parse ``"min,max"`` into an :class:`Interval`.

    Examples
    --------
    >>> parse_range(" -1 , 2.5 ")
    Interval(min=-1.0, max=2.5)

    Raises
    ------
    InvalidRangeFormat
        If the text does not split on ``,`` into exactly two tokens.
    InvalidRangeValue
        If a token is not a finite number or ``min > max``.
    """
    if not isinstance(text, str):
        raise InvalidRangeFormat(f"Range must be text, got {type(text).__name__}")
    tokens = text.split(",")
    if len(tokens) != 2:
        raise InvalidRangeFormat(
            f"Range {text!r} must have the form 'min,max' (found {len(tokens)} part(s))."
        )
    low, high = (parse_bound(token) for token in tokens)
    return Interval(low, high)


class RangeParser:
    """Object form of :func:`parse_range`, for injection into the pipeline."""

    def parse(self, text: str) -> Interval:
        return parse_range(text)
