"""Symbolic side of the pipeline: parse, differentiate, compile.

The engine is a thin policy layer over SymPy. It owns three decisions:

- the grammar accepted from users (``^`` as power, implicit multiplication,
  only ``x`` and ``y`` as free variables);
- what counts as a failed derivative (SymPy raising, or leaving an
  unevaluated ``Derivative`` behind);
- how a single numeric evaluation fails (:class:`EvaluationError` on any
  floating-point fault or non-finite/complex result).

Examples
--------
>>> engine = ExpressionEngine()
>>> engine.differentiate("x^2*y", "x")
'2*x*y'
>>> engine.compile("x^2 + y^2").evaluate({"x": 3.0, "y": 4.0})
25.0
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
import sympy as sp
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

from .errors import DifferentiationFailed, EvaluationError, InvalidExpression
from .numpify import NumpifiedFunction, numpify_cached

__all__ = ["X", "Y", "VARIABLES", "CompiledExpression", "ExpressionEngine"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

X, Y = sp.symbols("x y", real=True)
VARIABLES: dict[str, sp.Symbol] = {"x": X, "y": Y}

_TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
)

# Names users type that SymPy spells differently or that must not be
# shadowed by single-letter symbols.
_LOCAL_NAMES: dict[str, Any] = {
    **VARIABLES,
    "ln": sp.log,
    "abs": sp.Abs,
    "e": sp.E,
    "pi": sp.pi,
}


@dataclass(frozen=True)
class CompiledExpression:
    """Numeric evaluator for one expression over ``x`` and ``y``.

    Parameters
    ----------
    text : str
        Source text the expression was compiled from.
    symbolic : sympy.Expr
        Parsed expression.
    numeric : NumpifiedFunction
        Generated callable taking ``(x, y)``.
    """

    text: str
    symbolic: sp.Expr
    numeric: NumpifiedFunction

    def evaluate(self, bindings: Mapping[str, Any]) -> float:
        """Evaluate at one point.

        Parameters
        ----------
        bindings : Mapping[str, float]
            Must provide ``"x"`` and ``"y"``.

        Returns
        -------
        float
            A finite real value.

        Raises
        ------
        EvaluationError
            On a missing binding, any floating-point fault (division by zero,
            invalid domain, overflow), or a non-finite or complex result.
        """
        try:
            x_value = np.float64(bindings["x"])
            y_value = np.float64(bindings["y"])
        except KeyError as exc:
            raise EvaluationError(f"Missing binding for variable {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise EvaluationError(f"Bindings must be real numbers: {exc}") from exc

        try:
            with np.errstate(divide="raise", invalid="raise", over="raise", under="ignore"):
                raw = self.numeric(x_value, y_value)
                value = complex(raw)
        except Exception as exc:
            raise EvaluationError(
                f"{self.text!r} failed at x={float(x_value)!r}, y={float(y_value)!r}: {exc}"
            ) from exc

        if value.imag != 0:
            raise EvaluationError(f"{self.text!r} is not real at x={float(x_value)!r}, y={float(y_value)!r}")
        result = value.real
        if not math.isfinite(result):
            raise EvaluationError(f"{self.text!r} is not finite at x={float(x_value)!r}, y={float(y_value)!r}")
        return result

    def __call__(self, bindings: Mapping[str, Any]) -> float:
        return self.evaluate(bindings)


class ExpressionEngine:
    """Parse, differentiate and compile user expressions in ``x`` and ``y``."""

    def parse(self, text: str) -> sp.Expr:
        """Parse ``text`` into a SymPy expression.

        Raises
        ------
        InvalidExpression
            For empty or malformed text, non-scalar results, unknown function
            names, or free variables other than ``x`` and ``y``.
        """
        if not isinstance(text, str):
            raise InvalidExpression(f"Expression must be text, got {type(text).__name__}")
        source = text.strip()
        if not source:
            raise InvalidExpression("Expression is empty.")

        try:
            parsed = parse_expr(
                source,
                local_dict=dict(_LOCAL_NAMES),
                transformations=_TRANSFORMATIONS,
                evaluate=True,
            )
        except Exception as exc:
            raise InvalidExpression(f"Could not parse expression {source!r}: {exc}") from exc

        if not isinstance(parsed, sp.Expr):
            raise InvalidExpression(
                f"Expression {source!r} does not describe a numeric value "
                f"(got {type(parsed).__name__})."
            )

        unknown_functions = sorted({str(app.func) for app in parsed.atoms(AppliedUndef)})
        if unknown_functions:
            raise InvalidExpression(
                f"Unknown function(s) in {source!r}: {', '.join(unknown_functions)}"
            )

        extra = sorted(s.name for s in parsed.free_symbols if s not in (X, Y))
        if extra:
            raise InvalidExpression(
                f"Only x and y may appear in the expression; found: {', '.join(extra)}"
            )
        return parsed

    def compile(self, text: str) -> CompiledExpression:
        """Parse ``text`` and compile it into a :class:`CompiledExpression`."""
        parsed = self.parse(text)
        try:
            numeric = numpify_cached(parsed, vars=(X, Y))
        except (TypeError, ValueError) as exc:
            raise InvalidExpression(f"Could not compile expression {text!r}: {exc}") from exc
        logger.debug("compiled %r -> %s", text, numeric.source.splitlines()[-1].strip())
        return CompiledExpression(text=text.strip(), symbolic=parsed, numeric=numeric)

    def differentiate(self, text: str, variable: str) -> str:
        """Return the textual partial derivative of ``text`` with respect to ``variable``.

        The returned text is in SymPy's string form, which :meth:`parse`
        accepts again.

        Raises
        ------
        InvalidExpression
            If ``text`` itself does not parse.
        DifferentiationFailed
            If ``variable`` is not ``x``/``y``, SymPy raises, or the result
            still contains an unevaluated derivative.
        """
        symbol = VARIABLES.get(str(variable).strip())
        if symbol is None:
            raise DifferentiationFailed(f"Cannot differentiate with respect to {variable!r}; use x or y.")

        parsed = self.parse(text)
        try:
            derivative = sp.diff(parsed, symbol)
        except Exception as exc:
            raise DifferentiationFailed(
                f"Could not differentiate {text!r} with respect to {symbol}: {exc}"
            ) from exc

        if derivative.has(sp.Derivative) or derivative.has(sp.Subs):
            raise DifferentiationFailed(
                f"No closed-form derivative of {text!r} with respect to {symbol}."
            )
        return sp.sstr(derivative)
