"""
numpify: Compile SymPy expressions in ``x`` and ``y`` to NumPy callables
=======================================================================

Purpose
-------
Turn a SymPy expression into a generated Python function whose body is the
NumPy rendering of the expression. The surface sampler calls the result once
per grid point, so compilation happens once per expression and evaluation is
a plain function call.

Public API
----------
- :func:`numpify`
- :func:`numpify_cached`
- :class:`NumpifiedFunction`

Examples
--------
>>> import sympy as sp
>>> x, y = sp.symbols("x y")
>>> f = numpify(x**2 + y, vars=(x, y))
>>> float(f(3.0, 1.0))
10.0
>>> print(f.source)
def _generated(x, y):
    return x**2 + y

Logging
-------
Silent by default. Code-generation timings are logged at DEBUG level:

>>> import logging
>>> logging.getLogger("partial_grapher.numpify").setLevel(logging.DEBUG)  # doctest: +SKIP
"""

from __future__ import annotations

import builtins
import importlib
import keyword
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Tuple, cast

import numpy as np
import sympy as sp
from sympy.printing.numpy import NumPyPrinter

__all__ = ["numpify", "numpify_cached", "NumpifiedFunction"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_NUMPIFY_CACHE_MAXSIZE = 256

# Names the generated module scope binds; a parameter may not shadow them.
_RESERVED_NAMES = frozenset(keyword.kwlist) | frozenset(dir(builtins)) | {"numpy", "functools"}


class NumpifiedFunction:
    """Generated SymPy->NumPy callable together with its source and argument names."""

    __slots__ = ("_fn", "symbolic", "var_names", "source")

    def __init__(
        self,
        fn: Callable[..., Any],
        symbolic: sp.Basic,
        var_names: tuple[str, ...],
        source: str,
    ) -> None:
        self._fn = fn
        self.symbolic = symbolic
        self.var_names = var_names
        self.source = source

    def __call__(self, *positional_args: Any) -> Any:
        if len(positional_args) != len(self.var_names):
            raise TypeError(
                f"Expected {len(self.var_names)} positional argument(s) "
                f"({', '.join(self.var_names)}), got {len(positional_args)}"
            )
        return self._fn(*positional_args)

    def __repr__(self) -> str:
        return f"NumpifiedFunction({self.symbolic!r}, vars=({', '.join(self.var_names)}))"


def _as_symbol_tuple(vars: Iterable[sp.Symbol]) -> Tuple[sp.Symbol, ...]:
    try:
        vars_tuple = tuple(vars)
    except TypeError as e:
        raise TypeError("vars must be an iterable of SymPy Symbols") from e
    for a in vars_tuple:
        if not isinstance(a, sp.Symbol):
            raise TypeError(f"vars must contain only SymPy Symbols, got {type(a)}")
    return vars_tuple


def _argument_names(vars_tuple: Tuple[sp.Symbol, ...]) -> tuple[str, ...]:
    names = tuple(sym.name for sym in vars_tuple)
    bad = [n for n in names if not n.isidentifier() or n in _RESERVED_NAMES]
    if bad:
        raise ValueError(f"Cannot use {', '.join(map(repr, bad))} as argument name(s).")
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate argument names: {names}")
    return names


def _module_scope(printer: NumPyPrinter) -> Dict[str, Any]:
    """Bind every top-level module the printed code refers to (``numpy``, ``functools``, ...)."""
    scope: Dict[str, Any] = {"numpy": np}
    for module_name in printer.module_imports:
        top = module_name.split(".")[0]
        if top not in scope:
            scope[top] = importlib.import_module(top)
    return scope


def numpify(expr: Any, *, vars: Iterable[sp.Symbol]) -> NumpifiedFunction:
    """Compile ``expr`` into a NumPy-evaluable function of ``vars``.

    Parameters
    ----------
    expr:
        A SymPy expression or anything convertible via :func:`sympy.sympify`.
    vars:
        Symbols taken as positional arguments, in order.

    Raises
    ------
    TypeError
        If ``expr`` is not SymPy-compatible or ``vars`` is malformed.
    ValueError
        If ``expr`` has free symbols not listed in ``vars``, a symbol name
        cannot be a Python parameter, or the NumPy printer cannot translate
        the expression.

    Notes
    -----
    The generated source is executed with ``exec``. Only feed it expressions
    that came out of the SymPy parser.
    """
    try:
        expr_sym = sp.sympify(expr)
    except Exception as e:
        raise TypeError(f"numpify expects a SymPy-compatible expression, got {type(expr)}") from e
    if not isinstance(expr_sym, sp.Basic):
        raise TypeError(f"numpify expects a SymPy expression, got {type(expr_sym)}")
    expr = cast(sp.Basic, expr_sym)

    vars_tuple = _as_symbol_tuple(vars)
    started = time.perf_counter()

    missing_names = {s.name for s in expr.free_symbols} - {a.name for a in vars_tuple}
    if missing_names:
        raise ValueError(
            "Expression contains unbound symbols: "
            f"{', '.join(sorted(missing_names))}. Allowed: {', '.join(a.name for a in vars_tuple)}."
        )
    arg_names = _argument_names(vars_tuple)

    printer = NumPyPrinter(settings={"user_functions": {}, "allow_unknown_functions": False})
    try:
        expr_code = printer.doprint(expr)
    except Exception as e:
        raise ValueError(f"Cannot generate NumPy code for {expr!r}: {e}") from e

    src = f"def _generated({', '.join(arg_names)}):\n    return {expr_code}"

    glb = _module_scope(printer)
    loc: Dict[str, Any] = {}
    exec(src, glb, loc)
    fn = cast(Callable[..., Any], loc["_generated"])
    fn.__doc__ = f"Auto-generated NumPy function for {expr!r}."

    logger.debug("numpify: compiled %r in %.2f ms", expr, 1000.0 * (time.perf_counter() - started))
    return NumpifiedFunction(fn=fn, symbolic=expr, var_names=arg_names, source=src)


@lru_cache(maxsize=_NUMPIFY_CACHE_MAXSIZE)
def _numpify_cached_impl(expr: sp.Basic, vars_tuple: Tuple[sp.Symbol, ...]) -> NumpifiedFunction:
    logger.debug("numpify_cached: cache MISS (vars=%s)", [a.name for a in vars_tuple])
    return numpify(expr, vars=vars_tuple)


def numpify_cached(expr: Any, *, vars: Iterable[sp.Symbol]) -> NumpifiedFunction:
    """Cached version of :func:`numpify`.

    Re-plotting the same expression (for example after only the ranges
    changed) reuses the compiled callable. The cache key is the sympified
    expression plus the ``vars`` tuple. Clear it with
    ``numpify_cached.cache_clear()``.
    """
    expr_sym = sp.sympify(expr)
    if not isinstance(expr_sym, sp.Basic):
        raise TypeError(f"numpify_cached expects a SymPy expression, got {type(expr_sym)}")
    return _numpify_cached_impl(expr_sym, _as_symbol_tuple(vars))


numpify_cached.cache_info = _numpify_cached_impl.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _numpify_cached_impl.cache_clear  # type: ignore[attr-defined]
