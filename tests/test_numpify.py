from __future__ import annotations

import numpy as np
import pytest
import sympy as sp

from partial_grapher.numpify import NumpifiedFunction, numpify, numpify_cached


def test_numpify_generates_inspectable_source() -> None:
    x, y = sp.symbols("x y")
    fn = numpify(x * y + 1, vars=(x, y))

    assert isinstance(fn, NumpifiedFunction)
    assert fn.var_names == ("x", "y")
    assert fn.source.startswith("def _generated(x, y):")
    assert fn(2.0, 3.0) == 7.0


def test_numpify_broadcasts_over_arrays() -> None:
    x, y = sp.symbols("x y")
    fn = numpify(sp.sin(x) + y, vars=(x, y))

    xs = np.array([0.0, np.pi / 2])
    np.testing.assert_allclose(fn(xs, 1.0), [1.0, 2.0])


@pytest.mark.parametrize(("builder", "expected"), [(sp.Max, 3.0), (sp.Min, -1.0)])
def test_numpify_binds_helper_modules_used_by_printed_code(builder, expected) -> None:
    x, y = sp.symbols("x y")
    fn = numpify(builder(x, y), vars=(x, y))
    assert float(fn(3.0, -1.0)) == expected


def test_numpify_cached_reuses_compiled_function() -> None:
    x = sp.Symbol("x")
    numpify_cached.cache_clear()

    f1 = numpify_cached(x + 1, vars=(x,))
    f2 = numpify_cached(x + 1, vars=(x,))

    assert f1 is f2
    assert numpify_cached.cache_info().hits == 1
    assert numpify(x + 1, vars=(x,)) is not f1


def test_numpify_rejects_unbound_symbols() -> None:
    x, a = sp.symbols("x a")
    with pytest.raises(ValueError, match="unbound symbols: a"):
        numpify(a * x, vars=(x,))


def test_numpify_checks_positional_arity() -> None:
    x, y = sp.symbols("x y")
    fn = numpify(x + y, vars=(x, y))
    with pytest.raises(TypeError, match="Expected 2"):
        fn(1.0)


@pytest.mark.parametrize("name", ["lambda", "numpy", "abs"])
def test_numpify_rejects_names_that_cannot_be_parameters(name: str) -> None:
    sym = sp.Symbol(name)
    with pytest.raises(ValueError, match="argument name"):
        numpify(sym * 2, vars=(sym,))


def test_numpify_rejects_non_symbol_vars() -> None:
    x = sp.Symbol("x")
    with pytest.raises(TypeError):
        numpify(x, vars=("x",))
