from __future__ import annotations

import math
from unittest.mock import patch

import numpy as np
import pytest

from partial_grapher.errors import DomainTooLarge, GridGenerationFailed, SamplingTimeout
from partial_grapher.expression_engine import ExpressionEngine
from partial_grapher.range_parser import Interval
from partial_grapher.surface_sampler import Domain, SurfaceSampler, axis_values


def _unit_domain(step: float = 0.5) -> Domain:
    return Domain(x=Interval(0.0, 1.0), y=Interval(0.0, 1.0), step=step)


def test_unit_square_at_half_step_yields_three_points_per_axis() -> None:
    grid = SurfaceSampler().sample(lambda b: 0.0, _unit_domain())

    assert list(grid.xs) == [0.0, 0.5, 1.0]
    assert list(grid.ys) == [0.0, 0.5, 1.0]
    assert grid.shape == (3, 3)


def test_axis_values_keep_upper_bound_despite_float_drift() -> None:
    values = axis_values(Interval(0.0, 0.3), 0.1)

    assert len(values) == 4
    assert values[-1] == 0.3
    np.testing.assert_allclose(values, [0.0, 0.1, 0.2, 0.3])


def test_axis_values_stop_before_max_when_step_does_not_land_on_it() -> None:
    values = axis_values(Interval(0.0, 1.0), 0.3)
    np.testing.assert_allclose(values, [0.0, 0.3, 0.6, 0.9])


def test_degenerate_interval_gives_single_point() -> None:
    domain = Domain(x=Interval(2.0, 2.0), y=Interval(-1.0, 1.0), step=0.5)
    grid = SurfaceSampler().sample(lambda b: b["x"] * b["y"], domain)

    assert list(grid.xs) == [2.0]
    assert grid.shape == (5, 1)


def test_z_rows_follow_y_and_columns_follow_x() -> None:
    domain = Domain(x=Interval(0.0, 2.0), y=Interval(0.0, 1.0), step=1.0)
    grid = SurfaceSampler().sample(lambda b: 10 * b["y"] + b["x"], domain)

    assert grid.shape == (2, 3)
    np.testing.assert_array_equal(grid.z, [[0.0, 1.0, 2.0], [10.0, 11.0, 12.0]])


def test_point_failure_becomes_nan_and_sampling_continues() -> None:
    calls = []

    def _evaluator(bindings):
        calls.append((bindings["x"], bindings["y"]))
        if bindings["x"] == 0.0 and bindings["y"] == 0.0:
            raise ZeroDivisionError("boom")
        return bindings["x"] + bindings["y"]

    domain = Domain(x=Interval(-1.0, 1.0), y=Interval(-1.0, 1.0), step=0.5)
    grid = SurfaceSampler().sample(_evaluator, domain)

    assert len(calls) == 25
    assert grid.failed_cells == 1
    assert math.isnan(grid.value_at(0.0, 0.0))
    mask = np.ones(grid.shape, dtype=bool)
    mask[2, 2] = False
    assert np.isfinite(grid.z[mask]).all()


def test_non_finite_results_are_recorded_as_nan() -> None:
    grid = SurfaceSampler().sample(lambda b: math.inf if b["x"] > 0.75 else 1.0, _unit_domain())

    assert grid.failed_cells == 3
    assert np.isnan(grid.z[:, 2]).all()
    assert grid.finite_fraction == pytest.approx(6 / 9)


def test_compiled_expression_is_sampled_through_evaluate() -> None:
    compiled = ExpressionEngine().compile("1/x")
    domain = Domain(x=Interval(-1.0, 1.0), y=Interval(0.0, 0.0), step=1.0)

    grid = SurfaceSampler().sample(compiled, domain)

    assert grid.z[0, 0] == -1.0
    assert math.isnan(grid.z[0, 1])
    assert grid.z[0, 2] == 1.0


def test_grid_arrays_are_read_only() -> None:
    grid = SurfaceSampler().sample(lambda b: 1.0, _unit_domain())
    with pytest.raises(ValueError):
        grid.z[0, 0] = 5.0
    with pytest.raises(ValueError):
        grid.xs[0] = 5.0


@pytest.mark.parametrize("evaluator", [None, object(), 42])
def test_unusable_evaluator_is_a_structural_failure(evaluator) -> None:
    with pytest.raises(GridGenerationFailed):
        SurfaceSampler().sample(evaluator, _unit_domain())


def test_missing_domain_is_a_structural_failure() -> None:
    with pytest.raises(GridGenerationFailed):
        SurfaceSampler().sample(lambda b: 0.0, None)


def test_cell_ceiling_fails_fast_without_evaluating() -> None:
    calls = []
    sampler = SurfaceSampler(max_cells=10)
    domain = Domain(x=Interval(0.0, 1.5), y=Interval(0.0, 1.5), step=0.5)

    with pytest.raises(DomainTooLarge, match="16"):
        sampler.sample(lambda b: calls.append(b) or 0.0, domain)
    assert calls == []


def test_cell_ceiling_allows_grids_at_the_limit() -> None:
    grid = SurfaceSampler(max_cells=9).sample(lambda b: 0.0, _unit_domain())
    assert grid.z.size == 9


def test_deadline_aborts_the_whole_pass() -> None:
    sampler = SurfaceSampler(deadline_s=1.0)
    ticks = iter([0.0, 5.0, 10.0, 15.0])

    with patch("partial_grapher.surface_sampler.time.perf_counter", side_effect=lambda: next(ticks)):
        with pytest.raises(SamplingTimeout):
            sampler.sample(lambda b: 0.0, _unit_domain())
    assert issubclass(SamplingTimeout, GridGenerationFailed)


def test_domain_rejects_non_positive_step() -> None:
    with pytest.raises(ValueError):
        Domain(x=Interval(0.0, 1.0), y=Interval(0.0, 1.0), step=0.0)
    with pytest.raises(ValueError):
        Domain(x=Interval(0.0, 1.0), y=Interval(0.0, 1.0), step=math.nan)


def test_shared_coordinates_are_reused_verbatim() -> None:
    sampler = SurfaceSampler()
    domain = _unit_domain()
    coordinates = sampler.coordinates(domain)

    first = sampler.sample(lambda b: 1.0, domain, coordinates=coordinates)
    second = sampler.sample(lambda b: 2.0, domain, coordinates=coordinates)

    np.testing.assert_array_equal(first.xs, second.xs)
    np.testing.assert_array_equal(first.ys, second.ys)


def test_range_too_wide_for_float_arithmetic_is_too_large() -> None:
    domain = Domain(x=Interval(-1e308, 1e308), y=Interval(0.0, 1.0), step=0.5)
    calls = []

    with pytest.raises(DomainTooLarge):
        SurfaceSampler().coordinates(domain)
    with pytest.raises(DomainTooLarge):
        SurfaceSampler().sample(calls.append, domain)
    assert calls == []
