from __future__ import annotations

import asyncio
from unittest.mock import patch

import ipywidgets as widgets
import plotly.graph_objects as go
import pytest

from partial_grapher.app import SurfacePlotterApp
from partial_grapher.config import PlotterConfig
from partial_grapher.rendering import RenderingRuntime
from partial_grapher.session import SurfacePlotter
from partial_grapher.surface_kinds import SurfaceKind


async def _load_plotly():
    return go


@pytest.fixture
def app():
    plotter = SurfacePlotter(runtime=RenderingRuntime(loader=_load_plotly))
    with patch("partial_grapher.app.display") as display:
        instance = SurfacePlotterApp(plotter)
        instance.displayed = display
        yield instance


def _type_inputs(app: SurfacePlotterApp, expr: str, xr: str = "-1,1", yr: str = "-1,1") -> None:
    app.function_text.value = expr
    app.x_range_text.value = xr
    app.y_range_text.value = yr


def test_layout_has_controls_and_three_titled_tabs(app: SurfacePlotterApp) -> None:
    assert isinstance(app.root_widget, widgets.Box)
    assert [app.tabs.get_title(i) for i in range(3)] == ["Original", "∂f/∂x", "∂f/∂y"]
    assert app.tabs.selected_index == 0
    assert app.error_html.layout.display == "none"


def test_text_edits_reach_the_session(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "sin(x)*y", "0,3", "-2,2")

    state = app.plotter.state
    assert (state.expression_text, state.x_range_text, state.y_range_text) == ("sin(x)*y", "0,3", "-2,2")
    assert app.plotter.is_dirty
    assert app.plotter.surfaces is None


def test_plot_button_draws_active_tab_and_shows_summary(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "x^2 + y^2")

    app.plot_button.click()

    assert app.plotter.surfaces is not None
    assert app.displayed.call_count == 1
    assert app.displayed.call_args.args[0] is app.plotter.figure("original")
    assert "∂f/∂x = 2*x" in app.status_html.value
    assert app.error_html.layout.display == "none"


def test_selecting_a_tab_widget_switches_surface(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "x*y")
    app.plot_button.click()

    app.tabs.selected_index = 2

    assert app.plotter.tabs.active is SurfaceKind.DY
    assert app.displayed.call_args.args[0] is app.plotter.figure("dy")
    assert app.plotter.renderer.draw_counts == {"plot-original": 1, "plot-dy": 1}


def test_session_tab_change_updates_tab_widget(app: SurfacePlotterApp) -> None:
    app.plotter.select_tab("dx")
    assert app.tabs.selected_index == 1


def test_invalid_input_shows_error_banner(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "x + y", xr="1")

    app.plot_button.click()

    assert app.error_html.layout.display == "flex"
    assert "X range" in app.error_html.value
    assert app.displayed.call_count == 0

    app.x_range_text.value = "0,1"
    app.plot_button.click()
    assert app.error_html.layout.display == "none"


def test_error_text_is_html_escaped(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "x < y")
    app.plot_button.click()
    assert "x < y" not in app.error_html.value


def test_plot_button_inside_event_loop_refreshes_when_done(app: SurfacePlotterApp) -> None:
    _type_inputs(app, "x + y")

    async def _run():
        app.plot_button.click()
        await asyncio.gather(*app.plotter._tasks)
        await asyncio.sleep(0)

    asyncio.run(_run())
    assert "∂f/∂x = 1" in app.status_html.value


def test_ipython_display_shows_root_widget(app: SurfacePlotterApp) -> None:
    app._ipython_display_()
    app.displayed.assert_called_with(app.root_widget)


class _FakeThreadTimer:
    created: list["_FakeThreadTimer"] = []

    def __init__(self, delay: float, callback, args=()):
        self.callback = callback
        self.args = tuple(args)
        self.daemon = False
        _FakeThreadTimer.created.append(self)

    def start(self) -> None:
        pass

    def cancel(self) -> None:
        pass

    def fire(self) -> None:
        self.callback(*self.args)


def test_debounced_plot_updates_error_banner_and_summary() -> None:
    _FakeThreadTimer.created.clear()
    config = PlotterConfig(auto_plot_delay_ms=50)
    plotter = SurfacePlotter(config=config, runtime=RenderingRuntime(loader=_load_plotly))

    with patch("partial_grapher.debouncing.threading.Timer", _FakeThreadTimer), patch(
        "partial_grapher.app.display"
    ):
        app = SurfacePlotterApp(plotter)
        _type_inputs(app, "x +* y", "0,1", "0,1")
        _FakeThreadTimer.created[-1].fire()

        assert app.error_html.layout.display == "flex"
        assert "Could not parse expression" in app.error_html.value

        app.function_text.value = "x*y"
        _FakeThreadTimer.created[-1].fire()

    assert app.error_html.layout.display == "none"
    assert "∂f/∂x = y" in app.status_html.value
