"""Notebook front end for :class:`~partial_grapher.session.SurfacePlotter`.

This module isolates the widget tree (inputs, plot button, tabs, error
banner) from the plotting logic. It forwards widget events to the session
and shows each drawn figure in the output that belongs to its tab. It holds
no plotting state of its own.
"""

from __future__ import annotations

import html
from typing import Any, Optional

import ipywidgets as widgets
from IPython.display import display

from .config import PlotterConfig
from .session import SurfacePlotter
from .surface_kinds import SurfaceKind

__all__ = ["SurfacePlotterApp"]

_TAB_ORDER: tuple[SurfaceKind, ...] = (SurfaceKind.ORIGINAL, SurfaceKind.DX, SurfaceKind.DY)


class SurfacePlotterApp:
    """Widget layout: controls on the left, three surface tabs on the right.

    Parameters
    ----------
    plotter : SurfacePlotter, optional
        Session to drive. A new one is created from ``config`` if omitted.
    config : PlotterConfig, optional
        Used only when ``plotter`` is not given.

    Examples
    --------
    >>> app = SurfacePlotterApp()  # doctest: +SKIP
    >>> app  # doctest: +SKIP
    """

    def __init__(
        self,
        plotter: Optional[SurfacePlotter] = None,
        *,
        config: Optional[PlotterConfig] = None,
    ) -> None:
        self.plotter = plotter or SurfacePlotter(config=config)
        self._suspend_tab_events = False

        # 1. Controls
        self.function_text = widgets.Text(
            value=self.plotter.state.expression_text,
            description="f(x, y)",
            placeholder="e.g. x^2 + y^2",
            continuous_update=True,
            layout=widgets.Layout(width="100%"),
        )
        self.x_range_text = widgets.Text(
            value=self.plotter.state.x_range_text,
            description="X range",
            placeholder="-10,10",
            layout=widgets.Layout(width="100%"),
        )
        self.y_range_text = widgets.Text(
            value=self.plotter.state.y_range_text,
            description="Y range",
            placeholder="-10,10",
            layout=widgets.Layout(width="100%"),
        )
        self.plot_button = widgets.Button(
            description="Plot function and derivatives",
            button_style="primary",
            layout=widgets.Layout(width="100%"),
        )
        self.error_html = widgets.HTML(value="", layout=widgets.Layout(display="none", margin="6px 0 0 0"))
        self.status_html = widgets.HTML(value="", layout=widgets.Layout(margin="6px 0 0 0"))

        self.controls = widgets.VBox(
            [
                self.function_text,
                self.x_range_text,
                self.y_range_text,
                self.plot_button,
                self.error_html,
                self.status_html,
            ],
            layout=widgets.Layout(flex="0 1 360px", min_width="280px", padding="8px"),
        )

        # 2. Surface tabs, one output per target
        self.outputs: dict[SurfaceKind, widgets.Output] = {
            kind: widgets.Output(layout=widgets.Layout(width="100%", min_height="500px"))
            for kind in _TAB_ORDER
        }
        self.tabs = widgets.Tab(children=tuple(self.outputs[kind] for kind in _TAB_ORDER))
        for idx, kind in enumerate(_TAB_ORDER):
            self.tabs.set_title(idx, kind.tab_label)
        self.tabs.selected_index = _TAB_ORDER.index(self.plotter.tabs.active)

        self.root_widget = widgets.Box(
            [self.controls, widgets.VBox([self.tabs], layout=widgets.Layout(flex="1 1 560px"))],
            layout=widgets.Layout(display="flex", flex_flow="row wrap", width="100%", gap="8px"),
        )

        # 3. Wiring
        self.function_text.observe(self._on_text_change, names="value")
        self.x_range_text.observe(self._on_text_change, names="value")
        self.y_range_text.observe(self._on_text_change, names="value")
        self.plot_button.on_click(self._on_plot_clicked)
        self.tabs.observe(self._on_tab_change, names="selected_index")
        self.plotter.tabs.observe(self._on_active_tab_changed)
        self.plotter.add_draw_listener(self._on_drawn)
        # Button and debounced plots both report back through the session.
        self.plotter.add_cycle_listener(self._on_cycle_finished)

    def _on_text_change(self, change: dict[str, Any]) -> None:
        owner = change["owner"]
        if owner is self.function_text:
            self.plotter.set_expression(change["new"])
        elif owner is self.x_range_text:
            self.plotter.set_x_range(change["new"])
        elif owner is self.y_range_text:
            self.plotter.set_y_range(change["new"])

    def _on_plot_clicked(self, _button: widgets.Button) -> None:
        self.plotter.request_plot()

    def _on_cycle_finished(self, _surfaces: Any) -> None:
        self.refresh_status()

    def _on_tab_change(self, change: dict[str, Any]) -> None:
        if self._suspend_tab_events:
            return
        index = change.get("new")
        if index is None or not 0 <= int(index) < len(_TAB_ORDER):
            return
        self.plotter.select_tab(_TAB_ORDER[int(index)])

    def _on_active_tab_changed(self, _previous: SurfaceKind, current: SurfaceKind) -> None:
        index = _TAB_ORDER.index(current)
        if self.tabs.selected_index == index:
            return
        self._suspend_tab_events = True
        try:
            self.tabs.selected_index = index
        finally:
            self._suspend_tab_events = False

    def _on_drawn(self, target_id: str, figure: Any) -> None:
        for kind, output in self.outputs.items():
            if kind.target_id == target_id:
                output.clear_output(wait=True)
                with output:
                    display(figure)
                return

    def refresh_status(self) -> None:
        """Mirror the session's last error and derivative summary into the widgets."""
        error = self.plotter.state.last_error
        if error:
            self.error_html.value = f"<span style='color:#b91c1c'><b>Error:</b> {html.escape(error)}</span>"
            self.error_html.layout.display = "flex"
        else:
            self.error_html.value = ""
            self.error_html.layout.display = "none"
        summary = self.plotter.summary()
        self.status_html.value = "<br>".join(html.escape(line) for line in summary.splitlines())

    def _ipython_display_(self, **kwargs: Any) -> None:
        display(self.root_widget)
