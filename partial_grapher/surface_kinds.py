"""Tagged variant naming the three surfaces shown side by side."""

from __future__ import annotations

from enum import Enum
from typing import Union


class SurfaceKind(str, Enum):
    """Which surface a grid, target or tab refers to."""

    ORIGINAL = "original"
    DX = "dx"
    DY = "dy"

    @classmethod
    def coerce(cls, value: Union["SurfaceKind", str]) -> "SurfaceKind":
        """Return ``value`` as a ``SurfaceKind``; accepts the enum or its string value."""
        if isinstance(value, SurfaceKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown surface kind {value!r}; expected one of: {choices}") from exc

    @property
    def target_id(self) -> str:
        """Stable rendering target so repeated plots redraw in place."""
        return target_id_for(self)

    @property
    def variable(self) -> str | None:
        """Differentiation variable, or ``None`` for the original surface."""
        return variable_for(self)

    @property
    def tab_label(self) -> str:
        return tab_label_for(self)


def target_id_for(kind: SurfaceKind) -> str:
    if kind is SurfaceKind.ORIGINAL:
        return "plot-original"
    if kind is SurfaceKind.DX:
        return "plot-dx"
    if kind is SurfaceKind.DY:
        return "plot-dy"
    raise AssertionError(f"unhandled surface kind: {kind!r}")


def variable_for(kind: SurfaceKind) -> str | None:
    if kind is SurfaceKind.ORIGINAL:
        return None
    if kind is SurfaceKind.DX:
        return "x"
    if kind is SurfaceKind.DY:
        return "y"
    raise AssertionError(f"unhandled surface kind: {kind!r}")


def tab_label_for(kind: SurfaceKind) -> str:
    if kind is SurfaceKind.ORIGINAL:
        return "Original"
    if kind is SurfaceKind.DX:
        return "∂f/∂x"
    if kind is SurfaceKind.DY:
        return "∂f/∂y"
    raise AssertionError(f"unhandled surface kind: {kind!r}")


DERIVATIVE_KINDS: tuple[SurfaceKind, ...] = (SurfaceKind.DX, SurfaceKind.DY)
