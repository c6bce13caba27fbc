"""Active-tab state and stale-target bookkeeping.

``TabController`` is the single owner of which surface is visible. A tab
switch changes that state and notifies observers; it never asks for a
recomputation. Targets that hold freshly computed data but have not been
drawn yet are tracked as *stale* so the session can draw them on first view.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Callable, Hashable, Union

from .surface_kinds import SurfaceKind

__all__ = ["TabController", "TabObserver"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

TabObserver = Callable[[SurfaceKind, SurfaceKind], None]


class TabController:
    """State machine over ``{original, dx, dy}``; starts at ``original``."""

    def __init__(self, initial: Union[SurfaceKind, str] = SurfaceKind.ORIGINAL) -> None:
        self._active = SurfaceKind.coerce(initial)
        self._stale: set[SurfaceKind] = set()
        self._observers: dict[Hashable, TabObserver] = {}
        self._observer_counter = 0

    @property
    def active(self) -> SurfaceKind:
        """Return the currently active surface kind."""
        return self._active

    def select(self, kind: Union[SurfaceKind, str]) -> bool:
        """Activate ``kind``.

        Returns
        -------
        bool
            ``True`` when the active tab changed, ``False`` when ``kind`` was
            already active (observers are not called in that case).

        Raises
        ------
        ValueError
            If ``kind`` is not one of the three surface kinds.
        """
        nxt = SurfaceKind.coerce(kind)
        if nxt is self._active:
            return False
        previous = self._active
        self._active = nxt
        logger.info("tab %s -> %s", previous.value, nxt.value)
        for callback in list(self._observers.values()):
            callback(previous, nxt)
        return True

    def observe(self, callback: TabObserver) -> Hashable:
        """Register ``callback(previous, current)``; returns an id for :meth:`unobserve`."""
        self._observer_counter += 1
        key = f"tab_observer:{self._observer_counter}"
        self._observers[key] = callback
        return key

    def unobserve(self, key: Hashable) -> None:
        self._observers.pop(key, None)

    def mark_stale(self, *, except_kinds: Iterable[Union[SurfaceKind, str]] = ()) -> None:
        """Mark every kind stale except ``except_kinds``."""
        excluded = {SurfaceKind.coerce(k) for k in except_kinds}
        self._stale = {kind for kind in SurfaceKind if kind not in excluded}

    def is_stale(self, kind: Union[SurfaceKind, str]) -> bool:
        return SurfaceKind.coerce(kind) in self._stale

    def clear_stale(self, kind: Union[SurfaceKind, str]) -> None:
        self._stale.discard(SurfaceKind.coerce(kind))

    @property
    def stale(self) -> frozenset[SurfaceKind]:
        return frozenset(self._stale)
