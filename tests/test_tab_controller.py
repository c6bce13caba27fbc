from __future__ import annotations

import pytest

from partial_grapher.surface_kinds import SurfaceKind
from partial_grapher.tab_controller import TabController


def test_starts_on_original() -> None:
    assert TabController().active is SurfaceKind.ORIGINAL


def test_select_notifies_observers_with_previous_and_current() -> None:
    tabs = TabController()
    seen: list[tuple[SurfaceKind, SurfaceKind]] = []
    tabs.observe(lambda prev, cur: seen.append((prev, cur)))

    assert tabs.select("dx") is True
    assert tabs.select(SurfaceKind.DY) is True

    assert tabs.active is SurfaceKind.DY
    assert seen == [(SurfaceKind.ORIGINAL, SurfaceKind.DX), (SurfaceKind.DX, SurfaceKind.DY)]


def test_reselecting_active_tab_is_a_no_op() -> None:
    tabs = TabController("dy")
    calls = []
    tabs.observe(lambda *args: calls.append(args))

    assert tabs.select("dy") is False
    assert calls == []


def test_unknown_tab_is_rejected_and_state_kept() -> None:
    tabs = TabController()
    with pytest.raises(ValueError, match="Unknown surface kind"):
        tabs.select("dz")
    assert tabs.active is SurfaceKind.ORIGINAL


def test_unobserve_stops_notifications() -> None:
    tabs = TabController()
    calls = []
    key = tabs.observe(lambda *args: calls.append(args))
    tabs.unobserve(key)
    tabs.unobserve(key)

    tabs.select("dx")
    assert calls == []


def test_stale_bookkeeping() -> None:
    tabs = TabController()
    assert tabs.stale == frozenset()

    tabs.mark_stale(except_kinds=("original",))
    assert tabs.stale == {SurfaceKind.DX, SurfaceKind.DY}
    assert tabs.is_stale("dx")
    assert not tabs.is_stale(SurfaceKind.ORIGINAL)

    tabs.clear_stale("dx")
    assert tabs.stale == {SurfaceKind.DY}

    tabs.mark_stale()
    assert tabs.stale == set(SurfaceKind)


def test_surface_kind_metadata() -> None:
    assert [kind.target_id for kind in SurfaceKind] == ["plot-original", "plot-dx", "plot-dy"]
    assert [kind.variable for kind in SurfaceKind] == [None, "x", "y"]
    assert SurfaceKind.coerce(" DX ") is SurfaceKind.DX
