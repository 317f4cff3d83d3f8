"""Tests for platform geometry and the vendor preview."""
from app.vendorvault.modules.station_layout.geometry import (
    LABEL_MARGIN_LEFT,
    MARGIN,
    build_preview,
    canvas_bounds,
    platform_extent,
    platform_strips,
)
from app.vendorvault.modules.station_layout.store import LayoutStore


def _store():
    st = LayoutStore()
    st.initialize_layout("1", "Junction", "JN", None)
    return st


def test_single_platform_strips_below_body():
    st = _store()
    p = st.add_complete_platform()
    strips = platform_strips(p)
    assert [s.kind for s in strips] == ["restricted_zone", "track"]
    assert strips[0].y == p.y + p.width
    assert strips[1].track_number == 1
    assert platform_extent(p) == (p.y, p.y + p.width + 50 + 60)


def test_inverted_platform_strips_above_body():
    st = _store()
    p = st.add_complete_platform()
    st.toggle_platform_invert(p.id)
    top, bottom = platform_extent(p)
    assert top == p.y - 50 - 60
    assert bottom == p.y + p.width


def test_dual_track_extent_includes_both_sides():
    st = _store()
    d = st.add_dual_track_platform()
    kinds = [s.kind for s in platform_strips(d)]
    assert kinds == ["track", "restricted_zone", "restricted_zone", "track"]
    top, bottom = platform_extent(d)
    assert bottom - top == 60 + 50 + d.width + 50 + 60


def test_canvas_bounds_pad_for_labels():
    st = _store()
    p = st.add_complete_platform()
    b = canvas_bounds(st.layout)
    assert b.min_x == -LABEL_MARGIN_LEFT
    assert b.min_y == -MARGIN
    assert b.max_x == p.x + p.length + MARGIN


def test_preview_scales_into_box_and_counts_shops():
    st = _store()
    p = st.add_complete_platform()
    st.add_dual_track_platform()
    st.add_shop(p.id, width=100)
    allocated = st.add_shop(p.id, x=200, width=100)
    st.update_shop(allocated.id, is_allocated=True)
    st.add_infrastructure("ENTRANCE")

    preview = build_preview(st.layout)
    assert preview["stationCode"] == "JN"
    assert 0 < preview["scale"] <= 1
    assert preview["canvas"]["width"] <= 800
    assert preview["canvas"]["height"] <= 500
    assert [pl["label"] for pl in preview["platforms"]] == ["P1", "P2-3"]
    assert preview["totals"] == {"shops": 2, "available": 1, "allocated": 1}
    assert preview["infrastructure"][0]["label"] == "Entrance"


def test_preview_of_empty_layout():
    preview = build_preview(_store().layout)
    assert preview["platforms"] == []
    assert preview["totals"]["shops"] == 0
