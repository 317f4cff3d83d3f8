"""Tests for editor sessions and named operation dispatch."""
from datetime import date, timedelta

import pytest

from app.vendorvault.modules.station_layout.editor import EditorSessions, apply_operation, snake
from app.vendorvault.modules.station_layout.errors import ElementNotFound, LayoutError
from app.vendorvault.modules.station_layout.store import LayoutStore


def _store():
    st = LayoutStore()
    st.initialize_layout("1", "Junction", "JN", "1")
    return st


def test_snake_case():
    assert snake("platformId") == "platform_id"
    assert snake("pricePer100x100Single") == "price_per100x100_single"
    assert snake("x") == "x"


def test_dispatch_with_camel_case_args():
    st = _store()
    platform = apply_operation(st, "addCompletePlatform", None)
    shop = apply_operation(
        st,
        "addShop",
        {"platformId": platform.id, "width": 80, "isAllocated": True, "leaseEndDate": "2027-06-30"},
    )
    assert shop.is_allocated is True
    assert shop.lease_end_date == date(2027, 6, 30)
    assert apply_operation(st, "applyUniformShopSize", {"size": 120}) == 1


def test_dispatch_rejects_bad_arguments():
    st = _store()
    with pytest.raises(LayoutError):
        apply_operation(st, "addCompletePlatform", {"colour": "red"})
    with pytest.raises(LayoutError):
        apply_operation(st, "addInfrastructure", {"type": "CASTLE"})
    with pytest.raises(LayoutError):
        apply_operation(st, "nope", {})


def test_sessions_are_per_user_and_station():
    sessions = EditorSessions()
    first = sessions.open(1, "7", _store())
    second = sessions.open(1, "7", _store())
    assert len(sessions) == 1
    with pytest.raises(ElementNotFound):
        sessions.get(first.token, 1)
    assert sessions.get(second.token, 1) is second
    with pytest.raises(ElementNotFound):
        sessions.get(second.token, 2)


def test_idle_sessions_expire():
    sessions = EditorSessions(idle_ttl=timedelta(seconds=-1))
    es = sessions.open(1, "7", _store())
    with pytest.raises(ElementNotFound):
        sessions.get(es.token, 1)


def test_close_session():
    sessions = EditorSessions()
    es = sessions.open(1, "7", _store())
    sessions.close(es.token, 1)
    assert len(sessions) == 0
    with pytest.raises(ElementNotFound):
        sessions.close(es.token, 1)


def test_dispatch_rejects_non_finite_numbers():
    st = _store()
    platform = apply_operation(st, "addCompletePlatform", None)
    shop = apply_operation(st, "addShop", {"platformId": platform.id, "width": 80})
    with pytest.raises(LayoutError):
        apply_operation(st, "resizeShop", {"shopId": shop.id, "width": float("nan")})
    with pytest.raises(LayoutError):
        apply_operation(st, "updateShop", {"shopId": shop.id, "changes": {"x": float("inf")}})
    assert shop.width == 80
    assert shop.x == 0
