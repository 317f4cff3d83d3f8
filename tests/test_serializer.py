"""Tests for the layout persistence document."""
import json
from datetime import date, datetime

import pytest

from app.vendorvault.modules.station_layout.constants import InfrastructureType, ShopCategory
from app.vendorvault.modules.station_layout.errors import MalformedDocument
from app.vendorvault.modules.station_layout.serializer import (
    dumps_snapshot,
    layout_from_document,
    layout_to_document,
    snapshot_filename,
)
from app.vendorvault.modules.station_layout.store import LayoutStore


def _populated_store():
    store = LayoutStore()
    store.initialize_layout("7", "Central", "CTL", "42")
    p1 = store.add_complete_platform()
    store.add_dual_track_platform()
    store.add_independent_track()
    store.add_shop(
        p1.id,
        width=120,
        height=80,
        category="food",
        is_allocated=True,
        vendor_id="v-9",
        rent=1500.0,
        lease_end_date=date(2027, 3, 31),
        notes="corner unit",
    )
    store.add_shop(p1.id, x=400, width=100)
    store.add_infrastructure(InfrastructureType.WASHROOM, metadata={"label": "Gents", "tags": ["a", "b"]})
    return store


def test_document_round_trip_is_lossless():
    store = _populated_store()
    doc = store.export_layout()
    again = layout_to_document(layout_from_document(doc))
    assert again == doc


def test_round_trip_through_json_text():
    doc = _populated_store().export_layout()
    assert layout_to_document(layout_from_document(json.loads(json.dumps(doc)))) == doc


def test_square_shop_exports_explicit_height():
    doc = _populated_store().export_layout()
    shops = doc["platforms"][0]["shops"]
    assert shops[1]["width"] == 100
    assert shops[1]["height"] == 100


def test_optional_fields_exported_only_when_set():
    doc = _populated_store().export_layout()
    first, second = doc["platforms"][0]["shops"]
    assert first["vendorId"] == "v-9"
    assert first["leaseEndDate"] == "2027-03-31"
    assert first["category"] == "food"
    assert "vendorId" not in second
    assert "leaseEndDate" not in second


def test_single_platform_omits_dual_parts():
    doc = _populated_store().export_layout()
    single, dual = doc["platforms"]
    assert "track" in single and "topTrack" not in single
    assert "topTrack" in dual and "bottomRestrictedZone" in dual and "track" not in dual


def test_missing_station_id_is_malformed():
    with pytest.raises(MalformedDocument) as exc:
        layout_from_document({"stationName": "X", "platforms": []})
    assert exc.value.problems == ["stationId is required"]


def test_non_object_document_is_malformed():
    with pytest.raises(MalformedDocument):
        layout_from_document([1, 2, 3])


def test_problems_are_collected():
    doc = {
        "stationId": "1",
        "platforms": [{"id": "p", "platformNumber": "1", "length": "long", "width": 100, "shops": "nope"}],
        "infrastructureBlocks": [{"id": "b", "type": "MOAT"}],
    }
    with pytest.raises(MalformedDocument) as exc:
        layout_from_document(doc)
    problems = exc.value.problems
    assert any("platforms[0].length" in p for p in problems)
    assert any("shops must be a list" in p for p in problems)
    assert any("unknown value 'MOAT'" in p for p in problems)


def test_defaults_for_sparse_document():
    layout = layout_from_document(
        {
            "stationId": 5,
            "platforms": [
                {"id": "p", "platformNumber": 1, "length": 1000, "width": 100, "shops": [{"id": "s", "width": 90}]}
            ],
        }
    )
    assert layout.station_id == "5"
    assert layout.platforms[0].platform_number == "1"
    shop = layout.platforms[0].shops[0]
    assert shop.height == 90
    assert shop.category is ShopCategory.GENERAL
    assert layout.pricing is None


def test_lease_end_date_accepts_timestamp():
    layout = layout_from_document(
        {
            "stationId": "1",
            "platforms": [
                {
                    "id": "p",
                    "platformNumber": "1",
                    "length": 1000,
                    "width": 100,
                    "shops": [{"id": "s", "width": 90, "leaseEndDate": "2026-12-01T00:00:00.000Z"}],
                }
            ],
        }
    )
    assert layout.platforms[0].shops[0].lease_end_date == date(2026, 12, 1)


def test_snapshot_filename_and_body():
    store = _populated_store()
    name = snapshot_filename(store.layout, datetime(2026, 10, 19, 8, 30, 5))
    assert name == "station-layout-CTL-20261019T083005.json"
    body = dumps_snapshot(store.layout)
    assert json.loads(body)["stationCode"] == "CTL"


def test_non_finite_numbers_are_malformed():
    doc = _populated_store().export_layout()
    doc["platforms"][0]["shops"][0]["width"] = float("nan")
    doc["platforms"][0]["shops"][1]["x"] = float("inf")
    with pytest.raises(MalformedDocument) as exc:
        layout_from_document(doc)
    problems = exc.value.problems
    assert any(p.endswith("width must be a finite number") for p in problems)
    assert any(p.endswith("x must be a finite number") for p in problems)
