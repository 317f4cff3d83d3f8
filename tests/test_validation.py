"""Tests for structural validation and the station platform-count cross-check."""
from app.vendorvault.modules.station_layout.layout import Layout, Platform, PlatformTrack, RestrictedZone, Shop, Track
from app.vendorvault.modules.station_layout.validation import validate_layout, validate_with_station_data

_TRACKS = iter(range(1, 1000))


def _single(pid, number, *, shops=None, length=1500):
    return Platform(
        id=pid,
        platform_number=number,
        x=100,
        y=50,
        length=length,
        width=100,
        track=PlatformTrack(track_number=next(_TRACKS)),
        restricted_zone=RestrictedZone(),
        shops=shops or [],
    )


def _dual(pid, number):
    top = next(_TRACKS)
    return Platform(
        id=pid,
        platform_number=number,
        x=100,
        y=400,
        length=1500,
        width=240,
        is_dual_track=True,
        top_track=PlatformTrack(track_number=top),
        top_restricted_zone=RestrictedZone(),
        bottom_track=PlatformTrack(track_number=next(_TRACKS)),
        bottom_restricted_zone=RestrictedZone(),
    )


def _layout(*platforms, tracks=None):
    return Layout(station_id="1", station_name="Test", station_code="TST", platforms=list(platforms), tracks=tracks or [])


def test_valid_single_track_layout():
    result = validate_layout(_layout(_single("a", "1"), _single("b", "2")))
    assert result.is_valid, result.errors
    assert result.errors == []


def test_no_layout_is_invalid():
    result = validate_layout(None)
    assert not result.is_valid
    assert result.errors == ["No layout loaded."]


def test_empty_layout_needs_a_platform():
    result = validate_layout(_layout())
    assert not result.is_valid
    assert "Layout must have at least one platform." in result.errors


def test_missing_track_configuration():
    p = _single("a", "1")
    p.track = None
    p.restricted_zone = None
    result = validate_layout(_layout(p))
    assert any("no track configuration" in e for e in result.errors)


def test_dual_track_missing_bottom_track():
    p = _dual("a", "1")
    p.bottom_track = None
    result = validate_layout(_layout(p))
    assert any("missing its bottom track" in e for e in result.errors)


def test_dual_track_inverted_is_only_a_warning():
    p = _dual("a", "1")
    p.is_inverted = True
    result = validate_layout(_layout(p))
    assert result.is_valid
    assert result.warnings


def test_shop_past_platform_end():
    p = _single("a", "1", shops=[Shop(id="s", x=1450, width=100)])
    result = validate_layout(_layout(p))
    assert not result.is_valid
    assert any("extends past the platform end" in e for e in result.errors)


def test_negative_shop_x():
    p = _single("a", "1", shops=[Shop(id="s", x=-5, width=100)])
    result = validate_layout(_layout(p))
    assert any("starts before the platform" in e for e in result.errors)


def test_duplicate_platform_numbers():
    result = validate_layout(_layout(_single("a", "1"), _single("b", "1")))
    assert any("Duplicate platform number 1" in e for e in result.errors)


def test_numbering_must_start_at_one():
    result = validate_layout(_layout(_single("a", "2"), _single("b", "3")))
    assert "Platform numbering should start from 1." in result.errors


def test_numbering_gap():
    result = validate_layout(_layout(_single("a", "1"), _single("b", "3")))
    assert any("Gap between Platform 1 and 3" in e for e in result.errors)


def test_dual_track_fills_two_slots():
    # Dual 1-2 followed by single 3 is contiguous.
    result = validate_layout(_layout(_dual("a", "1"), _single("b", "3")))
    assert result.is_valid, result.errors


def test_dual_track_second_slot_collision():
    result = validate_layout(_layout(_dual("a", "1"), _single("b", "2")))
    assert not result.is_valid
    assert any("platform slot 2 is already occupied" in e for e in result.errors)


def test_non_numeric_platform_number():
    result = validate_layout(_layout(_single("a", "A")))
    assert any("must be a positive integer" in e for e in result.errors)


def test_duplicate_track_numbers():
    p = _single("a", "1")
    t = Track(id="t", track_number=p.track.track_number)
    result = validate_layout(_layout(p, tracks=[t]))
    assert any("Duplicate track number" in e for e in result.errors)


def test_station_cross_check_mismatch_message():
    layout = _layout(_single("a", "1"), _single("b", "2"), _single("c", "3"))
    result = validate_with_station_data(layout, 4)
    assert not result.is_valid
    msg = result.errors[0]
    assert "expected 4, found 3" in msg
    assert "Please add 1 platform." in msg


def test_station_cross_check_counts_dual_as_two():
    layout = _layout(_dual("a", "1"), _single("b", "3"))
    assert validate_with_station_data(layout, 3).is_valid
    result = validate_with_station_data(layout, 2)
    assert "Please remove 1 platform." in result.errors[0]


def test_as_dict_shape():
    d = validate_layout(_layout(_single("a", "1"))).as_dict()
    assert d == {"isValid": True, "errors": [], "warnings": []}


def test_non_finite_shop_values():
    p = _single(
        "a",
        "1",
        shops=[Shop(id="s1", x=0, width=float("nan")), Shop(id="s2", x=float("inf"), width=100)],
    )
    result = validate_layout(_layout(p))
    assert not result.is_valid
    finite_errors = [e for e in result.errors if "must be finite numbers" in e]
    assert len(finite_errors) == 2
