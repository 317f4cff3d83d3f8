"""
Structural and station cross-checks over a layout snapshot.

Every check runs; violations are collected rather than raised so callers can
show the whole remediation list at once.
"""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field

from app.vendorvault.modules.station_layout.layout import Layout, Platform


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"isValid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _label(platform: Platform, index: int) -> str:
    num = (platform.platform_number or "").strip()
    return f"Platform {num}" if num else f"Platform #{index + 1}"


def platform_slot_count(layout: Layout) -> int:
    return sum(p.slot_count for p in layout.platforms)


def _check_track_configuration(platform: Platform, label: str, errors: list[str], warnings: list[str]) -> None:
    single_parts = platform.track is not None or platform.restricted_zone is not None
    dual_parts = any(
        part is not None
        for part in (
            platform.top_track,
            platform.top_restricted_zone,
            platform.bottom_track,
            platform.bottom_restricted_zone,
        )
    )

    if platform.is_dual_track:
        if platform.track is not None or platform.restricted_zone is not None:
            errors.append(f"{label}: dual-track platform must not carry a single track or restricted zone.")
        if platform.top_track is None:
            errors.append(f"{label}: dual-track platform is missing its top track.")
        if platform.bottom_track is None:
            errors.append(f"{label}: dual-track platform is missing its bottom track.")
        if platform.top_track is not None and platform.top_restricted_zone is None:
            errors.append(f"{label}: top track has no restricted zone.")
        if platform.bottom_track is not None and platform.bottom_restricted_zone is None:
            errors.append(f"{label}: bottom track has no restricted zone.")
        if platform.is_inverted:
            warnings.append(f"{label}: inversion is ignored on dual-track platforms.")
        return

    if not single_parts and not dual_parts:
        errors.append(f"{label}: platform has no track configuration.")
        return
    if dual_parts:
        errors.append(f"{label}: single-track platform carries top/bottom track parts.")
    if platform.track is None:
        errors.append(f"{label}: single-track platform is missing its track.")
    elif platform.restricted_zone is None:
        errors.append(f"{label}: track has no restricted zone.")
    if platform.track is None and platform.restricted_zone is not None:
        errors.append(f"{label}: restricted zone present without a track.")


def _check_shops(platform: Platform, label: str, errors: list[str]) -> None:
    for idx, shop in enumerate(platform.shops):
        if not all(math.isfinite(v) for v in (shop.x, shop.width, shop.effective_height)):
            errors.append(f"{label}, shop {idx}: position and size must be finite numbers.")
            continue
        if shop.x < 0:
            errors.append(f"{label}, shop {idx}: starts before the platform (x={shop.x:g}).")
        if shop.width <= 0 or shop.effective_height <= 0:
            errors.append(f"{label}, shop {idx}: dimensions must be positive.")
        end = shop.x + shop.width
        if end > platform.length:
            errors.append(
                f"{label}, shop {idx}: extends past the platform end "
                f"({end:g} > length {platform.length:g})."
            )


def _check_numbering(layout: Layout, errors: list[str]) -> None:
    raw = Counter((p.platform_number or "").strip() for p in layout.platforms)
    for num, count in sorted(raw.items()):
        if num and count > 1:
            errors.append(f"Duplicate platform number {num} used by {count} platforms.")

    # slot -> (platform index, label, is the platform's own number)
    owners: dict[int, tuple[int, str, bool]] = {}
    for idx, platform in enumerate(layout.platforms):
        label = _label(platform, idx)
        n = platform.number
        if n is None or n < 1:
            errors.append(f"{label}: platform number must be a positive integer.")
            continue
        for slot in platform.slot_numbers():
            primary = slot == n
            other = owners.get(slot)
            if other is None:
                owners[slot] = (idx, label, primary)
                continue
            other_idx, other_label, other_primary = other
            if other_idx != idx and not (primary and other_primary):
                errors.append(f"{label}: platform slot {slot} is already occupied by {other_label}.")

    slots = sorted(owners)
    if slots:
        if slots[0] != 1:
            errors.append("Platform numbering should start from 1.")
        for prev, cur in zip(slots, slots[1:]):
            if cur != prev + 1:
                errors.append(f"Platform numbering is not sequential. Gap between Platform {prev} and {cur}.")
                break


def _check_track_numbers(layout: Layout, errors: list[str]) -> None:
    numbers = [t.track_number for t in layout.tracks]
    for p in layout.platforms:
        numbers.extend(p.track_numbers())
    for num, count in sorted(Counter(numbers).items()):
        if count > 1:
            errors.append(f"Duplicate track number {num} used {count} times.")


def validate_layout(layout: Layout | None) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if layout is None:
        return ValidationResult(is_valid=False, errors=["No layout loaded."])

    if not layout.platforms:
        errors.append("Layout must have at least one platform.")

    for idx, platform in enumerate(layout.platforms):
        label = _label(platform, idx)
        _check_track_configuration(platform, label, errors, warnings)
        if platform.length <= 0:
            errors.append(f"{label}: length must be positive.")
        _check_shops(platform, label, errors)

    _check_numbering(layout, errors)
    _check_track_numbers(layout, errors)

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_with_station_data(layout: Layout | None, station_platform_count: int) -> ValidationResult:
    """Compare the layout's slot count with the station's declared platform count."""
    if layout is None:
        return ValidationResult(is_valid=False, errors=["No layout loaded."])

    found = platform_slot_count(layout)
    expected = int(station_platform_count)
    errors: list[str] = []
    if found != expected:
        diff = abs(expected - found)
        action = "add" if found < expected else "remove"
        errors.append(
            f"Platform count mismatch: expected {expected}, found {found}. "
            f"Your station has {_plural(expected, 'platform')} but your layout has "
            f"{_plural(found, 'platform')}. Please {action} {_plural(diff, 'platform')}."
        )
    return ValidationResult(is_valid=not errors, errors=errors)
