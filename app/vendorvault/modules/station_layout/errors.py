from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.vendorvault.modules.station_layout.sizing import OversizedShopEntry


class LayoutError(RuntimeError):
    """Base class for every station layout failure."""


class AlreadyInitialized(LayoutError):
    pass


class NoLayoutLoaded(LayoutError):
    pass


class ElementNotFound(LayoutError):
    def __init__(self, kind: str, element_id: str) -> None:
        super().__init__(f"{kind} not found: {element_id}")
        self.kind = kind
        self.element_id = element_id


class MalformedDocument(LayoutError):
    def __init__(self, problems: list[str]) -> None:
        super().__init__("Malformed layout document: " + "; ".join(problems))
        self.problems = problems


class LayoutValidationError(LayoutError):
    def __init__(self, message: str, errors: list[str]) -> None:
        super().__init__(message)
        self.errors = errors


class StructuralInvalid(LayoutValidationError):
    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Layout validation failed with {len(errors)} error(s).", errors)


class PlatformCountMismatch(LayoutValidationError):
    def __init__(self, expected: int, found: int, errors: list[str]) -> None:
        super().__init__(f"Platform count mismatch: expected {expected}, found {found}.", errors)
        self.expected = expected
        self.found = found


class OversizedShop(LayoutValidationError):
    def __init__(self, offenders: list["OversizedShopEntry"], effective_max: int) -> None:
        errors = [o.describe() for o in offenders]
        super().__init__(f"{len(offenders)} oversized shop(s); effective max {effective_max} units.", errors)
        self.offenders = offenders
        self.effective_max = effective_max


class ExternalFetchFailure(LayoutError):
    def __init__(self, collaborator: str, detail: str) -> None:
        super().__init__(f"{collaborator} unavailable: {detail}")
        self.collaborator = collaborator
        self.detail = detail


class LayoutVersionConflict(LayoutError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Layout was modified by someone else (expected version {expected}, current {actual}).")
        self.expected = expected
        self.actual = actual


class LayoutLocked(LayoutError):
    pass


class LayoutAccessDenied(LayoutError):
    pass
