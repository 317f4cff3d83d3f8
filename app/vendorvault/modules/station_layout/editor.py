"""
Server-side editing sessions.

Each open editor owns exactly one `LayoutStore`. The registry lock guards the
token map only; a store is never touched by two editors.
"""
from __future__ import annotations

import math
import re
import secrets
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from app.vendorvault.modules.station_layout.errors import ElementNotFound, LayoutError
from app.vendorvault.modules.station_layout.pricing import pricing_from_payload
from app.vendorvault.modules.station_layout.store import LayoutStore

SESSION_IDLE_TTL = timedelta(hours=8)

# Operation name (as sent by clients) -> LayoutStore method.
OPERATIONS: dict[str, str] = {
    "addIndependentTrack": "add_independent_track",
    "removeTrack": "remove_track",
    "moveTrack": "move_track",
    "updateTrackLength": "update_track_length",
    "addCompletePlatform": "add_complete_platform",
    "addDualTrackPlatform": "add_dual_track_platform",
    "togglePlatformInvert": "toggle_platform_invert",
    "removePlatform": "remove_platform",
    "movePlatform": "move_platform",
    "updatePlatformLength": "update_platform_length",
    "addShop": "add_shop",
    "removeShop": "remove_shop",
    "updateShop": "update_shop",
    "moveShop": "move_shop",
    "resizeShop": "resize_shop",
    "applyUniformShopSize": "apply_uniform_shop_size",
    "addInfrastructure": "add_infrastructure",
    "addConnectorInfrastructure": "add_connector_infrastructure",
    "removeInfrastructure": "remove_infrastructure",
    "moveInfrastructure": "move_infrastructure",
    "rotateInfrastructure": "rotate_infrastructure",
    "toggleInfrastructureLock": "toggle_infrastructure_lock",
    "setPricing": "set_pricing",
}

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def _coerce(key: str, value: Any) -> Any:
    if key == "lease_end_date" and isinstance(value, str):
        return date.fromisoformat(value[:10]) if value else None
    return value


def _check_finite(op: str, value: Any) -> None:
    if isinstance(value, float) and not math.isfinite(value):
        raise LayoutError(f"Invalid value for {op}: numbers must be finite.")
    if isinstance(value, dict):
        for v in value.values():
            _check_finite(op, v)
    elif isinstance(value, list):
        for v in value:
            _check_finite(op, v)


def apply_operation(store: LayoutStore, op: str, args: dict | None) -> Any:
    """Run one named store operation with camelCase arguments."""
    method_name = OPERATIONS.get(op)
    if method_name is None:
        raise LayoutError(f"Unknown operation: {op}")
    args = args or {}
    if not isinstance(args, dict):
        raise LayoutError("Operation args must be an object.")
    _check_finite(op, args)
    if op == "setPricing":
        try:
            store.set_pricing(pricing_from_payload(args, store.layout.pricing))
        except ValueError as e:
            raise LayoutError(str(e)) from e
        return store.layout.pricing
    kwargs = {snake(k): v for k, v in args.items()}
    try:
        if op == "updateShop":
            shop_id = kwargs.pop("shop_id", None)
            changes = kwargs.pop("changes", None) or kwargs
            changes = {snake(k): _coerce(snake(k), v) for k, v in changes.items()}
            return store.update_shop(shop_id, **changes)
        kwargs = {k: _coerce(k, v) for k, v in kwargs.items()}
        return getattr(store, method_name)(**kwargs)
    except TypeError as e:
        raise LayoutError(f"Invalid arguments for {op}: {e}") from e
    except ValueError as e:
        raise LayoutError(f"Invalid value for {op}: {e}") from e


@dataclass
class EditorSession:
    token: str
    user_id: int
    station_id: str
    store: LayoutStore
    opened_at: datetime = field(default_factory=datetime.utcnow)
    touched_at: datetime = field(default_factory=datetime.utcnow)


class EditorSessions:
    def __init__(self, idle_ttl: timedelta = SESSION_IDLE_TTL) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, EditorSession] = {}
        self.idle_ttl = idle_ttl

    def _purge(self, now: datetime) -> None:
        stale = [t for t, es in self._sessions.items() if now - es.touched_at > self.idle_ttl]
        for t in stale:
            del self._sessions[t]

    def open(self, user_id: int, station_id: str, store: LayoutStore) -> EditorSession:
        """Register a store for (user, station); reopening replaces the user's previous session for that station."""
        now = datetime.utcnow()
        with self._lock:
            self._purge(now)
            for t, es in list(self._sessions.items()):
                if es.user_id == user_id and es.station_id == station_id:
                    del self._sessions[t]
            es = EditorSession(token=secrets.token_urlsafe(24), user_id=user_id, station_id=station_id, store=store)
            self._sessions[es.token] = es
            return es

    def get(self, token: str, user_id: int) -> EditorSession:
        now = datetime.utcnow()
        with self._lock:
            self._purge(now)
            es = self._sessions.get(token)
            if es is None or es.user_id != user_id:
                raise ElementNotFound("editor session", token)
            es.touched_at = now
            return es

    def close(self, token: str, user_id: int) -> None:
        with self._lock:
            es = self._sessions.get(token)
            if es is None or es.user_id != user_id:
                raise ElementNotFound("editor session", token)
            del self._sessions[token]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
