"""Shared helpers for store-backed services."""

from __future__ import annotations

import functools
import logging
import math
import time
import uuid
from typing import Any, Awaitable, Callable, TypeVar

from store import KeyValueStore, StoreError

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def now_ms() -> int:
    return int(time.time() * 1000)


def unique_id(prefix: str) -> str:
    """Timestamped id with a random suffix, e.g. ``note_1760861820000_3f9a1c``."""
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:6]}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def percentage(numerator: float, denominator: float) -> int:
    """Whole-number percentage, 0 when the denominator is 0."""
    if not denominator:
        return 0
    return round_half_up(numerator / denominator * 100)


class StoreBackedService:
    """Base for services that own one or more entity families in a store.

    With ``strict=False`` (default) store failures are logged and the
    operation returns its safe default. With ``strict=True`` the
    ``StoreError`` propagates so callers can tell "no data" from
    "store unavailable".
    """

    def __init__(self, store: KeyValueStore, *, strict: bool = False) -> None:
        self.store = store
        self.strict = strict


def store_fallback(default: Any, action: str) -> Callable[[F], F]:
    """Convert ``StoreError`` into ``default`` for non-strict services.

    ``default`` may be a value or a zero-argument factory (``list``, a model class).
    """

    def decorator(func: F) -> F:
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        async def wrapper(self: StoreBackedService, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except StoreError:
                if self.strict:
                    raise
                logger.exception("Store failure while %s", action)
                return default() if callable(default) else default

        return wrapper  # type: ignore[return-value]

    return decorator
