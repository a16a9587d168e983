"""Shared pydantic base and timestamp helpers for persisted records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ModelT = TypeVar("ModelT", bound="CamelModel")


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC string with millisecond precision, e.g. ``2026-10-19T09:57:00.123Z``."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def try_parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


class CamelModel(BaseModel):
    """Record serialized with camelCase keys, constructible by field name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def coerce(cls: Type[ModelT], value: Any) -> ModelT:
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)

    def set_fields(self) -> dict:
        """Attributes explicitly provided at construction, as live values."""
        return {name: getattr(self, name) for name in self.model_fields_set}
