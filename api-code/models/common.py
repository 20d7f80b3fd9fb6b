from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MongoModel(BaseModel):
    """Base Pydantic model with sensible defaults for MongoDB documents."""

    model_config = {
        "populate_by_name": True,
        "use_enum_values": True,
        "frozen": True,
        "validate_default": True,
    }

    def to_mongo(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
