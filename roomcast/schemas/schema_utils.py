"""Shared utilities for schema validation."""

from datetime import datetime, timezone
from typing import Any


def parse_mongo_datetime(v: Any) -> Any:
    """Normalize datetimes read back from MongoDB.

    Accepts Extended JSON (`{'$date': '2024-11-01T08:00:00Z'}` or
    `{'$date': <epoch ms>}`) as written by mongoimport, and bare epoch
    milliseconds. Anything else is left for pydantic to validate.
    """
    if isinstance(v, datetime):
        return v
    if isinstance(v, dict) and "$date" in v:
        v = v["$date"]
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
    if isinstance(v, int) and not isinstance(v, bool):
        return datetime.fromtimestamp(v / 1000, timezone.utc)
    return v
