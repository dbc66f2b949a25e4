from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import TypeAdapter

_datetime_adapter = TypeAdapter(datetime)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Supabase timestamp (any fractional-second precision) as an aware UTC-default datetime."""
    if not value:
        return None
    parsed = _datetime_adapter.validate_python(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
