import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

BUILD_STARTED_AT_FORMAT = "%m/%d/%Y %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(dt_value, default_now: bool = True) -> datetime | None:
    """
    Parse datetime from an API payload or database row to naive UTC datetime.

    Handles:
    - ISO string with timezone (e.g., "2024-01-01T00:00:00Z") -> naive UTC datetime
    - datetime object with timezone -> naive UTC datetime
    - datetime object without timezone -> returned as-is
    - epoch seconds (int/float) -> naive UTC datetime
    - None or invalid -> current UTC time (if default_now=True) or None
    """
    if dt_value is None:
        return utc_now() if default_now else None

    if isinstance(dt_value, datetime):
        return ensure_naive_utc(dt_value)

    if isinstance(dt_value, (int, float)):
        return datetime.fromtimestamp(dt_value, tz=timezone.utc).replace(tzinfo=None)

    if isinstance(dt_value, str):
        try:
            dt = datetime.fromisoformat(dt_value.replace("Z", "+00:00"))
            return ensure_naive_utc(dt)
        except ValueError:
            logger.warning(f"Failed to parse datetime string: {dt_value}")
            return utc_now() if default_now else None

    logger.warning(f"Unexpected datetime type: {type(dt_value)}")
    return utc_now() if default_now else None


def ensure_naive_utc(dt_value: datetime | None) -> datetime | None:
    """Ensure a datetime is naive UTC."""
    if dt_value is None:
        return None
    if dt_value.tzinfo is not None:
        return dt_value.astimezone(timezone.utc).replace(tzinfo=None)
    return dt_value


def format_build_started_at(dt_value: datetime | None) -> str | None:
    if dt_value is None:
        return None
    return dt_value.strftime(BUILD_STARTED_AT_FORMAT)
