from datetime import datetime, timezone


def get_time_stamp():
    return datetime.now(timezone.utc)


def to_utc_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def epoch_millis(dt: datetime | None = None) -> int:
    return int((dt or get_time_stamp()).timestamp() * 1000)
