from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import DateTime, TypeDecorator

from nutriscope.utils.timezone import to_utc_aware, to_utc_naive


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class UTCDateTime(TypeDecorator):
    """Timestamp column that always hands back UTC-aware datetimes.

    SQLite has no timestamptz, so values are stored there as naive UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return to_utc_naive(value)
        return to_utc_aware(value)

    def process_result_value(self, value, dialect):
        return to_utc_aware(value)
