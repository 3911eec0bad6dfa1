# gradelab/models/types.py
from sqlalchemy import JSON, String
from sqlalchemy.types import TypeDecorator


class JSONDocument(TypeDecorator):
    """
    JSONB on PostgreSQL, plain JSON on MySQL / SQLite.
    Lets the same models run under tests (sqlite://) and in production.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import JSONB
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class EnumValue(TypeDecorator):
    """
    Stores a str-based Enum member as its plain value.

    Rows stay readable from SQL (``status = 'scanning'``) and adding a member
    does not require an ALTER TYPE the way a native enum column would.
    """
    impl = String(20)
    cache_ok = True

    def __init__(self, enum_cls, length=20):
        super().__init__(length)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls(value)


def iso_utc(dt):
    return dt.replace(microsecond=0).isoformat() + "Z" if dt else None
