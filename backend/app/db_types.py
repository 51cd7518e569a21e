"""Column types shared by the terminal and user models."""

from __future__ import annotations

import ipaddress
import uuid
from typing import Any

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import CHAR, String, TypeDecorator


def normalize_ip_address(value: Any) -> str:
    """Return the canonical text form of an IPv4/IPv6 address.

    Raises ``ValueError`` for values that are not IP addresses so callers can
    surface a validation error before touching the database.
    """

    return str(ipaddress.ip_address(str(value).strip()))


class GUID(TypeDecorator):
    """UUID primary keys stored natively in PostgreSQL and as text elsewhere.

    Values are always handed back to the application as strings.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)


class INET(TypeDecorator):
    """Terminal IP addresses, native ``INET`` on PostgreSQL.

    Addresses are canonicalised on the way in so that alternative IPv6
    spellings (``FE80:0:0::1`` vs ``fe80::1``) share one uniqueness slot.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.INET())
        return dialect.type_descriptor(String(45))

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return normalize_ip_address(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)
