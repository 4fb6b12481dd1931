"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an Alembic context.
"""

from __future__ import annotations

import os
import re
from urllib.parse import quote_plus, urlparse, urlunparse

_DSN_TOKEN = re.compile(r"(\w+)\s*=\s*('(?:[^'\\]|\\.)*'|\S+)")


def _parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq ``key=value`` DSN, unquoting single-quoted values."""
    tokens: dict[str, str] = {}
    for match in _DSN_TOKEN.finditer(dsn):
        key, value = match.group(1), match.group(2)
        if value.startswith("'") and value.endswith("'"):
            value = re.sub(r"\\(.)", r"\1", value[1:-1])
        tokens[key] = value
    return tokens


def _libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq DSN into a SQLAlchemy psycopg2 URL.

    A host starting with ``/`` is a unix socket directory and is passed as
    the ``host`` query parameter.
    """
    tokens = _parse_libpq_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    user = quote_plus(tokens.get("user", ""))
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")
    port = tokens.get("port", "5432")
    credentials = f"{user}:{quote_plus(password)}"

    if host.startswith("/"):
        return f"postgresql+psycopg2://{credentials}@/{dbname}?host={quote_plus(host)}"
    return f"postgresql+psycopg2://{credentials}@{host}:{port}/{dbname}"


def _get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        return _libpq_dsn_to_url(url)

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = "postgresql+psycopg2://" + url[len(prefix):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parsed = urlparse(url)
    if db_password and not parsed.password:
        netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(db_password)}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        url = urlunparse(parsed._replace(netloc=netloc))
    return url
