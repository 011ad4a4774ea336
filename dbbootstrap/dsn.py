"""Structured codec for libpq-style connection strings and postgres URLs."""

from __future__ import annotations

import re
from typing import Mapping
from urllib.parse import quote, urlencode

from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError

URL_SCHEMES = ("postgres", "postgresql")

_NEEDS_QUOTING = re.compile(r"[\s'\\]")
_REDACTED = "***"


class DsnError(ValueError):
    """Raised when a connection string cannot be parsed."""


def is_url(text: str) -> bool:
    """Return True when the string looks like a postgres:// URL."""

    scheme, sep, _ = text.strip().partition("://")
    return bool(sep) and scheme.lower() in URL_SCHEMES


def parse_dsn(text: str) -> dict[str, str]:
    """Parse a ``key=value`` connection string into an ordered field map.

    Follows the libpq conninfo grammar: pairs are separated by whitespace
    and values may be single-quoted. Whitespace before ``=`` is ignored, but
    ``key=`` followed by whitespace is an empty value, so an unset
    environment variable cannot swallow the next field.
    A backslash escapes the next character in both quoted and bare values.
    """

    fields: dict[str, str] = {}
    length = len(text)
    pos = _skip_space(text, 0)
    while pos < length:
        start = pos
        while pos < length and text[pos] != "=" and not text[pos].isspace():
            pos += 1
        key = text[start:pos]
        pos = _skip_space(text, pos)
        if not key or pos >= length or text[pos] != "=":
            raise DsnError(f"missing '=' after {key!r} in connection string")
        value, pos = _read_value(text, pos + 1)
        fields[key] = value
        pos = _skip_space(text, pos)
    return fields


def format_dsn(fields: Mapping[str, str]) -> str:
    """Render a field map back into a ``key=value`` connection string."""

    return " ".join(f"{key}={_quote(str(value))}" for key, value in fields.items())


def url_to_dsn(url: str) -> str:
    """Convert a postgres URL into the canonical sorted ``key=value`` form."""

    try:
        parsed = make_url(url.strip())
    except (ArgumentError, ValueError) as exc:
        raise DsnError(f"invalid connection URL: {exc}") from exc
    if parsed.drivername.lower() not in URL_SCHEMES:
        raise DsnError(f"invalid connection protocol: {parsed.drivername!r}")

    fields: dict[str, str] = {}
    if parsed.username:
        fields["user"] = parsed.username
    if parsed.password is not None:
        fields["password"] = str(parsed.password)
    if parsed.host:
        fields["host"] = parsed.host
    if parsed.port is not None:
        fields["port"] = str(parsed.port)
    if parsed.database:
        fields["dbname"] = parsed.database
    for key, value in parsed.query.items():
        # Repeated parameters arrive as tuples; the last one wins, as in libpq.
        fields[key] = value if isinstance(value, str) else value[-1]

    return format_dsn(dict(sorted(fields.items())))


def dsn_to_url(fields: Mapping[str, str]) -> str:
    """Render a field map as a ``postgresql://`` URL.

    Unix socket directories cannot sit in the URL authority, so they are
    carried as ``host``/``port`` query parameters instead.
    """

    remaining = dict(fields)
    user = remaining.pop("user", None)
    password = remaining.pop("password", None)
    host = remaining.pop("host", "")
    port = remaining.pop("port", "")
    dbname = remaining.pop("dbname", "")

    if host.startswith("/"):
        remaining["host"] = host
        if port:
            remaining["port"] = port
        host = port = ""
    elif ":" in host and "," not in host and not host.startswith("["):
        host = f"[{host}]"

    netloc = ""
    if user is not None:
        netloc = quote(user, safe="")
        if password is not None:
            netloc += ":" + quote(password, safe="")
        netloc += "@"
    elif password is not None:
        remaining["password"] = password
    netloc += host
    if port:
        netloc += f":{port}"

    url = f"postgresql://{netloc}"
    if dbname:
        url += "/" + quote(dbname, safe="")
    if remaining:
        url += "?" + urlencode(remaining)
    return url


def replace_field(text: str, key: str, value: str) -> str:
    """Return the connection string with one field set, keeping field order."""

    fields = parse_dsn(text)
    fields[key] = value
    return format_dsn(fields)


def redact(text: str) -> str:
    """Mask the password in a URL or ``key=value`` string for logging."""

    if is_url(text):
        try:
            parsed = make_url(text.strip())
        except (ArgumentError, ValueError):
            return text
        if parsed.password is None:
            return text
        return parsed.render_as_string(hide_password=True)
    try:
        fields = parse_dsn(text)
    except DsnError:
        return text
    if "password" not in fields:
        return text
    fields["password"] = _REDACTED
    return format_dsn(fields)


def _skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _read_value(text: str, pos: int) -> tuple[str, int]:
    chars: list[str] = []
    length = len(text)
    quoted = pos < length and text[pos] == "'"
    if quoted:
        pos += 1
    while True:
        if pos >= length:
            if quoted:
                raise DsnError("unterminated quoted value in connection string")
            break
        char = text[pos]
        if char == "\\" and pos + 1 < length:
            chars.append(text[pos + 1])
            pos += 2
            continue
        if quoted and char == "'":
            pos += 1
            break
        if not quoted and char.isspace():
            break
        chars.append(char)
        pos += 1
    return "".join(chars), pos


def _quote(value: str) -> str:
    if value and not _NEEDS_QUOTING.search(value):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


__all__ = [
    "DsnError",
    "URL_SCHEMES",
    "dsn_to_url",
    "format_dsn",
    "is_url",
    "parse_dsn",
    "redact",
    "replace_field",
    "url_to_dsn",
]
