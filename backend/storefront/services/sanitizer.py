# Overview: Normalizes user-supplied free text before storage, comparison or logging.

from __future__ import annotations

from markupsafe import escape


class InvalidInputType(TypeError):
    """Raised when a non-string reaches the sanitizer."""


def sanitize_input(value) -> str:
    """
    Trim surrounding whitespace and HTML-escape the result.

    Side-effect free. Rejects anything that is not a str (including None and
    bytes) so callers cannot smuggle structured values such as query
    operators into lookups.
    """
    if not isinstance(value, str):
        raise InvalidInputType("Invalid input type")
    return str(escape(value.strip()))


def sanitize_optional(value) -> str | None:
    """Sanitize a field that may be omitted; empty strings become None."""
    if value is None:
        return None
    cleaned = sanitize_input(value)
    return cleaned or None
