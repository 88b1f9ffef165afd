"""
togu.store.formula — filterByFormula Builders
==============================================

The store filters server-side with a small formula language::

    AND(FIND('python', {Tags}), OR(FIND('loop', LOWER({Title})), ...))

These helpers build such strings.  User text only ever enters a formula
through :func:`quote`, which escapes backslashes and single quotes.
The result is passed to the client unencoded; httpx URL-encodes it once.
"""

from __future__ import annotations


def quote(value: str) -> str:
    """Render *value* as a single-quoted string literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def field(name: str) -> str:
    """Reference a record field: ``{Name}``."""
    return "{" + name + "}"


def lower(expr: str) -> str:
    return f"LOWER({expr})"


def eq(left: str, right: str) -> str:
    return f"{left}={right}"


def gt(left: str, right: str) -> str:
    return f"{left} > {right}"


def find(needle: str, haystack: str) -> str:
    """Substring test; FIND returns the 1-based position, or 0 when absent.

    Linked-record and multi-select fields are matched against their
    comma-joined text, which makes this the membership test as well.
    """
    return f"FIND({needle}, {haystack})"


def and_(*parts: str) -> str | None:
    """Combine *parts* with AND, collapsing the 0- and 1-part cases."""
    parts = tuple(p for p in parts if p)
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return f"AND({', '.join(parts)})"


def or_(*parts: str) -> str | None:
    parts = tuple(p for p in parts if p)
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return f"OR({', '.join(parts)})"


# ---------------------------------------------------------------------------
# Common predicates
# ---------------------------------------------------------------------------
def contains(field_name: str, value: str) -> str:
    """``FIND('<value>', {field})``: *value* appears in the field."""
    return find(quote(value), field(field_name))


def field_equals(field_name: str, value: str) -> str:
    return eq(field(field_name), quote(value))


def email_equals(field_name: str, email: str) -> str:
    """Case-insensitive email match."""
    return eq(lower(field(field_name)), quote(email.strip().lower()))


def text_search(needle: str, *field_names: str) -> str | None:
    """Case-insensitive substring match of *needle* in any of *field_names*."""
    needle = needle.strip().lower()
    if not needle:
        return None
    return or_(*(find(quote(needle), lower(field(name))) for name in field_names))
