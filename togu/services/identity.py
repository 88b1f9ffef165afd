"""
togu.services.identity — Identity Resolver
===========================================

Maps the signed-in principal (from the auth collaborator's claims) to a
record id in the store's Users table, creating the record on first sight.
Every dependent write (votes, contributions, badges) keys on that id.

Resolution order:
  1. session cache (no I/O)
  2. ``LOWER({Email})='<email>'`` lookup
  3. create ``{Name, Email, Points: 0}``

A principal without an email raises :class:`IdentityUnavailable`.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from togu.engine.locks import KeyedLocks
from togu.errors import IdentityUnavailable
from togu.store import formula
from togu.store.client import RemoteStore

logger = logging.getLogger(__name__)

EMAIL_CLAIMS = ("email", "upn", "preferred_username")
NAME_CLAIMS = ("name", "given_name")


# ---------------------------------------------------------------------------
# Auth collaborator state
# ---------------------------------------------------------------------------
class AuthStatus(enum.StrEnum):
    RESTORING = "restoring"
    SIGNED_OUT = "signed_out"
    SIGNING_IN = "signing_in"
    SIGNED_IN = "signed_in"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class AuthState:
    status: AuthStatus
    claims: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    @classmethod
    def signed_in(cls, claims: dict[str, Any]) -> AuthState:
        return cls(AuthStatus.SIGNED_IN, dict(claims))


@dataclass(frozen=True, slots=True)
class Principal:
    email: str
    display_name: str

    @property
    def key(self) -> str:
        return self.email.strip().lower()


def _claim(claims: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def principal_from_auth(state: AuthState) -> Principal:
    """Extract the principal from a signed-in auth state.

    Raises
    ------
    IdentityUnavailable
        When not signed in or no email-like claim is present.
    """
    if state.status is not AuthStatus.SIGNED_IN:
        raise IdentityUnavailable()
    email = _claim(state.claims, EMAIL_CLAIMS)
    if not email:
        raise IdentityUnavailable()
    name = _claim(state.claims, NAME_CLAIMS) or email
    return Principal(email=email, display_name=name)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------
class IdentityResolver:
    """Session-scoped principal → user-id cache backed by the Users table.

    *on_resolved* is called with ``(principal, user_id)`` the first time a
    principal resolves.
    """

    def __init__(
        self,
        store: RemoteStore,
        users_table: str = "Users",
        *,
        on_resolved: Callable[[Principal, str], None] | None = None,
    ) -> None:
        self._store = store
        self._table = users_table
        self._on_resolved = on_resolved
        self._cache: dict[str, str] = {}
        self._locks = KeyedLocks()

    def cached(self, principal: Principal | None) -> str | None:
        if principal is None:
            return None
        return self._cache.get(principal.key)

    async def resolve(self, principal: Principal | None) -> str:
        """Return the store user id for *principal*, creating the user if needed."""
        if principal is None or not principal.key:
            raise IdentityUnavailable()

        key = principal.key
        if key in self._cache:
            return self._cache[key]

        async with self._locks.hold(key):
            if key in self._cache:
                return self._cache[key]

            page = await self._store.list(
                self._table,
                formula=formula.email_equals("Email", key),
                max_records=1,
            )
            if page.records:
                user_id = page.records[0].id
                logger.debug("Resolved %s to existing user %s", key, user_id)
            else:
                record = await self._store.create(
                    self._table,
                    {"Name": principal.display_name, "Email": principal.email, "Points": 0},
                )
                user_id = record.id
                logger.info("Created user %s for %s", user_id, key)

            self._cache[key] = user_id

        if self._on_resolved is not None:
            self._on_resolved(principal, user_id)
        return user_id
