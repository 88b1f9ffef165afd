"""
tests/test_identity.py — Identity Resolver
===========================================
"""

from __future__ import annotations

import asyncio

import pytest

from togu.errors import IdentityUnavailable
from togu.services.identity import (
    AuthState,
    AuthStatus,
    IdentityResolver,
    Principal,
    principal_from_auth,
)


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


class TestPrincipalFromAuth:
    def test_email_claim(self):
        principal = principal_from_auth(AuthState.signed_in({"email": "ada@x.io", "name": "Ada"}))
        assert principal == Principal("ada@x.io", "Ada")

    def test_falls_back_through_claim_keys(self):
        principal = principal_from_auth(AuthState.signed_in({
            "preferred_username": "grace@x.io", "given_name": "Grace",
        }))
        assert principal.email == "grace@x.io"
        assert principal.display_name == "Grace"

    def test_display_name_defaults_to_email(self):
        principal = principal_from_auth(AuthState.signed_in({"upn": "lin@x.io"}))
        assert principal.display_name == "lin@x.io"

    def test_missing_email_raises(self):
        with pytest.raises(IdentityUnavailable):
            principal_from_auth(AuthState.signed_in({"name": "Nobody"}))

    @pytest.mark.parametrize("status", [
        AuthStatus.RESTORING, AuthStatus.SIGNED_OUT, AuthStatus.SIGNING_IN, AuthStatus.ERROR,
    ])
    def test_not_signed_in_raises(self, status):
        with pytest.raises(IdentityUnavailable):
            principal_from_auth(AuthState(status))


class TestIdentityResolver:
    def test_finds_existing_user_case_insensitively(self, store):
        user_id = store.seed("Users", {"Name": "Ada", "Email": "Ada@X.io", "Points": 3})
        resolver = IdentityResolver(store)

        assert run_async(resolver.resolve(Principal("ada@x.io", "Ada"))) == user_id
        assert store.count("create") == 0

    def test_creates_missing_user_once(self, store):
        resolver = IdentityResolver(store)
        principal = Principal("new@x.io", "Newcomer")

        async def go():
            first = await resolver.resolve(principal)
            second = await resolver.resolve(principal)
            return first, second

        first, second = run_async(go())
        assert first == second
        assert store.count("create", "Users") == 1
        assert store.fields("Users", first) == {"Name": "Newcomer", "Email": "new@x.io", "Points": 0}

    def test_cached_resolution_does_no_io(self, store):
        store.seed("Users", {"Name": "Ada", "Email": "ada@x.io"})
        resolver = IdentityResolver(store)
        principal = Principal("ada@x.io", "Ada")

        run_async(resolver.resolve(principal))
        calls_before = len(store.calls)
        run_async(resolver.resolve(principal))
        assert len(store.calls) == calls_before

    def test_concurrent_first_resolutions_create_one_user(self, store):
        resolver = IdentityResolver(store)
        principal = Principal("race@x.io", "Racer")

        async def go():
            return await asyncio.gather(*(resolver.resolve(principal) for _ in range(3)))

        ids = run_async(go())
        assert len(set(ids)) == 1
        assert store.count("create", "Users") == 1
        assert len(resolver._locks) == 0

    def test_missing_principal_raises(self, store):
        with pytest.raises(IdentityUnavailable):
            run_async(IdentityResolver(store).resolve(None))

    def test_on_resolved_fires_once_per_principal(self, store):
        seen = []
        resolver = IdentityResolver(store, on_resolved=lambda p, uid: seen.append((p.key, uid)))
        principal = Principal("Ada@X.io", "Ada")

        async def go():
            await asyncio.gather(resolver.resolve(principal), resolver.resolve(principal))
            return await resolver.resolve(principal)

        user_id = run_async(go())
        assert seen == [("ada@x.io", user_id)]
        assert resolver.cached(principal) == user_id
        assert resolver.cached(None) is None
