"""
togu.api.deps — FastAPI dependency injection
=============================================

Bearer JWT → claim set → :class:`AuthState` → principal → session.

Token verification settings come from the environment and are checked
once, at import, so a misconfigured deployment fails before serving:

  ``JWT_SECRET``     HMAC key, required, at least 32 characters, not a
                     placeholder and not the store credential
  ``JWT_ALGORITHM``  ``HS256`` (default), ``HS384`` or ``HS512``
  ``JWT_AUDIENCE``   optional; when set, tokens must carry a matching ``aud``
  ``JWT_ISSUER``     optional; when set, tokens must carry a matching ``iss``
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError

from togu.config import ToguConfig, load_config
from togu.errors import IdentityUnavailable
from togu.services.identity import AuthState, principal_from_auth
from togu.session import SessionRegistry, ToguSession

MIN_SECRET_LENGTH = 32
HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")

_PLACEHOLDER_SECRETS = frozenset({
    "changeme",
    "change-me",
    "secret",
    "password",
    "togu",
    "togu-secret",
    "jwt-secret",
})


@dataclass(frozen=True, slots=True)
class TokenSettings:
    secret: str
    algorithm: str = "HS256"
    audience: str | None = None
    issuer: str | None = None

    def decode(self, token: str) -> dict:
        """Verify *token* and return its claims; raises ``InvalidTokenError``."""
        return jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            audience=self.audience,
            issuer=self.issuer,
            options={"verify_aud": self.audience is not None},
        )


def token_settings_from_env(env: Mapping[str, str]) -> TokenSettings:
    """Build :class:`TokenSettings` from *env*.

    Raises
    ------
    RuntimeError
        With a message naming the offending variable.
    """
    secret = env.get("JWT_SECRET", "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET is missing; set it in .env (see .env.example).")
    if secret.lower() in _PLACEHOLDER_SECRETS:
        raise RuntimeError("JWT_SECRET is a placeholder value; generate a random secret.")
    if len(secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET has {len(secret)} characters; at least {MIN_SECRET_LENGTH} are required."
        )
    if secret == env.get("AIRTABLE_KEY", "").strip():
        raise RuntimeError("JWT_SECRET must not reuse the AIRTABLE_KEY store credential.")

    algorithm = env.get("JWT_ALGORITHM", "").strip().upper() or "HS256"
    if algorithm not in HMAC_ALGORITHMS:
        raise RuntimeError(
            f"JWT_ALGORITHM {algorithm!r} is not supported; use one of {', '.join(HMAC_ALGORITHMS)}."
        )

    return TokenSettings(
        secret=secret,
        algorithm=algorithm,
        audience=env.get("JWT_AUDIENCE", "").strip() or None,
        issuer=env.get("JWT_ISSUER", "").strip() or None,
    )


TOKENS: TokenSettings = token_settings_from_env(os.environ)


@lru_cache(maxsize=1)
def get_config() -> ToguConfig:
    return load_config(os.getenv("TOGU_CONFIG", "config.yaml"))


def get_registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Store not configured")
    return registry


def get_claims(authorization: Annotated[str | None, Header()] = None) -> dict:
    """Validate the bearer JWT and return its payload (the claim set)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return TOKENS.decode(token)
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_session(
    claims: Annotated[dict, Depends(get_claims)],
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> ToguSession:
    try:
        principal = principal_from_auth(AuthState.signed_in(claims))
    except IdentityUnavailable as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, str(exc))
    return registry.get(principal)
