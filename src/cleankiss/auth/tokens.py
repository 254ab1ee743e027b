"""Bearer token issuing and verification.

Tokens are HMAC-signed JWTs (PyJWT). Verification enforces signature,
issuer, audience and expiry, then maps claims to a
:class:`~cleankiss.models.Principal`:

- ``sub`` -> ``id``
- ``email`` -> ``email``
- ``AuthConfig.role_claim`` (default ``roles``) -> ``roles``
- ``AuthConfig.permission_claim`` (default ``permissions``) -> ``permissions``

Issuing exists for local development and tests; production tokens come
from an identity provider configured with the same secret and claims.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from cleankiss.config import AuthConfig
from cleankiss.exceptions import AuthenticationError
from cleankiss.models import Principal


def issue_token(
    cfg: AuthConfig,
    subject: str,
    permissions: list[str] | None = None,
    roles: list[str] | None = None,
    email: str | None = None,
    ttl: timedelta | None = None,
) -> str:
    now = datetime.now(tz=UTC)
    lifetime = ttl if ttl is not None else timedelta(minutes=cfg.expiration_minutes)
    payload: dict[str, Any] = {
        "iss": cfg.jwt_issuer,
        "aud": cfg.jwt_audience,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        cfg.permission_claim: list(permissions or []),
        cfg.role_claim: list(roles or []),
    }
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, cfg.jwt_secret, algorithm=cfg.jwt_algorithm)


def _claim_list(claims: dict[str, Any], name: str) -> frozenset[str]:
    value = claims.get(name)
    if value is None:
        return frozenset()
    if isinstance(value, str):
        # space-delimited, as in OAuth "scope"
        return frozenset(value.split())
    return frozenset(str(item) for item in value)


def decode_principal(cfg: AuthConfig, token: str) -> Principal:
    """Verify ``token`` and build the principal it describes.

    Raises:
        AuthenticationError: If the token is malformed, expired or signed
            for a different issuer/audience.
    """
    try:
        claims = jwt.decode(
            token,
            cfg.jwt_secret,
            algorithms=[cfg.jwt_algorithm],
            issuer=cfg.jwt_issuer,
            audience=cfg.jwt_audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except InvalidTokenError as e:
        raise AuthenticationError(f"Invalid bearer token: {e}") from e

    return Principal(
        id=str(claims["sub"]),
        email=claims.get("email"),
        is_authenticated=True,
        roles=_claim_list(claims, cfg.role_claim),
        permissions=_claim_list(claims, cfg.permission_claim),
    )
