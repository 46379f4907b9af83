"""
fleetdesk.auth.jwt

JWT issuing and validation helpers.

Responsibilities:
- Issue access/refresh JWTs signed with the process-wide secret.
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat/sub),
  mapping every failure onto MissingToken / InvalidToken / ExpiredToken.

Note:
- Exactly one algorithm is accepted per process (`JwtConfig.alg`), which rules out
  "alg confusion" and unsigned (`alg=none`) tokens.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from fleetdesk.auth.errors import ExpiredToken, InvalidToken, MissingToken
from fleetdesk.settings import Settings

TokenType = Literal["access", "refresh"]

BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    username: str,
    role: str | None,
    token_type: TokenType = "access",
    ttl: timedelta = timedelta(hours=24),
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "username": username,
        "role": role,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def extract_bearer(authorization: str | None) -> str:
    """Return the raw token from an `Authorization: Bearer <token>` header value."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise MissingToken()
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise MissingToken()
    return token


def decode_and_validate(
    *, cfg: JwtConfig, token: str, expected_type: TokenType = "access"
) -> dict[str, Any]:
    if not token:
        raise MissingToken()
    try:
        payload = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except ExpiredSignatureError as e:
        raise ExpiredToken() from e
    except InvalidTokenError as e:
        raise InvalidToken() from e

    if payload.get("type", "access") != expected_type:
        raise InvalidToken(f"Invalid token type; expected an {expected_type} token.")
    if not str(payload.get("sub", "")).strip():
        raise InvalidToken("Invalid token subject.")
    return payload


# --- Module Notes -----------------------------------------------------------
# Signature is checked before the registered claims, so a token that is both
# expired and forged surfaces as InvalidToken.
