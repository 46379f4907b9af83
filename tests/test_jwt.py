"""
tests.test_jwt

Token issuing/verification: the accepted algorithm is pinned, the secret is the
only key, and failures map onto MissingToken / InvalidToken / ExpiredToken.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from fleetdesk.auth.errors import AuthenticationError, ExpiredToken, InvalidToken, MissingToken
from fleetdesk.auth.jwt import JwtConfig, decode_and_validate, extract_bearer, issue_token

CFG = JwtConfig(
    alg="HS256",
    issuer="fleetdesk",
    audience="fleetdesk-api",
    secret="unit-test-secret-with-at-least-32-bytes",
)


def _claims(**overrides):
    now = int(datetime.now(tz=UTC).timestamp())
    claims = {
        "iss": CFG.issuer,
        "aud": CFG.audience,
        "sub": "7",
        "type": "access",
        "iat": now,
        "exp": now + 300,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


def test_issue_and_decode_carries_identity_claims() -> None:
    token = issue_token(cfg=CFG, subject="7", username="ann", role="manager")
    payload = decode_and_validate(cfg=CFG, token=token)
    assert payload["sub"] == "7"
    assert payload["username"] == "ann"
    assert payload["role"] == "manager"
    assert payload["type"] == "access"
    assert payload["exp"] > payload["iat"]


def test_tokens_issued_back_to_back_differ() -> None:
    a = issue_token(cfg=CFG, subject="7", username="ann", role=None)
    b = issue_token(cfg=CFG, subject="7", username="ann", role=None)
    assert a != b


def test_wrong_secret_is_invalid() -> None:
    other = JwtConfig(CFG.alg, CFG.issuer, CFG.audience, "another-secret-that-is-also-32-bytes!")
    token = issue_token(cfg=other, subject="7", username="ann", role=None)
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_unsigned_token_is_rejected() -> None:
    token = jwt.encode(_claims(), key=None, algorithm="none")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_other_hmac_algorithm_with_same_secret_is_rejected() -> None:
    token = jwt.encode(_claims(), CFG.secret, algorithm="HS512")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_expired_token_is_distinct_from_invalid() -> None:
    token = issue_token(cfg=CFG, subject="7", username="ann", role=None, ttl=timedelta(seconds=-30))
    with pytest.raises(ExpiredToken) as exc:
        decode_and_validate(cfg=CFG, token=token)
    assert not isinstance(exc.value, InvalidToken)
    assert exc.value.message == "Token expired. Please login again."


def test_expired_and_forged_reports_invalid() -> None:
    token = jwt.encode(_claims(exp=1, iat=0), "forger-secret-forger-secret-forger!!", algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


@pytest.mark.parametrize("missing", ["sub", "exp", "iat", "iss", "aud"])
def test_required_claims(missing: str) -> None:
    token = jwt.encode(_claims(**{missing: None}), CFG.secret, algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_wrong_audience_is_invalid() -> None:
    token = jwt.encode(_claims(aud="someone-else"), CFG.secret, algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_blank_subject_is_invalid() -> None:
    token = jwt.encode(_claims(sub="  "), CFG.secret, algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token=token)


def test_refresh_token_is_not_an_access_token() -> None:
    token = issue_token(cfg=CFG, subject="7", username="ann", role=None, token_type="refresh")
    with pytest.raises(InvalidToken, match="expected an access token"):
        decode_and_validate(cfg=CFG, token=token)
    assert decode_and_validate(cfg=CFG, token=token, expected_type="refresh")["type"] == "refresh"


def test_garbage_token_is_invalid() -> None:
    with pytest.raises(InvalidToken):
        decode_and_validate(cfg=CFG, token="not.a.jwt")


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer    ", "Token abc"])
def test_missing_or_malformed_header(header: str | None) -> None:
    with pytest.raises(MissingToken):
        extract_bearer(header)


def test_bearer_scheme_is_case_insensitive() -> None:
    assert extract_bearer("bearer abc.def") == "abc.def"
    assert extract_bearer("Bearer abc.def ") == "abc.def"


def test_all_verifier_failures_are_authentication_errors() -> None:
    for exc in (MissingToken(), InvalidToken(), ExpiredToken()):
        assert isinstance(exc, AuthenticationError)
