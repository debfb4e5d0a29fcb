import pytest

from backend.app.core.security import create_access_token, decode_access_token


def test_create_and_decode_access_token():
    token = create_access_token("user123", org_id=7, role="Manager")
    assert isinstance(token, str) and token
    decoded = decode_access_token(token)
    assert decoded.get("sub") == "user123"
    assert decoded.get("org_id") == 7
    assert decoded.get("role") == "Manager"
    assert "exp" in decoded


def test_access_token_expiration():
    token = create_access_token("expired", org_id=1, role="Owner", expires_minutes=-1)
    with pytest.raises(ValueError):
        decode_access_token(token)


def test_invalid_token_raises_value_error():
    with pytest.raises(ValueError):
        decode_access_token("invalid.token.value")
