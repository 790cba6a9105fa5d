"""
Testes de segurança: cookie de sessão (JWT), sessões mobile e rate limit por IP
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4
import jwt

from app.config import settings
from app.dependencies.auth import DEV_USER_ID, find_session_user, get_or_create_dev_user, parse_raw_auth_header
from app.models.user import AuthSession
from app.models.user_settings import UserSettings
from app.utils.jwt_utils import SESSION_TOKEN_TYPE, create_session_cookie_token, verify_session_cookie_token


class TestSessionCookieToken:
    """Token assinado do cookie de sessão do app web"""

    def test_round_trip(self):
        user_id = uuid4()
        token = create_session_cookie_token(user_id, email="user@example.com")
        payload = verify_session_cookie_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "user@example.com"
        assert payload["type"] == SESSION_TOKEN_TYPE
        assert payload["exp"] > payload["iat"]

    def test_expired(self):
        token = create_session_cookie_token(uuid4(), expires_min=-1)
        with pytest.raises(ValueError, match="expired"):
            verify_session_cookie_token(token)

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "type": SESSION_TOKEN_TYPE,
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "another-secret",
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(ValueError, match="Invalid signature"):
            verify_session_cookie_token(token)

    def test_garbage(self):
        with pytest.raises(ValueError, match="Invalid token"):
            verify_session_cookie_token("not.a.jwt")

    def test_wrong_type(self):
        secret = settings.JWT_SECRET or settings.SECRET_KEY
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "refresh",
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            secret,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(ValueError, match="not a session token"):
            verify_session_cookie_token(token)

    def test_invalid_sub(self):
        secret = settings.JWT_SECRET or settings.SECRET_KEY
        token = jwt.encode(
            {"sub": "admin", "type": SESSION_TOKEN_TYPE,
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            secret,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(ValueError, match="sub"):
            verify_session_cookie_token(token)


class TestAuthHelpers:

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc", "abc"),
        ("abc", "abc"),
        ("Token abc", "abc"),
        (None, None),
    ])
    def test_parse_raw_auth_header(self, header, expected):
        request = MagicMock()
        request.headers = {"authorization": header} if header else {}
        assert parse_raw_auth_header(request) == expected

    def test_find_session_user(self, db_session, user_id):
        db_session.add(AuthSession(
            session_token="valid",
            user_id=user_id,
            expires=datetime.now(timezone.utc) + timedelta(hours=1),
        ))
        db_session.add(AuthSession(
            session_token="old",
            user_id=user_id,
            expires=datetime.now(timezone.utc) - timedelta(hours=1),
        ))
        db_session.commit()

        assert find_session_user(db_session, "valid") == user_id
        assert find_session_user(db_session, "old") is None
        assert find_session_user(db_session, "missing") is None

    def test_dev_user_is_created_once_with_settings(self, db_session):
        first = get_or_create_dev_user(db_session)
        second = get_or_create_dev_user(db_session)

        assert first.id == second.id == DEV_USER_ID
        assert db_session.query(UserSettings).filter(UserSettings.user_id == DEV_USER_ID).count() == 1


def test_ip_rate_limit_configured():
    from app.main import app, limiter

    assert app.state.limiter is limiter
    # desligado nos testes via RATE_LIMIT_ENABLED=false
    assert limiter.enabled is False
