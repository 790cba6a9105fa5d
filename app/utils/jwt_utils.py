"""
Utilitários de JWT para o cookie de sessão do app web
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from uuid import UUID
import logging
from app.config import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"


def _secret() -> str:
    # JWT_SECRET se configurado, senão SECRET_KEY
    return settings.JWT_SECRET if settings.JWT_SECRET else settings.SECRET_KEY


def create_session_cookie_token(
    user_id: UUID,
    email: Optional[str] = None,
    expires_min: Optional[int] = None,
) -> str:
    """
    Cria o token assinado que vai no cookie de sessão.

    Args:
        user_id: ID do usuário
        email: email (opcional, apenas informativo)
        expires_min: expiração em minutos (padrão: JWT_EXPIRES_MIN)

    Returns:
        Token JWT assinado
    """
    if expires_min is None:
        expires_min = settings.JWT_EXPIRES_MIN

    secret = _secret()
    if not secret or secret == "change_this_later":
        logger.warning("JWT_SECRET not configured, using SECRET_KEY (not recommended for production)")

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=expires_min),
        "type": SESSION_TOKEN_TYPE,
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def verify_session_cookie_token(token: str) -> Dict[str, Any]:
    """
    Verifica e decodifica o token do cookie de sessão.

    Raises:
        ValueError: token inválido, expirado ou de outro tipo
    """
    try:
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Session cookie expired")
        raise ValueError("Token expired")
    except jwt.InvalidSignatureError:
        logger.warning("Invalid session cookie signature")
        raise ValueError("Invalid signature")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Error decoding session cookie: {e}")
        raise ValueError(f"Invalid token: {str(e)}")

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Token is not a session token")

    try:
        UUID(str(payload.get("sub")))
    except ValueError:
        raise ValueError("Token missing valid 'sub' claim")

    return payload
