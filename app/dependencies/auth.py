from typing import Optional
from datetime import datetime, timezone
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from uuid import UUID
import logging
from app.database import get_db
from app.models.user import User, AuthSession
from app.config import settings
from app.services.user_settings_service import ensure_user_settings
from app.utils.jwt_utils import verify_session_cookie_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

DEV_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
DEV_USER_EMAIL = "dev@example.com"


def parse_raw_auth_header(request: Request) -> Optional[str]:
    """Retorna o token puro caso Authorization não siga o esquema 'Bearer <token>'."""
    header = request.headers.get("authorization")
    if not header:
        return None
    parts = header.strip().split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) >= 2:
        return parts[1]
    return None


def get_or_create_dev_user(db: Session) -> User:
    """Usuário fixo do token 'test' (somente DEV_MODE), já com configurações padrão."""
    dev_user = db.query(User).filter(User.id == DEV_USER_ID).first()
    if not dev_user:
        dev_user = User(id=DEV_USER_ID, email=DEV_USER_EMAIL, name="Dev User")
        db.add(dev_user)
        db.commit()
        db.refresh(dev_user)
        logger.info(f"Dev user created: {dev_user.id}")
    ensure_user_settings(db, dev_user.id)
    return dev_user


def find_session_user(db: Session, token: str) -> Optional[UUID]:
    """Sessão mobile: token opaco na tabela auth_sessions ainda não expirado."""
    session = db.query(AuthSession).filter(
        AuthSession.session_token == token,
        AuthSession.expires > datetime.now(timezone.utc),
    ).first()
    return session.user_id if session else None


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    cred: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UUID:
    """
    Dependência para rotas que precisam de autenticação.
    - 'Authorization: Bearer <token>' (sessão mobile) tem precedência
    - Cookie de sessão do app web (JWT assinado)
    - Ambiente dev aceita token 'test' (se DEV_MODE=true)
    """
    token = cred.credentials if cred else parse_raw_auth_header(request)

    if token:
        if settings.DEV_MODE and token == "test":
            dev_user = get_or_create_dev_user(db)
            logger.debug(f"Authenticated user (dev token): {dev_user.id}")
            return dev_user.id

        user_id = find_session_user(db, token)
        if user_id:
            return user_id
        logger.info("Bearer token rejected: no active session")

    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie:
        try:
            payload = verify_session_cookie_token(cookie)
        except ValueError as e:
            logger.info(f"Session cookie rejected: {e}")
        else:
            user_id = UUID(payload["sub"])
            if db.query(User.id).filter(User.id == user_id).first():
                return user_id
            logger.info(f"Session cookie for unknown user: {user_id}")

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized"
    )
