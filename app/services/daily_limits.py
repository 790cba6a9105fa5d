"""
Limites diários por usuário (análises de imagem, descrições de texto,
entradas manuais).

O dia é o dia do calendário no fuso salvo nas configurações do usuário: a
primeira chamada após a meia-noite local zera todos os contadores.
check -> trabalho caro -> increment. Duas requisições simultâneas podem
passar no check antes do increment; uma admissão a mais é aceitável.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user_settings import UserSettings
from app.services.user_settings_service import get_user_settings
from app.utils.timezone_utils import get_local_date, time_until_local_midnight, next_local_midnight

logger = logging.getLogger(__name__)

IMAGE_UPLOADS = "image_uploads"
TEXT_DESCRIPTIONS = "text_descriptions"
MANUAL_ADDS = "manual_adds"

# tipo -> (coluna em user_settings, rótulo da mensagem)
_LIMIT_COLUMNS = {
    IMAGE_UPLOADS: ("image_uploads_today", "image analyses"),
    TEXT_DESCRIPTIONS: ("text_descriptions_today", "text descriptions"),
    MANUAL_ADDS: ("manual_adds_today", "manual entries"),
}


class DailyLimitTypeError(ValueError):
    pass


def get_limit_value(limit_type: str) -> int:
    if limit_type == IMAGE_UPLOADS:
        return settings.DAILY_LIMIT_IMAGE_UPLOADS
    if limit_type == TEXT_DESCRIPTIONS:
        return settings.DAILY_LIMIT_TEXT_DESCRIPTIONS
    if limit_type == MANUAL_ADDS:
        return settings.DAILY_LIMIT_MANUAL_ADDS
    raise DailyLimitTypeError(f"Invalid limit type: {limit_type}")


def _column_for(limit_type: str) -> str:
    if limit_type not in _LIMIT_COLUMNS:
        raise DailyLimitTypeError(f"Invalid limit type: {limit_type}")
    return _LIMIT_COLUMNS[limit_type][0]


def format_reset_time(remaining: timedelta) -> str:
    """Ex.: "3 hours 12 min"."""
    total_minutes = max(0, int(remaining.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours} hours {minutes} min"


def _rollover_if_new_day(db: Session, user_settings: UserSettings, now: Optional[datetime] = None) -> bool:
    """Zera os contadores quando o último registro é de outro dia local."""
    today = get_local_date(user_settings.timezone, now)
    if user_settings.last_limit_date == today:
        return False

    logger.info(
        f"Daily limits reset: user_id={user_settings.user_id}, "
        f"last={user_settings.last_limit_date}, today={today} ({user_settings.timezone})"
    )
    user_settings.image_uploads_today = 0
    user_settings.text_descriptions_today = 0
    user_settings.manual_adds_today = 0
    user_settings.last_limit_date = today
    db.flush()
    return True


def check_daily_limit(
    db: Session,
    user_id: UUID,
    limit_type: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Verifica se o usuário ainda pode executar a operação hoje.

    Args:
        db: Sessão do banco
        user_id: ID do usuário
        limit_type: image_uploads | text_descriptions | manual_adds
        now: Instante de referência (testes)

    Returns:
        dict com allowed, current, limit, resetTime, resetAt e timezone

    Raises:
        DailyLimitTypeError: tipo desconhecido
        UserSettingsNotFound: usuário sem configurações
    """
    column = _column_for(limit_type)
    limit = get_limit_value(limit_type)
    user_settings = get_user_settings(db, user_id)

    if _rollover_if_new_day(db, user_settings, now):
        db.commit()

    current = getattr(user_settings, column) or 0
    tz_name = user_settings.timezone

    return {
        "allowed": current < limit,
        "current": current,
        "limit": limit,
        "resetTime": format_reset_time(time_until_local_midnight(tz_name, now)),
        "resetAt": next_local_midnight(tz_name, now).isoformat(),
        "timezone": tz_name,
    }


def increment_daily_limit(
    db: Session,
    user_id: UUID,
    limit_type: str,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> None:
    """
    Incrementa o contador após a operação concluir com sucesso.

    Com commit=False o incremento entra na transação do chamador.
    """
    column = _column_for(limit_type)
    user_settings = get_user_settings(db, user_id)
    _rollover_if_new_day(db, user_settings, now)

    db.query(UserSettings).filter(UserSettings.user_id == user_id).update(
        {column: getattr(UserSettings, column) + 1},
        synchronize_session="fetch",
    )
    if commit:
        db.commit()
    logger.debug(f"Daily limit incremented: user_id={user_id}, type={limit_type}")


def get_limit_error_message(limit_type: str, limit: int, reset_time: str) -> str:
    label = _LIMIT_COLUMNS.get(limit_type, (None, "requests"))[1]
    return (
        f"You've reached your daily limit of {limit} {label}. "
        f"Resets in {reset_time}."
    )


def limit_exceeded_payload(limit_type: str, status: Dict[str, Any]) -> Dict[str, Any]:
    """Corpo da resposta 429 consumido pelo cliente ("volte às X")."""
    return {
        "error": get_limit_error_message(limit_type, status["limit"], status["resetTime"]),
        "limitExceeded": True,
        "current": status["current"],
        "limit": status["limit"],
        "resetTime": status["resetTime"],
        "resetAt": status.get("resetAt"),
    }
