"""
Utilitários de fuso horário: "hoje" sempre é calculado no fuso do usuário
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from app.config import settings

logger = logging.getLogger(__name__)


def resolve_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Converte o nome IANA salvo nas configurações em ZoneInfo.

    Nome vazio usa DEFAULT_TIMEZONE; nome inválido cai para UTC.
    """
    name = tz_name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Invalid timezone '{name}', falling back to UTC")
        return ZoneInfo("UTC")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_local_now(tz_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Instante atual (ou `now`) convertido para o fuso do usuário."""
    instant = now or utc_now()
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(resolve_timezone(tz_name))


def get_local_date(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Data do calendário local do usuário."""
    return get_local_now(tz_name, now).date()


def get_week_start(day: date) -> date:
    """Segunda-feira da semana ISO que contém `day`."""
    return day - timedelta(days=day.weekday())


def time_until_local_midnight(tz_name: Optional[str], now: Optional[datetime] = None) -> timedelta:
    local_now = get_local_now(tz_name, now)
    midnight = next_local_midnight(tz_name, now)
    # Mesmo tzinfo ignora o offset na subtração; comparar em UTC cobre o DST
    return midnight.astimezone(timezone.utc) - local_now.astimezone(timezone.utc)


def next_local_midnight(tz_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    local_now = get_local_now(tz_name, now)
    return datetime.combine(
        local_now.date() + timedelta(days=1),
        datetime.min.time(),
        tzinfo=local_now.tzinfo,
    )


def get_time_bucket(hour: int) -> str:
    """Coluna do resumo semanal para a hora local informada."""
    if 0 <= hour < 6:
        return "early_morning_oz"
    if 6 <= hour < 12:
        return "morning_oz"
    if 12 <= hour < 17:
        return "afternoon_oz"
    if 17 <= hour < 21:
        return "evening_oz"
    return "night_oz"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite devolve datetimes ingênuos (sempre gravados em UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
