"""
Serviço de configurações do usuário
"""
import logging
from typing import Any, Dict, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user_settings import UserSettings
from app.utils.timezone_utils import get_local_date

logger = logging.getLogger(__name__)


class UserSettingsNotFound(Exception):
    """Usuário sem linha em user_settings"""
    pass


class InvalidSettingsError(Exception):
    """Valor de configuração rejeitado (meta, fuso)"""
    pass


ML_PER_OZ = 29.5735
MIN_CALCULATED_GOAL = 48
MAX_CALCULATED_GOAL = 200

_WORKOUT_MULTIPLIERS = ((1, 1.0), (3, 1.1), (5, 1.2), (6, 1.3))
_WATER_GOAL_MULTIPLIERS = {
    "healthy": 1.0,
    "stay_fit": 1.0,
    "lose": 1.05,
    "lose_weight": 1.05,
    "gain": 1.03,
    "gain_weight": 1.03,
}


def get_user_settings(db: Session, user_id: UUID) -> UserSettings:
    """
    Busca as configurações do usuário.

    Raises:
        UserSettingsNotFound: se o usuário não possui configurações
    """
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
    if not user_settings:
        raise UserSettingsNotFound("User settings not found")
    return user_settings


def ensure_user_settings(db: Session, user_id: UUID) -> UserSettings:
    """Cria configurações padrão caso ainda não existam (login / usuário dev)."""
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
    if user_settings:
        return user_settings

    user_settings = UserSettings(
        user_id=user_id,
        daily_goal=settings.DEFAULT_DAILY_GOAL,
        hand_size="medium",
        sip_size="medium",
        water_unit="oz",
        timezone=settings.DEFAULT_TIMEZONE,
        image_uploads_today=0,
        text_descriptions_today=0,
        manual_adds_today=0,
    )
    db.add(user_settings)
    db.commit()
    db.refresh(user_settings)
    logger.info(f"Default settings created for user_id={user_id}")
    return user_settings


def serialize_user_settings(user_settings: UserSettings) -> dict:
    return {
        "dailyGoal": float(user_settings.daily_goal or settings.DEFAULT_DAILY_GOAL),
        "weeklyGoal": float(user_settings.weekly_goal) if user_settings.weekly_goal is not None else None,
        "handSize": user_settings.hand_size,
        "sipSize": user_settings.sip_size,
        "waterUnit": user_settings.water_unit,
        "timezone": user_settings.timezone,
        "lastCleanupDate": user_settings.last_cleanup_date.isoformat() if user_settings.last_cleanup_date else None,
    }


def validate_timezone(tz_name: Optional[str]) -> str:
    """
    Valida o nome IANA antes de salvar.

    Raises:
        InvalidSettingsError: fuso desconhecido
    """
    name = (tz_name or settings.DEFAULT_TIMEZONE).strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidSettingsError(f"Invalid timezone: {name}")
    return name


def body_metrics(height_weight: Optional[Dict[str, Any]]) -> tuple:
    """
    Converte altura/peso do onboarding para (cm, kg).

    Unidade "imperial" usa pés/polegadas/libras; qualquer outra usa os
    valores métricos direto.
    """
    if not height_weight:
        return None, None
    if height_weight.get("unit") == "imperial":
        inches = float(height_weight.get("heightFeet") or 0) * 12 + float(height_weight.get("heightInches") or 0)
        height_cm = round(inches * 2.54, 1)
        weight_kg = round(float(height_weight.get("weightLbs") or 0) * 0.453592, 1)
        return height_cm, weight_kg
    height_cm = height_weight.get("heightCm")
    weight_kg = height_weight.get("weightKg")
    return (
        float(height_cm) if height_cm is not None else None,
        float(weight_kg) if weight_kg is not None else None,
    )


def calculate_daily_goal(
    weight_kg: float,
    height_cm: float,
    age: int,
    gender: Optional[str] = None,
    workouts_per_week: Optional[int] = None,
    water_goal: Optional[str] = None,
) -> int:
    """
    Meta diária em oz a partir do perfil: 33 ml/kg, ajustes por altura,
    idade e sexo, multiplicadores de treino e objetivo. Limitada a 48..200.
    """
    base_oz = weight_kg * 33 / ML_PER_OZ

    height_in = height_cm / 2.54
    if height_in >= 75:
        height_adj = 10
    elif height_in >= 70:
        height_adj = 5
    elif height_in <= 64:
        height_adj = -5
    else:
        height_adj = 0

    if age >= 60:
        age_adj = 10
    elif age <= 17:
        age_adj = -5
    elif age >= 41:
        age_adj = 5
    else:
        age_adj = 0

    gender_adj = 5 if gender == "male" else 0

    workout_mult = 1.0
    if workouts_per_week is not None:
        workout_mult = 1.4
        for max_workouts, multiplier in _WORKOUT_MULTIPLIERS:
            if workouts_per_week <= max_workouts:
                workout_mult = multiplier
                break

    goal_mult = _WATER_GOAL_MULTIPLIERS.get(water_goal or "", 1.0)

    goal = (base_oz + height_adj + age_adj + gender_adj) * workout_mult * goal_mult
    return max(MIN_CALCULATED_GOAL, min(int(round(goal)), MAX_CALCULATED_GOAL))


def resolve_daily_goal(
    daily_goal: Optional[float],
    height_weight: Optional[Dict[str, Any]] = None,
    age: Optional[int] = None,
    gender: Optional[str] = None,
    workouts_per_week: Optional[int] = None,
    water_goal: Optional[str] = None,
) -> int:
    """Meta informada pelo app tem precedência; sem ela calcula, senão usa o padrão."""
    if daily_goal is not None and daily_goal > 0:
        return int(round(daily_goal))
    height_cm, weight_kg = body_metrics(height_weight)
    if weight_kg and height_cm and age:
        return calculate_daily_goal(weight_kg, height_cm, age, gender, workouts_per_week, water_goal)
    return int(settings.DEFAULT_DAILY_GOAL)


def save_user_settings(
    db: Session,
    user_id: UUID,
    daily_goal: float,
    hand_size: Optional[str] = None,
    sip_size: Optional[str] = None,
    water_unit: Optional[str] = None,
    timezone: Optional[str] = None,
) -> UserSettings:
    """
    Cria ou atualiza as preferências do usuário (onboarding e perfil).

    Campos omitidos mantêm o valor atual; contadores e data de limpeza não
    são tocados aqui.

    Raises:
        InvalidSettingsError: fuso inválido
    """
    tz_name = validate_timezone(timezone) if timezone else None
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
    created = user_settings is None
    if created:
        user_settings = UserSettings(
            user_id=user_id,
            hand_size="medium",
            sip_size="medium",
            water_unit="oz",
            timezone=settings.DEFAULT_TIMEZONE,
            image_uploads_today=0,
            text_descriptions_today=0,
            manual_adds_today=0,
        )
        db.add(user_settings)

    user_settings.daily_goal = daily_goal
    if hand_size:
        user_settings.hand_size = hand_size
    if sip_size:
        user_settings.sip_size = sip_size
    if water_unit:
        user_settings.water_unit = water_unit
    if tz_name:
        user_settings.timezone = tz_name

    db.commit()
    db.refresh(user_settings)
    logger.info(
        f"User settings {'created' if created else 'updated'}: user_id={user_id}, "
        f"goal={daily_goal}oz, tz={user_settings.timezone}"
    )
    return user_settings


def update_daily_goal(db: Session, user_id: UUID, daily_goal: float) -> Dict[str, Any]:
    """
    Troca a meta diária a partir de hoje (dia local do usuário).

    Raises:
        UserSettingsNotFound: usuário sem configurações
        InvalidSettingsError: meta não positiva
    """
    if daily_goal is None or daily_goal <= 0:
        raise InvalidSettingsError("Invalid daily goal - must be a positive number")

    user_settings = get_user_settings(db, user_id)
    user_settings.daily_goal = daily_goal
    db.commit()

    effective_from = get_local_date(user_settings.timezone)
    logger.info(f"Daily goal updated: user_id={user_id}, goal={daily_goal}oz from {effective_from}")
    return {
        "success": True,
        "newGoal": float(daily_goal),
        "effectiveFrom": effective_from.isoformat(),
        "message": f"Your new goal of {daily_goal:g} oz starts today!",
    }
