"""
Router para dados do usuário: meta, resumo semanal e estatísticas
"""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from uuid import UUID
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.schemas.user import UpdateGoalRequest, UserGoalRequest
from app.services.user_settings_service import (
    InvalidSettingsError,
    UserSettingsNotFound,
    get_user_settings,
    resolve_daily_goal,
    save_user_settings,
    serialize_user_settings,
    update_daily_goal,
)
from app.services.water_entry_service import get_user_stats, get_weekly_summary

logger = logging.getLogger(__name__)
router = APIRouter()


def _not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="User settings not found"
    )


@router.get("/user-goal")
async def user_goal(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Meta diária e preferências (leitura crítica do carregamento inicial)."""
    try:
        return serialize_user_settings(get_user_settings(db, user_id))
    except UserSettingsNotFound:
        raise _not_found()


@router.post("/user-goal")
async def save_user_goal(
    body: UserGoalRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """
    Salva as preferências (upsert). Sem dailyGoal a meta é calculada a
    partir do perfil do onboarding.
    """
    try:
        goal = resolve_daily_goal(
            body.daily_goal,
            height_weight=body.height_weight,
            age=body.age,
            gender=body.gender,
            workouts_per_week=body.workouts_per_week,
            water_goal=body.water_goal,
        )
        user_settings = save_user_settings(
            db,
            user_id,
            daily_goal=goal,
            hand_size=body.hand_size,
            sip_size=body.sip_size,
            water_unit=body.water_unit,
            timezone=body.timezone,
        )
        return {
            "success": True,
            "calculatedGoal": goal,
            "settings": serialize_user_settings(user_settings),
        }
    except InvalidSettingsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Error saving user settings: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save user settings"
        )


@router.post("/update-goal")
async def update_goal(
    body: UpdateGoalRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    try:
        goal = float(body.daily_goal)
    except (TypeError, ValueError):
        goal = None

    try:
        return update_daily_goal(db, user_id, goal)
    except InvalidSettingsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except UserSettingsNotFound:
        raise _not_found()


@router.get("/weekly-summary")
async def weekly_summary(
    week_start: Optional[date] = Query(default=None, alias="weekStart"),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    try:
        return get_weekly_summary(db, user_id, week_start=week_start)
    except UserSettingsNotFound:
        raise _not_found()


@router.get("/user-stats")
async def user_stats(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    try:
        return get_user_stats(db, user_id)
    except UserSettingsNotFound:
        raise _not_found()
