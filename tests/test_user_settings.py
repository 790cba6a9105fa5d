"""
Testes do serviço de configurações (cálculo da meta e upsert)
"""
import pytest
from uuid import uuid4

from app.config import settings
from app.models.user import User
from app.services.user_settings_service import (
    InvalidSettingsError,
    UserSettingsNotFound,
    body_metrics,
    calculate_daily_goal,
    resolve_daily_goal,
    save_user_settings,
    update_daily_goal,
    validate_timezone,
)


class TestGoalCalculation:

    def test_imperial_metrics_converted(self):
        height_cm, weight_kg = body_metrics({
            "unit": "imperial", "heightFeet": 5, "heightInches": 10, "weightLbs": 170,
        })
        assert height_cm == 177.8
        assert weight_kg == 77.1

    def test_calculated_goal(self):
        assert calculate_daily_goal(80, 180, 30, gender="male", workouts_per_week=4, water_goal="lose") == 125

    def test_goal_is_clamped(self):
        assert calculate_daily_goal(35, 150, 15) == 48
        assert calculate_daily_goal(180, 200, 65, gender="male", workouts_per_week=7) == 200

    def test_provided_goal_wins(self):
        assert resolve_daily_goal(72.4, height_weight={"heightCm": 180, "weightKg": 80}, age=30) == 72

    def test_default_without_profile(self):
        assert resolve_daily_goal(None, age=30) == int(settings.DEFAULT_DAILY_GOAL)


def test_validate_timezone():
    assert validate_timezone("Asia/Tokyo") == "Asia/Tokyo"
    assert validate_timezone(None) == settings.DEFAULT_TIMEZONE
    with pytest.raises(InvalidSettingsError):
        validate_timezone("Not/AZone")


def test_save_creates_then_updates(db_session):
    user = User(id=uuid4(), email="settings@example.com")
    db_session.add(user)
    db_session.commit()

    created = save_user_settings(db_session, user.id, daily_goal=70, hand_size="small")
    assert created.hand_size == "small"
    assert created.sip_size == "medium"
    assert created.timezone == settings.DEFAULT_TIMEZONE
    assert created.manual_adds_today == 0

    updated = save_user_settings(db_session, user.id, daily_goal=100, timezone="Europe/Berlin")
    assert updated.id == created.id
    assert float(updated.daily_goal) == 100
    assert updated.hand_size == "small"
    assert updated.timezone == "Europe/Berlin"


def test_update_daily_goal_requires_settings(db_session):
    with pytest.raises(UserSettingsNotFound):
        update_daily_goal(db_session, uuid4(), 80)
    with pytest.raises(InvalidSettingsError):
        update_daily_goal(db_session, uuid4(), 0)
