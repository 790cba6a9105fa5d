"""
Schemas Pydantic para configurações do usuário
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any, Dict


class UserGoalRequest(BaseModel):
    """Onboarding / perfil: meta pronta ou dados para calculá-la."""
    model_config = ConfigDict(populate_by_name=True)

    daily_goal: Optional[float] = Field(default=None, alias="dailyGoal")
    hand_size: Optional[str] = Field(default=None, alias="handSize", pattern="^(small|medium|large)$")
    sip_size: Optional[str] = Field(default=None, alias="sipSize", pattern="^(small|medium|large)$")
    water_unit: Optional[str] = Field(default=None, alias="waterUnit", max_length=10)
    timezone: Optional[str] = Field(default=None, max_length=64)

    # Perfil usado só quando dailyGoal não vem
    gender: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=1, le=120)
    height_weight: Optional[Dict[str, Any]] = Field(default=None, alias="heightWeight")
    workouts_per_week: Optional[int] = Field(default=None, alias="workoutsPerWeek", ge=0)
    water_goal: Optional[str] = Field(default=None, alias="waterGoal")


class UpdateGoalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    daily_goal: Any = Field(default=None, alias="dailyGoal")
