from datetime import datetime, timezone, date
from enum import Enum
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator
from app.config import settings
from app.utils.date_utils import week_days

class AuthorizationState(str, Enum):
    UNREQUESTED = "unrequested"
    DENIED = "denied"
    GRANTED = "granted"

class DailyStepCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime            # ローカル日付の0時
    count: int = Field(0, ge=0)

class WeeklyStepCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: List[DailyStepCount]

    @field_validator("days")
    @classmethod
    def _seven_days(cls, v: List[DailyStepCount]) -> List[DailyStepCount]:
        if len(v) != 7:
            raise ValueError(f"weekly counts need 7 days, got {len(v)}")
        return v

    @classmethod
    def filled(cls, week_start: datetime, counts: Dict[date, int]) -> "WeeklyStepCounts":
        """週の7日分を組み立てる（データのない日は0）"""
        days = [
            DailyStepCount(date=d, count=max(int(counts.get(d.date(), 0) or 0), 0))
            for d in week_days(week_start)
        ]
        return cls(days=days)

    def as_mapping(self) -> Dict[datetime, int]:
        return {d.date: d.count for d in self.days}

    @property
    def total(self) -> int:
        return sum(d.count for d in self.days)

def clamp_goal(value: int) -> int:
    """目標歩数を1000刻み・[1000, 50000] に丸める"""
    step = settings.STEP_GOAL_STEP
    rounded = (int(value) + step // 2) // step * step
    return max(settings.STEP_GOAL_MIN, min(settings.STEP_GOAL_MAX, rounded))

class GoalIn(BaseModel):
    goal: int

class GoalOut(BaseModel):
    goal: int
    min: int = settings.STEP_GOAL_MIN
    max: int = settings.STEP_GOAL_MAX
    step: int = settings.STEP_GOAL_STEP

class TrackerSnapshot(BaseModel):
    """StepTracker が配信する不変の状態"""
    model_config = ConfigDict(frozen=True)

    authorization: AuthorizationState = AuthorizationState.UNREQUESTED
    daily: Optional[DailyStepCount] = None
    weekly: Optional[WeeklyStepCounts] = None
    last_error: Optional[str] = None
    daily_error: Optional[str] = None       # 今日の歩数の直近の取得エラー
    weekly_error: Optional[str] = None
    timer_running: bool = False
    version: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def daily_steps(self) -> int:
        return self.daily.count if self.daily else 0

    @property
    def queries_ok(self) -> bool:
        return self.daily_error is None and self.weekly_error is None
