from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from app.models.steps import AuthorizationState, WeeklyStepCounts, TrackerSnapshot
from app.utils.date_utils import week_days, format_day_label

DAILY_TITLE = "今日の歩数"
WEEKLY_TITLE = "今週の歩数"
ACHIEVED_MESSAGE = "目標達成おめでとうございます！ 🎉"

class DailyChart(BaseModel):
    title: str
    steps: int
    goal: int
    fill_fraction: float
    achieved: bool
    unit: str = "歩"
    goal_label: str
    message: Optional[str] = None

class WeeklyPane(BaseModel):
    index: int
    date: datetime
    label: str
    chart: DailyChart

class WeeklyChart(BaseModel):
    title: str
    goal: int
    panes: List[WeeklyPane]

def fill_fraction(count: int, goal: int) -> float:
    """リングの塗り割合 min(count/goal, 1.0)。goal<=0 なら0"""
    if goal <= 0:
        return 0.0
    return min(max(count, 0) / goal, 1.0)

def goal_achieved(count: int, goal: int) -> bool:
    return goal > 0 and count >= goal

def daily_chart(steps: int, goal: int, title: str = DAILY_TITLE) -> DailyChart:
    """1日分のリングチャート"""
    achieved = goal_achieved(steps, goal)
    return DailyChart(
        title=title,
        steps=steps,
        goal=goal,
        fill_fraction=fill_fraction(steps, goal),
        achieved=achieved,
        goal_label=f"目標: {goal}歩",
        message=ACHIEVED_MESSAGE if achieved else None,
    )

def weekly_chart(weekly: Optional[WeeklyStepCounts], goal: int, week_start: datetime) -> WeeklyChart:
    """
    週7日分のページ表示

    未取得の日・データのない日も0歩として必ず7ページを返す。
    """
    counts = weekly.as_mapping() if weekly else {}
    panes = []
    for i, day in enumerate(week_days(week_start)):
        steps = counts.get(day, 0)
        panes.append(WeeklyPane(
            index=i,
            date=day,
            label=format_day_label(day),
            chart=daily_chart(steps, goal, title=format_day_label(day)),
        ))
    return WeeklyChart(title=WEEKLY_TITLE, goal=goal, panes=panes)

def main_view(snap: TrackerSnapshot) -> dict:
    """メイン画面: 許可済みなら今日の歩数、未許可なら許可ボタン"""
    if snap.authorization == AuthorizationState.GRANTED:
        return {
            "authorized": True,
            "title": DAILY_TITLE,
            "steps": snap.daily_steps,
            "refresh": {"label": "更新", "method": "POST", "href": "/main/refresh"},
            "daily_error": snap.daily_error,
            "weekly_error": snap.weekly_error,
            "last_error": snap.last_error,
            "updated_at": snap.updated_at.isoformat(),
        }
    return {
        "authorized": False,
        "authorization": snap.authorization.value,
        "message": "歩数データへのアクセスが必要です",
        "action": {"label": "アクセスを許可", "method": "POST", "href": "/main/authorize"},
        "last_error": snap.last_error,
    }
