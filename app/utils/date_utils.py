from datetime import datetime, date, timedelta, tzinfo
from typing import List

WEEKDAY_JA = ["月", "火", "水", "木", "金", "土", "日"]

def start_of_day(dt: datetime, tz: tzinfo) -> datetime:
    """指定時刻をローカル日付の0時に丸める"""
    local = dt.astimezone(tz)
    return datetime(local.year, local.month, local.day, tzinfo=tz)

def start_of_week(dt: datetime, tz: tzinfo, week_start: int = 6) -> datetime:
    """
    週の開始日（0時）を返す

    Args:
        dt: 基準時刻
        tz: ローカルタイムゾーン
        week_start: 週の開始曜日（月曜=0, 日曜=6）
    """
    day = start_of_day(dt, tz)
    offset = (day.weekday() - week_start) % 7
    d = day.date() - timedelta(days=offset)
    return datetime(d.year, d.month, d.day, tzinfo=tz)

def week_days(week_start_dt: datetime) -> List[datetime]:
    """週の開始日から7日分の0時を返す（夏時間でも日付単位で進める）"""
    tz = week_start_dt.tzinfo
    base = week_start_dt.date()
    days = []
    for i in range(7):
        d = base + timedelta(days=i)
        days.append(datetime(d.year, d.month, d.day, tzinfo=tz))
    return days

def to_date_str(d: date | datetime) -> str:
    """YYYY-MM-DD 形式の日付キー"""
    if isinstance(d, datetime):
        d = d.date()
    return d.strftime("%Y-%m-%d")

def format_day_label(d: date | datetime) -> str:
    """表示用ラベル（例: 10/19 (月)）"""
    if isinstance(d, datetime):
        d = d.date()
    return f"{d.month}/{d.day} ({WEEKDAY_JA[d.weekday()]})"
