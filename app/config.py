import os
from typing import Optional
from zoneinfo import ZoneInfo

WEEKDAY_INDEX = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

def env_flag(name: str, default: str = "1") -> bool:
    """環境変数を真偽値として読む（0 / false / no / off / 空文字は偽）"""
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off", "")

class Settings:
    # Fitbit
    FITBIT_CLIENT_ID: Optional[str] = os.getenv("FITBIT_CLIENT_ID")
    FITBIT_CLIENT_SECRET: Optional[str] = os.getenv("FITBIT_CLIENT_SECRET")
    FITBIT_SCOPE: str = os.getenv("FITBIT_SCOPE", "activity profile")
    FITBIT_API_BASE: str = os.getenv("FITBIT_API_BASE", "https://api.fitbit.com")

    # 歩数トラッカー
    STEP_USER_ID: str = os.getenv("STEP_USER_ID", "demo")
    STEP_REFRESH_INTERVAL_SEC: float = float(os.getenv("STEP_REFRESH_INTERVAL_SEC", "60"))
    STEP_WEEK_START: str = os.getenv("STEP_WEEK_START", "sunday").lower()
    STEP_TIMEZONE: str = os.getenv("STEP_TIMEZONE", "Asia/Tokyo")
    STEP_AUTO_AUTHORIZE: bool = env_flag("STEP_AUTO_AUTHORIZE")

    # 目標歩数
    STEP_GOAL_DEFAULT: int = int(os.getenv("STEP_GOAL_DEFAULT", "10000"))
    STEP_GOAL_MIN: int = 1000
    STEP_GOAL_MAX: int = 50000
    STEP_GOAL_STEP: int = 1000

    # App
    RUN_BASE_URL: Optional[str] = os.getenv("RUN_BASE_URL")
    UI_API_TOKEN: str = os.getenv("UI_API_TOKEN", "")

    @property
    def week_start_index(self) -> int:
        """週の開始曜日（月曜=0）"""
        return WEEKDAY_INDEX.get(self.STEP_WEEK_START, 6)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.STEP_TIMEZONE)

settings = Settings()
