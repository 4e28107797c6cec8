import asyncio
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, List, Optional
from app.config import settings
from app.external.health_gateway import (
    HealthDataGateway, PlatformUnavailable, AuthorizationDenied,
)
from app.models.steps import AuthorizationState, DailyStepCount, WeeklyStepCounts, TrackerSnapshot
from app.utils.date_utils import start_of_day, start_of_week

class RefreshHandle:
    """定期更新タスクのハンドル。cancel() は一度だけ効く"""

    def __init__(self, task: asyncio.Task):
        self._task = task
        self._cancelled = False

    @property
    def running(self) -> bool:
        return not self._cancelled and not self._task.done()

    def cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True
        self._task.cancel()
        return True

    async def wait(self):
        """キャンセル後のタスク終了を待つ"""
        try:
            await self._task
        except asyncio.CancelledError:
            pass

class Subscription:
    """スナップショットを順に受け取る購読（async for で使う）"""

    def __init__(self, tracker: "StepTracker", maxsize: int = 16):
        self._tracker = tracker
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def push(self, snap: TrackerSnapshot):
        # 溢れたら古いものから捨てる
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(snap)

    def __aiter__(self):
        return self

    async def __anext__(self) -> TrackerSnapshot:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        snap = await self.queue.get()
        if snap is None:
            raise StopAsyncIteration
        return snap

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._tracker._unsubscribe(self)
        # 待機中の受信側を終了させる
        self.push(None)

class StepTracker:
    """
    歩数データの取得と状態配信を担当する

    状態はイベントループ上でのみ更新し、TrackerSnapshot として購読者へ一方向に配信する。
    """

    def __init__(
        self,
        gateway: HealthDataGateway,
        refresh_interval: Optional[float] = None,
        week_start: Optional[int] = None,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.refresh_interval = refresh_interval if refresh_interval is not None else settings.STEP_REFRESH_INTERVAL_SEC
        self.week_start = week_start if week_start is not None else settings.week_start_index
        self.tz = tz or settings.tz
        self._clock = clock
        self._state = TrackerSnapshot()
        self._subscribers: List[Subscription] = []
        self._issued: Dict[str, int] = {"daily": 0, "weekly": 0}
        self._applied: Dict[str, int] = {"daily": 0, "weekly": 0}
        self._timer: Optional[RefreshHandle] = None
        self._closed = False

    def now(self) -> datetime:
        return self._clock() if self._clock else datetime.now(self.tz)

    # --- 状態配信 ---

    def snapshot(self) -> TrackerSnapshot:
        return self._state

    @property
    def authorization(self) -> AuthorizationState:
        return self._state.authorization

    @property
    def is_authorized(self) -> bool:
        return self._state.authorization == AuthorizationState.GRANTED

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        sub.push(self._state)
        self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription):
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def _publish(self, **changes):
        changes["version"] = self._state.version + 1
        changes["updated_at"] = self.now()
        changes["timer_running"] = bool(self._timer and self._timer.running)
        self._state = self._state.model_copy(update=changes)
        for sub in list(self._subscribers):
            sub.push(self._state)

    def _record_error(self, message: str, kind: Optional[str] = None):
        print(f"[WARN] {message}")
        if kind:
            self._publish(last_error=message, **{f"{kind}_error": message})
        else:
            self._publish(last_error=message)

    def _clear_error(self, kind: str) -> Dict[str, Optional[str]]:
        # もう一方の取得エラーは残す
        other = "weekly" if kind == "daily" else "daily"
        return {f"{kind}_error": None, "last_error": getattr(self._state, f"{other}_error")}

    # --- 認可 ---

    async def request_authorization(self) -> AuthorizationState:
        """歩数の読み取り権限を要求する。許可されたら即時更新と定期更新を開始"""
        try:
            granted = await self.gateway.request_read_authorization()
        except PlatformUnavailable as e:
            self._record_error(f"health data is not available: {e}")
            return self._state.authorization
        except AuthorizationDenied as e:
            self._deny(f"authorization denied: {e}")
            return self._state.authorization
        except Exception as e:
            self._deny(f"authorization failed: {e!r}")
            return self._state.authorization

        if not granted:
            self._deny("authorization denied")
            return self._state.authorization

        print("[INFO] step count read access granted")
        self._publish(authorization=AuthorizationState.GRANTED, last_error=None)
        await self.refresh_all()
        self.start_periodic_refresh()
        return self._state.authorization

    def _deny(self, message: str):
        print(f"[WARN] {message}")
        self._stop_timer()
        self._publish(authorization=AuthorizationState.DENIED, last_error=message)

    # --- 更新 ---

    def _issue(self, kind: str) -> int:
        self._issued[kind] += 1
        return self._issued[kind]

    def _is_stale(self, kind: str, seq: int) -> bool:
        return seq < self._applied[kind]

    async def refresh_daily(self) -> Optional[DailyStepCount]:
        """今日0時から現在までの合計歩数を取得"""
        seq = self._issue("daily")
        now = self.now()
        start = start_of_day(now, self.tz)
        try:
            total = await self.gateway.query_daily_sum(start, now)
        except Exception as e:
            if not self._is_stale("daily", seq):
                self._record_error(f"Failed to fetch daily steps: {e}", "daily")
            return self._state.daily

        if self._is_stale("daily", seq):
            print(f"[INFO] discard stale daily response (seq={seq}, applied={self._applied['daily']})")
            return self._state.daily

        self._applied["daily"] = seq
        daily = DailyStepCount(date=start, count=max(int(total or 0), 0))
        self._publish(daily=daily, **self._clear_error("daily"))
        return daily

    async def refresh_weekly(self) -> Optional[WeeklyStepCounts]:
        """今週（週の開始日から7日間）の日別歩数を取得"""
        seq = self._issue("weekly")
        week_start = start_of_week(self.now(), self.tz, self.week_start)
        week_end = week_start + timedelta(days=7)
        try:
            counts = await self.gateway.query_range_daily_sums(week_start, week_end)
        except Exception as e:
            if not self._is_stale("weekly", seq):
                self._record_error(f"Failed to fetch weekly steps: {e}", "weekly")
            return self._state.weekly

        if self._is_stale("weekly", seq):
            print(f"[INFO] discard stale weekly response (seq={seq}, applied={self._applied['weekly']})")
            return self._state.weekly

        self._applied["weekly"] = seq
        weekly = WeeklyStepCounts.filled(week_start, counts or {})
        self._publish(weekly=weekly, **self._clear_error("weekly"))
        return weekly

    async def refresh_all(self):
        """今日・今週の両方を更新"""
        await asyncio.gather(self.refresh_daily(), self.refresh_weekly())

    # --- 定期更新 ---

    def start_periodic_refresh(self) -> RefreshHandle:
        """定期更新を開始する。既に動いていれば同じハンドルを返す"""
        if self._closed:
            raise RuntimeError("tracker is closed")
        if self._timer and self._timer.running:
            return self._timer

        self._timer = RefreshHandle(asyncio.create_task(self._periodic_worker()))
        print(f"[INFO] periodic refresh started (every {self.refresh_interval}s)")
        self._publish()
        return self._timer

    @property
    def timer(self) -> Optional[RefreshHandle]:
        return self._timer

    async def _periodic_worker(self):
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh_all()
            except Exception as e:
                print(f"[ERROR] periodic refresh failed: {e!r}")

    def _stop_timer(self) -> Optional[RefreshHandle]:
        timer, self._timer = self._timer, None
        if timer:
            timer.cancel()
        return timer

    async def close(self):
        """定期更新を止める（複数回呼んでもよい）"""
        if self._closed:
            return
        self._closed = True
        timer = self._stop_timer()
        if timer:
            await timer.wait()
            print("[INFO] periodic refresh stopped")
        for sub in list(self._subscribers):
            sub.close()

    async def __aenter__(self) -> "StepTracker":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
