import asyncio
import json
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from app.database.firestore import GoalStore
from app.dependencies import get_tracker, goal_store_dep
from app.models.steps import TrackerSnapshot
from app.services.chart_service import daily_chart, weekly_chart
from app.services.step_tracker import StepTracker
from app.utils.date_utils import start_of_week

router = APIRouter(prefix="/graph", tags=["graph"])

TABS = {0: "今日", 1: "今週"}

async def _on_appear(tracker: StepTracker):
    if tracker.is_authorized:
        await tracker.refresh_all()

def _render(tracker: StepTracker, snap: TrackerSnapshot, goal: int, tab: int) -> dict:
    if tab == 0:
        chart = daily_chart(snap.daily_steps, goal)
    else:
        week_start = start_of_week(tracker.now(), tracker.tz, tracker.week_start)
        chart = weekly_chart(snap.weekly, goal, week_start)
    return {
        "tab": tab,
        "tabs": [{"tag": k, "label": v} for k, v in TABS.items()],
        "chart": chart.model_dump(mode="json"),
        "version": snap.version,
    }

@router.get("")
async def graph(
    tab: int = Query(0, ge=0, le=1),
    tracker: StepTracker = Depends(get_tracker),
    goal_store: GoalStore = Depends(goal_store_dep),
):
    """グラフ画面（tab=0: 今日, tab=1: 今週）"""
    await _on_appear(tracker)
    return _render(tracker, tracker.snapshot(), goal_store.get(), tab)

@router.get("/daily")
async def graph_daily(
    tracker: StepTracker = Depends(get_tracker),
    goal_store: GoalStore = Depends(goal_store_dep),
):
    """今日のリングチャート"""
    await _on_appear(tracker)
    return daily_chart(tracker.snapshot().daily_steps, goal_store.get())

@router.get("/weekly")
async def graph_weekly(
    tracker: StepTracker = Depends(get_tracker),
    goal_store: GoalStore = Depends(goal_store_dep),
):
    """今週7日分のチャート"""
    await _on_appear(tracker)
    week_start = start_of_week(tracker.now(), tracker.tz, tracker.week_start)
    return weekly_chart(tracker.snapshot().weekly, goal_store.get(), week_start)

@router.get("/stream")
async def graph_stream(
    tab: int = Query(0, ge=0, le=1),
    limit: int | None = Query(None, ge=1),
    tracker: StepTracker = Depends(get_tracker),
    goal_store: GoalStore = Depends(goal_store_dep),
):
    """スナップショットか目標歩数の変更が届くたびに描画結果を Server-Sent Events で送る"""
    sub = tracker.subscribe()
    loop = asyncio.get_running_loop()

    def on_goal_change(goal: int):
        # 目標の保存はスレッドプールから呼ばれるのでループへ渡す
        loop.call_soon_threadsafe(lambda: sub.push(tracker.snapshot()))

    unsubscribe_goal = goal_store.subscribe(on_goal_change)

    async def events():
        sent = 0
        try:
            async for snap in sub:
                payload = _render(tracker, snap, goal_store.get(), tab)
                yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
                sent += 1
                if limit and sent >= limit:
                    break
        except asyncio.CancelledError:
            print("[INFO] graph stream disconnected")
            raise
        finally:
            unsubscribe_goal()
            sub.close()

    return StreamingResponse(events(), media_type="text/event-stream")
