from fastapi import APIRouter, Depends
from app.dependencies import get_tracker
from app.services.step_tracker import StepTracker

router = APIRouter()

@router.get("/health")
def health(tracker: StepTracker = Depends(get_tracker)):
    """ヘルスチェックエンドポイント"""
    snap = tracker.snapshot()
    return {
        "ok": True,
        "service": "stepline-fastapi",
        "version": "1.0.0",
        "authorization": snap.authorization.value,
        "timer_running": snap.timer_running,
    }
