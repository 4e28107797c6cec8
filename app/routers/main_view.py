from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from app.dependencies import get_tracker
from app.models.steps import AuthorizationState
from app.services.chart_service import main_view
from app.services.step_tracker import StepTracker

router = APIRouter(prefix="/main", tags=["main"])

@router.get("")
def main_get(tracker: StepTracker = Depends(get_tracker)):
    """メイン画面（今日の歩数 or アクセス許可ボタン）"""
    return main_view(tracker.snapshot())

@router.post("/authorize")
async def main_authorize(tracker: StepTracker = Depends(get_tracker)):
    """歩数データへのアクセス許可を要求"""
    state = await tracker.request_authorization()
    snap = tracker.snapshot()
    if state != AuthorizationState.GRANTED:
        status = 503 if state == AuthorizationState.UNREQUESTED else 403
        return JSONResponse(
            {"ok": False, "authorization": state.value, "error": snap.last_error},
            status_code=status,
        )
    return {"ok": True, "authorization": state.value, "view": main_view(snap)}

@router.post("/refresh")
async def main_refresh(tracker: StepTracker = Depends(get_tracker)):
    """更新ボタン: 今日・今週の歩数を再取得"""
    if not tracker.is_authorized:
        return JSONResponse({"ok": False, "error": "not authorized"}, status_code=409)
    await tracker.refresh_all()
    snap = tracker.snapshot()
    return {"ok": snap.queries_ok, "view": main_view(snap)}
