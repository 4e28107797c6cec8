from fastapi import Header, HTTPException, Request
from app.config import settings
from app.database.firestore import GoalStore
from app.services.step_tracker import StepTracker

def get_tracker(request: Request) -> StepTracker:
    """lifespan で生成した StepTracker を返す"""
    return request.app.state.tracker

def goal_store_dep(request: Request) -> GoalStore:
    """lifespan で生成した GoalStore を返す"""
    return request.app.state.goal_store

def require_api_token(x_api_token: str | None = Header(None, alias="x-api-token")):
    """設定変更用の API トークン認証（UI_API_TOKEN 未設定なら認証なし）"""
    if settings.UI_API_TOKEN and x_api_token != settings.UI_API_TOKEN:
        raise HTTPException(status_code=401, detail="invalid api token")
