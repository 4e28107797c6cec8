from fastapi import APIRouter, Depends
from app.database.firestore import GoalStore
from app.dependencies import goal_store_dep, require_api_token
from app.models.steps import GoalIn, GoalOut
from app.config import settings

router = APIRouter(prefix="/settings", tags=["settings"])

@router.get("/goal", response_model=GoalOut)
def goal_get(goal_store: GoalStore = Depends(goal_store_dep)):
    """1日の目標歩数を取得"""
    return GoalOut(goal=goal_store.get())

@router.put("/goal", response_model=GoalOut, dependencies=[Depends(require_api_token)])
def goal_put(body: GoalIn, goal_store: GoalStore = Depends(goal_store_dep)):
    """目標歩数を保存（1000刻み・1000〜50000に丸める）"""
    return GoalOut(goal=goal_store.set(body.goal))

@router.post("/goal/increment", response_model=GoalOut, dependencies=[Depends(require_api_token)])
def goal_increment(goal_store: GoalStore = Depends(goal_store_dep)):
    """ステッパーの＋"""
    return GoalOut(goal=goal_store.set(goal_store.get() + settings.STEP_GOAL_STEP))

@router.post("/goal/decrement", response_model=GoalOut, dependencies=[Depends(require_api_token)])
def goal_decrement(goal_store: GoalStore = Depends(goal_store_dep)):
    """ステッパーの−"""
    return GoalOut(goal=goal_store.set(goal_store.get() - settings.STEP_GOAL_STEP))
