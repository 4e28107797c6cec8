from functools import lru_cache
from datetime import datetime, timezone
from typing import Callable, List
from google.cloud import firestore
from app.config import settings
from app.models.steps import clamp_goal

GOAL_FIELD = "dailyGoal"

@lru_cache(maxsize=1)
def get_db() -> firestore.Client:
    """Firestoreクライアント（初回アクセス時に生成）"""
    return firestore.Client()

def user_doc(user_id: str = "demo"):
    """ユーザードキュメントの参照を返す"""
    return get_db().collection("users").document(user_id)

def fitbit_token_doc(user_id: str = "demo"):
    """Fitbitトークンドキュメントの参照を返す"""
    return user_doc(user_id).collection("private").document("fitbit_oauth")

def settings_doc(user_id: str = "demo"):
    """アプリ設定ドキュメントの参照を返す"""
    return user_doc(user_id).collection("settings").document("app")

class GoalStore:
    """1日の目標歩数をFirestoreに永続化する"""

    def __init__(self, doc, default: int | None = None):
        self._doc = doc
        self._default = clamp_goal(default if default is not None else settings.STEP_GOAL_DEFAULT)
        self._observers: List[Callable[[int], None]] = []

    @property
    def default(self) -> int:
        return self._default

    def get(self) -> int:
        """保存済みの目標を返す。未保存・不正値ならデフォルト"""
        snap = self._doc.get()
        if not snap.exists:
            return self._default
        raw = (snap.to_dict() or {}).get(GOAL_FIELD)
        try:
            return clamp_goal(int(raw))
        except (TypeError, ValueError):
            print(f"[WARN] invalid {GOAL_FIELD} in settings doc: {raw!r}")
            return self._default

    def set(self, value: int) -> int:
        """範囲内に丸めて保存し、購読者へ通知"""
        goal = clamp_goal(value)
        self._doc.set({
            GOAL_FIELD: goal,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, merge=True)
        for cb in list(self._observers):
            try:
                cb(goal)
            except Exception as e:
                print(f"[ERROR] goal observer failed: {e}")
        return goal

    def subscribe(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """目標値の変更を購読する。戻り値を呼ぶと解除"""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)
        return unsubscribe

def get_goal_store(user_id: str | None = None) -> GoalStore:
    return GoalStore(settings_doc(user_id or settings.STEP_USER_ID))
