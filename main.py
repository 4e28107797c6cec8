# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database.firestore import get_goal_store
from app.external.fitbit_client import FitbitGateway
from app.routers import health, main_view, graph, goal, fitbit
from app.services.step_tracker import StepTracker

def create_app(tracker: StepTracker | None = None, goal_store=None, auto_authorize: bool | None = None) -> FastAPI:
    """アプリを生成（テストでは tracker / goal_store を差し替える）"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.tracker = tracker or StepTracker(FitbitGateway(settings.STEP_USER_ID))
        app.state.goal_store = goal_store or get_goal_store()

        # 起動時に読み取り権限を要求
        if settings.STEP_AUTO_AUTHORIZE if auto_authorize is None else auto_authorize:
            await app.state.tracker.request_authorization()

        yield

        # 定期更新タイマーを停止
        await app.state.tracker.close()

    app = FastAPI(
        title="StepLine API",
        description="Daily and weekly step counts with a daily step goal",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ルーター登録
    app.include_router(health.router)
    app.include_router(main_view.router)        # prefixは内部で設定済み
    app.include_router(graph.router)            # prefixは内部で設定済み
    app.include_router(goal.router)             # prefixは内部で設定済み
    app.include_router(fitbit.router, prefix="/fitbit")

    @app.get("/")
    def root():
        """ルートエンドポイント（タブ一覧）"""
        return {
            "message": "StepLine API v1.0",
            "tabs": [
                {"label": "メイン", "icon": "figure.walk", "href": "/main"},
                {"label": "グラフ", "icon": "chart.bar", "href": "/graph"},
                {"label": "設定", "icon": "gear", "href": "/settings/goal"},
            ],
            "status": "healthy",
        }

    return app

app = create_app()
