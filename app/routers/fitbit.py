from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse, JSONResponse
from app.external.fitbit_client import get_redirect_uri, fitbit_exchange_code, is_env_configured, token_payload
from app.database.firestore import fitbit_token_doc
from app.dependencies import get_tracker
from app.services.step_tracker import StepTracker
from app.config import settings
import urllib.parse
import httpx

router = APIRouter(tags=["fitbit"])

@router.get("/login")
def login_fitbit():
    """Fitbit OAuth認証開始（歩数の読み取りのみ）"""
    redirect_uri = get_redirect_uri()
    if not (is_env_configured() and redirect_uri):
        return JSONResponse({"error": "FITBIT_* envs or RUN_BASE_URL not set"}, status_code=500)

    params = {
        "response_type": "code",
        "client_id": settings.FITBIT_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "scope": settings.FITBIT_SCOPE,
        "prompt": "consent",
        "expires_in": "604800",
    }
    url = "https://www.fitbit.com/oauth2/authorize?" + urllib.parse.urlencode(params)
    return RedirectResponse(url)

@router.get("/auth")
async def auth_fitbit(code: str = "", state: str = "", tracker: StepTracker = Depends(get_tracker)):
    """Fitbit OAuth認証コールバック。保存後に読み取り権限を再要求する"""
    if not code:
        return JSONResponse({"ok": False, "error": "code not provided"}, status_code=400)

    try:
        token = await fitbit_exchange_code(code)
    except httpx.HTTPStatusError as e:
        return JSONResponse({"ok": False, "where": "exchange", "status": e.response.status_code, "body": e.response.text}, status_code=500)
    except httpx.HTTPError as e:
        return JSONResponse({"ok": False, "where": "exchange", "error": repr(e)}, status_code=500)

    fitbit_token_doc(settings.STEP_USER_ID).set(token_payload(token))
    await tracker.request_authorization()
    return RedirectResponse(url="/main")
