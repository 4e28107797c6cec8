import asyncio
import base64
import httpx
from datetime import datetime, timezone, timedelta, date
from typing import Dict, Optional
from app.config import settings
from app.database.firestore import fitbit_token_doc
from app.external.health_gateway import PlatformUnavailable, AuthorizationDenied, QueryFailure
from app.utils.date_utils import to_date_str

FITBIT_TOKEN_LOCK = asyncio.Lock()
FITBIT_TOKEN_URL = "https://api.fitbit.com/oauth2/token"

def get_redirect_uri() -> str:
    """Fitbit OAuth リダイレクトURIを生成"""
    return f"{settings.RUN_BASE_URL.rstrip('/')}/fitbit/auth" if settings.RUN_BASE_URL else ""

def is_env_configured() -> bool:
    """Fitbitクライアント情報が設定されているか"""
    return bool(settings.FITBIT_CLIENT_ID and settings.FITBIT_CLIENT_SECRET)

def _basic_auth_headers() -> dict:
    auth = base64.b64encode(f"{settings.FITBIT_CLIENT_ID}:{settings.FITBIT_CLIENT_SECRET}".encode()).decode()
    return {
        "Authorization": f"Basic {auth}",
        "Content-Type": "application/x-www-form-urlencoded"
    }

def _now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())

async def fitbit_exchange_code(code: str) -> dict:
    """認証コードをアクセストークンに交換"""
    data = {
        "clientId": settings.FITBIT_CLIENT_ID,
        "grant_type": "authorization_code",
        "redirect_uri": get_redirect_uri(),
        "code": code
    }
    async with httpx.AsyncClient(timeout=30.0) as client:
        r = await client.post(FITBIT_TOKEN_URL, headers=_basic_auth_headers(), data=data)
        r.raise_for_status()
        return r.json()

async def fitbit_refresh(refresh_token: str) -> dict:
    """リフレッシュトークンで新しいアクセストークンを取得"""
    data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
    async with httpx.AsyncClient(timeout=30.0) as client:
        r = await client.post(FITBIT_TOKEN_URL, headers=_basic_auth_headers(), data=data)
        r.raise_for_status()
        return r.json()

def token_payload(token: dict, previous: Optional[dict] = None) -> dict:
    """トークンレスポンスをFirestore保存用に整形"""
    previous = previous or {}
    return {
        "access_token": token["access_token"],
        "refresh_token": token.get("refresh_token", previous.get("refresh_token")),
        "token_type": token.get("token_type", "Bearer"),
        "scope": token.get("scope", previous.get("scope")),
        "user_id": token.get("user_id", previous.get("user_id")),
        "expires_at": _now_ts() + int(token.get("expires_in", 3600)),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }

def _to_int(x) -> int:
    try:
        return max(int(float(x)), 0)
    except (TypeError, ValueError):
        raise QueryFailure(f"invalid step value: {x!r}")

class FitbitGateway:
    """Fitbit Web API を歩数のヘルスデータゲートウェイとして扱う（読み取り専用）"""

    def __init__(self, user_id: str = "demo", token_doc=None, transport: httpx.AsyncBaseTransport | None = None):
        self.user_id = user_id
        self._token_doc = token_doc
        self._transport = transport

    def _doc(self):
        if self._token_doc is None:
            self._token_doc = fitbit_token_doc(self.user_id)
        return self._token_doc

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=settings.FITBIT_API_BASE, timeout=30.0, transport=self._transport)

    async def request_read_authorization(self) -> bool:
        """activityスコープのトークンが保存済みなら許可済みとみなす"""
        if not is_env_configured():
            raise PlatformUnavailable("FITBIT_CLIENT_ID / FITBIT_CLIENT_SECRET not set")

        snap = self._doc().get()
        if not snap.exists:
            raise AuthorizationDenied("Fitbit not connected. Open /fitbit/login first.")
        tok = snap.to_dict() or {}
        scopes = (tok.get("scope") or "").split()
        if "activity" not in scopes:
            raise AuthorizationDenied(f"activity scope not granted (scope={tok.get('scope')!r})")
        return True

    async def get_access_token(self) -> str:
        """アクセストークンを返す。期限が近ければ1回だけリフレッシュする（ロック付き）"""
        doc = self._doc()
        snap = doc.get()
        if not snap.exists:
            raise AuthorizationDenied("Fitbit not connected. Open /fitbit/login first.")

        tok = snap.to_dict()
        if tok.get("expires_at", 0) > _now_ts() + 120:
            return tok["access_token"]

        async with FITBIT_TOKEN_LOCK:
            snap = doc.get()
            if not snap.exists:
                raise AuthorizationDenied("Fitbit token was removed. Open /fitbit/login again.")
            tok = snap.to_dict()
            if tok.get("expires_at", 0) > _now_ts() + 120:
                return tok["access_token"]

            try:
                newtok = await fitbit_refresh(tok["refresh_token"])
            except httpx.HTTPError as e:
                raise QueryFailure(f"token refresh failed: {e!r}") from e
            doc.set(token_payload(newtok, tok), merge=True)
            return newtok["access_token"]

    async def _get(self, path: str) -> dict:
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with self._client() as client:
                r = await client.get(path, headers=headers)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            raise QueryFailure(f"GET {path} -> {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise QueryFailure(f"GET {path} failed: {e!r}") from e

    async def query_daily_sum(self, start: datetime, end: datetime) -> Optional[int]:
        """[start, end) の合計歩数。Fitbitは日単位なので start の日の合計を返す"""
        data = await self._get(f"/1/user/-/activities/steps/date/{to_date_str(start)}/1d.json")
        rows = data.get("activities-steps")
        if not isinstance(rows, list):
            raise QueryFailure("activities-steps missing in response")
        if not rows:
            return None
        return _to_int(rows[0].get("value", 0))

    async def query_range_daily_sums(self, start: datetime, end: datetime) -> Dict[date, int]:
        """[start, end) の日別合計歩数"""
        last = (end - timedelta(microseconds=1)).date()
        data = await self._get(
            f"/1/user/-/activities/steps/date/{to_date_str(start)}/{to_date_str(last)}.json"
        )
        rows = data.get("activities-steps")
        if not isinstance(rows, list):
            raise QueryFailure("activities-steps missing in response")

        out: Dict[date, int] = {}
        for row in rows:
            day = row.get("dateTime")
            if not day:
                continue
            try:
                d = datetime.strptime(day, "%Y-%m-%d").date()
            except ValueError:
                raise QueryFailure(f"invalid dateTime: {day!r}")
            if start.date() <= d < end.date():
                out[d] = _to_int(row.get("value", 0))
        return out
