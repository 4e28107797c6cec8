from datetime import datetime, date
from typing import Dict, Optional, Protocol

class HealthGatewayError(Exception):
    """ヘルスデータ取得系のエラー基底クラス"""

class PlatformUnavailable(HealthGatewayError):
    """ヘルスデータサービスが利用できない（未設定など）"""

class AuthorizationDenied(HealthGatewayError):
    """読み取り権限が拒否された"""

class QueryFailure(HealthGatewayError):
    """個別クエリの失敗（通信エラー・不正なレスポンスなど）"""

class HealthDataGateway(Protocol):
    """歩数データの読み取り専用ゲートウェイ"""

    async def request_read_authorization(self) -> bool: ...

    async def query_daily_sum(self, start: datetime, end: datetime) -> Optional[int]: ...

    async def query_range_daily_sums(self, start: datetime, end: datetime) -> Dict[date, int]: ...
