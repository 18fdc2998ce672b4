from typing import Callable, Optional

from camping_gate.utils.logging_config import get_logger

logger = get_logger(__name__)


class SessionProvider:
    """
    会话协作方的接口：提供每个请求附带的凭证，并在收到 401 时被告知会话失效.
    令牌的存储方式由具体实现决定。
    """

    def get_token(self) -> Optional[str]:
        raise NotImplementedError

    def invalidate(self):
        raise NotImplementedError


class StaticTokenSession(SessionProvider):
    """持有一个固定令牌；失效后清空令牌并回调重新认证"""

    def __init__(self, token: Optional[str] = None, on_expired: Optional[Callable[[], None]] = None):
        self._token = token or None
        self._on_expired = on_expired

    def get_token(self) -> Optional[str]:
        return self._token

    def invalidate(self):
        if self._token is None:
            return
        self._token = None
        logger.warning("[Session] 会话已失效，需要重新登录")
        if self._on_expired:
            try:
                self._on_expired()
            except Exception as e:
                logger.error(f"[Session] 重新认证回调出错: {e}", exc_info=True)
