import asyncio
from typing import Any, Dict, Optional

import requests

from camping_gate.errors import AuthExpiredError, EntryControlError, TransportError
from camping_gate.services.session import SessionProvider
from camping_gate.utils.logging_config import get_logger

logger = get_logger(__name__)


class ApiStatusError(EntryControlError):
    """除 401 和 5xx 之外的非 2xx 响应，由调用方按业务语义转换"""

    def __init__(self, status: int, message: str, details: Any = None):
        super().__init__(message, details)
        self.status = status


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


def unwrap(data: Any) -> Any:
    """去掉 {"success": ..., "data": ...} 外层"""
    if isinstance(data, dict) and "data" in data and "success" in data:
        return data["data"]
    return data


class ApiClient:
    """
    后端 HTTP 客户端.
    requests 是阻塞调用，统一放到 asyncio.to_thread 中执行，不阻塞事件循环。
    """

    def __init__(
        self,
        base_url: str,
        session: SessionProvider,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._http = http or requests.Session()

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, body=body)

    async def put(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        token = self.session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"--> {method} {url}")
        try:
            status, data = await asyncio.to_thread(
                self._send, method, url, params, body, headers
            )
        except requests.RequestException as e:
            logger.error(f"请求 {method} {url} 失败: {e}")
            raise TransportError("No se pudo conectar con el servidor. Intentá nuevamente.") from e

        logger.debug(f"<-- {status} {method} {url}")
        return self._check_status(status, data, method, url)

    def _send(self, method, url, params, body, headers):
        response = self._http.request(
            method, url, params=params, json=body, headers=headers, timeout=self.timeout
        )
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.status_code, response.json()
            except ValueError:
                pass
        return response.status_code, response.text

    def _check_status(self, status: int, data: Any, method: str, url: str) -> Any:
        if status == 401:
            # 会话失效：交给会话模块处理，不重试
            self.session.invalidate()
            raise AuthExpiredError(
                _error_message(data, "La sesión expiró. Iniciá sesión nuevamente."), details=data
            )

        if status >= 500:
            logger.error(f"服务端错误 {status}: {method} {url}")
            raise TransportError(
                _error_message(data, "Error del servidor. Intentá nuevamente."), details=data
            )

        if status >= 400:
            raise ApiStatusError(status, _error_message(data, "Request failed"), details=data)

        return data
