from typing import Any, List, Optional
from urllib.parse import quote

from camping_gate.constants.constants import ReasonCode
from camping_gate.entry_control.identity.resolver import DirectoryBackend
from camping_gate.entry_control.shift.manager import ShiftBackend
from camping_gate.entry_control.visits.submitter import VisitBackend
from camping_gate.errors import (
    AlreadyClosedError,
    PeriodNotFoundError,
    ShiftConflictError,
    ValidationError,
)
from camping_gate.services.api_client import ApiClient, ApiStatusError, unwrap
from camping_gate.utils.logging_config import get_logger

logger = get_logger(__name__)

# 旧版后端用 400 + 错误文案表达冲突，这里按文案识别
_CONFLICT_HINTS = ("ya existe", "already open")
_CLOSED_HINTS = ("cerrado", "already closed")


def _mentions(error: ApiStatusError, hints) -> bool:
    text = error.message.lower()
    return any(hint in text for hint in hints)


class ApiBackend(DirectoryBackend, ShiftBackend, VisitBackend):
    """
    远程后端：通过 HTTP 接口实现身份目录、班次和入场登记.
    只负责把 HTTP 状态码转换为业务错误，数据解析由各 manager 完成。
    """

    def __init__(self, client: ApiClient):
        self.client = client

    # ------------------------------------------------------------------
    # 身份目录
    # ------------------------------------------------------------------

    async def resolve_by_code(self, code: str) -> Any:
        return await self._resolve(f"/qr/{quote(code, safe='')}")

    async def resolve_by_national_id(self, national_id: str) -> Any:
        return await self._resolve(f"/qr/dni/{quote(national_id, safe='')}")

    async def _resolve(self, path: str) -> Any:
        try:
            return await self.client.get(path)
        except ApiStatusError as e:
            if e.status == 404:
                # 未找到是正常的核验结果，不是错误
                body = unwrap(e.details)
                if isinstance(body, dict) and "allowed" in body:
                    return body
                return {"allowed": False, "reason": ReasonCode.PERSON_NOT_FOUND, "persona": None}
            if e.status in (400, 422):
                raise ValidationError(e.message, details=e.details) from e
            raise

    # ------------------------------------------------------------------
    # 班次
    # ------------------------------------------------------------------

    async def get_active_period(self, venue_id: int) -> Any:
        return await self.client.get("/periodos-caja/activo", params={"camping_id": venue_id})

    async def open_period(self, venue_id: int, notes: Optional[str]) -> Any:
        body = {"camping_id": venue_id}
        if notes:
            body["observaciones"] = notes
        try:
            return await self.client.post("/periodos-caja/abrir", body)
        except ApiStatusError as e:
            if e.status == 409 or (e.status == 400 and _mentions(e, _CONFLICT_HINTS)):
                existing = None
                if isinstance(e.details, dict):
                    existing = e.details.get("periodo")
                raise ShiftConflictError(
                    "Ya existe un período de caja abierto en este camping.",
                    existing=existing,
                    details=e.details,
                ) from e
            if e.status in (400, 422):
                raise ValidationError(e.message, details=e.details) from e
            raise

    async def close_period(self, period_id: int, notes: Optional[str]) -> Any:
        body = {}
        if notes:
            body["observaciones"] = notes
        try:
            return await self.client.put(f"/periodos-caja/{period_id}/cerrar", body)
        except ApiStatusError as e:
            if e.status == 404:
                raise PeriodNotFoundError("Período de caja no encontrado.", details=e.details) from e
            if e.status == 409 or (e.status == 400 and _mentions(e, _CLOSED_HINTS)):
                raise AlreadyClosedError("El período de caja ya está cerrado.", details=e.details) from e
            if e.status in (400, 422):
                raise ValidationError(e.message, details=e.details) from e
            raise

    async def list_period_visits(self, period_id: int) -> Any:
        return await self.client.get(f"/visitas/periodo/{period_id}")

    async def period_history(self, venue_id: int, limit: int) -> Any:
        return await self.client.get(
            "/periodos-caja/historial", params={"camping_id": venue_id, "limite": limit}
        )

    # ------------------------------------------------------------------
    # 入场登记
    # ------------------------------------------------------------------

    async def create_visits_batch(
        self,
        venue_id: int,
        period_id: Optional[int],
        lines: List[dict],
        observations: Optional[str],
    ) -> Any:
        body = {
            "camping_id": venue_id,
            "periodo_caja_id": period_id,
            "personas": lines,
        }
        if observations:
            body["observaciones"] = observations
        try:
            return await self.client.post("/visitas/batch", body)
        except ApiStatusError as e:
            if e.status == 409 or (e.status == 400 and _mentions(e, _CLOSED_HINTS)):
                raise AlreadyClosedError("El período de caja ya está cerrado.", details=e.details) from e
            if e.status in (400, 422):
                raise ValidationError(e.message, details=e.details) from e
            raise
