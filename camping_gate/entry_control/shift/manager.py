import dataclasses
from typing import Any, List, Optional

from camping_gate.entry_control.visits.models import VisitRecord
from camping_gate.errors import ShiftConflictError
from camping_gate.utils.logging_config import get_logger

from .models import ShiftPeriod

logger = get_logger(__name__)


class ShiftBackend:
    """班次后端：开启/关闭班次、查询当前班次及其入场记录"""

    async def get_active_period(self, venue_id: int) -> Any:
        raise NotImplementedError

    async def open_period(self, venue_id: int, notes: Optional[str]) -> Any:
        raise NotImplementedError

    async def close_period(self, period_id: int, notes: Optional[str]) -> Any:
        raise NotImplementedError

    async def list_period_visits(self, period_id: int) -> Any:
        raise NotImplementedError

    async def period_history(self, venue_id: int, limit: int) -> Any:
        raise NotImplementedError


def _unwrap(payload: Any, key: str) -> Any:
    if isinstance(payload, dict):
        if key in payload:
            return payload[key]
        if "data" in payload and "success" in payload:
            return _unwrap(payload["data"], key)
    return payload


class ShiftPeriodManager:
    """
    班次管理.
    每个营地同一时间最多一个开启中的班次，CLOSED -> OPEN -> CLOSED，关闭后不可再变。
    计数器归服务端所有，这里只做乐观递增，下一次 get_active 时以服务端为准。
    """

    def __init__(self, backend: ShiftBackend):
        self.backend = backend

    async def get_active(self, venue_id: int) -> Optional[ShiftPeriod]:
        payload = _unwrap(await self.backend.get_active_period(venue_id), "periodo")
        if not payload:
            return None
        return ShiftPeriod.from_payload(payload)

    async def open(self, venue_id: int, notes: Optional[str] = None) -> ShiftPeriod:
        logger.info(f"[ShiftPeriodManager] 营地 {venue_id} 请求开启班次")
        try:
            payload = await self.backend.open_period(venue_id, notes)
        except ShiftConflictError as e:
            existing = e.existing
            if isinstance(existing, dict):
                existing = ShiftPeriod.from_payload(existing)
            if not isinstance(existing, ShiftPeriod):
                existing = await self.get_active(venue_id)
            logger.warning(
                f"[ShiftPeriodManager] 营地 {venue_id} 已有开启中的班次 "
                f"#{existing.id if existing else '?'}"
            )
            raise ShiftConflictError(e.message, existing=existing, details=e.details) from e

        period = ShiftPeriod.from_payload(_unwrap(payload, "periodo"))
        logger.info(f"[ShiftPeriodManager] 班次 #{period.id} 已开启")
        return period

    async def close(self, period_id: int, notes: Optional[str] = None) -> ShiftPeriod:
        logger.info(f"[ShiftPeriodManager] 请求关闭班次 #{period_id}")
        payload = await self.backend.close_period(period_id, notes)
        period = ShiftPeriod.from_payload(_unwrap(payload, "periodo"))
        logger.info(f"[ShiftPeriodManager] 班次 #{period_id} 已关闭，共 {period.visit_count} 次入场")
        return period

    @staticmethod
    def record_visits(period: ShiftPeriod, created: int) -> ShiftPeriod:
        """提交成功后的乐观计数"""
        return dataclasses.replace(period, visit_count=period.visit_count + max(created, 0))

    async def list_visits(self, period_id: int) -> List[VisitRecord]:
        payload = _unwrap(await self.backend.list_period_visits(period_id), "visitas")
        return [VisitRecord.from_payload(item) for item in payload or []]

    async def history(self, venue_id: int, limit: int = 20) -> List[ShiftPeriod]:
        payload = _unwrap(await self.backend.period_history(venue_id, limit), "periodos")
        return [ShiftPeriod.from_payload(item) for item in payload or []]
