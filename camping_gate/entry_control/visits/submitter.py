from typing import Any, Iterable, List, Optional

from camping_gate.entry_control.selection.models import SelectionEntry
from camping_gate.errors import ValidationError, VerdictFormatError
from camping_gate.utils.logging_config import get_logger

from .models import BatchResult, VisitLine

logger = get_logger(__name__)


class VisitBackend:
    """入场登记后端：一次请求登记多人"""

    async def create_visits_batch(
        self,
        venue_id: int,
        period_id: Optional[int],
        lines: List[dict],
        observations: Optional[str],
    ) -> Any:
        raise NotImplementedError


class BatchVisitSubmitter:
    """
    把确认后的勾选列表转换为一次批量登记请求.

    - 不要求全部成功，created/failed 分别返回；
    - 会话失效（AuthExpiredError）直接向上抛出，不重试；
    - 未开启班次（period_id 为空）只有在 allow_off_shift 时才允许提交。
    """

    def __init__(self, backend: VisitBackend, allow_off_shift: bool = False):
        self.backend = backend
        self.allow_off_shift = allow_off_shift

    @staticmethod
    def build_lines(entries: Iterable[SelectionEntry]) -> List[VisitLine]:
        return [VisitLine(person_id=entry.person_id, condition=entry.condition) for entry in entries]

    async def submit(
        self,
        venue_id: int,
        period_id: Optional[int],
        entries: Iterable[SelectionEntry],
        observations: Optional[str] = None,
    ) -> BatchResult:
        lines = self.build_lines(entries)
        if not lines:
            raise ValidationError("Seleccioná al menos una persona para registrar el ingreso.")
        if period_id is None and not self.allow_off_shift:
            raise ValidationError("No hay turno abierto. Abrí un turno antes de registrar ingresos.")

        logger.info(
            f"[BatchVisitSubmitter] 提交 {len(lines)} 条入场记录: 营地={venue_id}, 班次={period_id}"
        )
        payload = await self.backend.create_visits_batch(
            venue_id, period_id, [line.to_dict() for line in lines], observations
        )
        result = self._parse_result(payload, len(lines))

        if result.partial:
            logger.warning(
                f"[BatchVisitSubmitter] 部分登记失败: 成功 {result.created}, 失败 {result.failed}"
            )
        else:
            logger.info(f"[BatchVisitSubmitter] 登记完成: 成功 {result.created}")
        return result

    @staticmethod
    def _parse_result(payload: Any, expected: int) -> BatchResult:
        if isinstance(payload, dict) and "data" in payload and "success" in payload:
            payload = payload["data"]
        if not isinstance(payload, dict):
            raise VerdictFormatError("Respuesta inválida del servidor.", details=payload)
        try:
            created = int(payload.get("created", 0))
            failed = int(payload.get("failed", max(expected - created, 0)))
        except (TypeError, ValueError) as e:
            raise VerdictFormatError("Respuesta inválida del servidor.", details=payload) from e
        return BatchResult(created=created, failed=failed, errors=list(payload.get("errors") or []))
