from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from camping_gate.constants.constants import (
    CONDITION_LABELS,
    CONDITION_WIRE_TAGS,
    WIRE_CONDITION_ALIASES,
    EntryCondition,
)
from camping_gate.errors import VerdictFormatError
from camping_gate.utils.time_utils import parse_timestamp


@dataclass
class VisitLine:
    """批量登记中的一行：一个人及其入场条件"""

    person_id: int
    condition: EntryCondition

    def to_dict(self) -> dict:
        return {
            "persona_id": self.person_id,
            "condicion_ingreso": CONDITION_WIRE_TAGS[self.condition],
        }


@dataclass
class BatchResult:
    """批量登记结果。部分失败是正常情况，不抛异常"""

    created: int
    failed: int
    errors: List[Any] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.failed > 0

    def summary(self) -> str:
        message = f"{self.created} ingreso(s) registrado(s)."
        if self.failed > 0:
            message += f" {self.failed} error(es)."
        return message


@dataclass
class VisitRecord:
    """一条已登记的入场记录（只读）"""

    id: int
    person_id: Optional[int]
    entered_at: Optional[datetime]
    condition: Any  # EntryCondition，无法识别时保留原始字符串
    national_id: str = ""
    display_name: str = ""
    period_id: Optional[int] = None

    @property
    def condition_label(self) -> str:
        if isinstance(self.condition, EntryCondition):
            return CONDITION_LABELS[self.condition]
        return str(self.condition)

    @classmethod
    def from_payload(cls, data: dict) -> "VisitRecord":
        try:
            person = data.get("persona") or {}
            raw_condition = str(data.get("condicion_ingreso") or "DESCONOCIDO")
            display_name = person.get("nombre_completo") or " ".join(
                part for part in (person.get("apellido"), person.get("nombres")) if part
            )
            return cls(
                id=int(data["id"]),
                person_id=person.get("id", data.get("persona_id")),
                entered_at=parse_timestamp(data.get("fecha_ingreso")),
                condition=WIRE_CONDITION_ALIASES.get(raw_condition, raw_condition),
                national_id=str(person.get("dni") or ""),
                display_name=display_name,
                period_id=data.get("periodo_caja_id"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise VerdictFormatError("Respuesta inválida del servidor.", details=data) from e
