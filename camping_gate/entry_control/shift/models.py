from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from camping_gate.errors import VerdictFormatError
from camping_gate.utils.time_utils import parse_timestamp


@dataclass
class ShiftPeriod:
    """营地的收银班次（periodo de caja）。closed_at 为空表示开启中"""

    id: int
    venue_id: int
    opened_at: datetime
    operator_id: Optional[int] = None
    closed_at: Optional[datetime] = None
    visit_count: int = 0
    notes: Optional[str] = None
    venue_name: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @classmethod
    def from_payload(cls, data: dict) -> "ShiftPeriod":
        try:
            venue = data.get("camping") or {}
            return cls(
                id=int(data["id"]),
                venue_id=int(data.get("camping_id", venue.get("id"))),
                opened_at=parse_timestamp(data["fecha_apertura"]),
                operator_id=data.get("usuario_apertura_id"),
                closed_at=parse_timestamp(data.get("fecha_cierre")),
                visit_count=int(data.get("total_visitas") or 0),
                notes=data.get("observaciones"),
                venue_name=venue.get("nombre"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise VerdictFormatError("Respuesta inválida del servidor.", details=data) from e
