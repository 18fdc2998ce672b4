from datetime import datetime
from typing import Any, Optional

from dateutil.parser import isoparse

from camping_gate.errors import VerdictFormatError


def parse_timestamp(value: Any) -> Optional[datetime]:
    """解析后端返回的 ISO 8601 时间"""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return isoparse(str(value))
    except ValueError as e:
        raise VerdictFormatError("Fecha inválida en la respuesta del servidor.", details=value) from e
