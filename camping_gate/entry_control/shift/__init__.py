"""收银班次管理."""

from .manager import ShiftBackend, ShiftPeriodManager
from .models import ShiftPeriod

__all__ = [
    "ShiftBackend",
    "ShiftPeriod",
    "ShiftPeriodManager",
]
