"""批量入场登记."""

from .models import BatchResult, VisitLine, VisitRecord
from .submitter import BatchVisitSubmitter, VisitBackend

__all__ = [
    "BatchResult",
    "BatchVisitSubmitter",
    "VisitBackend",
    "VisitLine",
    "VisitRecord",
]
