"""家庭成员勾选."""

from .models import SelectionEntry
from .selection import FamilySelection

__all__ = [
    "FamilySelection",
    "SelectionEntry",
]
