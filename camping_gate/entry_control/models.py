from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

from camping_gate.entry_control.identity.models import EligibilityVerdict
from camping_gate.entry_control.selection.selection import FamilySelection
from camping_gate.entry_control.shift.models import ShiftPeriod
from camping_gate.entry_control.visits.models import VisitRecord


class EntryPhase(Enum):
    """门岗入场流程所处阶段"""
    IDLE = auto()        # 等待输入
    RESOLVING = auto()   # 正在核验
    VERDICT = auto()     # 已显示核验结果，等待勾选/确认
    SUBMITTING = auto()  # 正在登记


@dataclass
class EntryControlState:
    """门岗的当前状态，由 EntryControlManager 独占持有"""

    phase: EntryPhase = EntryPhase.IDLE
    period: Optional[ShiftPeriod] = None
    verdict: Optional[EligibilityVerdict] = None
    selection: FamilySelection = field(default_factory=FamilySelection)
    query_text: str = ""
    message: Optional[str] = None
    visits: List[VisitRecord] = field(default_factory=list)

    @property
    def period_open(self) -> bool:
        return self.period is not None and self.period.is_open

    def reset_lookup(self):
        """丢弃核验结果和勾选列表，回到等待输入"""
        self.phase = EntryPhase.IDLE
        self.verdict = None
        self.selection = FamilySelection()
        self.query_text = ""

    def to_dict(self) -> dict:
        period = None
        if self.period is not None:
            period = {
                "id": self.period.id,
                "venue_id": self.period.venue_id,
                "opened_at": self.period.opened_at.isoformat() if self.period.opened_at else None,
                "visit_count": self.period.visit_count,
            }
        verdict = None
        if self.verdict is not None:
            verdict = {
                "allowed": self.verdict.allowed,
                "reason_code": self.verdict.reason_code,
                "reason": self.verdict.reason_label,
                "role": self.verdict.role.name,
                "person": self.verdict.person.display_name if self.verdict.person else None,
            }
        return {
            "phase": self.phase.name,
            "period": period,
            "verdict": verdict,
            "selection": [
                {
                    "person_id": entry.person_id,
                    "display_name": entry.display_name,
                    "national_id": entry.national_id,
                    "role": entry.role.name,
                    "selected": entry.selected,
                    "toggleable": entry.toggleable,
                }
                for entry in self.selection.entries
            ],
            "query": self.query_text,
            "message": self.message,
        }
