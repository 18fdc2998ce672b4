from typing import Iterable, List, Optional, Tuple

from camping_gate.constants.constants import EntryCondition, RoleType, SelectionRole
from camping_gate.entry_control.identity.models import EligibilityVerdict, MemberVerdict
from camping_gate.utils.logging_config import get_logger

from .models import SelectionEntry

logger = get_logger(__name__)


class FamilySelection:
    """
    一次入场要一起登记的人员集合（纯内存）.

    - 会员：本人作为 SPONSOR 锁定勾选，名下家属默认不勾选，被停用的家属不可勾选；
    - 家属/访客/未知：只有匹配到的本人一条，锁定勾选。唯一匹配人在
      SelectionRole 上记为 DEPENDENT（家属）或 SPONSOR（其余），入场条件原样保留在 condition 中。
    拒绝入场的核验结果得到空集合。
    """

    def __init__(self, entries: Optional[Iterable[SelectionEntry]] = None):
        self._entries: List[SelectionEntry] = list(entries or [])

    @classmethod
    def from_verdict(cls, verdict: EligibilityVerdict) -> "FamilySelection":
        if not verdict.allowed or verdict.person is None:
            return cls()

        person = verdict.person
        if isinstance(verdict, MemberVerdict):
            entries = [SelectionEntry(
                person_id=person.id,
                display_name=person.display_name,
                national_id=person.national_id,
                role=SelectionRole.SPONSOR,
                condition=EntryCondition.MEMBER,
                selected=True,
                locked=True,
            )]
            seen = {person.id}
            for dependent in verdict.sponsor_dependents:
                if dependent.person_id in seen:
                    continue
                seen.add(dependent.person_id)
                entries.append(SelectionEntry(
                    person_id=dependent.person_id,
                    display_name=dependent.display_name,
                    national_id=dependent.national_id,
                    role=SelectionRole.DEPENDENT,
                    condition=EntryCondition.DEPENDENT,
                    selected=False,
                    blocked=not dependent.allowed,
                ))
            return cls(entries)

        role = SelectionRole.DEPENDENT if verdict.role is RoleType.DEPENDENT else SelectionRole.SPONSOR
        return cls([SelectionEntry(
            person_id=person.id,
            display_name=person.display_name,
            national_id=person.national_id,
            role=role,
            condition=EntryCondition(verdict.role.value),
            selected=True,
            locked=True,
        )])

    @property
    def entries(self) -> Tuple[SelectionEntry, ...]:
        return tuple(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def get(self, person_id: int) -> Optional[SelectionEntry]:
        for entry in self._entries:
            if entry.person_id == person_id:
                return entry
        return None

    def toggle(self, person_id: int) -> bool:
        """切换勾选状态，返回切换后的状态；锁定、停用或不存在的条目不变"""
        entry = self.get(person_id)
        if entry is None:
            logger.warning(f"[FamilySelection] 勾选列表中没有人员 {person_id}")
            return False
        if not entry.toggleable:
            return entry.selected
        entry.selected = not entry.selected
        return entry.selected

    def confirmed_list(self) -> List[SelectionEntry]:
        return [entry for entry in self._entries if entry.selected]

    def clear(self):
        self._entries.clear()
