from dataclasses import dataclass

from camping_gate.constants.constants import EntryCondition, SelectionRole


@dataclass
class SelectionEntry:
    """家庭勾选列表中的一个人，只存在于核验成功到确认/取消之间"""

    person_id: int
    display_name: str
    national_id: str
    role: SelectionRole
    condition: EntryCondition  # 登记时使用的入场条件
    selected: bool = False
    locked: bool = False   # 担保会员或唯一匹配人：始终勾选
    blocked: bool = False  # 被停用的家属：不可勾选

    @property
    def toggleable(self) -> bool:
        return not (self.locked or self.blocked)
