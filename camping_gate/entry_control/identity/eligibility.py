"""入场资格规则.

客户端（标注家属是否可勾选）与本地存储（生成核验结果、批量登记时复核）共用这套规则。
参数只要求带有对应属性，既可以是 ORM 实例，也可以是 models 中的 dataclass。

规则：
- 会员：会籍状态为 ACTIVO 时放行；
- 家属：担保会员会籍有效、本人未停用且记录有效时放行，担保会员无效优先判定；
- 访客：记录有效且（无截止时间或截止时间不早于当前时间）时放行；
- 同时具有多种身份时，按 会员 > 家属 > 访客 的顺序判定。
"""

from datetime import datetime
from typing import List, NamedTuple, Optional

from camping_gate.constants.constants import ReasonCode, RoleType

ACTIVE_STANDINGS = ("ACTIVO", "ACTIVE")


class Eligibility(NamedTuple):
    allowed: bool
    reason_code: str
    role_types: List[RoleType]


def is_standing_active(standing: Optional[str]) -> bool:
    return str(standing or "").strip().upper() in ACTIVE_STANDINGS


def _now_for(value: datetime) -> datetime:
    return datetime.now(value.tzinfo) if value.tzinfo else datetime.now()


def guest_is_valid(active, valid_until: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if not active:
        return False
    if valid_until is None:
        return True
    if now is None:
        now = _now_for(valid_until)
    return valid_until >= now


def dependent_is_blocked(active, suspended) -> bool:
    return bool(suspended) or not active


def evaluate_member(membership) -> Eligibility:
    if is_standing_active(membership.standing):
        return Eligibility(True, ReasonCode.MEMBER_ACTIVE, [RoleType.MEMBER])
    return Eligibility(False, ReasonCode.MEMBER_INACTIVE, [RoleType.MEMBER])


def evaluate_dependent(dependent, sponsor) -> Eligibility:
    roles = [RoleType.DEPENDENT]
    if sponsor is None or not is_standing_active(sponsor.standing):
        return Eligibility(False, ReasonCode.SPONSOR_INACTIVE, roles)
    if dependent_is_blocked(dependent.active, dependent.suspended):
        return Eligibility(False, ReasonCode.DEPENDENT_SUSPENDED, roles)
    return Eligibility(True, ReasonCode.DEPENDENT_VALID, roles)


def evaluate_guest(guest, now: Optional[datetime] = None) -> Eligibility:
    if guest_is_valid(guest.active, guest.valid_until, now):
        return Eligibility(True, ReasonCode.GUEST_VALID, [RoleType.GUEST])
    return Eligibility(False, ReasonCode.GUEST_EXPIRED, [RoleType.GUEST])


def evaluate_person(membership=None, dependent=None, sponsor=None, guest=None,
                    now: Optional[datetime] = None) -> Eligibility:
    """对一个已找到的人员做完整判定，role_types 中第一个为判定所依据的身份"""
    roles = []
    if membership is not None:
        roles.append(RoleType.MEMBER)
    if dependent is not None:
        roles.append(RoleType.DEPENDENT)
    if guest is not None:
        roles.append(RoleType.GUEST)

    if membership is not None:
        result = evaluate_member(membership)
    elif dependent is not None:
        result = evaluate_dependent(dependent, sponsor)
    elif guest is not None:
        result = evaluate_guest(guest, now)
    else:
        return Eligibility(False, ReasonCode.PERSON_NO_ROLE, [RoleType.UNKNOWN])

    return Eligibility(result.allowed, result.reason_code, roles)
