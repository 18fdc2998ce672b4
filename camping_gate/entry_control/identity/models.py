from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, List, Optional, Tuple

from camping_gate.constants.constants import (
    REASON_LABELS,
    REASON_ROLES,
    WIRE_REASON_ALIASES,
    WIRE_ROLE_ALIASES,
    LookupKind,
    ReasonCode,
    RoleType,
)
from camping_gate.entry_control.identity.eligibility import (
    dependent_is_blocked,
    guest_is_valid,
    is_standing_active,
)
from camping_gate.errors import ValidationError, VerdictFormatError
from camping_gate.utils.logging_config import get_logger
from camping_gate.utils.lookup_matcher import LookupMatcher
from camping_gate.utils.time_utils import parse_timestamp

logger = get_logger(__name__)

_matcher = LookupMatcher()


@dataclass(frozen=True)
class LookupQuery:
    """已区分查询方式的查询请求"""
    kind: LookupKind
    value: str

    @classmethod
    def from_text(cls, text: str) -> "LookupQuery":
        classified = _matcher.classify(text)
        if classified is None:
            raise ValidationError("Ingresá un código QR o un DNI.")
        kind, value = classified
        return cls(kind, value)

    @classmethod
    def scan_code(cls, code: str) -> "LookupQuery":
        return cls(LookupKind.SCAN_CODE, code.strip())

    @classmethod
    def national_id(cls, national_id: str) -> "LookupQuery":
        return cls(LookupKind.NATIONAL_ID, national_id.strip())


@dataclass
class Person:
    id: int
    national_id: str
    display_name: str
    scan_code: Optional[str] = None


@dataclass
class Membership:
    id: int
    standing: Optional[str]
    benefit_standing: Optional[str] = None
    active: Optional[bool] = None

    @property
    def is_active(self) -> bool:
        return is_standing_active(self.standing)


@dataclass
class GuestPass:
    id: int
    valid_from: Optional[datetime]
    valid_until: Optional[datetime]
    applies_to_household: bool = False
    active: bool = False

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return guest_is_valid(self.active, self.valid_until, now)


@dataclass
class SponsorDependent:
    """担保会员名下的家属，blocked 的家属仍然列出（界面显示为不可选）"""
    dependent_id: int
    person_id: int
    national_id: str
    display_name: str
    active: Optional[bool]
    suspended: Optional[bool]

    @property
    def allowed(self) -> bool:
        return not dependent_is_blocked(self.active, self.suspended)


@dataclass
class EligibilityVerdict:
    """身份核验结果，按判定身份分为四个子类型"""

    role: ClassVar[RoleType] = RoleType.UNKNOWN

    allowed: bool
    reason_code: str
    person: Optional[Person]
    role_types: Tuple[RoleType, ...]
    unrecognized_roles: Tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.person is not None

    @property
    def reason_label(self) -> str:
        return REASON_LABELS.get(self.reason_code, self.reason_code)


@dataclass
class MemberVerdict(EligibilityVerdict):
    role: ClassVar[RoleType] = RoleType.MEMBER

    membership: Optional[Membership] = None
    sponsor_dependents: List[SponsorDependent] = field(default_factory=list)


@dataclass
class DependentVerdict(EligibilityVerdict):
    role: ClassVar[RoleType] = RoleType.DEPENDENT

    sponsor_membership_id: Optional[int] = None


@dataclass
class GuestVerdict(EligibilityVerdict):
    role: ClassVar[RoleType] = RoleType.GUEST

    guest: Optional[GuestPass] = None


@dataclass
class UnknownVerdict(EligibilityVerdict):
    role: ClassVar[RoleType] = RoleType.UNKNOWN


# ------------------------------------------------------------------
# 解析后端返回的核验数据
# ------------------------------------------------------------------

def _pick(data: dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _parse_person(data: Any) -> Optional[Person]:
    if not data:
        return None
    if not isinstance(data, dict) or "id" not in data:
        raise VerdictFormatError("Respuesta inválida del servidor.", details=data)
    display_name = _pick(data, "nombre_completo", "display_name")
    if not display_name:
        display_name = " ".join(
            part for part in (data.get("apellido"), data.get("nombres")) if part
        )
    return Person(
        id=int(data["id"]),
        national_id=str(_pick(data, "dni", "national_id", default="")),
        display_name=display_name,
        scan_code=_pick(data, "qr_code", "scan_code") or None,
    )


def _parse_roles(raw_roles: Any) -> Tuple[Tuple[RoleType, ...], Tuple[str, ...]]:
    roles: List[RoleType] = []
    unrecognized: List[str] = []
    for tag in raw_roles or []:
        role = WIRE_ROLE_ALIASES.get(str(tag).upper())
        if role is None:
            unrecognized.append(str(tag))
        elif role not in roles:
            roles.append(role)
    if unrecognized:
        logger.warning(f"[IdentityResolver] 忽略无法识别的身份标签: {unrecognized}")
    return tuple(roles), tuple(unrecognized)


def _parse_membership(data: Any) -> Optional[Membership]:
    if not isinstance(data, dict):
        return None
    return Membership(
        id=int(data["id"]),
        standing=_pick(data, "situacion_sindicato", "standing"),
        benefit_standing=_pick(data, "situacion_obra_social", "benefit_standing"),
        active=_pick(data, "activo", "active"),
    )


def _parse_sponsor_dependents(items: Any) -> List[SponsorDependent]:
    dependents = []
    for item in items or []:
        dependents.append(SponsorDependent(
            dependent_id=int(item["id"]),
            person_id=int(item["persona_id"] if "persona_id" in item else item["person_id"]),
            national_id=str(_pick(item, "dni", "national_id", default="")),
            display_name=_pick(item, "nombre_completo", "display_name", default=""),
            active=_pick(item, "activo", "active"),
            suspended=_pick(item, "baja", "suspended"),
        ))
    return dependents


def _parse_guest(data: Any) -> Optional[GuestPass]:
    if not isinstance(data, dict):
        return None
    return GuestPass(
        id=int(data["id"]),
        valid_from=parse_timestamp(_pick(data, "vigente_desde", "valid_from")),
        valid_until=parse_timestamp(_pick(data, "vigente_hasta", "valid_until")),
        applies_to_household=bool(_pick(data, "aplica_a_familia", "applies_to_household", default=False)),
        active=bool(_pick(data, "activo", "active", default=False)),
    )


def parse_verdict(payload: Any) -> EligibilityVerdict:
    """把后端的动态数据解析为按身份区分的核验结果"""
    if isinstance(payload, dict) and "data" in payload and "success" in payload:
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise VerdictFormatError("Respuesta inválida del servidor.", details=payload)

    allowed = payload.get("allowed")
    if not isinstance(allowed, bool):
        raise VerdictFormatError("Respuesta inválida del servidor.", details=payload)

    try:
        person = _parse_person(payload.get("persona", payload.get("person")))
        raw_reason = _pick(payload, "reason", "reasonCode")
        if raw_reason is None:
            if person is not None:
                raise VerdictFormatError("Respuesta sin motivo de acceso.", details=payload)
            raw_reason = ReasonCode.PERSON_NOT_FOUND
        reason_code = WIRE_REASON_ALIASES.get(str(raw_reason), str(raw_reason))

        if allowed and person is None:
            raise VerdictFormatError("Respuesta inválida del servidor.", details=payload)

        role_types, unrecognized = _parse_roles(_pick(payload, "tipos", "roleTypes"))
        primary = REASON_ROLES.get(reason_code)
        if primary is None:
            # 原因码未知时以第一个身份为准
            primary = role_types[0] if role_types else RoleType.UNKNOWN
        if primary is not RoleType.UNKNOWN and primary not in role_types:
            role_types = (primary,) + role_types
        if not role_types:
            role_types = (RoleType.UNKNOWN,)

        common = dict(
            allowed=allowed,
            reason_code=reason_code,
            person=person,
            role_types=role_types,
            unrecognized_roles=unrecognized,
        )

        if primary is RoleType.MEMBER:
            return MemberVerdict(
                membership=_parse_membership(payload.get("afiliado", payload.get("membership"))),
                sponsor_dependents=_parse_sponsor_dependents(
                    _pick(payload, "familiaresDelTitular", "sponsorDependents")
                ),
                **common,
            )
        if primary is RoleType.DEPENDENT:
            links = _pick(payload, "familiares", "dependents", default=[])
            sponsor_id = None
            if links:
                sponsor_id = _pick(links[0], "afiliado_id", "membership_id")
            return DependentVerdict(
                sponsor_membership_id=int(sponsor_id) if sponsor_id is not None else None,
                **common,
            )
        if primary is RoleType.GUEST:
            return GuestVerdict(
                guest=_parse_guest(payload.get("invitado", payload.get("guest"))),
                **common,
            )
        return UnknownVerdict(**common)
    except (KeyError, TypeError, ValueError) as e:
        raise VerdictFormatError("Respuesta inválida del servidor.", details=payload) from e
