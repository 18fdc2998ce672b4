from enum import Enum, auto


class RoleType(Enum):
    """核验结果中的身份类型（封闭集合）"""
    MEMBER = "MEMBER"        # 会员（afiliado）
    DEPENDENT = "DEPENDENT"  # 会员家属（familiar）
    GUEST = "GUEST"          # 访客（invitado）
    UNKNOWN = "UNKNOWN"      # 无身份/未找到


class EntryCondition(Enum):
    """入场登记时使用的入场条件，与 RoleType 一一对应"""
    MEMBER = "MEMBER"
    DEPENDENT = "DEPENDENT"
    GUEST = "GUEST"
    UNKNOWN = "UNKNOWN"


class SelectionRole(Enum):
    """家庭勾选列表中条目的角色"""
    SPONSOR = "SPONSOR"
    DEPENDENT = "DEPENDENT"


class LookupKind(Enum):
    """查询方式"""
    SCAN_CODE = auto()    # 二维码/条码
    NATIONAL_ID = auto()  # 证件号（DNI）


class ErrorKind(Enum):
    """错误分类"""
    NOT_FOUND = auto()
    INELIGIBLE = auto()
    CONFLICT = auto()
    VALIDATION = auto()
    TRANSPORT = auto()
    AUTH_EXPIRED = auto()
    ALREADY_CLOSED = auto()
    CAMERA = auto()


class MembershipStanding:
    ACTIVE = "ACTIVO"
    SUSPENDED = "SUSPENDIDO"


class ReasonCode:
    """核验原因码。

    原因码是开放集合：后端可能返回这里没有列出的值，调用方应原样保留。
    """
    MEMBER_ACTIVE = "MEMBER_ACTIVE"
    MEMBER_INACTIVE = "MEMBER_INACTIVE"
    DEPENDENT_VALID = "DEPENDENT_VALID"
    DEPENDENT_SUSPENDED = "DEPENDENT_SUSPENDED"
    SPONSOR_INACTIVE = "SPONSOR_INACTIVE"
    GUEST_VALID = "GUEST_VALID"
    GUEST_EXPIRED = "GUEST_EXPIRED"
    PERSON_NO_ROLE = "PERSON_NO_ROLE"
    PERSON_NOT_FOUND = "PERSON_NOT_FOUND"


# 原后端（西语）标签 -> 本地枚举
WIRE_ROLE_ALIASES = {
    "AFILIADO": RoleType.MEMBER,
    "FAMILIAR": RoleType.DEPENDENT,
    "INVITADO": RoleType.GUEST,
    "DESCONOCIDO": RoleType.UNKNOWN,
    "MEMBER": RoleType.MEMBER,
    "DEPENDENT": RoleType.DEPENDENT,
    "GUEST": RoleType.GUEST,
    "UNKNOWN": RoleType.UNKNOWN,
}

WIRE_REASON_ALIASES = {
    "AFILIADO_ACTIVO": ReasonCode.MEMBER_ACTIVE,
    "AFILIADO_INACTIVO": ReasonCode.MEMBER_INACTIVE,
    "FAMILIAR_VALIDO": ReasonCode.DEPENDENT_VALID,
    "FAMILIAR_INACTIVO": ReasonCode.DEPENDENT_SUSPENDED,
    "TITULAR_INACTIVO": ReasonCode.SPONSOR_INACTIVE,
    "INVITADO_VIGENTE": ReasonCode.GUEST_VALID,
    "INVITADO_VENCIDO": ReasonCode.GUEST_EXPIRED,
    "PERSONA_SIN_ROL": ReasonCode.PERSON_NO_ROLE,
    "PERSONA_NO_ENCONTRADA": ReasonCode.PERSON_NOT_FOUND,
}

# 本地枚举 -> 原后端标签（本地存储按原接口格式输出）
ROLE_WIRE_TAGS = {
    RoleType.MEMBER: "AFILIADO",
    RoleType.DEPENDENT: "FAMILIAR",
    RoleType.GUEST: "INVITADO",
    RoleType.UNKNOWN: "DESCONOCIDO",
}

REASON_WIRE_TAGS = {code: tag for tag, code in WIRE_REASON_ALIASES.items()}

# 原因码决定核验所依据的身份
REASON_ROLES = {
    ReasonCode.MEMBER_ACTIVE: RoleType.MEMBER,
    ReasonCode.MEMBER_INACTIVE: RoleType.MEMBER,
    ReasonCode.DEPENDENT_VALID: RoleType.DEPENDENT,
    ReasonCode.DEPENDENT_SUSPENDED: RoleType.DEPENDENT,
    ReasonCode.SPONSOR_INACTIVE: RoleType.DEPENDENT,
    ReasonCode.GUEST_VALID: RoleType.GUEST,
    ReasonCode.GUEST_EXPIRED: RoleType.GUEST,
    ReasonCode.PERSON_NO_ROLE: RoleType.UNKNOWN,
    ReasonCode.PERSON_NOT_FOUND: RoleType.UNKNOWN,
}

# 门岗界面显示的文案（西语）
REASON_LABELS = {
    ReasonCode.MEMBER_ACTIVE: "Afiliado activo",
    ReasonCode.MEMBER_INACTIVE: "Afiliado inactivo",
    ReasonCode.DEPENDENT_VALID: "Familiar de afiliado activo",
    ReasonCode.DEPENDENT_SUSPENDED: "Familiar inactivo",
    ReasonCode.SPONSOR_INACTIVE: "Titular inactivo",
    ReasonCode.GUEST_VALID: "Invitado vigente",
    ReasonCode.GUEST_EXPIRED: "Invitado vencido",
    ReasonCode.PERSON_NO_ROLE: "Sin rol registrado",
    ReasonCode.PERSON_NOT_FOUND: "Persona no encontrada",
}

CONDITION_LABELS = {
    EntryCondition.MEMBER: "Afiliado",
    EntryCondition.DEPENDENT: "Familiar",
    EntryCondition.GUEST: "Invitado",
    EntryCondition.UNKNOWN: "Desconocido",
}

# 入场条件在原后端中的标签
CONDITION_WIRE_TAGS = {
    EntryCondition.MEMBER: "AFILIADO",
    EntryCondition.DEPENDENT: "FAMILIAR",
    EntryCondition.GUEST: "INVITADO",
    EntryCondition.UNKNOWN: "DESCONOCIDO",
}

WIRE_CONDITION_ALIASES = {tag: condition for condition, tag in CONDITION_WIRE_TAGS.items()}
WIRE_CONDITION_ALIASES.update({condition.value: condition for condition in EntryCondition})


class ScannerConfig:
    """扫码相关默认参数"""
    CAMERA_INDEX = 0
    FRAME_INTERVAL = 1 / 15  # 约 15 帧/秒
    CAMERA_ERROR_MESSAGE = (
        "No se pudo acceder a la cámara. Usá el campo de texto para ingresar el QR."
    )
