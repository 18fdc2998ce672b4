"""入场控制的错误分类.

部分失败（批量登记中 failed > 0）和拒绝入场（allowed=False）不是异常，
分别由 BatchResult 和 EligibilityVerdict 表示。
"""

from typing import Any, Optional

from camping_gate.constants.constants import ErrorKind


class EntryControlError(Exception):
    """所有入场控制错误的基类，message 面向门岗操作员"""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind.name, "message": self.message}


class ValidationError(EntryControlError):
    """输入无效（空白查询、空勾选列表等），在发出网络请求之前拦截"""
    kind = ErrorKind.VALIDATION


class PeriodNotFoundError(EntryControlError):
    kind = ErrorKind.NOT_FOUND


class AlreadyClosedError(EntryControlError):
    kind = ErrorKind.ALREADY_CLOSED


class ShiftConflictError(EntryControlError):
    """该营地已有一个开启中的班次"""
    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, existing: Optional[Any] = None, details: Any = None):
        super().__init__(message, details)
        self.existing = existing


class TransportError(EntryControlError):
    """网络或服务端故障，可提示用户重试"""
    kind = ErrorKind.TRANSPORT


class VerdictFormatError(TransportError):
    """后端返回的数据无法解析"""


class AuthExpiredError(EntryControlError):
    """会话失效，交由会话模块重新认证，不重试"""
    kind = ErrorKind.AUTH_EXPIRED


class CameraError(EntryControlError):
    kind = ErrorKind.CAMERA
