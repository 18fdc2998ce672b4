from enum import Enum, auto


class ScanState(Enum):
    """扫码任务状态"""
    IDLE = auto()          # 未开始
    STARTING = auto()      # 正在获取摄像头
    SCANNING = auto()      # 逐帧识别中
    DECODED = auto()       # 识别成功（终态）
    STOPPED = auto()       # 被取消（终态）
    CAMERA_ERROR = auto()  # 摄像头不可用（终态）


TERMINAL_STATES = frozenset({ScanState.DECODED, ScanState.STOPPED, ScanState.CAMERA_ERROR})
