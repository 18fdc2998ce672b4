"""摄像头扫码."""

from .manager import FrameScanner
from .models import TERMINAL_STATES, ScanState
from .service import ScanTask

__all__ = ["FrameScanner", "ScanState", "ScanTask", "TERMINAL_STATES"]
