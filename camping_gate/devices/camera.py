import asyncio
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from camping_gate.constants.constants import ScannerConfig
from camping_gate.errors import CameraError
from camping_gate.utils.logging_config import get_logger

# OpenCV 为可选依赖（pip install camping-gate[camera]）
try:
    import cv2
    CV2_AVAILABLE = True
except ImportError:
    cv2 = None
    CV2_AVAILABLE = False

logger = get_logger(__name__)


@dataclass
class Frame:
    """一帧图像，pixels 为 (height, width, channels) 的 uint8 数组"""

    pixels: np.ndarray
    width: int
    height: int

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "Frame":
        height, width = pixels.shape[:2]
        return cls(pixels=pixels, width=int(width), height=int(height))


class CameraDevice:
    """
    摄像头设备接口.

    open/read 可能阻塞，是协程；close 必须同步且幂等，
    以便扫码任务在任何退出路径上都能立即释放设备。
    """

    async def open(self):
        raise NotImplementedError

    async def read(self) -> Optional[Frame]:
        raise NotImplementedError

    def close(self):
        raise NotImplementedError


class OpenCVCamera(CameraDevice):
    """基于 cv2.VideoCapture 的摄像头"""

    def __init__(self, index: int = ScannerConfig.CAMERA_INDEX):
        self.index = index
        self._capture = None
        self._closed = False
        self._opened = False
        self._lock = threading.Lock()

    async def open(self):
        if not CV2_AVAILABLE:
            raise CameraError("OpenCV 未安装，无法使用摄像头")
        if self._closed:
            raise CameraError("摄像头已关闭")

        logger.info(f"正在打开摄像头 {self.index}...")
        # 等待期间被取消时，工作线程仍会完成打开并自行释放
        capture = await asyncio.to_thread(self._open_capture)
        if capture is None:
            return

        if not capture.isOpened():
            with self._lock:
                owned = self._capture is capture
                self._capture = None
            if owned:
                capture.release()
            raise CameraError(f"无法打开摄像头 {self.index}")

        self._opened = True
        logger.info(f"摄像头 {self.index} 已打开")

    def _open_capture(self):
        """在工作线程中执行；打开过程中被 close() 时直接释放新打开的设备"""
        capture = cv2.VideoCapture(self.index)
        with self._lock:
            if not self._closed:
                self._capture = capture
                return capture
        capture.release()
        logger.info(f"摄像头 {self.index} 打开时已被关闭，已释放")
        return None

    async def read(self) -> Optional[Frame]:
        capture = self._capture
        if capture is None or self._closed:
            return None
        ok, pixels = await asyncio.to_thread(capture.read)
        if not ok or pixels is None:
            return None
        return Frame.from_array(pixels)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            capture, self._capture = self._capture, None
        if capture is not None:
            try:
                capture.release()
            except Exception as e:
                logger.warning(f"释放摄像头失败: {e}")
        logger.info(f"摄像头 {self.index} 已释放")

    def __del__(self):
        if self._opened and not self._closed:
            logger.warning("OpenCVCamera对象被销毁但未正确关闭，请确保调用close()方法")


def decode_qr(pixels: np.ndarray, width: int, height: int) -> Optional[str]:
    """
    解码一帧中的二维码，返回文本；没有识别到时返回 None.
    """
    if not CV2_AVAILABLE:
        raise CameraError("OpenCV 未安装，无法识别二维码")
    if pixels is None or width <= 0 or height <= 0:
        return None

    detector = cv2.QRCodeDetector()
    try:
        text, points, _ = detector.detectAndDecode(pixels)
    except cv2.error as e:
        logger.debug(f"二维码识别失败: {e}")
        return None
    if points is None or not text:
        return None
    return text
