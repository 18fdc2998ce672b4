from typing import Callable, Optional

from camping_gate.constants.constants import ScannerConfig
from camping_gate.devices.camera import CameraDevice, OpenCVCamera, decode_qr
from camping_gate.utils.config_manager import ConfigManager
from camping_gate.utils.logging_config import get_logger

from .models import ScanState
from .service import Decoder, ScanTask

logger = get_logger(__name__)


class FrameScanner:
    """
    扫码器：同一时间只允许一个扫码会话持有摄像头.

    每次 start() 通过 camera_factory 创建新的摄像头设备，
    已有会话会先被停止。
    """

    def __init__(
        self,
        camera_factory: Optional[Callable[[], CameraDevice]] = None,
        decoder: Decoder = decode_qr,
        frame_interval: Optional[float] = None,
        on_state_change: Optional[Callable[[ScanState], None]] = None,
    ):
        self.camera_factory = camera_factory or self._default_camera_factory
        self.decoder = decoder
        self.frame_interval = (
            frame_interval if frame_interval is not None else ScannerConfig.FRAME_INTERVAL
        )
        self.on_state_change = on_state_change
        self._current: Optional[ScanTask] = None

    @classmethod
    def from_config(cls, config: ConfigManager, **kwargs) -> "FrameScanner":
        index = config.get_config("SCANNER.CAMERA_INDEX", ScannerConfig.CAMERA_INDEX)
        interval = config.get_config("SCANNER.FRAME_INTERVAL", ScannerConfig.FRAME_INTERVAL)
        return cls(camera_factory=lambda: OpenCVCamera(index), frame_interval=interval, **kwargs)

    @staticmethod
    def _default_camera_factory() -> CameraDevice:
        return OpenCVCamera(ScannerConfig.CAMERA_INDEX)

    @property
    def state(self) -> ScanState:
        return self._current.state if self._current else ScanState.IDLE

    @property
    def current(self) -> Optional[ScanTask]:
        return self._current

    @property
    def is_active(self) -> bool:
        return self.state in (ScanState.STARTING, ScanState.SCANNING)

    def start(self) -> ScanTask:
        if self._current and not self._current.done:
            logger.info("[FrameScanner] 已有扫码会话，先停止它")
            self._current.stop()

        task = ScanTask(
            camera=self.camera_factory(),
            decoder=self.decoder,
            on_state_change=self.on_state_change,
            frame_interval=self.frame_interval,
        )
        self._current = task
        logger.info("[FrameScanner] 开始扫码")
        return task.start()

    def stop(self):
        if self._current:
            self._current.stop()
