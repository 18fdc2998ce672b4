import asyncio
from typing import Callable, Optional

from camping_gate.constants.constants import ScannerConfig
from camping_gate.devices.camera import CameraDevice, Frame
from camping_gate.errors import CameraError
from camping_gate.utils.logging_config import get_logger

from .models import TERMINAL_STATES, ScanState

logger = get_logger(__name__)

Decoder = Callable[..., Optional[str]]


class ScanTask:
    """
    一次扫码会话：独占一个摄像头，逐帧识别直到成功、出错或被 stop().

    摄像头在每条退出路径上都只释放一次。
    """

    def __init__(
        self,
        camera: CameraDevice,
        decoder: Decoder,
        on_state_change: Optional[Callable[[ScanState], None]] = None,
        frame_interval: float = ScannerConfig.FRAME_INTERVAL,
    ):
        self.camera = camera
        self.decoder = decoder
        self.on_state_change = on_state_change
        self.frame_interval = frame_interval

        self.state: ScanState = ScanState.IDLE
        self.result: Optional[str] = None
        self.error: Optional[CameraError] = None
        self.attempts = 0
        self._task: Optional[asyncio.Task] = None
        self._released = False

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> "ScanTask":
        if self.state is not ScanState.IDLE:
            raise RuntimeError("扫码任务只能启动一次")
        self._set_state(ScanState.STARTING)
        self._task = asyncio.create_task(self._run())
        return self

    def stop(self):
        """同步取消扫码并释放摄像头，可重复调用"""
        if self.state is ScanState.IDLE:
            self._set_state(ScanState.STOPPED)
            return
        if self.done:
            return
        logger.info("[ScanTask] 扫码已取消")
        self._release()
        self._set_state(ScanState.STOPPED)
        if self._task and not self._task.done():
            self._task.cancel()

    async def wait(self) -> Optional[str]:
        """
        等待扫码结束. 成功返回识别文本，被取消返回 None，摄像头不可用时抛出 CameraError
        """
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                # stop() 取消的是内部任务；调用方自身被取消时继续向上抛
                if self.state is not ScanState.STOPPED:
                    raise
        if self.state is ScanState.CAMERA_ERROR:
            raise self.error
        return self.result

    async def _run(self):
        try:
            try:
                await self.camera.open()
            except Exception as e:
                self._fail(e)
                return

            if self.state is not ScanState.STARTING:
                return
            self._set_state(ScanState.SCANNING)

            while self.state is ScanState.SCANNING:
                frame = await self.camera.read()
                if self.state is not ScanState.SCANNING:
                    break
                if frame is not None:
                    text = self._decode(frame)
                    if text:
                        self.result = text
                        logger.info(f"[ScanTask] 第 {self.attempts} 帧识别成功: {text}")
                        self._release()
                        self._set_state(ScanState.DECODED)
                        return
                # 让出控制权，等待下一帧
                await asyncio.sleep(self.frame_interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(e)
        finally:
            self._release()

    def _decode(self, frame: Frame) -> Optional[str]:
        self.attempts += 1
        return self.decoder(frame.pixels, frame.width, frame.height)

    def _fail(self, error: Exception):
        if self.done:
            return
        logger.error(f"[ScanTask] 摄像头不可用: {error}", exc_info=True)
        self._release()
        self.error = CameraError(ScannerConfig.CAMERA_ERROR_MESSAGE, details=str(error))
        self._set_state(ScanState.CAMERA_ERROR)

    def _release(self):
        if self._released:
            return
        self._released = True
        try:
            self.camera.close()
        except Exception as e:
            logger.warning(f"[ScanTask] 释放摄像头时出错: {e}")

    def _set_state(self, state: ScanState):
        if self.state is state:
            return
        logger.debug(f"[ScanTask] 状态: {self.state.name} -> {state.name}")
        self.state = state
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                logger.error(f"[ScanTask] 状态回调出错: {e}", exc_info=True)
