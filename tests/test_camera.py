import asyncio
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from camping_gate.devices import camera as camera_module
from camping_gate.devices.camera import OpenCVCamera
from camping_gate.entry_control.scanner import ScanState, ScanTask
from camping_gate.errors import CameraError


class SlowCapture:
    """构造时阻塞，直到测试放行，模拟打开摄像头很慢"""

    created = []

    def __init__(self, index, gate=None, entered=None, opened=True):
        if entered is not None:
            entered.set()
        if gate is not None:
            gate.wait(timeout=5)
        self.index = index
        self.opened = opened
        self.release_count = 0
        SlowCapture.created.append(self)

    def isOpened(self):
        return self.opened

    def read(self):
        return False, None

    def release(self):
        self.release_count += 1


@pytest.fixture
def fake_cv2(monkeypatch):
    SlowCapture.created = []
    state = SimpleNamespace(gate=threading.Event(), entered=threading.Event(), opened=True)
    fake = SimpleNamespace(
        VideoCapture=lambda index: SlowCapture(index, state.gate, state.entered, state.opened)
    )
    monkeypatch.setattr(camera_module, "cv2", fake)
    monkeypatch.setattr(camera_module, "CV2_AVAILABLE", True)
    return state


def test_stop_while_opening_releases_capture(fake_cv2):
    async def scenario():
        task = ScanTask(OpenCVCamera(0), MagicMock(return_value=None), frame_interval=0).start()
        await asyncio.to_thread(fake_cv2.entered.wait, 5)
        assert task.state is ScanState.STARTING
        task.stop()
        fake_cv2.gate.set()
        return await task.wait(), task.state

    text, state = asyncio.run(scenario())

    assert text is None
    assert state is ScanState.STOPPED
    (capture,) = SlowCapture.created
    assert capture.release_count == 1


def test_open_then_close_releases_once(fake_cv2):
    fake_cv2.gate.set()
    camera = OpenCVCamera(2)

    asyncio.run(camera.open())
    camera.close()
    camera.close()

    (capture,) = SlowCapture.created
    assert capture.index == 2
    assert capture.release_count == 1
    assert asyncio.run(camera.read()) is None


def test_device_that_cannot_open_is_released(fake_cv2):
    fake_cv2.gate.set()
    fake_cv2.opened = False
    camera = OpenCVCamera(0)

    with pytest.raises(CameraError):
        asyncio.run(camera.open())

    (capture,) = SlowCapture.created
    assert capture.release_count == 1
    camera.close()
    assert capture.release_count == 1
