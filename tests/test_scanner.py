import asyncio
from unittest.mock import MagicMock

import pytest

from camping_gate.entry_control.scanner import FrameScanner, ScanState, ScanTask
from camping_gate.errors import CameraError

from conftest import FakeCamera


def run_scan(camera, decoder):
    states = []

    async def scenario():
        task = ScanTask(camera, decoder, on_state_change=states.append, frame_interval=0)
        states.append(task.state)
        task.start()
        return await task.wait()

    return asyncio.run(scenario()), states


def test_decodes_after_three_failures():
    camera = FakeCamera()
    decoder = MagicMock(side_effect=[None, None, None, "abc-123"])

    text, states = run_scan(camera, decoder)

    assert text == "abc-123"
    assert states == [ScanState.IDLE, ScanState.STARTING, ScanState.SCANNING, ScanState.DECODED]
    assert decoder.call_count == 4
    assert decoder.call_args.args[1:] == (6, 4)
    assert camera.close_count == 1


def test_camera_error_degrades_to_message():
    camera = FakeCamera(fail_open=True)
    decoder = MagicMock(return_value=None)

    with pytest.raises(CameraError) as excinfo:
        run_scan(camera, decoder)

    assert "cámara" in excinfo.value.message
    decoder.assert_not_called()
    assert camera.close_count == 1


def test_decoder_failure_ends_in_camera_error():
    camera = FakeCamera()
    states = []

    async def scenario():
        task = ScanTask(camera, MagicMock(side_effect=RuntimeError("boom")),
                        on_state_change=states.append, frame_interval=0).start()
        with pytest.raises(CameraError):
            await task.wait()

    asyncio.run(scenario())
    assert states[-1] is ScanState.CAMERA_ERROR
    assert camera.close_count == 1


def test_stop_while_scanning_releases_camera_once():
    camera = FakeCamera()

    async def scenario():
        task = ScanTask(camera, MagicMock(return_value=None), frame_interval=0).start()
        while task.state is not ScanState.SCANNING or camera.reads < 2:
            await asyncio.sleep(0)
        task.stop()
        assert task.state is ScanState.STOPPED
        assert camera.close_count == 1
        task.stop()
        return await task.wait()

    assert asyncio.run(scenario()) is None
    assert camera.close_count == 1


def test_stop_while_starting():
    camera = FakeCamera()

    async def scenario():
        task = ScanTask(camera, MagicMock(return_value=None), frame_interval=0).start()
        assert task.state is ScanState.STARTING
        task.stop()
        return await task.wait(), task.state

    text, state = asyncio.run(scenario())
    assert text is None
    assert state is ScanState.STOPPED
    assert camera.close_count == 1


def test_stop_before_start_is_safe():
    task = ScanTask(FakeCamera(), MagicMock())
    task.stop()
    task.stop()
    assert task.state is ScanState.STOPPED


def test_new_scan_stops_previous_one():
    cameras = []

    def factory():
        cameras.append(FakeCamera())
        return cameras[-1]

    async def scenario():
        scanner = FrameScanner(camera_factory=factory, decoder=MagicMock(return_value=None), frame_interval=0)
        first = scanner.start()
        await asyncio.sleep(0)
        second = scanner.start()
        assert first.state is ScanState.STOPPED
        assert scanner.current is second
        scanner.stop()
        await first.wait()
        await second.wait()
        return first, second

    first, second = asyncio.run(scenario())
    assert [camera.close_count for camera in cameras] == [1, 1]
    assert second.state is ScanState.STOPPED
