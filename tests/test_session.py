import asyncio
import json

import pytest

from core.gemini import GeminiAnalyzer
from core.models import AppState, FaceMetrics
from core.session import (
    ANALYSIS_ERROR_MESSAGE, NO_FACE_NOTICE, AnalysisSession, CaptureRefused,
)
from core.state import InvalidTransition
from conftest import (
    DummyCamera, DummyGenaiClient, DummyLandmarker, DummyModels, REMOTE_REPLY, SMILE_SCORES,
    detection_result,
)


def _session(settings, text=None, exc=None, camera=None, landmarker=None):
    models = DummyModels(text=text, exc=exc)
    analyzer = GeminiAnalyzer(settings, client=DummyGenaiClient(models))
    session = AnalysisSession(settings,
                              camera=camera or DummyCamera(),
                              landmarker=landmarker or DummyLandmarker(),
                              analyzer=analyzer,
                              connections={})
    return session, models


def test_start_loads_model_and_goes_idle(settings):
    session, _ = _session(settings)

    async def scenario():
        assert session.state == AppState.LOADING_MODEL
        await session.start()
        assert await session.wait_until_loaded()
        assert session.state == AppState.IDLE
        assert session.detection.armed
        await session.close()

    asyncio.run(scenario())
    assert session.camera.released and session.landmarker.closed


def test_model_failure_stays_loading(settings):
    session, _ = _session(settings, landmarker=DummyLandmarker(fail=True))

    async def scenario():
        await session.start()
        assert not await session.wait_until_loaded()
        assert session.state == AppState.LOADING_MODEL
        st = session.status()
        assert not st.model_ready and st.camera_available
        with pytest.raises(CaptureRefused):
            await session.capture()
        await session.close()

    asyncio.run(scenario())


def test_missing_camera_does_not_block_startup(settings):
    session, _ = _session(settings, camera=DummyCamera(fail_open=True))

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        assert session.state == AppState.IDLE
        assert not session.status().camera_available
        assert not session.detection.armed
        await session.close()

    asyncio.run(scenario())


def test_capture_refused_without_face(settings, remote_text):
    session, models = _session(settings, text=remote_text,
                               landmarker=DummyLandmarker(result=detection_result(None)))

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        session.detection.step()
        with pytest.raises(CaptureRefused) as exc:
            await session.capture()
        assert exc.value.notice == NO_FACE_NOTICE
        assert session.state == AppState.IDLE
        await session.close()

    asyncio.run(scenario())
    assert models.calls == []


def test_capture_success_uses_local_metrics(settings):
    reply = dict(REMOTE_REPLY, metrics={"joy": 0.0, "sorrow": 0.9, "anger": 0.9, "surprise": 0.9})
    session, models = _session(settings, text=json.dumps(reply))
    seen = []
    session.machine.subscribe(lambda prev, cur: seen.append(cur))

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        session.detection.step()
        local = session.current_metrics
        result = await session.capture()
        await session.close()
        return local, result

    local, result = asyncio.run(scenario())
    assert result is not None
    assert result.metrics == local
    assert result.metrics.joy == pytest.approx(1.0) and result.metrics.sorrow == 0.0
    assert session.state == AppState.SUCCESS and session.result is result and session.error is None
    assert seen == [AppState.IDLE, AppState.ANALYZING, AppState.SUCCESS]
    assert len(models.calls) == 1


def test_capture_failure_sets_error_and_keeps_previous_result(settings, remote_text):
    session, models = _session(settings, text=remote_text)

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        session.detection.step()
        first = await session.capture()
        assert session.state == AppState.SUCCESS

        models.exc = TimeoutError("network down")
        second = await session.capture()
        assert second is None
        assert session.state == AppState.ERROR
        assert session.error == ANALYSIS_ERROR_MESSAGE
        assert session.result is first

        # missing text body is a failure too
        session.reset()
        models.exc = None
        models.text = None
        assert await session.capture() is None
        assert session.state == AppState.ERROR
        await session.close()

    asyncio.run(scenario())


def test_capture_from_error_rechecks_face(settings, remote_text):
    session, models = _session(settings, text=remote_text, exc=TimeoutError("network down"))

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        session.detection.step()
        assert session.current_metrics.joy == pytest.approx(1.0)

        # face leaves while the failing request is in flight
        session.landmarker.result = detection_result(None)
        assert await session.capture() is None
        assert session.state == AppState.ERROR
        assert session.current_metrics is None
        assert not session.status().face_tracked

        await asyncio.sleep(0.05)
        with pytest.raises(CaptureRefused) as exc:
            await session.capture()
        assert exc.value.notice == NO_FACE_NOTICE
        assert session.state == AppState.ERROR
        assert len(models.calls) == 1

        # face back in view: capture from ERROR goes through again
        session.landmarker.result = detection_result(SMILE_SCORES)
        session.detection.step()
        models.exc = None
        result = await session.capture()
        assert result is not None and result.metrics.joy == pytest.approx(1.0)
        assert session.state == AppState.SUCCESS
        await session.close()

    asyncio.run(scenario())


def test_reset_clears_and_resumes_detection(settings):
    session, models = _session(settings, exc=ValueError("bad"))

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        with pytest.raises(InvalidTransition):
            session.reset()
        session.detection.step()
        await session.capture()
        assert session.state == AppState.ERROR
        assert not session.detection.armed
        session.reset()
        assert session.state == AppState.IDLE
        assert session.result is None and session.error is None
        assert session.detection.armed
        await session.close()

    asyncio.run(scenario())


def test_capture_refused_while_analyzing(settings, remote_text):
    session, _ = _session(settings, text=remote_text)

    async def scenario():
        await session.start()
        await session.wait_until_loaded()
        session.detection.step()
        session.machine.transition(AppState.ANALYZING)
        with pytest.raises(CaptureRefused):
            await session.capture()
        assert session.state == AppState.ANALYZING
        await session.close()

    asyncio.run(scenario())


def test_async_context_manager_releases(settings):
    session, _ = _session(settings)

    async def scenario():
        async with session:
            await session.wait_until_loaded()
            assert session.camera.is_open
        assert not session.camera.is_open

    asyncio.run(scenario())
    assert session.landmarker.closed
