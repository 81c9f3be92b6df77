"""Unit tests for the capture gate."""
import pytest

from capture import (
    CaptureGate,
    CaptureStatus,
    SubmittedFrameCamera,
    from_data_url,
    to_data_url,
)
from conftest import FakeCamera
from errors import CameraFailure, CameraInitializing, CameraUnavailable, PhotoMissing


class TestDataUrl:
    """Test cases for JPEG data URLs."""

    def test_prefix(self):
        assert to_data_url(b"\xff\xd8").startswith("data:image/jpeg;base64,")

    def test_rejects_other_media_types(self):
        with pytest.raises(ValueError):
            from_data_url("data:image/png;base64,AAAA")

    def test_rejects_bad_base64(self):
        with pytest.raises(ValueError):
            from_data_url("data:image/jpeg;base64,***")


class TestCaptureGate:
    """Test cases for the capture gate status flow."""

    def test_quality_bounds(self):
        """Quality must be in (0, 1]."""
        with pytest.raises(ValueError):
            CaptureGate(FakeCamera(), quality=0)
        with pytest.raises(ValueError):
            CaptureGate(FakeCamera(), quality=1.5)

    @pytest.mark.asyncio
    async def test_open_capture_binds_photo_and_releases_stream(self):
        """A captured frame is bound and the stream stopped."""
        camera = FakeCamera(frame=b"\xff\xd8frame")
        gate = CaptureGate(camera, quality=0.7)

        assert gate.status == CaptureStatus.idle
        assert await gate.open() == CaptureStatus.streaming
        assert gate.stream_open

        photo = await gate.capture()

        assert photo == to_data_url(b"\xff\xd8frame")
        assert gate.is_ready
        assert gate.blocker() is None
        assert not gate.stream_open
        assert camera.streams[0].stopped
        assert camera.streams[0].qualities == [0.7]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure, status",
        [(CameraFailure.denied, CaptureStatus.denied), (CameraFailure.unsupported, CaptureStatus.unsupported)],
    )
    async def test_open_failure_recorded(self, failure, status):
        """Camera failures set the status and become the gate's blocker."""
        gate = CaptureGate(FakeCamera(failure=failure))

        assert await gate.open() == status
        blocker = gate.blocker()
        assert isinstance(blocker, CameraUnavailable)
        assert blocker.reason == failure
        with pytest.raises(CameraUnavailable):
            await gate.capture()

    @pytest.mark.asyncio
    async def test_capture_without_open(self):
        gate = CaptureGate(FakeCamera())
        with pytest.raises(PhotoMissing):
            await gate.capture()

    def test_blockers_before_photo(self):
        """Idle reports a missing photo; initializing reports the camera starting."""
        gate = CaptureGate(FakeCamera())
        assert isinstance(gate.blocker(), PhotoMissing)
        gate.status = CaptureStatus.initializing
        assert isinstance(gate.blocker(), CameraInitializing)

    @pytest.mark.asyncio
    async def test_streaming_without_frame_is_not_ready(self):
        gate = CaptureGate(FakeCamera())
        await gate.open()
        assert not gate.is_ready
        assert isinstance(gate.blocker(), PhotoMissing)

    @pytest.mark.asyncio
    async def test_retake_clears_and_reopens(self):
        """Retake drops the bound photo and opens a new stream."""
        camera = FakeCamera()
        gate = CaptureGate(camera)
        await gate.open()
        await gate.capture()

        status = await gate.retake()

        assert status == CaptureStatus.streaming
        assert gate.photo is None
        assert len(camera.streams) == 2

    @pytest.mark.asyncio
    async def test_clear_releases_open_stream(self):
        camera = FakeCamera()
        gate = CaptureGate(camera)
        await gate.open()

        gate.clear()

        assert camera.streams[0].stopped
        assert gate.status == CaptureStatus.idle


class TestSubmittedFrameCamera:
    """Test cases for stills submitted by the device."""

    @pytest.mark.asyncio
    async def test_replays_submitted_frame(self):
        data_url = to_data_url(b"\xff\xd8device")
        gate = CaptureGate(SubmittedFrameCamera.from_data_url(data_url))
        await gate.open()
        assert await gate.capture() == data_url

    @pytest.mark.asyncio
    async def test_no_photo_is_unsupported(self):
        gate = CaptureGate(SubmittedFrameCamera.from_data_url(None))
        assert await gate.open() == CaptureStatus.unsupported

    @pytest.mark.asyncio
    async def test_reported_denial(self):
        gate = CaptureGate(SubmittedFrameCamera.from_data_url(None, failure="denied"))
        assert await gate.open() == CaptureStatus.denied
