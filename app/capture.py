"""Photo evidence capture: camera provider contract and the capture gate."""
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from errors import CameraFailure, CameraInitializing, CameraUnavailable, GateError, PhotoMissing

logger = logging.getLogger(__name__)

JPEG_DATA_URL_PREFIX = "data:image/jpeg;base64,"


class CaptureStatus(str, Enum):
    """Capture gate status."""
    idle = "idle"                  # not attempted yet
    initializing = "initializing"  # waiting on the camera provider
    streaming = "streaming"        # live stream, no frame taken yet
    unsupported = "unsupported"    # device lacks a camera API
    denied = "denied"              # permission refused
    ready = "ready"                # a frame is bound


class CameraStream(ABC):
    """An open video stream."""

    @abstractmethod
    async def grab_jpeg(self, quality: float) -> bytes:
        """Encode the current frame as JPEG at the given quality (0..1]."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all tracks; the stream cannot be used afterwards."""


class CameraProvider(ABC):
    """Device camera collaborator."""

    @abstractmethod
    async def open(self) -> CameraStream:
        """Open a stream or raise CameraUnavailable(denied|unsupported)."""


def to_data_url(jpeg: bytes) -> str:
    return JPEG_DATA_URL_PREFIX + base64.b64encode(jpeg).decode("ascii")


def from_data_url(data_url: str) -> bytes:
    """Decode a JPEG data URL; raises ValueError on anything else."""
    if not data_url.startswith(JPEG_DATA_URL_PREFIX):
        raise ValueError("Photo must be a base64 JPEG data URL")
    try:
        return base64.b64decode(data_url[len(JPEG_DATA_URL_PREFIX):], validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Photo is not valid base64: {exc}") from exc


class _SubmittedFrameStream(CameraStream):
    def __init__(self, jpeg: bytes):
        self._jpeg = jpeg
        self.stopped = False

    async def grab_jpeg(self, quality: float) -> bytes:
        # already encoded on the device
        return self._jpeg

    def stop(self) -> None:
        self.stopped = True


class SubmittedFrameCamera(CameraProvider):
    """A still already captured and encoded by the device, replayed as a one-frame stream."""

    def __init__(self, jpeg: Optional[bytes], failure: Optional[CameraFailure] = None):
        self._jpeg = jpeg
        self.failure = CameraFailure(failure) if failure else None

    @classmethod
    def from_data_url(cls, data_url: Optional[str], failure: Optional[CameraFailure] = None) -> "SubmittedFrameCamera":
        return cls(from_data_url(data_url) if data_url else None, failure)

    async def open(self) -> CameraStream:
        if self.failure is not None:
            raise CameraUnavailable(self.failure)
        if self._jpeg is None:
            raise CameraUnavailable(CameraFailure.unsupported, "No photo was submitted by the device.")
        return _SubmittedFrameStream(self._jpeg)


class CaptureGate:
    """
    Holds at most one pending photo reference for the action in progress.

    The camera stream is released as soon as a frame is bound, on clear(),
    and on close(). Taking another photo needs a new open().
    """

    def __init__(self, provider: CameraProvider, quality: float = 0.7):
        if not 0 < quality <= 1:
            raise ValueError("quality must be in (0, 1]")
        self.provider = provider
        self.quality = quality
        self.status = CaptureStatus.idle
        self.photo: Optional[str] = None
        self.error: Optional[CameraUnavailable] = None
        self._stream: Optional[CameraStream] = None

    @property
    def is_ready(self) -> bool:
        return self.status == CaptureStatus.ready and self.photo is not None

    @property
    def stream_open(self) -> bool:
        return self._stream is not None

    async def open(self) -> CaptureStatus:
        """Acquire the camera. Failures are recorded on the gate, not raised."""
        self._release()
        self.photo = None
        self.error = None
        self.status = CaptureStatus.initializing
        try:
            self._stream = await self.provider.open()
        except CameraUnavailable as exc:
            logger.info("Camera unavailable: %s", exc.reason.value)
            self.error = exc
            self.status = (
                CaptureStatus.denied if exc.reason == CameraFailure.denied else CaptureStatus.unsupported
            )
            return self.status
        self.status = CaptureStatus.streaming
        return self.status

    async def capture(self) -> str:
        """Grab one encoded still, bind it, and release the stream."""
        if self.error is not None:
            raise self.error
        if self._stream is None:
            raise PhotoMissing("Open the camera before taking a photo.")
        jpeg = await self._stream.grab_jpeg(self.quality)
        self.photo = to_data_url(jpeg)
        self.status = CaptureStatus.ready
        self._release()
        return self.photo

    async def retake(self) -> CaptureStatus:
        self.clear()
        return await self.open()

    def clear(self) -> None:
        """Drop the pending photo and release the camera."""
        self._release()
        self.photo = None
        self.error = None
        self.status = CaptureStatus.idle

    def close(self) -> None:
        self._release()

    def blocker(self) -> Optional[GateError]:
        """The gate error to report, or None when a photo is bound."""
        if self.is_ready:
            return None
        if self.status in (CaptureStatus.denied, CaptureStatus.unsupported) and self.error is not None:
            return self.error
        if self.status == CaptureStatus.initializing:
            return CameraInitializing()
        return PhotoMissing()

    def _release(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
