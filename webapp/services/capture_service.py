"""
Client Media Capture

The camera and microphone live in the browser. MediaRecorder chunks are
posted to the server while recording; this provider collects them so the
capture session can finalize them into one recording blob on stop.
"""

import logging
import threading

from encounters.errors import DeviceError, DevicePermissionError
from encounters.interfaces import CaptureDeviceProvider, CaptureStream
from encounters.models import RecordingBlob

logger = logging.getLogger(__name__)

PERMISSION_ERRORS = ('NotAllowedError', 'PermissionDeniedError', 'SecurityError')


class ClientMediaStream(CaptureStream):

    def __init__(self, mime_type='video/webm'):
        self.mime_type = mime_type
        self._chunks = []
        self._lock = threading.Lock()
        self._open = True

    @property
    def open(self):
        return self._open

    def append(self, chunk):
        with self._lock:
            if not self._open:
                raise DeviceError('Stream is closed')
            self._chunks.append(bytes(chunk))

    @property
    def size(self):
        with self._lock:
            return sum(len(c) for c in self._chunks)

    def finalize(self):
        with self._lock:
            self._open = False
            data = b''.join(self._chunks)
            self._chunks = []
        return RecordingBlob(data=data, mime_type=self.mime_type)

    def release(self):
        with self._lock:
            self._open = False
            self._chunks = []


class ClientMediaProvider(CaptureDeviceProvider):
    """
    Args:
        client_error (str): getUserMedia error name the browser reported, if any
        mime_type (str): MediaRecorder output type
    """

    def __init__(self, client_error=None, mime_type='video/webm'):
        self.client_error = client_error
        self.mime_type = mime_type
        self.stream = None

    def acquire(self, audio=True, video=True):
        if self.client_error in PERMISSION_ERRORS:
            raise DevicePermissionError(f"Browser reported {self.client_error}")
        if self.client_error:
            raise DeviceError(f"Browser reported {self.client_error}")
        if not (audio or video):
            raise DeviceError('No audio or video track requested')
        self.stream = ClientMediaStream(self.mime_type)
        logger.info(f"Client media stream opened (audio={audio}, video={video})")
        return self.stream
