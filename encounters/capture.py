"""
Capture Session

State machine for a single audio/video recording attempt:

    IDLE -> RECORDING -> STOPPED -> COMMITTED | DISCARDED

A session is single use. Once committed or discarded it is closed and a
new CaptureSession must be created for the next recording.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from encounters.errors import (
    DeviceAcquisitionFailed,
    DevicePermissionError,
    EntitlementDenied,
    InvalidCaptureState,
)
from encounters.location import LocationTask
from encounters.models import LocationSnapshot, RecordingBlob

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = 'idle'
    RECORDING = 'recording'
    STOPPED = 'stopped'
    COMMITTED = 'committed'
    DISCARDED = 'discarded'


@dataclass
class CapturedRecording:
    """What commit() hands over to the save flow."""
    blob: RecordingBlob
    duration: int
    location: LocationSnapshot


class ElapsedCounter:
    """
    Whole-second elapsed time, advanced by its own ticking thread.

    Args:
        interval (float): seconds between ticks
        autostart (bool): start the ticking thread immediately
    """

    def __init__(self, interval=1.0, autostart=True):
        self.interval = interval
        self._seconds = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None
        if autostart:
            self.start()

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name='capture-timer', daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stop.wait(self.interval):
            self.tick()

    def tick(self):
        with self._lock:
            self._seconds += 1

    def stop(self):
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval * 2)

    @property
    def seconds(self):
        with self._lock:
            return self._seconds


class CaptureSession:
    """
    One recording attempt.

    Args:
        device_provider (CaptureDeviceProvider): camera/microphone source
        geolocation (GeolocationProvider): optional, for the location snapshot
        geocoder (ReverseGeocoder): optional address lookup
        location_timeout_ms (int): bound for the location fix
        counter_factory (callable): builds the ElapsedCounter on start()
    """

    def __init__(self, device_provider, geolocation=None, geocoder=None,
                 location_timeout_ms=10000, counter_factory=ElapsedCounter,
                 audio=True, video=True):
        self.device_provider = device_provider
        self.geolocation = geolocation
        self.geocoder = geocoder
        self.location_timeout_ms = location_timeout_ms
        self.counter_factory = counter_factory
        self.audio = audio
        self.video = video

        self.state = CaptureState.IDLE
        self.accumulated_blob = None
        self.elapsed_seconds = 0
        self.error = None
        self._stream = None
        self._counter = None
        self._location_task = None

    @property
    def closed(self):
        return self.state in (CaptureState.COMMITTED, CaptureState.DISCARDED)

    @property
    def stream(self):
        return self._stream

    def _require(self, *states, action):
        if self.state not in states:
            raise InvalidCaptureState(
                f"Cannot {action} while {self.state.value}",
                detail={'state': self.state.value, 'action': action},
            )

    def start(self):
        """
        Acquire the capture device and begin recording.

        Raises:
            InvalidCaptureState: not IDLE
            DeviceAcquisitionFailed: permission denied or no device; the
                session stays IDLE and nothing is retried
        """
        self._require(CaptureState.IDLE, action='start recording')
        try:
            self._stream = self.device_provider.acquire(audio=self.audio, video=self.video)
        except DevicePermissionError as e:
            logger.error(f"Capture permission denied: {e}")
            self.error = DeviceAcquisitionFailed(detail=str(e))
            raise self.error from e
        except Exception as e:
            logger.error(f"Capture device unavailable: {e}")
            self.error = DeviceAcquisitionFailed(
                'Camera or microphone is not available.', detail=str(e))
            raise self.error from e

        self.error = None
        self.accumulated_blob = None
        self.elapsed_seconds = 0
        self._counter = self.counter_factory()
        self._location_task = LocationTask(self.geolocation, self.geocoder, self.location_timeout_ms)
        self.state = CaptureState.RECORDING
        logger.info("Recording started")

    @property
    def current_elapsed(self):
        if self.state == CaptureState.RECORDING and self._counter is not None:
            return self._counter.seconds
        return self.elapsed_seconds

    def stop(self):
        """
        Finalize the recording and release the device.

        The blob is fully finalized before the state becomes STOPPED, so
        commit() can never observe a partial recording.

        Returns:
            RecordingBlob: the finished artifact

        Raises:
            DeviceAcquisitionFailed: the device could not produce a
                recording; the session is DISCARDED so a new one can start
        """
        self._require(CaptureState.RECORDING, action='stop recording')
        self._counter.stop()
        self.elapsed_seconds = self._counter.seconds
        stream, self._stream = self._stream, None
        try:
            blob = stream.finalize()
        except Exception as e:
            logger.error(f"Recording could not be finalized: {e}")
            self._release(stream)
            self.accumulated_blob = None
            self.state = CaptureState.DISCARDED
            self.error = DeviceAcquisitionFailed(
                'The recording could not be finished. Please record again.', detail=str(e))
            raise self.error from e
        self.accumulated_blob = blob
        self.state = CaptureState.STOPPED
        logger.info(f"Recording stopped after {self.elapsed_seconds}s ({blob.size} bytes)")
        return blob

    @staticmethod
    def _release(stream):
        if stream is None:
            return
        try:
            stream.release()
        except Exception as e:
            logger.warning(f"Capture device release failed: {e}")

    def location_snapshot(self, wait_seconds=0.0):
        if self._location_task is None:
            return LocationSnapshot.unavailable()
        return self._location_task.result(wait_seconds)

    def commit(self, entitlement_check, location_wait=0.5):
        """
        Hand the recording over for saving.

        Args:
            entitlement_check (callable): evaluated now, at commit time,
                against the live encounter count
            location_wait (float): how long to wait for a pending location fix

        Returns:
            CapturedRecording

        Raises:
            InvalidCaptureState: not STOPPED (including a second commit)
            EntitlementDenied: the free allowance is used up; the session
                stays STOPPED so it can still be discarded or committed
                after an upgrade
        """
        self._require(CaptureState.STOPPED, action='save the recording')
        if not entitlement_check():
            raise EntitlementDenied()
        captured = CapturedRecording(
            blob=self.accumulated_blob,
            duration=self.elapsed_seconds,
            location=self.location_snapshot(location_wait),
        )
        self.state = CaptureState.COMMITTED
        return captured

    def discard(self):
        """
        Throw the recording away.

        Allowed while STOPPED, or while RECORDING to abort and release the device.
        """
        self._require(CaptureState.RECORDING, CaptureState.STOPPED, action='discard the recording')
        if self.state == CaptureState.RECORDING:
            self._counter.stop()
            stream, self._stream = self._stream, None
            self._release(stream)
        self.accumulated_blob = None
        self.state = CaptureState.DISCARDED
        logger.info("Recording discarded")

    def to_dict(self):
        return {
            'state': self.state.value,
            'elapsed_seconds': self.current_elapsed,
            'has_recording': self.accumulated_blob is not None,
            'error': self.error.to_dict() if self.error else None,
        }
