"""
Storage Router

Decides where a finished recording goes. Premium users with remote
storage configured get a durable content-addressed pin; everyone else
(and any failed or timed-out upload) gets a local handle that only lives
as long as this process. A recording is never dropped.
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from encounters.errors import RemoteSyncFailed
from encounters.models import RecordingReference

logger = logging.getLogger(__name__)

LOCAL_SCHEME = 'blob:local/'


class LocalBlobCache:
    """In-memory, session-scoped recording blobs, addressed by handle."""

    def __init__(self):
        self._lock = threading.Lock()
        self._blobs = {}

    def put(self, blob):
        handle = f"{LOCAL_SCHEME}{uuid.uuid4().hex}"
        with self._lock:
            self._blobs[handle] = blob
        return handle

    def get(self, handle):
        with self._lock:
            return self._blobs.get(handle)

    def revoke(self, handle):
        with self._lock:
            return self._blobs.pop(handle, None) is not None

    def __contains__(self, handle):
        with self._lock:
            return handle in self._blobs

    def __len__(self):
        with self._lock:
            return len(self._blobs)


def build_recording_metadata(encounter):
    """Key/values attached to a pinned recording."""
    return {
        'name': f"Encounter Recording - {encounter.timestamp.isoformat() if encounter.timestamp else ''}",
        'type': 'encounter-recording',
        'userId': encounter.user_id,
        'encounterId': encounter.encounter_id,
        'timestamp': encounter.timestamp.isoformat() if encounter.timestamp else None,
        'location': encounter.location,
        'encounterType': encounter.type,
        'duration': encounter.duration,
        'encrypted': False,
    }


class StorageRouter:
    """
    Args:
        remote (RecordingStorage): durable storage client, or None
        events (EventChannel): where upload failures are reported
        local (LocalBlobCache): fallback store
        upload_timeout (float): seconds to wait for an upload before
            falling back to a local handle
    """

    def __init__(self, remote, events, local=None, upload_timeout=30.0):
        self.remote = remote
        self.events = events
        self.local = local or LocalBlobCache()
        self.upload_timeout = upload_timeout
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='upload')

    def store(self, recording_blob, encounter_metadata, has_premium_access, remote_storage_available):
        """
        Persist a recording and return its reference.

        Args:
            recording_blob (RecordingBlob): finished recording
            encounter_metadata (dict): key/values stored alongside the pin
            has_premium_access (bool): current entitlement
            remote_storage_available (bool): durable storage is configured

        Returns:
            RecordingReference: durable when uploaded, local otherwise
        """
        if not (has_premium_access and remote_storage_available and self.remote is not None):
            return self._store_local(recording_blob)

        future = self._executor.submit(self.remote.upload, recording_blob, encounter_metadata)
        try:
            stored = future.result(timeout=self.upload_timeout)
        except FutureTimeout:
            if not future.cancel():
                future.add_done_callback(self._unpin_late_upload)
            self.events.report(RemoteSyncFailed(
                'upload_recording',
                'Recording upload timed out. It is kept on this device only.',
                detail=f"no response within {self.upload_timeout}s",
            ))
            return self._store_local(recording_blob)
        except Exception as e:
            self.events.report(RemoteSyncFailed(
                'upload_recording',
                'Recording upload failed. It is kept on this device only.',
                detail=str(e),
            ))
            return self._store_local(recording_blob)

        logger.info(f"Recording pinned: {stored.reference}")
        return RecordingReference(url=stored.durable_url, durable=True, content_hash=stored.reference)

    def _unpin_late_upload(self, future):
        """An upload that outlived its timeout is pinned nowhere we track; remove it."""
        if future.cancelled() or future.exception() is not None:
            return
        stored = future.result()
        try:
            self.remote.unpin(stored.reference)
            logger.info(f"Unpinned late upload {stored.reference}")
        except Exception as e:
            self.events.report(RemoteSyncFailed(
                'unpin_recording',
                'A timed-out upload finished later and could not be removed.',
                detail=f"{stored.reference}: {e}",
            ))

    def _store_local(self, recording_blob):
        handle = self.local.put(recording_blob)
        logger.info(f"Recording kept locally as {handle}")
        return RecordingReference(url=handle, durable=False)

    def release(self, reference):
        """
        Invalidate a stored recording.

        Local handles are revoked here. Durable pins are removed through
        unpin(), which raises on failure so callers can run it best-effort.
        """
        if reference is None:
            return
        if reference.durable:
            self.unpin(reference)
        else:
            self.local.revoke(reference.url)

    def unpin(self, reference):
        if self.remote is None:
            raise RuntimeError('Remote storage is not configured')
        self.remote.unpin(reference.content_hash)
        logger.info(f"Unpinned recording {reference.content_hash}")

    def shutdown(self):
        self._executor.shutdown(wait=False)
