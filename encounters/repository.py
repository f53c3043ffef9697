"""
Encounter Repository

The user's encounters, held in memory most-recent-first. Every mutation
is applied locally first and returned to the caller straight away; the
matching document-store write (and recording unpin on delete) is handed
to the Reconciler. A failed remote write is reported as a notice and
never rolls back the local change.
"""

import logging
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone

from encounters.errors import RemoteSyncFailed
from encounters.models import (
    IMMUTABLE_ENCOUNTER_FIELDS,
    MUTABLE_ENCOUNTER_FIELDS,
    normalize_encounter_type,
)

logger = logging.getLogger(__name__)


class EncounterRepository:
    """
    Args:
        user_id (str): owner of this repository
        store (DocumentStore): remote persistence, or None for local-only
        reconciler (Reconciler): runs remote writes in the background
        storage_router (StorageRouter): used to release recordings on delete
    """

    def __init__(self, user_id, store=None, reconciler=None, storage_router=None):
        self.user_id = user_id
        self.store = store
        self.reconciler = reconciler
        self.storage_router = storage_router
        self._lock = threading.RLock()
        self._encounters = []
        self._last_id = 0

    def _sync(self, operation, fn, *args):
        if self.reconciler is None:
            return None
        return self.reconciler.submit(operation, fn, *args)

    def new_encounter_id(self):
        """Millisecond timestamp id, bumped so ids are unique and increasing."""
        with self._lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last_id:
                candidate = self._last_id + 1
            while self._index_of(str(candidate)) is not None:
                candidate += 1
            self._last_id = candidate
            return str(candidate)

    def _index_of(self, encounter_id):
        for index, encounter in enumerate(self._encounters):
            if encounter.encounter_id == encounter_id:
                return index
        return None

    def add(self, encounter):
        """
        Insert an encounter at the head of the collection.

        Assigns encounter_id and timestamp when absent. Returns the stored
        encounter before any remote write has completed.

        Raises:
            ValueError: the id is already used, or the encounter belongs to another user
        """
        if encounter.user_id != self.user_id:
            raise ValueError(f"Encounter belongs to {encounter.user_id}, not {self.user_id}")

        with self._lock:
            encounter_id = encounter.encounter_id or self.new_encounter_id()
            if self._index_of(encounter_id) is not None:
                raise ValueError(f"Duplicate encounter id {encounter_id}")
            stored = replace(
                encounter,
                encounter_id=encounter_id,
                timestamp=encounter.timestamp or datetime.now(timezone.utc),
                type=normalize_encounter_type(encounter.type),
            )
            self._encounters.insert(0, stored)

        logger.info(f"Added encounter {stored.encounter_id} for {self.user_id}")
        if self.store is not None:
            self._sync('create_encounter', self.store.create_encounter, stored)
        return stored

    def update(self, encounter_id, **fields):
        """
        Amend an encounter's mutable fields.

        Returns:
            bool: False when the id is unknown

        Raises:
            ValueError: attempt to change encounter_id, user_id or timestamp
        """
        frozen = IMMUTABLE_ENCOUNTER_FIELDS.intersection(fields)
        if frozen:
            raise ValueError(f"Immutable encounter fields: {', '.join(sorted(frozen))}")
        unknown = set(fields) - MUTABLE_ENCOUNTER_FIELDS
        if unknown:
            raise ValueError(f"Unknown encounter fields: {', '.join(sorted(unknown))}")
        if 'type' in fields:
            fields['type'] = normalize_encounter_type(fields['type'])

        with self._lock:
            index = self._index_of(encounter_id)
            if index is None:
                logger.warning(f"Encounter {encounter_id} not found for update")
                return False
            updated = replace(self._encounters[index], updated_at=datetime.now(timezone.utc), **fields)
            self._encounters[index] = updated

        if self.store is not None:
            self._sync('update_encounter', self.store.update_encounter, encounter_id, dict(fields))
        return True

    def remove(self, encounter_id):
        """
        Delete an encounter locally, then remotely and release its recording.

        Returns:
            bool: False when the id is unknown
        """
        with self._lock:
            index = self._index_of(encounter_id)
            if index is None:
                logger.warning(f"Encounter {encounter_id} not found for delete")
                return False
            removed = self._encounters.pop(index)

        logger.info(f"Removed encounter {encounter_id}")
        if self.store is not None:
            self._sync('delete_encounter', self.store.delete_encounter, encounter_id)
        if removed.recording is not None and self.storage_router is not None:
            if removed.recording.durable:
                self._sync('unpin_recording', self.storage_router.unpin, removed.recording)
            else:
                self.storage_router.release(removed.recording)
        return True

    def get(self, encounter_id):
        with self._lock:
            index = self._index_of(encounter_id)
            return None if index is None else self._encounters[index]

    def list_by_user(self, user_id):
        """Encounters owned by user_id, most recent first."""
        with self._lock:
            owned = [e for e in self._encounters if e.user_id == user_id]
        return sorted(owned, key=lambda e: e.timestamp, reverse=True)

    def count(self, user_id=None):
        with self._lock:
            return sum(1 for e in self._encounters if e.user_id == (user_id or self.user_id))

    def load(self, limit=50):
        """
        Merge the document store's encounters into the local view.

        Local entries win on id conflicts. A store failure leaves the
        local view as it is and returns 0.

        Returns:
            int: number of encounters added from the store
        """
        if self.store is None:
            return 0
        try:
            remote = self.store.get_user_encounters(self.user_id, limit=limit)
        except Exception as e:
            logger.error(f"Could not load encounters for {self.user_id}: {e}")
            if self.reconciler is not None:
                self.reconciler.events.report(RemoteSyncFailed('load_encounters', detail=str(e)))
            return 0

        added = 0
        with self._lock:
            for encounter in remote:
                if self._index_of(encounter.encounter_id) is None:
                    self._encounters.append(encounter)
                    added += 1
            self._encounters.sort(key=lambda e: e.timestamp, reverse=True)
            numeric = [int(e.encounter_id) for e in self._encounters if str(e.encounter_id).isdigit()]
            if numeric:
                self._last_id = max(self._last_id, max(numeric))
        logger.info(f"Loaded {added} encounters from the document store")
        return added
