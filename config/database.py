"""
Database Configuration and Management (SQLAlchemy)

Document persistence for user accounts and encounters. The in-memory
encounter repository is authoritative; this store is written in the
background and read on startup.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import create_engine, select, delete, update
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.models import Base, User, EncounterRecord
from encounters.interfaces import DocumentStore
from encounters.models import Encounter, RecordingReference, SubscriptionStatus, UserAccount

logger = logging.getLogger(__name__)

ENCOUNTER_COLUMNS = {
    'type': 'encounter_type',
    'location': 'location',
    'latitude': 'latitude',
    'longitude': 'longitude',
    'accuracy': 'accuracy',
    'notes': 'notes',
    'duration': 'duration',
}


def _ensure_sqlite_dir(database_url):
    if database_url.startswith('sqlite:///') and ':memory:' not in database_url:
        Path(database_url[len('sqlite:///'):]).parent.mkdir(parents=True, exist_ok=True)


def _aware(value):
    # SQLite drops tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _recording_columns(recording):
    if recording is None:
        return {'recording_url': None, 'recording_hash': None, 'recording_durable': False}
    return {
        'recording_url': recording.url,
        'recording_hash': recording.content_hash,
        'recording_durable': recording.durable,
    }


def record_to_encounter(record):
    recording = None
    # Local handles do not survive a restart, only durable references are restored
    if record.recording_url and record.recording_durable:
        recording = RecordingReference(
            url=record.recording_url, durable=True, content_hash=record.recording_hash)
    return Encounter(
        encounter_id=record.encounter_id,
        user_id=record.user_id,
        timestamp=_aware(record.timestamp),
        updated_at=_aware(record.updated_at),
        type=record.encounter_type,
        location=record.location,
        latitude=record.latitude,
        longitude=record.longitude,
        accuracy=record.accuracy,
        notes=record.notes or '',
        recording=recording,
        duration=record.duration,
    )


def record_to_account(user):
    return UserAccount(
        user_id=user.user_id,
        email=user.email,
        subscription_status=SubscriptionStatus.parse(user.subscription_status),
        customer_id=user.customer_id,
        subscription_id=user.subscription_id,
        preferred_language=user.preferred_language or 'en',
        timezone=user.timezone or 'America/Denver',
    )


class SqlDocumentStore(DocumentStore):
    """
    SQLAlchemy-backed document store.

    Args:
        database_url (str): SQLAlchemy URL, e.g. sqlite:///data/pocketlegal.db
        echo (bool): log SQL statements
    """

    def __init__(self, database_url, echo=False):
        _ensure_sqlite_dir(database_url)
        engine_kwargs = {'echo': echo}
        if database_url.startswith('sqlite'):
            # Writes come from the reconciler thread
            engine_kwargs['connect_args'] = {'check_same_thread': False}
            if ':memory:' in database_url:
                engine_kwargs['poolclass'] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def get_db_session(self):
        """
        Get a new database session.

        Returns:
            sqlalchemy.orm.Session: Database session
        """
        return self.SessionLocal()

    def init_schema(self):
        """
        Create all tables defined in models.
        """
        logger.info("Initializing database...")
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database initialized successfully!")
        except Exception as e:
            logger.error(f"Error initializing database: {e}")
            raise

    def upsert_user(self, account):
        """
        Create or update a user row.
        """
        session = self.get_db_session()
        try:
            user = session.get(User, account.user_id)
            if user is None:
                user = User(user_id=account.user_id)
                session.add(user)
            user.email = account.email
            user.subscription_status = account.subscription_status.value
            user.customer_id = account.customer_id
            user.subscription_id = account.subscription_id
            user.preferred_language = account.preferred_language
            user.timezone = account.timezone
            session.commit()
            logger.info(f"Saved user {account.user_id}")
            return True
        except Exception as e:
            logger.error(f"Error saving user {account.user_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_user(self, user_id):
        """
        Get a user account by ID.

        Returns:
            UserAccount or None
        """
        session = self.get_db_session()
        try:
            user = session.get(User, user_id)
            return record_to_account(user) if user else None
        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {e}")
            raise
        finally:
            session.close()

    def update_subscription(self, user_id, status, customer_id=None, subscription_id=None):
        """
        Update a user's subscription fields.
        """
        session = self.get_db_session()
        try:
            stmt = (
                update(User)
                .where(User.user_id == user_id)
                .values(
                    subscription_status=SubscriptionStatus.parse(status).value,
                    customer_id=customer_id,
                    subscription_id=subscription_id,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            result = session.execute(stmt)
            session.commit()
            if result.rowcount == 0:
                raise LookupError(f"User {user_id} not found")
            logger.info(f"Updated subscription for {user_id}: {status}")
            return True
        except Exception as e:
            logger.error(f"Error updating subscription for {user_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def create_encounter(self, encounter):
        """
        Insert an encounter row.
        """
        session = self.get_db_session()
        try:
            record = EncounterRecord(
                encounter_id=encounter.encounter_id,
                user_id=encounter.user_id,
                timestamp=encounter.timestamp,
                encounter_type=encounter.type,
                location=encounter.location,
                latitude=encounter.latitude,
                longitude=encounter.longitude,
                accuracy=encounter.accuracy,
                notes=encounter.notes,
                duration=encounter.duration,
                **_recording_columns(encounter.recording),
            )
            session.add(record)
            session.commit()
            logger.info(f"Created encounter {encounter.encounter_id} for {encounter.user_id}")
            return True
        except Exception as e:
            logger.error(f"Error creating encounter {encounter.encounter_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def update_encounter(self, encounter_id, fields):
        """
        Apply a partial update and refresh updated_at.
        """
        values = {ENCOUNTER_COLUMNS[k]: v for k, v in fields.items() if k in ENCOUNTER_COLUMNS}
        if 'recording' in fields:
            values.update(_recording_columns(fields['recording']))
        values['updated_at'] = datetime.now(timezone.utc)

        session = self.get_db_session()
        try:
            stmt = (
                update(EncounterRecord)
                .where(EncounterRecord.encounter_id == encounter_id)
                .values(**values)
            )
            result = session.execute(stmt)
            session.commit()
            if result.rowcount == 0:
                raise LookupError(f"Encounter {encounter_id} not found")
            return True
        except Exception as e:
            logger.error(f"Error updating encounter {encounter_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def delete_encounter(self, encounter_id):
        """
        Delete an encounter row.
        """
        session = self.get_db_session()
        try:
            stmt = delete(EncounterRecord).where(EncounterRecord.encounter_id == encounter_id)
            result = session.execute(stmt)
            session.commit()
            logger.info(f"Deleted encounter {encounter_id}")
            return result.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting encounter {encounter_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_user_encounters(self, user_id, limit=50):
        """
        Get a user's encounters, most recent first.
        """
        session = self.get_db_session()
        try:
            stmt = (
                select(EncounterRecord)
                .where(EncounterRecord.user_id == user_id)
                .order_by(EncounterRecord.timestamp.desc())
                .limit(limit)
            )
            results = session.execute(stmt).scalars().all()
            return [record_to_encounter(r) for r in results]
        except Exception as e:
            logger.error(f"Error fetching encounters for {user_id}: {e}")
            raise
        finally:
            session.close()

    def get_all_encounter_rows(self, user_id=None):
        """
        Flat dictionaries for export.
        """
        session = self.get_db_session()
        try:
            stmt = select(EncounterRecord).order_by(EncounterRecord.timestamp.desc())
            if user_id is not None:
                stmt = stmt.where(EncounterRecord.user_id == user_id)
            results = session.execute(stmt).scalars().all()
            return [{
                'encounter_id': r.encounter_id,
                'user_id': r.user_id,
                'timestamp': r.timestamp,
                'encounter_type': r.encounter_type,
                'location': r.location,
                'latitude': r.latitude,
                'longitude': r.longitude,
                'notes': r.notes,
                'recording_url': r.recording_url if r.recording_durable else '',
                'duration': r.duration,
            } for r in results]
        finally:
            session.close()
