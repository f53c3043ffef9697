"""
Recorder Routes

Drives the incident recorder: start, upload chunks, stop, then save or
discard. The browser owns the camera; it reports getUserMedia errors and
its geolocation fix when starting.
"""

import logging
from flask import Blueprint, current_app, request

from encounters.errors import DeviceError, InvalidCaptureState
from utils.formatting import format_duration
from webapp.app import get_user_session
from webapp.routes.encounters import serialize
from webapp.services.capture_service import ClientMediaProvider
from webapp.services.geocoding_service import ReportedPositionProvider

logger = logging.getLogger(__name__)

recorder_bp = Blueprint('recorder', __name__, url_prefix='/api/recorder')


def recorder_status(session):
    status = session.recorder.status()
    status['display_elapsed'] = format_duration(status['elapsed_seconds'])
    status['can_create_encounter'] = session.can_create_encounter()
    return status


@recorder_bp.route('/start', methods=['POST'])
def start():
    session = get_user_session()
    data = request.get_json(silent=True) or {}
    provider = ClientMediaProvider(
        client_error=data.get('client_error'),
        mime_type=data.get('mime_type', 'video/webm'),
    )
    position = data.get('position')
    geolocation = ReportedPositionProvider.from_payload(position) if position else None
    session.recorder.start(
        provider,
        geolocation=geolocation,
        geocoder=current_app.config.get('GEOCODER'),
        audio=data.get('audio', True),
        video=data.get('video', True),
    )
    return recorder_status(session), 201


@recorder_bp.route('/chunk', methods=['POST'])
def chunk():
    """Append a MediaRecorder chunk (raw request body)."""
    session = get_user_session()
    active = session.recorder.active
    stream = active.stream if active is not None else None
    if stream is None:
        raise InvalidCaptureState('There is no recording in progress.')
    try:
        stream.append(request.get_data())
    except DeviceError as e:
        raise InvalidCaptureState('There is no recording in progress.', detail=str(e)) from e
    return {'received': stream.size}


@recorder_bp.route('/stop', methods=['POST'])
def stop():
    session = get_user_session()
    blob = session.recorder.stop()
    status = recorder_status(session)
    status['size'] = blob.size
    return status


@recorder_bp.route('/save', methods=['POST'])
def save():
    session = get_user_session()
    data = request.get_json(silent=True) or {}
    encounter = session.recorder.save(
        encounter_type=data.get('type'),
        notes=data.get('notes', ''),
    )
    return serialize(encounter, session.account.timezone), 201


@recorder_bp.route('/discard', methods=['POST'])
def discard():
    session = get_user_session()
    session.recorder.discard()
    return recorder_status(session)


@recorder_bp.route('/status', methods=['GET'])
def status():
    return recorder_status(get_user_session())
