"""
Encounter Routes

History of saved encounters: list, view, amend, delete.
"""

import logging
from flask import Blueprint, jsonify, request

from encounters.models import LocationSnapshot
from utils.formatting import format_duration, format_timestamp
from webapp.app import get_user_session

logger = logging.getLogger(__name__)

encounters_bp = Blueprint('encounters', __name__, url_prefix='/api/encounters')


def serialize(encounter, timezone_name):
    data = encounter.to_dict()
    data['display_time'] = format_timestamp(encounter.timestamp, timezone_name) if encounter.timestamp else None
    data['display_duration'] = format_duration(encounter.duration) if encounter.duration is not None else None
    return data


def location_from_payload(payload):
    if not payload:
        return None
    return LocationSnapshot(
        address=payload.get('address') or payload.get('formatted_address') or 'Unknown location',
        latitude=payload.get('latitude'),
        longitude=payload.get('longitude'),
        accuracy=payload.get('accuracy'),
        state_code=payload.get('state_code'),
    )


@encounters_bp.route('', methods=['GET'])
def list_encounters():
    session = get_user_session()
    tz = session.account.timezone
    return jsonify([serialize(e, tz) for e in session.encounters()])


@encounters_bp.route('', methods=['POST'])
def create_encounter():
    """Save a notes-only encounter."""
    session = get_user_session()
    data = request.get_json(silent=True) or {}
    encounter = session.recorder.save_without_recording(
        encounter_type=data.get('type'),
        notes=data.get('notes', ''),
        location=location_from_payload(data.get('location')),
    )
    return serialize(encounter, session.account.timezone), 201


@encounters_bp.route('', methods=['DELETE'])
def delete_all_encounters():
    removed = get_user_session().delete_all_encounters()
    return {'deleted': removed}


@encounters_bp.route('/<encounter_id>', methods=['GET'])
def get_encounter(encounter_id):
    session = get_user_session()
    encounter = session.repository.get(encounter_id)
    if encounter is None:
        return {'error': 'not_found', 'message': f"Encounter {encounter_id} not found"}, 404
    return serialize(encounter, session.account.timezone)


@encounters_bp.route('/<encounter_id>', methods=['PATCH'])
def update_encounter(encounter_id):
    session = get_user_session()
    data = request.get_json(silent=True) or {}
    if 'recording' in data:
        return {'error': 'invalid_request', 'message': 'Recordings cannot be replaced.'}, 400
    try:
        found = session.repository.update(encounter_id, **data)
    except ValueError as e:
        return {'error': 'invalid_request', 'message': str(e)}, 400
    if not found:
        return {'error': 'not_found', 'message': f"Encounter {encounter_id} not found"}, 404
    return serialize(session.repository.get(encounter_id), session.account.timezone)


@encounters_bp.route('/<encounter_id>', methods=['DELETE'])
def delete_encounter(encounter_id):
    if not get_user_session().repository.remove(encounter_id):
        return {'error': 'not_found', 'message': f"Encounter {encounter_id} not found"}, 404
    return {'deleted': encounter_id}
