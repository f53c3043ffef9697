"""
Legal Routes

Scripts for an encounter scenario, jurisdiction information and
emergency contacts.
"""

import logging
from flask import Blueprint, current_app, request

from legal.jurisdictions import get_emergency_contacts, get_state_code, legal_info_for_location
from legal.scripts import get_scripts, scenario_library
from webapp.app import get_user_session

logger = logging.getLogger(__name__)

legal_bp = Blueprint('legal', __name__, url_prefix='/api/legal')


def _language(session):
    return request.args.get('language') or session.account.preferred_language


@legal_bp.route('/scripts', methods=['GET'])
def scripts():
    session = get_user_session()
    settings = current_app.config['SETTINGS']
    state = get_state_code(request.args.get('state')) or settings.default_state
    result = get_scripts(
        session.account.subscription_status,
        request.args.get('scenario', 'traffic-stop'),
        state,
        language=_language(session),
        generator=current_app.config.get('SCRIPT_GENERATOR'),
    )
    data = result.to_dict()
    data['state'] = state
    return data


@legal_bp.route('/scenarios', methods=['GET'])
def scenarios():
    return {'scenarios': scenario_library(_language(get_user_session()))}


@legal_bp.route('/location', methods=['POST'])
def location_info():
    session = get_user_session()
    data = request.get_json(silent=True) or {}
    location = data.get('location') or {'state_code': current_app.config['SETTINGS'].default_state}
    return legal_info_for_location(
        location,
        scenario=data.get('scenario', 'general'),
        subscription_status=session.account.subscription_status,
        generator=current_app.config.get('SCRIPT_GENERATOR'),
        language=session.account.preferred_language,
    )


@legal_bp.route('/contacts', methods=['GET'])
def contacts():
    state = request.args.get('state') or current_app.config['SETTINGS'].default_state
    return get_emergency_contacts(state)
