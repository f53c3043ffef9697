"""
Jurisdiction Data

Static state-level legal information: rights, relevant laws, contacts and
resources per scenario, plus emergency contact numbers.
"""

import logging
from datetime import datetime, timezone

from encounters.entitlement import has_premium_access

logger = logging.getLogger(__name__)

STATE_CODES = {
    'Alabama': 'AL', 'Alaska': 'AK', 'Arizona': 'AZ', 'Arkansas': 'AR',
    'California': 'CA', 'Colorado': 'CO', 'Connecticut': 'CT', 'Delaware': 'DE',
    'Florida': 'FL', 'Georgia': 'GA', 'Hawaii': 'HI', 'Idaho': 'ID',
    'Illinois': 'IL', 'Indiana': 'IN', 'Iowa': 'IA', 'Kansas': 'KS',
    'Kentucky': 'KY', 'Louisiana': 'LA', 'Maine': 'ME', 'Maryland': 'MD',
    'Massachusetts': 'MA', 'Michigan': 'MI', 'Minnesota': 'MN', 'Mississippi': 'MS',
    'Missouri': 'MO', 'Montana': 'MT', 'Nebraska': 'NE', 'Nevada': 'NV',
    'New Hampshire': 'NH', 'New Jersey': 'NJ', 'New Mexico': 'NM', 'New York': 'NY',
    'North Carolina': 'NC', 'North Dakota': 'ND', 'Ohio': 'OH', 'Oklahoma': 'OK',
    'Oregon': 'OR', 'Pennsylvania': 'PA', 'Rhode Island': 'RI', 'South Carolina': 'SC',
    'South Dakota': 'SD', 'Tennessee': 'TN', 'Texas': 'TX', 'Utah': 'UT',
    'Vermont': 'VT', 'Virginia': 'VA', 'Washington': 'WA', 'West Virginia': 'WV',
    'Wisconsin': 'WI', 'Wyoming': 'WY',
}

STATE_LEGAL_DATA = {
    'CA': {
        'name': 'California',
        'scenarios': {
            'general': {
                'rights': [
                    'Right to remain silent (5th Amendment)',
                    'Right to refuse searches without warrant',
                    'Right to ask if you are free to leave',
                    'Right to an attorney',
                ],
                'laws': [
                    'California Vehicle Code Section 2800 - Failure to yield to police',
                    'Penal Code Section 148 - Resisting arrest',
                    'California Constitution Article 1, Section 13 - Search and seizure',
                ],
                'needs_ai_summary': True,
            },
            'traffic-stop': {
                'rights': [
                    'Provide license, registration, and insurance when requested',
                    'Right to remain silent beyond identification',
                    'Right to refuse vehicle searches without warrant',
                    'Right to record the interaction',
                ],
                'laws': [
                    'Vehicle Code 12951 - License requirement',
                    'Vehicle Code 16028 - Insurance requirement',
                    'Penal Code 69 - Resisting executive officer',
                ],
                'needs_ai_summary': False,
            },
        },
        'contacts': {
            'ACLU': '(213) 977-9500',
            'Legal Aid': '(800) 520-2356',
            'Public Defender': '(varies by county)',
        },
        'resources': [
            'California Courts Self-Help Center',
            'State Bar of California',
            'California Department of Justice',
        ],
    },
    'DEFAULT': {
        'name': 'United States',
        'scenarios': {
            'general': {
                'rights': [
                    'Right to remain silent (5th Amendment)',
                    'Right against unreasonable searches (4th Amendment)',
                    'Right to an attorney (6th Amendment)',
                    'Right to ask if you are free to leave',
                ],
                'laws': [
                    'U.S. Constitution 4th Amendment - Search and seizure',
                    'U.S. Constitution 5th Amendment - Self-incrimination',
                    'U.S. Constitution 6th Amendment - Right to counsel',
                ],
                'needs_ai_summary': True,
            },
            'traffic-stop': {
                'rights': [
                    'Provide identification when requested',
                    'Right to remain silent beyond identification',
                    'Right to refuse vehicle searches without warrant',
                    'Right to record the interaction (in most states)',
                ],
                'laws': [
                    'Terry v. Ohio (1968) - Stop and frisk',
                    'Pennsylvania v. Mimms (1977) - Exit vehicle order',
                    'Rodriguez v. United States (2015) - Traffic stop duration',
                ],
                'needs_ai_summary': False,
            },
        },
        'contacts': {
            'ACLU': '(212) 549-2500',
            'Legal Aid': '(varies by location)',
            'Public Defender': '(varies by jurisdiction)',
        },
        'resources': [
            'American Civil Liberties Union',
            'National Association for the Advancement of Colored People',
            'Electronic Frontier Foundation',
        ],
    },
}

LEGAL_AID_NUMBERS = {
    'CA': '(800) 520-2356',
    'NY': '(212) 577-3300',
    'TX': '(800) 504-7030',
    'FL': '(800) 405-1417',
}

ACLU_NUMBERS = {
    'CA': '(213) 977-9500',
    'NY': '(212) 549-2500',
    'TX': '(713) 942-8146',
    'FL': '(786) 363-2714',
}
ACLU_NATIONAL = '(212) 549-2500'


def get_state_code(state):
    """Normalize a state name or code to its two-letter code."""
    if not state:
        return None
    state = state.strip()
    if len(state) == 2:
        return state.upper()
    return STATE_CODES.get(state.title(), state)


def get_state_legal_info(state_code, scenario='general'):
    state_info = STATE_LEGAL_DATA.get(state_code) or STATE_LEGAL_DATA['DEFAULT']
    scenario_info = state_info['scenarios'].get(scenario) or state_info['scenarios']['general']
    return {
        'state': state_code,
        'state_name': state_info['name'],
        'scenario': scenario,
        'rights': list(scenario_info['rights']),
        'laws': list(scenario_info['laws']),
        'contacts': dict(state_info['contacts']),
        'resources': list(state_info['resources']),
        'needs_ai_summary': scenario_info.get('needs_ai_summary', False),
    }


def legal_info_for_location(location, scenario='general', subscription_status=None,
                            generator=None, language='en'):
    """
    Legal information for where the user is.

    Args:
        location (dict): at least state or state_code; formatted_address is
            used for the AI summary
        scenario (str): encounter scenario, general when unknown
        subscription_status: only premium accounts get an AI summary
        generator (ScriptGenerator): summary source, or None

    Returns:
        dict: state_code, scenario, legal_info, ai_summary, timestamp
    """
    state_code = get_state_code(location.get('state_code') or location.get('state'))
    legal_info = get_state_legal_info(state_code, scenario)

    ai_summary = None
    if (legal_info['needs_ai_summary'] and generator is not None
            and has_premium_access(subscription_status)):
        try:
            ai_summary = generator.generate_summary(
                location.get('formatted_address') or legal_info['state_name'], scenario, language)
        except Exception as e:
            logger.warning(f"Legal summary unavailable: {e}")

    return {
        'location': location,
        'state_code': state_code,
        'scenario': scenario,
        'legal_info': legal_info,
        'ai_summary': ai_summary,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


def get_emergency_contacts(state):
    state_code = get_state_code(state)
    return {
        'emergency': '911',
        'police': '(varies by location)',
        'legal': LEGAL_AID_NUMBERS.get(state_code, '(varies by state)'),
        'aclu': ACLU_NUMBERS.get(state_code, ACLU_NATIONAL),
        'family': None,
    }
