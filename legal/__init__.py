"""
Legal content: encounter scripts and jurisdiction information.
"""

from .jurisdictions import get_emergency_contacts, get_state_code, legal_info_for_location
from .scripts import fallback_scripts, get_scripts, scenario_library

__all__ = [
    'get_emergency_contacts',
    'get_state_code',
    'legal_info_for_location',
    'fallback_scripts',
    'get_scripts',
    'scenario_library',
]
