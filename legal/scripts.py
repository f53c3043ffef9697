"""
Legal Scripts

Pre-written phrases for common police encounters, in English and
Spanish. Premium users get scripts generated for their scenario and
state; everyone else, and any generation failure, gets the static set.
"""

import logging

from encounters.entitlement import has_premium_access
from encounters.interfaces import ScriptSet

logger = logging.getLogger(__name__)

DEFAULT_SCENARIO = 'traffic-stop'


def _script(text, usage, priority='high'):
    return {'text': text, 'usage': usage, 'priority': priority}


FALLBACK_SCRIPTS = {
    'traffic-stop': {
        'en': [
            _script("I am exercising my right to remain silent.", "Always safe to use"),
            _script("I do not consent to any searches.", "When asked about searches"),
            _script("Am I free to leave?", "To clarify your status", 'medium'),
            _script("I would like to speak to my attorney.", "If detained or arrested"),
        ],
        'es': [
            _script("Estoy ejerciendo mi derecho a permanecer en silencio.", "Siempre seguro de usar"),
            _script("No doy mi consentimiento para ningún registro.", "Cuando pregunten sobre registros"),
            _script("¿Soy libre de irme?", "Para aclarar su estado", 'medium'),
            _script("Me gustaría hablar con mi abogado.", "Si es detenido o arrestado"),
        ],
    },
    'questioning': {
        'en': [
            _script("I am invoking my Fifth Amendment right to remain silent.", "Always safe to use"),
            _script("I want to speak to a lawyer before answering any questions.", "Before answering questions"),
            _script("I do not consent to any searches of my person or property.", "When asked about searches"),
            _script("Am I under arrest or am I free to go?", "To clarify your status", 'medium'),
        ],
        'es': [
            _script("Estoy invocando mi derecho de la Quinta Enmienda a permanecer en silencio.",
                    "Siempre seguro de usar"),
            _script("Quiero hablar con un abogado antes de responder cualquier pregunta.",
                    "Antes de responder preguntas"),
            _script("No consiento ningún registro de mi persona o propiedad.", "Cuando pregunten sobre registros"),
            _script("¿Estoy bajo arresto o soy libre de irme?", "Para aclarar su estado", 'medium'),
        ],
    },
    'search-warrant': {
        'en': [
            _script("I do not consent to this search.", "When officers begin a search"),
            _script("May I see the warrant?", "Before any search begins"),
            _script("I am invoking my right to remain silent.", "Always safe to use"),
            _script("I want my lawyer present.", "During the search", 'medium'),
        ],
        'es': [
            _script("No consiento este registro.", "Cuando los oficiales comiencen un registro"),
            _script("¿Puedo ver la orden?", "Antes de que comience el registro"),
            _script("Estoy invocando mi derecho a permanecer en silencio.", "Siempre seguro de usar"),
            _script("Quiero que mi abogado esté presente.", "Durante el registro", 'medium'),
        ],
    },
}

SCENARIO_GUIDANCE = {
    'traffic-stop': {
        'en': "Remain calm, keep hands visible, provide license and registration when asked.",
        'es': "Manténgase calmado, mantenga las manos visibles, proporcione licencia y registro cuando se lo pidan.",
    },
    'questioning': {
        'en': "You have the right to remain silent. Use it. Ask if you're free to leave.",
        'es': "Tienes derecho a permanecer en silencio. Úsalo. Pregunta si eres libre de irte.",
    },
    'search-warrant': {
        'en': "Do not physically resist. State clearly that you do not consent. Ask to see the warrant.",
        'es': "No resista físicamente. Declare claramente que no consiente. Pida ver la orden.",
    },
}

GENERAL_GUIDANCE = {
    'en': 'Remain calm and cooperative while exercising your rights.',
    'es': 'Manténgase calmado y cooperativo mientras ejerce sus derechos.',
}

STATE_NOTES = {
    'en': 'Laws may vary by state.',
    'es': 'Las leyes pueden variar según el estado.',
}


def fallback_scripts(scenario, language='en', reason=None):
    """
    Static script set for a scenario.

    Unknown scenarios use the traffic-stop set; unknown languages use English.

    Returns:
        ScriptSet: generated=False
    """
    if language not in GENERAL_GUIDANCE:
        language = 'en'
    scripts = FALLBACK_SCRIPTS.get(scenario, FALLBACK_SCRIPTS[DEFAULT_SCENARIO])[language]
    return ScriptSet(
        scripts=[dict(s) for s in scripts],
        guidance=GENERAL_GUIDANCE[language],
        jurisdiction_notes=STATE_NOTES[language],
        language=language,
        generated=False,
        fallback_reason=reason,
    )


def scenario_library(language='en'):
    """All static scenarios with their scripts and guidance, for the scripts screen."""
    if language not in GENERAL_GUIDANCE:
        language = 'en'
    return [
        {
            'id': scenario,
            'scripts': [s['text'] for s in scripts[language]],
            'guidance': SCENARIO_GUIDANCE[scenario][language],
        }
        for scenario, scripts in FALLBACK_SCRIPTS.items()
    ]


def get_scripts(subscription_status, scenario, state, language='en', generator=None, context=None):
    """
    Scripts for an encounter, generated when the account allows it.

    Args:
        subscription_status: current SubscriptionStatus
        scenario (str): encounter type, e.g. traffic-stop
        state (str): state code or name used for jurisdiction notes
        language (str): en or es
        generator (ScriptGenerator): LLM client, or None
        context (dict): extra user context passed to the generator

    Returns:
        ScriptSet
    """
    if generator is None:
        return fallback_scripts(scenario, language, reason='generator_unavailable')
    if not has_premium_access(subscription_status):
        return fallback_scripts(scenario, language, reason='premium_required')

    try:
        result = generator.generate_scripts(scenario, state, language, context or {})
    except Exception as e:
        logger.warning(f"Script generation failed, using fallback scripts: {e}")
        return fallback_scripts(scenario, language, reason='generation_failed')

    if not result.scripts:
        logger.warning("Script generation returned no scripts, using fallback scripts")
        return fallback_scripts(scenario, language, reason='empty_response')
    return result
