"""
Legal Script Generation Service

Calls an OpenAI-compatible chat completions endpoint to produce
scenario- and state-specific phrases. The API key stays on the server.
"""

import json
import logging
import re
import requests

from encounters.errors import ProviderError
from encounters.interfaces import ScriptGenerator, ScriptSet

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a legal expert specializing in civil rights and police interactions. "
    "Provide accurate, actionable legal scripts that protect citizens' rights while "
    "promoting safety and de-escalation."
)
SUMMARY_PROMPT = (
    "You are a legal expert providing citizen education on civil rights and police interactions."
)
MAX_SCRIPTS = 6
TEXT_GUIDANCE = 'AI-generated legal scripts. Always consult with a lawyer for specific legal advice.'
TEXT_STATE_NOTES = 'State-specific information may vary.'


def language_name(language):
    return 'Spanish' if language == 'es' else 'English'


def build_script_prompt(scenario, jurisdiction, language, context=None):
    return f"""Generate legal scripts for a {scenario} scenario in {jurisdiction} state.

Requirements:
- Language: {language_name(language)}
- Provide 4-6 specific phrases/scripts
- Include brief guidance on when to use each script
- Focus on constitutional rights (4th, 5th, 6th amendments)
- Emphasize de-escalation and safety
- Be concise and memorable
- Include state-specific considerations for {jurisdiction}

Context: {json.dumps(context or {})}

Format the response as JSON with this structure:
{{
  "scripts": [
    {{
      "text": "Script text here",
      "usage": "When to use this script",
      "priority": "high|medium|low"
    }}
  ],
  "guidance": "General guidance for this scenario",
  "stateSpecific": "State-specific legal considerations"
}}"""


def extract_scripts_from_text(text, language):
    """
    Pull quoted or bulleted lines out of a free-text answer.

    Returns:
        ScriptSet: at most six scripts
    """
    scripts = []
    for line in text.split('\n'):
        if not line.strip():
            continue
        if '"' in line or '•' in line or '-' in line:
            clean = re.sub(r'[•\-"]', '', line).strip()
            if len(clean) > 10:
                scripts.append({
                    'text': clean,
                    'usage': 'Use when appropriate for the situation',
                    'priority': 'medium',
                })
    return ScriptSet(
        scripts=scripts[:MAX_SCRIPTS],
        guidance=TEXT_GUIDANCE,
        jurisdiction_notes=TEXT_STATE_NOTES,
        language=language,
        generated=True,
    )


def parse_script_response(content, language):
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return extract_scripts_from_text(content or '', language)
    if not isinstance(parsed, dict):
        return extract_scripts_from_text(content, language)
    return ScriptSet(
        scripts=parsed.get('scripts') or [],
        guidance=parsed.get('guidance') or '',
        jurisdiction_notes=parsed.get('stateSpecific') or '',
        language=language,
        generated=True,
    )


class OpenAIScriptGenerator(ScriptGenerator):
    """
    Args:
        api_key (str): OpenAI API key
        model (str): chat model name
        base_url (str): API root
        max_tokens (int): completion budget for scripts
        timeout (float): per-request timeout in seconds
    """

    def __init__(self, api_key, model='gpt-3.5-turbo', base_url='https://api.openai.com/v1',
                 max_tokens=1000, timeout=15):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.max_tokens = max_tokens
        self.timeout = timeout

    def _complete(self, system, prompt, max_tokens, temperature):
        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': system},
                {'role': 'user', 'content': prompt},
            ],
            'max_tokens': max_tokens,
            'temperature': temperature,
        }
        headers = {'Authorization': f"Bearer {self.api_key}"}
        try:
            resp = requests.post(f"{self.base_url}/chat/completions", json=payload,
                                 headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
            return data['choices'][0]['message']['content']
        except requests.RequestException as e:
            logger.error(f"Chat completion failed: {e}")
            raise ProviderError(f"Chat completion failed: {e}") from e
        except (ValueError, KeyError, IndexError) as e:
            raise ProviderError(f"Unexpected chat completion response: {e}") from e

    def generate_scripts(self, scenario, jurisdiction, language='en', context=None):
        prompt = build_script_prompt(scenario, jurisdiction, language, context)
        # Low temperature keeps legal phrasing consistent
        content = self._complete(SYSTEM_PROMPT, prompt, self.max_tokens, 0.3)
        result = parse_script_response(content, language)
        logger.info(f"Generated {len(result.scripts)} scripts for {scenario} in {jurisdiction}")
        return result

    def generate_summary(self, location, scenario, language='en'):
        prompt = f"""Generate a concise legal summary for {scenario} encounters in {location}.

Include:
- Key rights citizens should know
- Common legal issues
- State/local specific laws
- Do's and don'ts
- When to contact a lawyer

Language: {language_name(language)}
Keep it under 300 words and actionable."""
        return self._complete(SUMMARY_PROMPT, prompt, 500, 0.2)
