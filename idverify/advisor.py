"""
Security advisor: an independent allow/deny judgement for a scanned card.

The remote advisor asks Gemini; whenever that call is unavailable, slow or
returns something unusable the deterministic local judgement is used.
"""

import json
import logging

import requests

from idverify.utils import today_utc

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'

VERDICT_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'allowed': {'type': 'BOOLEAN'},
        'reason': {'type': 'STRING'},
    },
    'required': ['allowed', 'reason'],
}


class Verdict:
    def __init__(self, allowed, reason, source):
        self.allowed = bool(allowed)
        self.reason = reason
        self.source = source

    def to_dict(self):
        return {'allowed': self.allowed, 'reason': self.reason, 'source': self.source}

    def __repr__(self):
        return f'<Verdict allowed={self.allowed} source={self.source}>'


class LocalAdvisor:
    """Status must be active and the card must not have expired."""

    source = 'local'

    def __init__(self, today=None):
        self._today = today

    def judge(self, employee):
        today = self._today() if self._today else today_utc()
        if not employee.is_active or employee.is_expired(today):
            return Verdict(False, 'Status check failed (Offline Fallback)', self.source)
        return Verdict(True, 'Active employee (Offline Fallback)', self.source)


class GeminiAdvisor:
    source = 'gemini'

    def __init__(self, api_key, model='gemini-2.0-flash', timeout=8, session=None, fallback=None, today=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.fallback = fallback or LocalAdvisor(today=today)
        self._today = today

    def build_prompt(self, employee):
        today = self._today() if self._today else today_utc()
        return (
            "Act as an organisation security system. Analyze this ID card holder for access eligibility.\n\n"
            "Holder Details:\n"
            f"Name: {employee.name}\n"
            f"Status: {employee.status}\n"
            f"Valid Until: {employee.valid_till}\n"
            f"Department: {employee.department}\n"
            f"Designation: {employee.designation}\n\n"
            f"Today's Date: {today.isoformat()}\n\n"
            "Rules:\n"
            "1. Status MUST be 'active'.\n"
            "2. Valid Until date must not be in the past.\n"
            "3. If suspended or inactive, deny access.\n\n"
            "Return a JSON response."
        )

    def judge(self, employee):
        payload = {
            'contents': [{'parts': [{'text': self.build_prompt(employee)}]}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': VERDICT_SCHEMA,
            },
        }
        try:
            response = self.session.post(
                GEMINI_ENDPOINT.format(model=self.model),
                params={'key': self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            text = response.json()['candidates'][0]['content']['parts'][0]['text']
            if not text:
                raise ValueError('Empty response')
            data = json.loads(text)
            if not isinstance(data.get('allowed'), bool):
                raise ValueError('Verdict is missing "allowed"')
            return Verdict(data['allowed'], str(data.get('reason') or ''), self.source)
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.warning(f"Gemini security check failed, using local fallback: {e}")
            return self.fallback.judge(employee)


def build_advisor(config):
    """Advisor named by ``ADVISOR`` (gemini, local or none)."""
    choice = config.get('ADVISOR')
    if not choice:
        choice = 'gemini' if config.get('GEMINI_API_KEY') else 'local'
    if choice == 'none':
        return None
    if choice == 'local':
        return LocalAdvisor()
    if choice == 'gemini':
        if not config.get('GEMINI_API_KEY'):
            raise ValueError('GEMINI_API_KEY is required for the gemini advisor')
        return GeminiAdvisor(
            api_key=config['GEMINI_API_KEY'],
            model=config.get('GEMINI_MODEL', 'gemini-2.0-flash'),
            timeout=config.get('ADVISOR_TIMEOUT', 8),
        )
    raise ValueError(f'Unknown ADVISOR: {choice}')
