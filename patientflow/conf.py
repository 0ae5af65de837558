"""Access to the ``PATIENTFLOW`` settings block with defaults."""
from __future__ import annotations

from django.conf import settings

DEFAULTS = {
    'DEFAULT_PRIORITY': 3,
    'MIN_PRIORITY': 1,
    'MAX_PRIORITY': 5,
    'DEFAULT_SERVICE_TYPE': 'consultation',
    'STAGES': [
        'registration', 'triage', 'nurse', 'consultation', 'lab',
        'imaging', 'pharmacy', 'billing', 'discharge',
    ],
    'DEFAULT_STAGE': 'registration',
    'BROADCAST_UPDATES': True,
}


def get(name: str):
    return getattr(settings, 'PATIENTFLOW', {}).get(name, DEFAULTS[name])
