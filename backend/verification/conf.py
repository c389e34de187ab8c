"""
Verification settings, read once from django.conf.settings.VERIFICATION
and handed to views/services as an immutable object.
"""

from dataclasses import dataclass
from typing import Optional

from django.conf import settings


@dataclass(frozen=True)
class VerificationSettings:
    # Advisory only: scan/ reports `stale`, decode never rejects on age
    payload_max_age_seconds: Optional[int] = None
    telemetry_enabled: bool = False
    passkey_unlock_enabled: bool = False

    @classmethod
    def from_dict(cls, values):
        values = values or {}
        max_age = values.get('PAYLOAD_MAX_AGE')
        return cls(
            payload_max_age_seconds=int(max_age) if max_age else None,
            telemetry_enabled=bool(values.get('FEATURE_TELEMETRY', False)),
            passkey_unlock_enabled=bool(values.get('FEATURE_PASSKEY_UNLOCK', False)),
        )


def get_config():
    return VerificationSettings.from_dict(getattr(settings, 'VERIFICATION', None))
