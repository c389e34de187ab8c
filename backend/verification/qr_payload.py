"""
SecureRooms — Device verification payload
=========================================
Transport string carried by the verification QR code.

Format:
    pgprooms://verify/<base64(JSON)>

JSON body (compact, keys in this order):
    fpr, userId, deviceLabel, publicKeyArmored, timestamp

The scheme prefix is part of the wire contract: future payload versions
must stay distinguishable by it. decode() is total: any str input yields
either a DeviceVerificationPayload or a ValidationFailure, never an exception.
"""

import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple, Union

logger = logging.getLogger(__name__)

SCHEME_PREFIX = 'pgprooms://verify/'

# Larger than any QR code can carry; longer bodies are refused before parsing
MAX_BODY_LENGTH = 8192

# Wire names of the required string fields, in serialization order
REQUIRED_FIELDS = ('fpr', 'userId', 'deviceLabel', 'publicKeyArmored')


@dataclass(frozen=True)
class DeviceVerificationPayload:
    fingerprint: str
    user_id: str
    device_label: str
    public_key_armored: str
    timestamp: int  # ms since epoch, producer-set

    def to_wire(self) -> dict:
        """Named-field wire mapping (fingerprint travels as `fpr`)."""
        return {
            'fpr': self.fingerprint,
            'userId': self.user_id,
            'deviceLabel': self.device_label,
            'publicKeyArmored': self.public_key_armored,
            'timestamp': self.timestamp,
        }

    def age_seconds(self, now_ms: Optional[int] = None) -> float:
        if now_ms is None:
            now_ms = current_millis()
        return max(0, now_ms - self.timestamp) / 1000

    def is_stale(self, max_age_seconds: Optional[int], now_ms: Optional[int] = None) -> bool:
        """Advisory only; decode() never rejects a payload for its age."""
        if max_age_seconds is None:
            return False
        return self.age_seconds(now_ms) > max_age_seconds


# ══════════════════════════════════════════════════
# FAILURES
# ══════════════════════════════════════════════════

class ValidationFailure:
    """Base for the reasons decode() can refuse a scanned string."""
    code = 'invalid_payload'
    retryable = False
    message = 'Invalid verification code.'

    def __bool__(self):
        return False

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self):
        return hash((type(self), tuple(sorted(vars(self).items()))))

    def __repr__(self):
        return f'{type(self).__name__}({vars(self)!r})'


class NotAPayload(ValidationFailure):
    """Scanned something that is not a verification code at all."""
    code = 'not_a_payload'
    retryable = True
    message = 'No verification data found.'


class MalformedPayload(ValidationFailure):
    """Prefix present but the body could not be decoded or parsed."""
    code = 'malformed_payload'
    retryable = True
    message = 'Could not read code. Try scanning again.'

    def __init__(self, reason=''):
        self.reason = reason


class IncompletePayload(ValidationFailure):
    """Structurally valid body missing required fields. Rescanning will not help."""
    code = 'incomplete_payload'
    retryable = False

    def __init__(self, missing_fields: Tuple[str, ...]):
        self.missing_fields = tuple(missing_fields)

    @property
    def message(self):
        return f'Verification code is missing: {", ".join(self.missing_fields)}.'


DecodeResult = Union[DeviceVerificationPayload, ValidationFailure]


# ══════════════════════════════════════════════════
# ENCODE
# ══════════════════════════════════════════════════

def current_millis() -> int:
    return int(time.time() * 1000)


def build_payload(fingerprint, user_id, device_label, public_key_armored) -> DeviceVerificationPayload:
    return DeviceVerificationPayload(
        fingerprint=fingerprint,
        user_id=str(user_id),
        device_label=device_label,
        public_key_armored=public_key_armored,
        timestamp=current_millis(),
    )


def serialize(payload: DeviceVerificationPayload) -> str:
    """
    Payload -> transport string.
    Encoding errors here are programming defects and propagate.
    """
    body = json.dumps(payload.to_wire(), separators=(',', ':'), ensure_ascii=False)
    encoded = base64.b64encode(body.encode('utf-8')).decode('ascii')
    return SCHEME_PREFIX + encoded


def encode(fingerprint, user_id, device_label, public_key_armored) -> str:
    """Build a fresh payload (timestamp = now) and serialize it."""
    return serialize(build_payload(fingerprint, user_id, device_label, public_key_armored))


# ══════════════════════════════════════════════════
# DECODE
# ══════════════════════════════════════════════════

def _b64decode(body: str) -> bytes:
    # Accept base64url and unpadded input as well as standard base64
    normalized = body.strip().replace('-', '+').replace('_', '/')
    normalized += '=' * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


def decode(qr_data) -> DecodeResult:
    """
    Transport string -> payload, or the reason it was refused.

    Returns:
        DeviceVerificationPayload on success, otherwise one of
        NotAPayload, MalformedPayload, IncompletePayload.
    """
    if not isinstance(qr_data, str) or not qr_data.startswith(SCHEME_PREFIX):
        logger.debug('Scanned data is not a verification payload')
        return NotAPayload()

    body = qr_data[len(SCHEME_PREFIX):]
    if len(body) > MAX_BODY_LENGTH:
        logger.info(f'Malformed verification payload: body of {len(body)} chars')
        return MalformedPayload('body too long')

    try:
        raw = _b64decode(body)
        data = json.loads(raw.decode('utf-8'))
    except (binascii.Error, ValueError, RecursionError) as e:
        # UnicodeDecodeError and JSONDecodeError are both ValueError;
        # deeply nested arrays/objects exhaust the parser stack
        logger.info(f'Malformed verification payload: {e}')
        return MalformedPayload(str(e))

    if not isinstance(data, dict):
        logger.info('Malformed verification payload: body is not an object')
        return MalformedPayload('body is not an object')

    missing = [f for f in REQUIRED_FIELDS if not isinstance(data.get(f), str) or not data.get(f)]
    if 'timestamp' not in data:
        missing.append('timestamp')
    if missing:
        logger.info(f'Incomplete verification payload, missing: {missing}')
        return IncompletePayload(tuple(missing))

    timestamp = data['timestamp']
    if isinstance(timestamp, float) and timestamp.is_integer():
        timestamp = int(timestamp)
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        logger.info(f'Malformed verification payload: bad timestamp {timestamp!r}')
        return MalformedPayload('timestamp is not an integer')

    return DeviceVerificationPayload(
        fingerprint=data['fpr'],
        user_id=data['userId'],
        device_label=data['deviceLabel'],
        public_key_armored=data['publicKeyArmored'],
        timestamp=timestamp,
    )


def is_failure(result: DecodeResult) -> bool:
    return isinstance(result, ValidationFailure)
