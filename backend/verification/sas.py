"""
SecureRooms — Short Authentication String (SAS)
===============================================
Six-character code both devices show on screen after a QR scan.

Algorithm:
1. Sort the two fingerprints lexicographically
2. Concatenate them in sorted order
3. Encode as UTF-8 (fixed, never the platform default)
4. SHA-256
5. Lowercase hex, first 6 characters, uppercased

Sorting makes derive(A, B) == derive(B, A): each device only knows
"mine" and "theirs". 6 hex chars = 24 bits, short enough to read aloud.
"""

import hmac
import logging

from asgiref.sync import sync_to_async
from cryptography.exceptions import InternalError, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)

SAS_LENGTH = 6


class DigestUnavailable(RuntimeError):
    """
    The digest primitive failed. Infrastructure fault, not bad input:
    the verification attempt must stop, no weaker fallback.
    """


def _sha256(data: bytes) -> bytes:
    try:
        digest = hashes.Hash(hashes.SHA256())
        digest.update(data)
        return digest.finalize()
    except (UnsupportedAlgorithm, InternalError) as e:
        logger.error(f'SHA-256 unavailable for SAS derivation: {e}')
        raise DigestUnavailable('SHA-256 digest unavailable') from e


def derive_short_auth_string(fingerprint_a: str, fingerprint_b: str) -> str:
    """
    Derive the SAS for a pair of device fingerprints.

    Fingerprints are used exactly as given; they are expected to be
    canonicalized already by key management (case, separators).

    Returns: 6 uppercase hex characters
    Raises: DigestUnavailable
    """
    first, second = sorted([fingerprint_a, fingerprint_b])
    combined = (first + second).encode('utf-8')
    return _sha256(combined).hex()[:SAS_LENGTH].upper()


async def aderive_short_auth_string(fingerprint_a: str, fingerprint_b: str) -> str:
    """Async variant for ASGI callers; same result, same DigestUnavailable."""
    return await sync_to_async(derive_short_auth_string, thread_sensitive=False)(
        fingerprint_a, fingerprint_b
    )


def sas_matches(sas_a: str, sas_b: str) -> bool:
    """Compare two SAS values in constant time (case-insensitive)."""
    return hmac.compare_digest(sas_a.strip().upper().encode(), sas_b.strip().upper().encode())
