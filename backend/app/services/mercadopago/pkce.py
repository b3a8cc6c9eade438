"""PKCE (Proof Key for Code Exchange, RFC 7636) verifier and challenge generation."""

import base64
import hashlib
import re
import secrets
from dataclasses import dataclass

from app.core.exceptions import CryptoUnavailable

VERIFIER_MIN_LENGTH = 43
VERIFIER_MAX_LENGTH = 128
CHALLENGE_METHOD = "S256"

# RFC 7636 unreserved characters
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


def is_valid_verifier(verifier: str) -> bool:
    return bool(_VERIFIER_PATTERN.match(verifier))


def generate_verifier(length: int = VERIFIER_MAX_LENGTH) -> str:
    """Random URL-safe verifier of ``length`` characters.

    Draws 3 bytes per 4 output characters from the OS CSPRNG, so even the
    shortest allowed verifier carries more than 128 bits of entropy.
    """
    if not VERIFIER_MIN_LENGTH <= length <= VERIFIER_MAX_LENGTH:
        raise ValueError(
            f"Verifier length must be between {VERIFIER_MIN_LENGTH} and {VERIFIER_MAX_LENGTH}"
        )
    try:
        verifier = secrets.token_urlsafe(length * 3 // 4 + 1)
    except NotImplementedError as e:
        raise CryptoUnavailable("No secure random source available") from e
    return verifier[:length]


def compute_challenge(verifier: str) -> str:
    """base64url(SHA-256(verifier)) without padding."""
    try:
        digest = hashlib.new("sha256", verifier.encode("utf-8")).digest()
    except ValueError as e:
        raise CryptoUnavailable("SHA-256 is not available") from e
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce() -> PKCEPair:
    verifier = generate_verifier()
    return PKCEPair(verifier=verifier, challenge=compute_challenge(verifier))
