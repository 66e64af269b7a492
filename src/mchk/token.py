"""Probe token generation.

A token goes into the probe's Subject header and is the exact search key on
the mailbox side, so it has to be unguessable and unique per test execution.
"""

import hashlib
import secrets

from mchk.exceptions import TokenGenerationError

ENTROPY_BYTES = 32


def generate_token(seed: str = "") -> str:
    """Return a fresh hex token.

    Args:
        seed: Optional value mixed into the digest (the relay host is used by
            the orchestrator). It adds no entropy of its own.

    Raises:
        TokenGenerationError: If the OS cannot provide secure randomness.
    """
    try:
        entropy = secrets.token_bytes(ENTROPY_BYTES)
    except (NotImplementedError, OSError) as e:
        raise TokenGenerationError(f"Secure random source unavailable: {e}") from e

    digest = hashlib.sha256()
    digest.update(seed.encode("utf-8"))
    digest.update(entropy)
    return digest.hexdigest()
