"""
Fingerprint key generation utilities.

Sandi Metz Principles:
- Single Responsibility: Hash generation
- Small functions: Each does one thing
- Pure functions: No side effects
"""

import hashlib
import json
from typing import Any, Mapping

FINGERPRINT_PREFIX = "gen:"


def canonical_json(content: Mapping[str, Any]) -> str:
    """
    Serialize content in a canonical form.

    Args:
        content: Normalized request content

    Returns:
        JSON with sorted keys and no insignificant whitespace

    Raises:
        TypeError: If content is not JSON serializable
        ValueError: If content contains NaN or infinity
    """
    return json.dumps(
        content, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )


def generate_fingerprint_key(canonical: str) -> str:
    """
    Generate fingerprint key for canonical content.

    Args:
        canonical: Canonical serialized content

    Returns:
        Fingerprint key (gen:sha256hash)

    Raises:
        UnicodeEncodeError: If content holds unpaired surrogates
    """
    hash_value = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{FINGERPRINT_PREFIX}{hash_value}"


def generate_hits_key(fingerprint: str) -> str:
    """
    Generate key for storing cache hit counters.

    Args:
        fingerprint: Fingerprint key

    Returns:
        Hit counter key
    """
    return f"hits:{fingerprint}"
