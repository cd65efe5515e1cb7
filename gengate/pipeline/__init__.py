"""
Request processing pipeline module.

Contains request processing components:
- Prompt Normalizer
- Fingerprint Engine
"""

from gengate.pipeline.fingerprint import (
    UNKEYABLE,
    FingerprintEngine,
    FingerprintKey,
    fingerprint,
)
from gengate.pipeline.normalizer import PromptNormalizer, normalize_prompt

__all__ = [
    "UNKEYABLE",
    "FingerprintEngine",
    "FingerprintKey",
    "fingerprint",
    "PromptNormalizer",
    "normalize_prompt",
]
