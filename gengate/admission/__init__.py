"""
Admission module.

Contains the admission gate, its policy, and the window counters backing
rate limits and quotas.
"""

from gengate.admission.counters import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    WindowLimiter,
)
from gengate.admission.gate import AdmissionGate
from gengate.admission.policy import AdmissionPolicy

__all__ = [
    "AdmissionGate",
    "AdmissionPolicy",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "WindowLimiter",
]
