"""
GenGate.

Admission control and asynchronous execution for generation requests.
"""

__version__ = "0.1.0"
