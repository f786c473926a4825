"""
Admission control package for the chat gateway.
"""

from .gate import AdmissionGate

__all__ = ["AdmissionGate"]
