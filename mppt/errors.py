"""
Error types for the MPPT control core.

Ordinary control flow never raises: numeric singularities fall back to a
sentinel and out-of-range references are clamped. Exceptions are reserved for
conditions that must stop the control loop (sensor, actuation and safety
faults) and for invalid configuration.
"""
from __future__ import annotations

from typing import Optional


class MPPTError(Exception):
    """Base class for all control-core errors."""


class SensorError(MPPTError):
    """A measurement could not be taken or returned a non-finite value.

    The control loop treats this as fatal: it stops and holds the last safe
    control value.
    """

    def __init__(self, message: str, channel: Optional[str] = None):
        super().__init__(message)
        self.channel = channel


class ActuationError(MPPTError):
    """The hardware rejected or failed to apply a control value."""


class SafetyFault(MPPTError):
    """A sample violated the configured safety limits.

    ``code`` is one of the short fault codes from
    :mod:`mppt.controller.safety` (e.g. ``"OVP"``).
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or f"safety limit violated: {code}")
        self.code = code


__all__ = ["MPPTError", "SensorError", "ActuationError", "SafetyFault"]
