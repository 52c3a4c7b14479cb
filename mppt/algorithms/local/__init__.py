"""
Local (tracking) MPPT algorithms

Re-export the hill-climbing trackers so callers can import from
`mppt.algorithms.local` or via the package root.
"""
from __future__ import annotations

from ..types import Sample, Action
from ..base import Tracker
from .pando import PANDO, perturbation_direction
from .inc_cond import IncCond
from .step_policy import StepPolicy, FixedStep, SlopeStep, FuzzyStep, make_policy
from .detectors import OscillationDetector, IrradianceChangeDetector

__all__ = [
    "Sample", "Action", "Tracker",
    "PANDO", "IncCond", "perturbation_direction",
    "StepPolicy", "FixedStep", "SlopeStep", "FuzzyStep", "make_policy",
    "OscillationDetector", "IrradianceChangeDetector",
]
