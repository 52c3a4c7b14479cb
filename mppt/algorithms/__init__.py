"""
Heliotrack MPPT algorithms package

Thin re-export layer for the public API. Keep this file minimal; algorithms
live in their own modules. Import from here for stability.
"""
from __future__ import annotations

from .types import Sample, Action, Bounds, Candidate, Population, TrackingState, SupervisorState, TrackMode, Mode
from .base import Tracker

# Tracking engines
from .local.pando import PANDO  # classic P&O
from .local.inc_cond import IncCond

# Global searches
from .global_search.base import GlobalSearch, PopulationSearch
from .global_search.pso import PSO
from .global_search.levy import LevySearch
from .global_search.zone_scan import ZoneScan
from .global_search.engine import GlobalSearchEngine

# Registry helpers
from .registry import build, available, register, get_class, is_search, catalog

__all__ = [
    "Sample", "Action", "Bounds", "Candidate", "Population",
    "TrackingState", "SupervisorState", "TrackMode", "Mode",
    "Tracker", "GlobalSearch", "PopulationSearch",
    # algorithms
    "PANDO", "IncCond", "PSO", "LevySearch", "ZoneScan",
    "GlobalSearchEngine",
    # registry
    "build", "available", "register", "get_class", "is_search", "catalog",
]
