"""
Global search strategies

Population metaheuristics (PSO, Levy flight) and the zone scan share the
:class:`GlobalSearch` contract; :class:`GlobalSearchEngine` runs any of them
against the plant one candidate per period.
"""
from __future__ import annotations

from .base import GlobalSearch, UpdateRule, PopulationSearch, update_bests, second_best
from .pso import PSO, PSORule
from .levy import LevySearch, LevyRule, mantegna_sigma
from .zone_scan import ZoneScan
from .engine import GlobalSearchEngine

__all__ = [
    "GlobalSearch", "UpdateRule", "PopulationSearch",
    "update_bests", "second_best",
    "PSO", "PSORule",
    "LevySearch", "LevyRule", "mantegna_sigma",
    "ZoneScan", "GlobalSearchEngine",
]
