"""
Levy-flight population search (cuckoo / HSMA-style update)

Each candidate restarts from its personal best and jumps by a Levy-distributed
step scaled by its distance to the global best, so far-away candidates make
long exploratory jumps while the leader barely moves. A fraction ``pa`` of the
candidates is abandoned each iteration and redrawn uniformly over the range.

Levy steps use Mantegna's algorithm:
    sigma = [G(1+b) sin(pi b / 2) / (G((1+b)/2) b 2^((b-1)/2))]^(1/b)
    step  = u / |v|^(1/b),  u ~ N(0, sigma^2),  v ~ N(0, 1)
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

import numpy as np
from scipy.special import gamma

from ..types import Population
from .base import PopulationSearch, UpdateRule


def mantegna_sigma(beta: float) -> float:
    """Scale of the numerator normal in Mantegna's Levy step."""
    num = gamma(1.0 + beta) * math.sin(math.pi * beta / 2.0)
    den = gamma((1.0 + beta) / 2.0) * beta * 2.0 ** ((beta - 1.0) / 2.0)
    return float((num / den) ** (1.0 / beta))


class LevyRule(UpdateRule):
    """Levy-flight update around personal bests.

    Parameters
    beta : float
        Levy exponent in (0, 2]; 1.5 is the common choice.
    alpha : float
        Step scale.
    pa : float
        Probability that a candidate is abandoned and redrawn.
    min_scale : float
        Minimum jump scale as a fraction of the span (keeps the leader alive).
    """

    kind = "levy"

    def __init__(self, beta: float = 1.5, alpha: float = 0.5, pa: float = 0.25, min_scale: float = 0.01) -> None:
        if not 0.0 < beta <= 2.0:
            raise ValueError("beta must be in (0, 2]")
        self.beta = float(beta)
        self.alpha = float(alpha)
        self.pa = float(pa)
        self.min_scale = float(min_scale)
        self.sigma = mantegna_sigma(self.beta)

    def levy(self, rng: np.random.Generator) -> float:
        u = rng.normal(0.0, self.sigma)
        v = rng.normal(0.0, 1.0)
        return float(u / max(abs(v), 1e-12) ** (1.0 / self.beta))

    def update(self, pop: Population, rng: np.random.Generator, progress: float) -> List[float]:
        g = pop.best_position
        span = pop.bounds.span
        out: List[float] = []
        for c in pop.candidates:
            base = c.best_position if c.best_position is not None else c.position
            if g is not None and base != g and rng.random() < self.pa:
                out.append(float(rng.uniform(pop.bounds.lo, pop.bounds.hi)))
                continue
            dist = base - g if g is not None else 0.0
            scale = max(abs(dist), self.min_scale * span)
            direction = 1.0 if dist >= 0.0 else -1.0
            # shrink the flights as the budget runs out
            shrink = 1.0 - 0.5 * progress
            out.append(base + shrink * self.alpha * self.levy(rng) * scale * direction)
        return out

    def get_config(self) -> Dict[str, Any]:
        return {"beta": self.beta, "alpha": self.alpha, "pa": self.pa, "min_scale": self.min_scale}


class LevySearch(PopulationSearch):
    """Population search driven by :class:`LevyRule`."""

    name = "levy"

    def __init__(
        self,
        beta: float = 1.5,
        alpha: float = 0.5,
        pa: float = 0.25,
        min_scale: float = 0.01,
        max_iter: int = 20,
        pos_tol: float = 0.01,
        fit_tol: float = 0.01,
        spread_tol: Optional[float] = 0.05,
        init: str = "even",
        seed: Optional[int] = 7,
    ) -> None:
        rule = LevyRule(beta, alpha, pa, min_scale)
        super().__init__(rule, max_iter, pos_tol, fit_tol, spread_tol, init, seed)

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.name,
            "label": "Levy flight",
            "params": [
                {"name": "beta", "type": "number", "min": 0.1, "max": 2.0, "step": 0.05, "default": self.rule.beta},
                {"name": "alpha", "type": "number", "min": 0.0, "max": 2.0, "step": 0.01, "default": self.rule.alpha},
                {"name": "pa", "type": "number", "min": 0.0, "max": 1.0, "step": 0.01, "default": self.rule.pa, "help": "abandon probability"},
                {"name": "max_iter", "type": "integer", "min": 1, "max": 200, "step": 1, "default": self.max_iter},
            ],
        }


__all__ = ["LevySearch", "LevyRule", "mantegna_sigma"]
