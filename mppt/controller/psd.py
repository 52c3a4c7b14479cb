"""
PSD — Partial Shading Detector

Flags a probably multi-peaked P–V curve while the tracker is climbing, so the
supervisor can escalate from TRACKING to SEARCHING.

Votes:
  H1. Large |dP| while |dV| is tiny between the last two samples (the power
      moved without the operating point moving: the curve itself changed).
  H2. Conflicting dP/dV signs inside the window (the climber sees both slopes
      of a peak it is not sitting on).

PSC is declared when the number of votes reaches ``votes``. After a trigger
the detector stays quiet for ``cooldown`` samples.
"""
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict

from ..algorithms.types import Sample


@dataclass
class PSDConfig:
    dp_frac: float = 0.04   # |dP| threshold as a fraction of |P|
    dv_frac: float = 0.01   # "tiny" |dV| as a fraction of |V|
    window: int = 5         # samples kept for H2
    votes: int = 2          # votes needed to flag PSC
    cooldown: int = 0       # samples ignored after a trigger


class PSDDetector:
    """Low-cost partial shading detector over a short sample window.

    Parameters
    dp_frac : float
        Minimum |dP| / |P| for the H1 vote.
    dv_frac : float
        |dV| / |V| below which the voltage counts as unchanged for H1.
    window : int
        Samples kept for the H2 slope-sign check (>= 3).
    votes : int
        Positive votes required to flag PSC.
    cooldown : int
        Samples after a trigger during which no new trigger is reported.
    """

    def __init__(self, dp_frac: float = 0.04, dv_frac: float = 0.01, window: int = 5, votes: int = 2, cooldown: int = 0):
        if window < 3:
            raise ValueError("window must be >= 3")
        self.cfg = PSDConfig(dp_frac=float(dp_frac), dv_frac=float(dv_frac), window=int(window),
                             votes=max(1, int(votes)), cooldown=max(0, int(cooldown)))
        self.buf: Deque[Sample] = deque(maxlen=self.cfg.window)
        self._quiet = 0

    # Lifecycle
    def reset(self) -> None:
        self.buf.clear()
        self._quiet = 0

    # Streaming API
    def update(self, s: Sample) -> bool:
        """Append a sample and return the PSC decision."""
        self.buf.append(s)
        if self._quiet > 0:
            self._quiet -= 1
            return False
        if self.is_psc():
            self._quiet = self.cfg.cooldown
            self.buf.clear()
            return True
        return False

    def h1(self) -> bool:
        a, b = self.buf[-2], self.buf[-1]
        v_scale = max(abs(b.v), 1.0)
        still = abs(b.v - a.v) <= self.cfg.dv_frac * v_scale
        return still and abs(b.p - a.p) >= self.cfg.dp_frac * max(abs(b.p), 1.0)

    def h2(self) -> bool:
        seen = set()
        samples = list(self.buf)
        for a, b in zip(samples, samples[1:]):
            dv = b.v - a.v
            if abs(dv) < 1e-9:
                continue
            dp = b.p - a.p
            if dp == 0.0:
                continue
            seen.add((dp > 0.0) == (dv > 0.0))
        return len(seen) == 2

    def is_psc(self) -> bool:
        """True if the current window indicates partial shading (needs >= 3 samples)."""
        if len(self.buf) < 3:
            return False
        return int(self.h1()) + int(self.h2()) >= self.cfg.votes

    # Frontend helpers
    def describe(self) -> Dict[str, Any]:
        return {
            "key": "psd",
            "label": "PSD Detector",
            "params": [
                {"name": "dp_frac", "type": "number", "min": 0.001, "max": 0.5, "step": 0.001, "default": self.cfg.dp_frac, "help": "|dP|/P threshold for H1"},
                {"name": "dv_frac", "type": "number", "min": 0.001, "max": 0.2, "step": 0.001, "default": self.cfg.dv_frac, "help": "|dV|/V small-change threshold"},
                {"name": "window", "type": "integer", "min": 3, "max": 100, "step": 1, "default": self.cfg.window},
                {"name": "votes", "type": "integer", "min": 1, "max": 2, "step": 1, "default": self.cfg.votes},
                {"name": "cooldown", "type": "integer", "min": 0, "max": 1000, "step": 1, "default": self.cfg.cooldown},
            ],
        }

    def get_config(self) -> Dict[str, Any]:
        return asdict(self.cfg)

    def update_params(self, **kw: Any) -> None:
        for k in ("dp_frac", "dv_frac"):
            if k in kw:
                setattr(self.cfg, k, float(kw[k]))
        if "votes" in kw:
            self.cfg.votes = max(1, int(kw["votes"]))
        if "cooldown" in kw:
            self.cfg.cooldown = max(0, int(kw["cooldown"]))
        if "window" in kw:
            w = max(3, int(kw["window"]))
            if w != self.cfg.window:
                self.cfg.window = w
                self.buf = deque(self.buf, maxlen=w)


__all__ = ["PSDDetector", "PSDConfig"]
