"""Metric extraction for Heliotrack MPPT benchmarking.

Converts per-period simulation records (emitted by `SimulationEngine.run()`)
into scalar metrics suitable for ranking MPPT variants.

Standalone: no UI, engine or controller imports.

Expected record schema:
  rec["t"]: float seconds
  rec["p"]: measured power [W]
  rec["p_mpp"]: optional float, global MPP power of the source at that time
  rec["eff"]: optional float, p / p_mpp

If some fields are missing, metrics degrade gracefully to None.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from statistics import mean
from typing import Any, Dict, List, Optional, Sequence, Tuple


Record = Dict[str, Any]


@dataclass
class MetricSummary:
    """Scalar metrics for one (variant, scenario) run."""

    energy_ratio: Optional[float] = None
    settle_time_s: Optional[float] = None
    t_disturb: Optional[float] = None
    recovery_settle_s: Optional[float] = None
    ripple_rms: Optional[float] = None
    mean_eff_tail: Optional[float] = None
    n_periods: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _safe_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _rms(xs: Sequence[float]) -> Optional[float]:
    if not xs:
        return None
    return float((sum(x * x for x in xs) / float(len(xs))) ** 0.5)


def _series(records: Sequence[Record], key: str) -> List[Tuple[float, float]]:
    out = []
    for rec in records:
        t, x = _safe_float(rec.get("t")), _safe_float(rec.get(key))
        if t is not None and x is not None:
            out.append((t, x))
    return out


def energy_ratio(records: Sequence[Record]) -> Optional[float]:
    """Captured energy / available GMPP energy (trapezoid integration)."""
    pts = []
    for rec in records:
        t, p, ref = (_safe_float(rec.get(key)) for key in ("t", "p", "p_mpp"))
        if t is not None and p is not None and ref is not None:
            pts.append((t, p, ref))
    if len(pts) < 2:
        return None
    e_ref = e_num = 0.0
    for (t0, p0, r0), (t1, p1, r1) in zip(pts, pts[1:]):
        dt = t1 - t0
        if dt <= 0:
            continue
        e_ref += 0.5 * (r0 + r1) * dt
        e_num += 0.5 * (p0 + p1) * dt
    if e_ref <= 1e-12:
        return None
    return float(e_num / e_ref)


def settle_time(records: Sequence[Record], *, threshold: float = 0.97, hold_time_s: float = 0.05) -> Optional[float]:
    """First time the efficiency stays >= threshold for hold_time_s."""
    pts = _series(records, "eff")
    for j, (t0, e0) in enumerate(pts):
        if e0 < threshold:
            continue
        for t, e in pts[j:]:
            if e < threshold:
                break
            if t - t0 >= hold_time_s:
                return float(t0)
    return None


def detect_disturb_time(records: Sequence[Record], *, rel: float = 0.05) -> Optional[float]:
    """Time of the first change of the available power by more than ``rel``."""
    pts = _series(records, "p_mpp")
    for (_, a), (t, b) in zip(pts, pts[1:]):
        if abs(b - a) > rel * max(abs(a), 1e-9):
            return float(t)
    return None


def ripple_rms(records: Sequence[Record], *, window_s: float = 0.1) -> Optional[float]:
    """RMS ripple of the measured power over the last window."""
    pts = _series(records, "p")
    if not pts:
        return None
    t0 = pts[-1][0] - window_s
    xs = [p for t, p in pts if t >= t0]
    if len(xs) < 3:
        return None
    mu = mean(xs)
    return _rms([x - mu for x in xs])


def compute_metrics(
    records: Sequence[Record],
    *,
    settle_threshold: float = 0.97,
    settle_hold_s: float = 0.05,
    ripple_window_s: float = 0.1,
) -> MetricSummary:
    """Compute the standard metric bundle from per-period records."""
    out = MetricSummary(n_periods=len(records))
    out.energy_ratio = energy_ratio(records)
    out.settle_time_s = settle_time(records, threshold=settle_threshold, hold_time_s=settle_hold_s)
    out.t_disturb = detect_disturb_time(records)
    if out.t_disturb is not None:
        post = [r for r in records if (_safe_float(r.get("t")) or 0.0) >= out.t_disturb]
        t_post = settle_time(post, threshold=settle_threshold, hold_time_s=settle_hold_s)
        if t_post is not None:
            out.recovery_settle_s = max(0.0, t_post - out.t_disturb)
    out.ripple_rms = ripple_rms(records, window_s=ripple_window_s)
    tail = _series(records, "eff")
    if tail:
        t0 = tail[-1][0] - ripple_window_s
        effs = [e for t, e in tail if t >= t0]
        out.mean_eff_tail = float(mean(effs)) if effs else None
    return out


__all__ = [
    "MetricSummary", "energy_ratio", "settle_time", "detect_disturb_time",
    "ripple_rms", "compute_metrics",
]
