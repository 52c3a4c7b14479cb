"""
Base tracking interface
- Defines the abstract contract that all tracking engines must implement.

Design goals:
- Keep the API tiny and stable so trackers remain swappable.
- Keep trackers pure w.r.t. hardware I/O: read Sample -> return Action.
- All per-run memory lives in an explicit :class:`TrackingState` record owned
  by the instance, never in module globals, so several instances can run side
  by side.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .types import Action, Bounds, Sample, TrackingState


class Tracker(ABC):
    """Abstract base class for tracking engines (local hill-climbers).

    Attributes
    name : str
        Short, stable identifier (e.g., "pando", "inc_cond").
    bounds : Bounds
        Range of the operating point; every output is clamped into it.
    state : TrackingState
        Explicit per-run state, replaced on :meth:`reset`.
    """

    name: str = "base"
    supports_global_search: bool = False

    def __init__(self, lo: float = 0.0, hi: float = 1.0, start: Optional[float] = None) -> None:
        self.bounds = Bounds(float(lo), float(hi))
        self.start = self.bounds.mid if start is None else self.bounds.clamp(float(start))
        self.state = TrackingState()

    # ---- Optional frontend/introspection helpers (safe defaults) ----
    def describe(self) -> Dict[str, Any]:
        """Return UI metadata for tunable parameters."""
        return {"key": self.name, "label": self.name.upper(), "params": []}

    def get_config(self) -> Dict[str, Any]:
        """Return the current tunable parameters (for snapshots/replay)."""
        return {"lo": self.bounds.lo, "hi": self.bounds.hi, "start": self.start}

    def update_params(self, **kw: Any) -> None:
        """Apply parameter updates from the frontend."""
        if "lo" in kw or "hi" in kw:
            self.bounds = Bounds(float(kw.get("lo", self.bounds.lo)), float(kw.get("hi", self.bounds.hi)))
            self.start = self.bounds.clamp(self.start)
        if "start" in kw:
            self.start = self.bounds.clamp(float(kw["start"]))

    # ---- Lifecycle ----
    def reset(self) -> None:
        """Discard all per-run state; the next step starts from ``start``."""
        self.state = TrackingState()

    def seed(self, point: float) -> None:
        """Start tracking from an operating point handed over by a search."""
        self.reset()
        self.state.previous_point = self.bounds.clamp(float(point))

    @abstractmethod
    def step(self, sample: Sample) -> Action:
        """Compute the next operating point from the current sample.

        Parameters
        sample : Sample
            Measurement taken at the operating point returned last period.

        Returns
        Action
            The clamped operating point for the next period.
        """
        ...


__all__ = ["Tracker"]
