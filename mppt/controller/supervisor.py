"""
Supervisor — SEARCHING/TRACKING mode state machine

Owns one tracking engine and (optionally) one global search engine and
decides, every period, which of them drives the operating point.

Transitions
    SEARCHING -> TRACKING   the search converged; its best position seeds the
                            tracker
    TRACKING  -> SEARCHING  the tracker reports an irradiance change, or the
                            partial-shading detector fires

Discrimination probe (optional, ``probe`` set): an irradiance-change report is
not trusted blindly. The supervisor forces the probe control value (e.g. a
high duty, close to short circuit) for one period and compares the measured
current with the reference taken the same way after the last search:

    |I - I_ref| / |I_ref| >  probe_tol  -> shading pattern changed: re-search
    |I - I_ref| / |I_ref| <= probe_tol  -> ordinary load step: keep tracking

The reference is measured with the same forced value right after each
search converges. Without a reference the probe always re-searches.

Without a search stage (``search_name=None``) the supervisor stays in TRACKING
and the tracker's own return to PERTURBING handles irradiance changes.

Safety limits are checked before anything else; a violation is recorded as a
``safety_trip`` event and raised as :class:`~mppt.errors.SafetyFault`.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

from ..algorithms.base import Tracker
from ..algorithms.common import relative_change
from ..algorithms.global_search.base import GlobalSearch
from ..algorithms.global_search.engine import GlobalSearchEngine
from ..algorithms.registry import build
from ..algorithms.types import Action, Bounds, Mode, Sample, SupervisorState
from ..errors import SafetyFault
from .psd import PSDDetector
from .safety import OK, SafetyLimits, check_limits


@dataclass
class SupervisorConfig:
    """Configuration for :class:`Supervisor`.

    Algorithms are selected by registry name plus constructor kwargs. The
    operating-point range ``lo``/``hi`` is shared by both engines.
    """

    tracker_name: str = "pando"
    tracker_kwargs: Dict[str, Any] = field(default_factory=dict)
    search_name: Optional[str] = "pso"
    search_kwargs: Dict[str, Any] = field(default_factory=dict)

    lo: float = 0.0
    hi: float = 1.0
    population: int = 4
    initial_mode: str = Mode.SEARCHING.value
    restart_threshold: float = 0.25

    # Partial shading detector kwargs (None disables it)
    psd: Optional[Dict[str, Any]] = None
    # Discrimination probe: forced control value (None disables it) and tolerance
    probe: Optional[float] = None
    probe_tol: float = 0.1
    # SafetyLimits kwargs (None disables the checks)
    safety: Optional[Dict[str, Any]] = None

    def copy(self) -> "SupervisorConfig":
        """Independent copy; the kwargs dicts are not shared with the original."""
        return replace(
            self,
            tracker_kwargs=dict(self.tracker_kwargs),
            search_kwargs=dict(self.search_kwargs),
            psd=None if self.psd is None else dict(self.psd),
            safety=None if self.safety is None else dict(self.safety),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SupervisorConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown supervisor config keys: {sorted(unknown)}")
        return cls(**d)

    @classmethod
    def from_json(cls, path: str) -> "SupervisorConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


class Supervisor:
    """Mode supervisor driving one tracker and one optional global search."""

    def __init__(self, cfg: Optional[SupervisorConfig] = None):
        # live updates must not leak into the caller's config or other supervisors
        self.cfg = cfg.copy() if cfg is not None else SupervisorConfig()
        self.bounds = Bounds(float(self.cfg.lo), float(self.cfg.hi))
        try:
            self.initial_mode = Mode(str(self.cfg.initial_mode).upper())
        except ValueError:
            raise ValueError(f"initial_mode must be one of {[m.value for m in Mode]}") from None

        tracker_kwargs = {"lo": self.bounds.lo, "hi": self.bounds.hi}
        tracker_kwargs.update(self.cfg.tracker_kwargs)
        self.tracker = build(self.cfg.tracker_name, **tracker_kwargs)
        if not isinstance(self.tracker, Tracker):
            raise TypeError(f"'{self.cfg.tracker_name}' is not a tracking engine")

        self.engine: Optional[GlobalSearchEngine] = None
        if self.cfg.search_name:
            search = build(self.cfg.search_name, **self.cfg.search_kwargs)
            if not isinstance(search, GlobalSearch):
                raise TypeError(f"'{self.cfg.search_name}' is not a global search")
            self.engine = GlobalSearchEngine(
                search, self.bounds.lo, self.bounds.hi, self.cfg.population, self.cfg.restart_threshold
            )

        self.psd = PSDDetector(**self.cfg.psd) if self.cfg.psd is not None else None
        self.limits = SafetyLimits.from_dict(self.cfg.safety) if self.cfg.safety is not None else None
        # Event log (state changes, detector triggers, probes, safety trips)
        self.events: List[Dict[str, Any]] = []
        self.reset()

    # Lifecycle
    def reset(self) -> None:
        mode = self.initial_mode if self.engine is not None else Mode.TRACKING
        self.state = SupervisorState(active_mode=mode)
        self.tracker.reset()
        if self.engine is not None:
            self.engine.reset()
        if self.psd is not None:
            self.psd.reset()
        self._last_sample: Optional[Sample] = None
        self._last_value: Optional[float] = None
        self._probe_phase: Optional[str] = None
        self._probe_return: Optional[float] = None
        self._i_ref: Optional[float] = None

    @property
    def mode(self) -> Mode:
        return self.state.active_mode

    # Core step
    def step(self, sample: Sample) -> Action:
        """Consume the sample measured at the last output and return the next one."""
        self._check_safety(sample)
        if self._last_value is not None:
            self.state.offer(self._last_value, sample.power)

        if self._probe_phase is not None:
            a = self._probe_step(sample)
        elif self.state.active_mode is Mode.SEARCHING:
            a = self._search_step(sample)
        else:
            a = self._track_step(sample)

        a.value = self.bounds.clamp(a.value)
        self._last_sample = sample
        self._last_value = a.value
        return self._with_state(a)

    # States
    def _search_step(self, s: Sample) -> Action:
        a = self.engine.step(s)
        for ev in self.engine.get_events():
            if ev.get("type") == "search_restart":
                self.state.new_episode()
            self.events.append(ev)
        if not a.settled:
            return a

        best = a.value
        self._set_mode(Mode.TRACKING, s.index, reason="converged")
        self.tracker.seed(best)
        if self.psd is not None:
            self.psd.reset()
        if self.cfg.probe is not None:
            return self._start_probe("reference", best, s.index)
        return Action(value=best, settled=True, debug=dict(a.debug))

    def _track_step(self, s: Sample) -> Action:
        a = self.tracker.step(s)
        psc = self.psd.update(s) if self.psd is not None else False
        if self.engine is None:
            if a.disturbed:
                self.events.append({"k": s.index, "type": "irradiance_change", "handled": "tracker"})
            return a
        if psc:
            self.events.append({"k": s.index, "type": "psd_trigger"})
            return self._start_search("psd", s)
        if a.disturbed:
            self.events.append({"k": s.index, "type": "irradiance_change"})
            if self.cfg.probe is not None:
                back = self._last_value if self._last_value is not None else a.value
                return self._start_probe("discriminate", back, s.index)
            return self._start_search("irradiance_change", s)
        return a

    def _probe_step(self, s: Sample) -> Action:
        phase, back = self._probe_phase, self._probe_return
        self._probe_phase = None
        self._probe_return = None

        if phase == "reference":
            self._i_ref = s.current
            self.events.append({"k": s.index, "type": "probe_reference", "i_ref": s.current})
            self.tracker.seed(back)
            return Action(value=back, settled=True, debug={"phase": "probe_reference", "i": s.current})

        dev = None if self._i_ref is None else relative_change(s.current, self._i_ref)
        shading = dev is None or dev > self.cfg.probe_tol
        self.events.append({
            "k": s.index,
            "type": "probe_result",
            "i": s.current,
            "i_ref": self._i_ref,
            "deviation": dev,
            "verdict": "shading_change" if shading else "load_step",
        })
        if shading:
            return self._start_search("shading_change", s)
        self.tracker.seed(back)
        return Action(value=back, debug={"phase": "probe_resume", "i": s.current, "deviation": dev})

    # Transitions
    def _start_probe(self, phase: str, back: float, k: int) -> Action:
        self._probe_phase = phase
        self._probe_return = self.bounds.clamp(back)
        self.events.append({"k": k, "type": "probe", "phase": phase, "value": self.cfg.probe})
        return Action(value=float(self.cfg.probe), debug={"phase": f"probe_{phase}"})

    def _start_search(self, reason: str, s: Sample) -> Action:
        self.state.new_episode()
        self.tracker.reset()
        if self.psd is not None:
            self.psd.reset()
        self.engine.restart(reason, s.index)
        self.events.extend(self.engine.get_events())
        self._set_mode(Mode.SEARCHING, s.index, reason=reason)
        a = self.engine.step(s)
        a.disturbed = True
        return a

    def _set_mode(self, mode: Mode, k: int, reason: str) -> None:
        old = self.state.active_mode
        if old is mode:
            return
        self.state.active_mode = mode
        self.events.append({"k": k, "type": "state_change", "from": old.value, "to": mode.value, "reason": reason})

    def _check_safety(self, s: Sample) -> None:
        if self.limits is None:
            return
        code = check_limits(s, self.limits, self._last_sample)
        if code != OK:
            self.events.append({"k": s.index, "type": "safety_trip", "fault": code, "v": s.v, "i": s.i})
            raise SafetyFault(code)

    # Helpers
    def _with_state(self, a: Action) -> Action:
        dbg = dict(a.debug) if a.debug else {}
        dbg["state"] = self.state.active_mode.value
        dbg["episode"] = self.state.episode
        a.debug = dbg
        return a

    # ---- Frontend helpers ----
    def get_state(self) -> str:
        return self.state.active_mode.value

    def get_snapshot(self) -> Dict[str, Any]:
        snap = self.state.to_dict()
        snap.update({
            "last_value": self._last_value,
            "probe_phase": self._probe_phase,
            "i_ref": self._i_ref,
            "tracker_mode": self.tracker.state.mode.value,
        })
        return snap

    def get_events(self, clear: bool = True) -> List[Dict[str, Any]]:
        """Return accumulated events; clear by default for streaming semantics."""
        ev = list(self.events)
        if clear:
            self.events.clear()
        return ev

    def describe(self) -> Dict[str, Any]:
        out = {"tracker": self.tracker.describe()}
        if self.engine is not None:
            out["search"] = self.engine.describe()
        if self.psd is not None:
            out["psd"] = self.psd.describe()
        if self.limits is not None:
            out["safety"] = self.limits.describe()
        out["supervisor"] = {
            "key": "supervisor",
            "label": "Supervisor",
            "params": [
                {"name": "probe", "type": "number", "default": self.cfg.probe, "help": "forced value for the discrimination probe"},
                {"name": "probe_tol", "type": "number", "min": 0.0, "max": 1.0, "step": 0.01, "default": self.cfg.probe_tol},
            ],
        }
        return out

    def get_config(self) -> Dict[str, Any]:
        return {
            "names": {"tracker": self.cfg.tracker_name, "search": self.cfg.search_name},
            "tracker": self.tracker.get_config(),
            "search": None if self.engine is None else self.engine.get_config(),
            "psd": None if self.psd is None else self.psd.get_config(),
            "safety": None if self.limits is None else self.limits.to_dict(),
            "probe": self.cfg.probe,
            "probe_tol": self.cfg.probe_tol,
            "initial_mode": self.initial_mode.value,
        }

    def update_params(self, section: str, **kw: Any) -> None:
        """Apply live updates to 'tracker' | 'search' | 'psd' | 'safety' | 'supervisor'."""
        sec = section.lower()
        if sec == "tracker":
            self.tracker.update_params(**kw)
        elif sec == "search":
            if self.engine is None:
                raise KeyError("no search stage configured")
            self.engine.update_params(**kw)
        elif sec == "psd":
            if self.psd is None:
                self.psd = PSDDetector(**kw)
            else:
                self.psd.update_params(**kw)
        elif sec == "safety":
            if self.limits is None:
                self.limits = SafetyLimits()
            self.limits.update(**kw)
        elif sec == "supervisor":
            if "probe" in kw:
                self.cfg.probe = None if kw["probe"] is None else float(kw["probe"])
            if "probe_tol" in kw:
                self.cfg.probe_tol = float(kw["probe_tol"])
        else:
            raise KeyError(f"Unknown section '{section}'")


__all__ = ["Supervisor", "SupervisorConfig"]
