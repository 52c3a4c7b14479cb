"""
Core types for MPPT algorithms

Small dataclasses shared by the tracking engines, the global search engines
and the supervisor. Keep this file stable to avoid churn across the codebase.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# JSON-friendly value type used by debug/meta payloads
JSONValue = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]

NEG_INF = float("-inf")


class TrackMode(str, Enum):
    """States of a tracking engine."""

    PERTURBING = "PERTURBING"
    STEADY = "STEADY"


class Mode(str, Enum):
    """States of the mode supervisor."""

    SEARCHING = "SEARCHING"
    TRACKING = "TRACKING"


@dataclass(frozen=True)
class Sample:
    """One sampling period's measurement of the PV source.

    Parameters
    voltage : float
        Measured PV voltage [V].
    current : float
        Measured PV current [A].
    index : int
        Sampling period index (monotonic within a run).

    ``power`` is derived once from ``voltage * current`` and cannot be passed
    in, so a sample never carries a power inconsistent with its V/I.
    """

    voltage: float
    current: float
    index: int = 0
    power: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "voltage", float(self.voltage))
        object.__setattr__(self, "current", float(self.current))
        object.__setattr__(self, "power", self.voltage * self.current)

    # Short aliases used by the control laws
    @property
    def v(self) -> float:
        return self.voltage

    @property
    def i(self) -> float:
        return self.current

    @property
    def p(self) -> float:
        return self.power

    def is_finite(self) -> bool:
        return math.isfinite(self.voltage) and math.isfinite(self.current)

    def to_dict(self) -> Dict[str, JSONValue]:
        return {
            "k": self.index,
            "v": self.voltage,
            "i": self.current,
            "p": self.power,
        }


@dataclass(frozen=True)
class Bounds:
    """Closed range ``[lo, hi]`` of the operating point (duty, V_ref or I_ref)."""

    lo: float
    hi: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lo) and math.isfinite(self.hi)):
            raise ValueError("bounds must be finite")
        if self.lo > self.hi:
            raise ValueError(f"lower bound {self.lo} exceeds upper bound {self.hi}")

    @property
    def span(self) -> float:
        return self.hi - self.lo

    @property
    def mid(self) -> float:
        return 0.5 * (self.lo + self.hi)

    def clamp(self, x: float) -> float:
        """Saturate ``x`` into the range. NaN saturates to the lower bound."""
        if x != x:
            return self.lo
        return self.lo if x < self.lo else self.hi if x > self.hi else float(x)

    def contains(self, x: float) -> bool:
        return self.lo <= x <= self.hi


@dataclass
class Action:
    """Engine output for one control period.

    Parameters
    value : float
        Operating point to apply next period (already clamped).
    settled : bool
        True when a global search has converged and ``value`` is its best.
    disturbed : bool
        True when the engine detected an irradiance/environment change.
    debug : Dict[str, JSONValue]
        Telemetry entries to log with this action.
    """

    value: float
    settled: bool = False
    disturbed: bool = False
    debug: Dict[str, JSONValue] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, JSONValue]:
        return {
            "value": self.value,
            "settled": self.settled,
            "disturbed": self.disturbed,
            "debug": self.debug,
        }


@dataclass
class Candidate:
    """One member of a global-search population."""

    position: float
    fitness: Optional[float] = None
    best_position: Optional[float] = None
    best_fitness: float = NEG_INF
    velocity: float = 0.0
    evaluated: bool = False
    sample: Optional[Sample] = None

    def record(self, sample: Sample) -> None:
        """Attribute a measurement taken at ``position`` to this candidate."""
        self.sample = sample
        self.fitness = sample.power
        self.evaluated = True

    def move(self, position: float) -> None:
        """Relocate; a moved candidate must be evaluated again."""
        if position != self.position:
            self.position = position
            self.evaluated = False
            self.fitness = None
            self.sample = None


@dataclass
class Population:
    """Ordered, fixed-size collection of candidates plus search bookkeeping.

    ``state`` holds strategy-specific scan data (zone windows, etc.).
    """

    candidates: List[Candidate]
    bounds: Bounds
    iteration: int = 0
    best_position: Optional[float] = None
    best_fitness: float = NEG_INF
    prev_best_position: Optional[float] = None
    prev_best_fitness: float = NEG_INF
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.candidates)

    def pending(self) -> List[int]:
        """Indices of candidates whose current position has no fitness yet."""
        return [k for k, c in enumerate(self.candidates) if not c.evaluated]

    def positions(self) -> List[float]:
        return [c.position for c in self.candidates]


@dataclass
class TrackingState:
    """State carried across periods by a tracking engine."""

    previous_sample: Optional[Sample] = None
    previous_point: Optional[float] = None
    step_size: float = 0.0
    oscillation_counter: int = 0
    mode: TrackMode = TrackMode.PERTURBING
    direction: int = 1
    hold_count: int = 0
    best_point: Optional[float] = None
    best_power: float = NEG_INF
    steady_point: Optional[float] = None
    steady_sample: Optional[Sample] = None


@dataclass
class SupervisorState:
    """Run-long supervisor state.

    ``best_known_power`` only grows within a search episode; :meth:`new_episode`
    is the one place it is reset.
    """

    active_mode: Mode = Mode.SEARCHING
    best_known_point: Optional[float] = None
    best_known_power: float = NEG_INF
    episode: int = 0

    def offer(self, point: Optional[float], power: float) -> bool:
        if point is None or not power > self.best_known_power:
            return False
        self.best_known_point = float(point)
        self.best_known_power = float(power)
        return True

    def new_episode(self) -> None:
        self.episode += 1
        self.best_known_point = None
        self.best_known_power = NEG_INF

    def to_dict(self) -> Dict[str, JSONValue]:
        return {
            "mode": self.active_mode.value,
            "best_known_point": self.best_known_point,
            "best_known_power": None if self.best_known_power == NEG_INF else self.best_known_power,
            "episode": self.episode,
        }


__all__ = [
    "JSONValue", "NEG_INF",
    "TrackMode", "Mode",
    "Sample", "Bounds", "Action",
    "Candidate", "Population",
    "TrackingState", "SupervisorState",
]
