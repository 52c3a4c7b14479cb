"""Environment scenarios for tracker benchmarks.

A scenario is a name plus an ``env_profile`` handed straight to
``SimulationConfig``: ``None`` for standard test conditions throughout, or a
list of events sorted by time. An event changes the environment from its
``t`` onward and holds until the next one:

    {"t": 0.25, "g": 450.0}                              uniform irradiance [W/m^2]
    {"t": 0.25, "g_modules": [1000, 1000, 400, 400]}     per-module irradiance
    {"t": 0.25, "t_mod": 60.0}                           module temperature [°C]

Per-module lists must match the array's module count. Nothing here imports
the engine or the controller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

Profile = Optional[List[Dict[str, Any]]]


def event(
    t: float,
    *,
    g: Optional[float] = None,
    t_mod: Optional[float] = None,
    g_modules: Optional[Sequence[float]] = None,
) -> Dict[str, Any]:
    ev: Dict[str, Any] = {"t": float(t)}
    for key, val in (("g", g), ("t_mod", t_mod)):
        if val is not None:
            ev[key] = float(val)
    if g_modules is not None:
        ev["g_modules"] = [float(x) for x in g_modules]
    return ev


def _by_time(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(events, key=lambda ev: ev["t"])


@dataclass(frozen=True)
class Scenario:
    name: str
    env_profile: Profile
    description: str = ""


# Profile builders

def steady() -> Profile:
    return None


def step_irradiance(*, t_step: float = 0.25, g0: float = 1000.0, g1: float = 450.0) -> Profile:
    """Sudden uniform irradiance drop (single-peak curve throughout)."""
    return [event(0.0, g=g0), event(t_step, g=g1)]


def irradiance_ramp(*, t0: float = 0.1, t1: float = 0.4, g0: float = 300.0, g1: float = 1000.0,
                    steps: int = 15) -> Profile:
    """Staircase approximation of a slow uniform ramp from g0 to g1."""
    out = [event(0.0, g=g0)]
    for n in range(1, steps + 1):
        frac = n / steps
        out.append(event(t0 + frac * (t1 - t0), g=g0 + frac * (g1 - g0)))
    return out


def cloud_flicker(*, g_high: float = 1000.0, g_low: float = 300.0, period_s: float = 0.15,
                  t_total: float = 0.6) -> Profile:
    """Square-wave irradiance: half a period bright, half a period dim."""
    half = 0.5 * period_s
    n_events = 0
    while n_events * half < t_total:
        n_events += 1
    return [event(n * half, g=g_low if n % 2 else g_high) for n in range(n_events)]


def temp_step(*, t_step: float = 0.25, t0: float = 25.0, t1: float = 60.0, g: float = 1000.0) -> Profile:
    return [event(0.0, g=g, t_mod=t0), event(t_step, t_mod=t1)]


def partial_shading_step(*, t_step: float = 0.25, g_uniform: float = 1000.0,
                         shaded: Sequence[float] = (1000.0, 1000.0, 400.0, 400.0)) -> Profile:
    """Uniform sun, then half the string shaded: a second P-V peak appears."""
    return [event(0.0, g=g_uniform), event(t_step, g_modules=shaded)]


def partial_shading_toggle(*, t_switch: float = 0.25,
                           pattern_a: Sequence[float] = (1000.0, 900.0, 350.0, 300.0),
                           pattern_b: Sequence[float] = (1000.0, 300.0, 300.0, 250.0)) -> Profile:
    """Shading pattern change under an already-shaded string."""
    return [event(0.0, g_modules=pattern_a), event(t_switch, g_modules=pattern_b)]


_CATALOG: Dict[str, Callable[[], Profile]] = {
    "steady": steady,
    "step_g_down": step_irradiance,
    "irradiance_ramp": irradiance_ramp,
    "cloud_flicker": cloud_flicker,
    "temp_step": temp_step,
    "partial_shading_step": partial_shading_step,
    "partial_shading_toggle": partial_shading_toggle,
}


def _describe(builder: Callable[[], Profile]) -> str:
    doc = (builder.__doc__ or "").strip()
    return doc.splitlines()[0] if doc else builder.__name__.replace("_", " ")


def default_scenarios() -> List[Scenario]:
    return [get_scenario(name) for name in _CATALOG]


def list_scenarios() -> List[str]:
    return list(_CATALOG)


def get_scenario(name: str) -> Scenario:
    try:
        build = _CATALOG[name]
    except KeyError:
        raise KeyError(f"Unknown scenario '{name}'. Available: {list_scenarios()}") from None
    prof = build()
    return Scenario(name, _by_time(prof) if prof else None, _describe(build))


__all__ = [
    "event", "Scenario",
    "steady", "step_irradiance", "irradiance_ramp", "cloud_flicker", "temp_step",
    "partial_shading_step", "partial_shading_toggle",
    "default_scenarios", "list_scenarios", "get_scenario",
]
