"""
Simulation engine for Heliotrack.

This module glues together:
- the PV source model (`simulators.pv.PVArray`) behind a converter plant,
- the mode supervisor (`mppt.controller.Supervisor`),
- and the production control loop (`mppt.controller.ControlLoop`) talking to
  a `SimulatedHardware` instead of a real converter.

The goal is to have one place that:
1. builds a default test array and plant,
2. runs the control loop for N periods under an environment profile,
3. emits JSON-friendly dicts (so scripts and the CLI can plot or save them),
   including the GMPP reference and the per-period tracking efficiency.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Optional

from mppt.controller import ControlLoop, Supervisor, SupervisorConfig
from mppt.hardware import SamplerActuator
from simulators.hardware import SimulatedHardware
from simulators.plant import make_plant
from simulators.pv import PVArray

logger = logging.getLogger(__name__)


# Simulation config
@dataclass
class SimulationConfig:
    periods: int = 600             # control periods to run
    dt: float = 1e-3               # control / sample period [s]
    plant: str = "voltage"         # "voltage" (V_ref) or "boost" (duty)
    modules: int = 4               # series modules, one bypass diode each
    module_kwargs: Dict[str, Any] = field(default_factory=dict)
    plant_kwargs: Dict[str, Any] = field(default_factory=dict)
    irradiance: float = 1000.0     # W/m^2
    temperature_c: float = 25.0    # deg C

    # Time-ordered events (see benchmarks.scenarios for the schema)
    env_profile: Optional[List[Dict[str, Any]]] = None

    # Controller: a full SupervisorConfig, or tracker/search names with defaults
    supervisor: Optional[SupervisorConfig] = None
    tracker: str = "pando"
    search: Optional[str] = "pso"
    probe: bool = False

    # Sensor model
    noise_v: float = 0.0
    noise_i: float = 0.0
    seed: Optional[int] = None

    # Optional: per-record callback for loggers
    on_sample: Optional[Callable[[Dict[str, Any]], None]] = None

    def env_at(self, t: float) -> Dict[str, Any]:
        """Environment at time ``t``: last event with ``event["t"] <= t`` (stepwise hold)."""
        g: Any = self.irradiance
        t_mod = self.temperature_c
        for ev in self.env_profile or []:
            if float(ev.get("t", 0.0)) > t:
                break
            if "g_modules" in ev:
                g = list(ev["g_modules"])
            elif "g" in ev:
                g = float(ev["g"])
            if "t_mod" in ev:
                t_mod = float(ev["t_mod"])
        return {"g": g, "t_mod": t_mod}

    def build_array(self) -> PVArray:
        array = PVArray(self.modules, **self.module_kwargs)
        env = self.env_at(0.0)
        array.set_conditions(env["g"], env["t_mod"])
        return array

    def build_plant(self, array: PVArray):
        return make_plant(self.plant, array, **self.plant_kwargs)

    def build_supervisor(self, plant) -> Supervisor:
        if self.supervisor is not None:
            return Supervisor(self.supervisor)
        return Supervisor(default_supervisor_config(plant, self.tracker, self.search, probe=self.probe))


def default_supervisor_config(plant, tracker: str = "pando", search: Optional[str] = "pso",
                              probe: bool = False) -> SupervisorConfig:
    """Supervisor settings scaled to the plant's control range and polarity."""
    lo, hi = plant.control_range()
    span = hi - lo
    tracker_kwargs: Dict[str, Any] = {"step": 0.01 * span, "polarity": plant.polarity}
    if tracker in ("pando", "p&o", "po"):
        tracker_kwargs.update({"eps": 0.05, "steady_window": 8, "steady_threshold": 2, "change_threshold": 0.1})
    search_kwargs: Dict[str, Any] = {}
    if search in ("zone_scan", "zone"):
        if plant.kind != "voltage":
            raise ValueError("zone_scan needs a voltage-reference plant")
        search_kwargs = {"modules": plant.array.n_modules, "v_module": plant.array.modules[0].voc_ref}
    # forcing the extreme that shorts the array: high duty (boost) or V_ref = 0
    probe_value = (hi if plant.polarity < 0 else lo) if probe else None
    return SupervisorConfig(
        tracker_name=tracker,
        tracker_kwargs=tracker_kwargs,
        search_name=search,
        search_kwargs=search_kwargs,
        lo=lo,
        hi=hi,
        probe=probe_value,
    )


# Engine
class SimulationEngine:
    """
    Period-stepped MPPT simulation.

    Usage:
        cfg = SimulationConfig(periods=400)
        eng = SimulationEngine(cfg)

        # Simple blocking loop (CLI / scripts):
        for rec in eng.run():
            print(rec)

        # Or step-wise:
        eng.start()
        while True:
            rec = eng.step()
            if rec is None:
                break
    """

    def __init__(self, cfg: SimulationConfig):
        self.cfg = cfg
        self.array = cfg.build_array()
        self.plant = cfg.build_plant(self.array)
        self.supervisor = cfg.build_supervisor(self.plant)
        self.hw = SimulatedHardware(
            self.plant,
            env=cfg.env_at,
            noise_v=cfg.noise_v,
            noise_i=cfg.noise_i,
            seed=cfg.seed,
        )
        self.io = SamplerActuator(self.hw, self.supervisor.bounds, period=cfg.dt)
        self.stop_event = threading.Event()
        self.loop = ControlLoop(self.supervisor, self.io, stop_event=self.stop_event)
        self.on_sample = cfg.on_sample
        self._iter: Optional[Generator[Dict[str, Any], None, None]] = None

    def start(self) -> None:
        """Prepare step-wise simulation (see :meth:`step`)."""
        self._iter = self.run()

    def step(self) -> Optional[Dict[str, Any]]:
        """Advance one period; returns the record or None when finished."""
        if self._iter is None:
            self.start()
        try:
            return next(self._iter)
        except StopIteration:
            return None

    def stop(self) -> None:
        self.stop_event.set()

    @property
    def reason(self) -> Optional[str]:
        return self.loop.reason

    def run(self) -> Generator[Dict[str, Any], None, None]:
        """Run the control loop and yield JSON-friendly dicts per period."""
        for rec in self.loop.iterate(self.cfg.periods):
            out = self._to_record(rec, self.hw.measured)
            if self.on_sample is not None:
                self.on_sample(out)
            yield out
        logger.info("simulation finished: %s after %d periods", self.loop.reason, self.loop.periods)

    @staticmethod
    def _to_record(rec: Dict[str, Any], env: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(rec)
        p_mpp = float(env.get("p_mpp", 0.0))
        out.update({
            "t": env.get("t"),
            "g": env.get("g"),
            "p_mpp": p_mpp,
            "v_mpp": env.get("v_mpp"),
            "eff": (out["p"] / p_mpp) if p_mpp > 0.0 else None,
        })
        return out


__all__ = ["SimulationConfig", "SimulationEngine", "default_supervisor_config"]
