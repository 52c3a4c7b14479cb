"""
SimulatedHardware — HardwareInterface backed by a plant model.

``wait(period)`` advances simulated time, applies the environment at the new
time and lets the plant settle, so the next ``measure_*`` call sees the
operating point reached during the period. Optional Gaussian sensor noise and
fault injection (raise or NaN from a given read onwards) support tests of the
control loop's fault handling.
"""
import logging
from typing import Any, Callable, Dict, Optional

import numpy as np

from mppt.hardware import HardwareInterface

logger = logging.getLogger(__name__)

# env(t) -> {"g": float | [per-module], "t_mod": float}
EnvFunc = Callable[[float], Dict[str, Any]]


class SimulatedHardware(HardwareInterface):
    """Plant-backed hardware stand-in.

    Parameters
    plant : VoltagePlant | BoostPlant
        Converter model holding the PV array.
    env : callable, optional
        Environment at simulated time ``t``.
    noise_v, noise_i : float
        Standard deviation of additive sensor noise.
    seed : int, optional
        Seed for the noise generator.
    fail_at : int, optional
        Index of the first voltage read that fails.
    fail_mode : str
        "raise" (OSError from the read) or "nan" (non-finite reading).
    """

    def __init__(
        self,
        plant: Any,
        env: Optional[EnvFunc] = None,
        noise_v: float = 0.0,
        noise_i: float = 0.0,
        seed: Optional[int] = None,
        fail_at: Optional[int] = None,
        fail_mode: str = "raise",
    ):
        if fail_mode not in ("raise", "nan"):
            raise ValueError("fail_mode must be 'raise' or 'nan'")
        self.plant = plant
        self.env = env
        self.noise_v = float(noise_v)
        self.noise_i = float(noise_i)
        self.rng = np.random.default_rng(seed)
        self.fail_at = fail_at
        self.fail_mode = fail_mode
        self.t = 0.0
        self.reads = 0
        self.applied: list = []
        self._env_key = None
        # conditions at the time of the last voltage read
        self.measured: Dict[str, Any] = {}
        self._apply_env()
        self.plant.settle()

    # HardwareInterface
    def measure_voltage(self) -> float:
        k = self.reads
        self.reads += 1
        self.measured = self.snapshot()
        if self.fail_at is not None and k >= self.fail_at:
            if self.fail_mode == "raise":
                raise OSError(f"simulated ADC fault on read {k}")
            return float("nan")
        return float(self.plant.v + (self.rng.normal(0.0, self.noise_v) if self.noise_v > 0.0 else 0.0))

    def measure_current(self) -> float:
        return float(self.plant.i + (self.rng.normal(0.0, self.noise_i) if self.noise_i > 0.0 else 0.0))

    def apply_control(self, value: float) -> None:
        self.applied.append(float(value))
        self.plant.apply(value)

    def wait(self, period: float) -> None:
        self.t += float(period)
        self._apply_env()
        self.plant.settle()

    # Helpers
    def _apply_env(self) -> None:
        if self.env is None:
            return
        e = self.env(self.t)
        g = e.get("g", 1000.0)
        t_mod = e.get("t_mod")
        key = (tuple(g) if isinstance(g, (list, tuple)) else g, t_mod)
        if key != self._env_key:
            self.plant.array.set_conditions(g, t_mod)
            self._env_key = key
            logger.debug("t=%.4f s: environment -> g=%s t_mod=%s", self.t, g, t_mod)

    def snapshot(self) -> Dict[str, Any]:
        v_mpp, _, p_mpp = self.plant.array.mpp()
        return {
            "t": self.t,
            "g": self.plant.array.irradiances(),
            "p_mpp": p_mpp,
            "v_mpp": v_mpp,
        }


__all__ = ["SimulatedHardware", "EnvFunc"]
