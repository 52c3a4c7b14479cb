"""
ControlLoop — sample -> decide -> actuate -> wait

Strictly sequential periods: one period's decision completes (including the
settling wait inside :meth:`SamplerActuator.actuate`) before the next sample
is taken. The external stop signal is only looked at on period boundaries,
and a stop re-applies the last committed value rather than aborting mid-way.

Sensor, actuation and safety faults are fatal: the loop holds the last safe
value, logs the fault and ends with the fault as its reason.

Usage:
    loop = ControlLoop(Supervisor(cfg), SamplerActuator(hw, bounds))
    result = loop.run(max_periods=500)
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..algorithms.types import Action, Sample
from ..errors import ActuationError, SafetyFault, SensorError
from ..hardware import SamplerActuator

logger = logging.getLogger(__name__)

# Loop end reasons
MAX_PERIODS = "max_periods"
STOPPED = "stopped"
SENSOR_FAULT = "sensor_fault"
ACTUATION_FAULT = "actuation_fault"
SAFETY_FAULT = "safety_fault"


@dataclass
class LoopResult:
    """Outcome of :meth:`ControlLoop.run`."""

    periods: int
    reason: str
    last_value: Optional[float] = None
    error: Optional[str] = None
    records: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def faulted(self) -> bool:
        return self.reason in (SENSOR_FAULT, ACTUATION_FAULT, SAFETY_FAULT)


class ControlLoop:
    """Single-threaded periodic control loop.

    Parameters
    controller
        Anything with ``step(sample) -> Action``: a :class:`Supervisor` or a bare
        tracker.
    io : SamplerActuator
        Exclusive owner of the hardware interface.
    stop_event : threading.Event, optional
        External stop signal, checked once per period boundary.
    on_record : callable, optional
        Called with each period's record (telemetry sink).
    """

    def __init__(
        self,
        controller: Any,
        io: SamplerActuator,
        stop_event: Optional[threading.Event] = None,
        on_record: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.controller = controller
        self.io = io
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.on_record = on_record
        self.periods = 0
        self.reason: Optional[str] = None
        self.error: Optional[str] = None

    def stop(self) -> None:
        """Request a stop at the next period boundary (thread-safe)."""
        self.stop_event.set()

    def iterate(self, max_periods: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """Run periods and yield one record per completed period.

        On exit ``self.reason`` tells why the loop ended.
        """
        self.reason = None
        self.error = None
        done = 0
        while max_periods is None or done < max_periods:
            if self.stop_event.is_set():
                self._finish(STOPPED)
                return
            try:
                s = self.io.sample()
                a = self.controller.step(s)
                applied = self.io.actuate(a.value)
            except SensorError as e:
                self._fault(SENSOR_FAULT, e)
                return
            except SafetyFault as e:
                self._fault(SAFETY_FAULT, e)
                return
            except ActuationError as e:
                self._fault(ACTUATION_FAULT, e)
                return
            done += 1
            self.periods += 1
            rec = self._record(s, a, applied)
            if self.on_record is not None:
                self.on_record(rec)
            yield rec
        self.reason = MAX_PERIODS

    def run(self, max_periods: int, keep_records: bool = True) -> LoopResult:
        records = []
        for rec in self.iterate(max_periods):
            if keep_records:
                records.append(rec)
        return LoopResult(
            periods=len(records) if keep_records else self.periods,
            reason=self.reason or MAX_PERIODS,
            last_value=self.io.last_value,
            error=self.error,
            records=records,
        )

    # Internals
    def _record(self, s: Sample, a: Action, applied: float) -> Dict[str, Any]:
        rec = s.to_dict()
        rec.update({
            "u": applied,
            "settled": a.settled,
            "disturbed": a.disturbed,
            "state": a.debug.get("state") if a.debug else None,
        })
        return rec

    def _finish(self, reason: str) -> None:
        self.reason = reason
        held = self.io.hold()
        logger.info("control loop %s after %d periods (holding %s)", reason, self.periods, held)

    def _fault(self, reason: str, err: Exception) -> None:
        self.error = str(err)
        logger.error("control loop fault (%s): %s", reason, err)
        try:
            self._finish(reason)
        except ActuationError as e:
            # the fault stands; the failed hold is reported alongside it
            self.error = f"{err}; {e}"
            logger.error("could not hold last value: %s", e)


__all__ = [
    "ControlLoop", "LoopResult",
    "MAX_PERIODS", "STOPPED", "SENSOR_FAULT", "ACTUATION_FAULT", "SAFETY_FAULT",
]
