"""
mppt_sim.py

Command-line runner for MPPT experiments.

It focuses on:
- choosing the tracker / global search pair (via the registry names),
- choosing the plant model and environment scenario,
- running the control loop for a fixed number of periods,
- printing a summary and optionally writing CSV / a plot.

Examples
--------
# default: P&O + PSO on a voltage-reference plant, steady sun
python -m simulators.mppt_sim

# zone scan under partial shading, CSV out
python -m simulators.mppt_sim --search zone_scan --profile partial_shading_step --csv run.csv

# boost duty control with incremental conductance and no search stage
python -m simulators.mppt_sim --plant boost --tracker inc_cond --search none
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from benchmarks.metrics import compute_metrics
from benchmarks.scenarios import get_scenario, list_scenarios
from mppt.algorithms import registry as mppt_registry
from mppt.controller import SupervisorConfig
from simulators.engine import SimulationConfig, SimulationEngine, default_supervisor_config
from simulators.plant import make_plant
from simulators.pv import PVArray

logger = logging.getLogger("simulators.mppt_sim")


def _flatten(rec: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten list-valued fields (per-module irradiance) for CSV rows."""
    row = {}
    for k, v in rec.items():
        if isinstance(v, (list, tuple)):
            for j, x in enumerate(v):
                row[f"{k}{j}"] = x
        else:
            row[k] = v
    return row


def write_csv(records: Sequence[Dict[str, Any]], path: str) -> Path:
    out_path = Path(path)
    if out_path.parent and not out_path.parent.exists():
        out_path.parent.mkdir(parents=True, exist_ok=True)
    rows = [_flatten(r) for r in records]
    fieldnames: List[str] = []
    for r in rows:
        for k in r:
            if k not in fieldnames:
                fieldnames.append(k)
    with out_path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return out_path


def plot_records(records: Sequence[Dict[str, Any]], path: str, title: str = "") -> Path:
    """Save a power / control plot of the run."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    t = [r["t"] for r in records]
    fig, (ax_p, ax_u) = plt.subplots(2, 1, sharex=True, figsize=(9, 6))
    ax_p.plot(t, [r["p"] for r in records], label="P")
    ax_p.plot(t, [r["p_mpp"] for r in records], "--", label="P_gmpp")
    ax_p.set_ylabel("Power [W]")
    ax_p.legend(loc="lower right")
    ax_u.plot(t, [r["u"] for r in records], color="tab:green")
    ax_u.set_ylabel("Control")
    ax_u.set_xlabel("Time [s]")
    if title:
        ax_p.set_title(title)
    fig.tight_layout()
    out_path = Path(path)
    fig.savefig(out_path)
    plt.close(fig)
    return out_path


def load_supervisor_config(path: str, plant_kind: str, tracker: str, search: Optional[str],
                           modules: int = 4, probe: bool = False) -> SupervisorConfig:
    """Plant-scaled defaults (command-line choices included) overridden by the keys of a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        overrides = json.load(f)
    array = PVArray(modules)
    base = default_supervisor_config(make_plant(plant_kind, array), tracker, search, probe=probe).to_dict()
    base.update(overrides)
    return SupervisorConfig.from_dict(base)


def run_mppt_sim(
    tracker: str = "pando",
    search: Optional[str] = "pso",
    plant: str = "voltage",
    profile_name: str = "steady",
    periods: int = 600,
    dt: float = 1e-3,
    modules: int = 4,
    probe: bool = False,
    config_path: Optional[str] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """Run one scenario; returns {"records", "events", "metrics", "reason"}."""
    scenario = get_scenario(profile_name)
    sup_cfg = None
    if config_path:
        sup_cfg = load_supervisor_config(config_path, plant, tracker, search, modules, probe=probe)
    cfg = SimulationConfig(
        periods=periods,
        dt=dt,
        plant=plant,
        modules=modules,
        env_profile=scenario.env_profile,
        supervisor=sup_cfg,
        tracker=tracker,
        search=search,
        probe=probe,
    )
    eng = SimulationEngine(cfg)
    records = []
    for rec in eng.run():
        records.append(rec)
        if verbose:
            print(rec)
    events = eng.supervisor.get_events()
    for ev in events:
        logger.debug("event %s", ev)
    return {
        "records": records,
        "events": events,
        "metrics": compute_metrics(records),
        "reason": eng.reason,
    }


def _parse_search(name: str) -> Optional[str]:
    return None if name.lower() in ("none", "off", "") else name


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a single MPPT simulation.")
    parser.add_argument("--tracker", type=str, default="pando",
                        help=f"Tracking engine ({', '.join(k for k in mppt_registry.available() if not mppt_registry.is_search(k))})")
    parser.add_argument("--search", type=str, default="pso",
                        help="Global search (pso, levy, zone_scan) or 'none'")
    parser.add_argument("--plant", type=str, default="voltage", choices=["voltage", "boost"],
                        help="Converter model: voltage reference or boost duty")
    parser.add_argument("--profile", type=str, default="steady", choices=list_scenarios(),
                        help="Environment scenario")
    parser.add_argument("--periods", type=int, default=600, help="Control periods to run")
    parser.add_argument("--dt", type=float, default=1e-3, help="Control period (s)")
    parser.add_argument("--modules", type=int, default=4, help="Series modules in the array")
    parser.add_argument("--probe", action="store_true", help="Enable the short-circuit discrimination probe")
    parser.add_argument("--config", type=str, default=None, help="JSON file with SupervisorConfig overrides")
    parser.add_argument("--csv", type=str, default=None, help="Path to write CSV results")
    parser.add_argument("--plot", type=str, default=None, help="Path to save a PNG plot")
    parser.add_argument("--quiet", action="store_true", help="Do not print each record")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    search = _parse_search(args.search)
    try:
        out = run_mppt_sim(
            tracker=args.tracker,
            search=search,
            plant=args.plant,
            profile_name=args.profile,
            periods=args.periods,
            dt=args.dt,
            modules=args.modules,
            probe=args.probe,
            config_path=args.config,
            verbose=not args.quiet,
        )
    except (KeyError, TypeError, ValueError) as e:
        print(f"[mppt_sim] {e}", file=sys.stderr)
        return 2

    records = out["records"]
    if args.csv and records:
        path = write_csv(records, args.csv)
        print(f"[mppt_sim] CSV written to {path}")
    if args.plot and records:
        path = plot_records(records, args.plot, title=f"{args.tracker} + {search or 'no search'} / {args.profile}")
        print(f"[mppt_sim] plot written to {path}")

    m = out["metrics"]
    print(f"[mppt_sim] {len(records)} periods ({out['reason']}), "
          f"energy ratio={m.energy_ratio if m.energy_ratio is None else round(m.energy_ratio, 4)}, "
          f"settle={m.settle_time_s}, events={len(out['events'])}")
    return 0 if out["reason"] in ("max_periods", "stopped") else 1


if __name__ == "__main__":
    sys.exit(main())
