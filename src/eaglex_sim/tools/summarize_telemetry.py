from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Sequence

from eaglex_sim.models.records import TelemetrySnapshot
from eaglex_sim.storage.telemetry_recorder import load_telemetry


def summarize(snapshots: Sequence[TelemetrySnapshot]) -> Dict[str, Any]:
    """Aggregates one exported telemetry file into a few headline numbers."""
    if not snapshots:
        return {"samples": 0}
    speeds = [snapshot.speed_kph for snapshot in snapshots]
    first, last = snapshots[0], snapshots[-1]
    return {
        "samples": len(snapshots),
        "agents": sorted({snapshot.agent_id for snapshot in snapshots}),
        "first_tick": first.tick,
        "last_tick": last.tick,
        "max_lap": max(snapshot.lap for snapshot in snapshots),
        "avg_speed_kph": sum(speeds) / len(speeds),
        "max_speed_kph": max(speeds),
        "max_rotor_temp": max(snapshot.rotor_temp for snapshot in snapshots),
        "battery_soc_start": first.battery_soc,
        "battery_soc_end": last.battery_soc,
    }


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Summarize exported per-agent telemetry files (CSV or Parquet)."
    )
    parser.add_argument("files", nargs="+", type=Path, help="Telemetry files written at session end.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    for path in args.files:
        summary = summarize(load_telemetry(path))
        if not summary["samples"]:
            print(f"[TELEMETRY] {path}: no samples")
            continue
        print(
            f"[TELEMETRY] {path}: samples={summary['samples']} "
            f"ticks={summary['first_tick']}-{summary['last_tick']} lap={summary['max_lap']} "
            f"avg_speed={summary['avg_speed_kph']:.1f}kph max_speed={summary['max_speed_kph']:.1f}kph "
            f"rotor_max={summary['max_rotor_temp']:.0f} "
            f"soc={summary['battery_soc_start']:.1f}->{summary['battery_soc_end']:.1f}"
        )


if __name__ == "__main__":
    main()
