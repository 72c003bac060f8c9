from __future__ import annotations

import argparse
from pathlib import Path

from eaglex_sim.models.track import TRACKS_BY_MODE
from eaglex_sim.session.loader import SessionLoader
from eaglex_sim.storage.sqlite_store import SqliteStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create a simulation session in the local SQLite store and seed its roster."
    )
    parser.add_argument("--db", default="data/eaglex.sqlite", help="Path to the SQLite store.")
    parser.add_argument(
        "--mode",
        default="formula_e",
        choices=sorted(TRACKS_BY_MODE),
        help="Racing mode; picks the default track.",
    )
    parser.add_argument("--track", default="", help="Track id (defaults to the mode's track).")
    parser.add_argument("--agents", type=int, default=6, help="Number of agents (2-20).")
    parser.add_argument(
        "--driver-style",
        default="balanced",
        choices=["aggressive", "balanced", "conservative"],
        help="Style of the first driver.",
    )
    parser.add_argument("--energy-target", type=float, default=70.0, help="Energy target of the first driver.")
    parser.add_argument("--tire", default="medium", help="Tire compound of the first car.")
    parser.add_argument("--regen", default="auto", help="Regen strategy of the first car.")
    parser.add_argument("--speed", type=float, default=1.0, help="Initial speed multiplier.")
    parser.add_argument(
        "--no-agents",
        action="store_true",
        help="Only create the simulation record; agents are created on first load.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    db_path = Path(args.db)
    store = SqliteStore(db_path)
    loader = SessionLoader(store)
    simulation = loader.create(
        mode=args.mode,
        track_id=args.track.strip() or None,
        settings={
            "num_agents": args.agents,
            "driver_style": args.driver_style,
            "energy_target": args.energy_target,
            "tire_compound": args.tire,
            "regen_strategy": args.regen,
        },
        speed_multiplier=args.speed,
    )
    agents = 0
    if not args.no_agents:
        agents = len(loader.load(simulation.id or "").agents)
    print(f"[SESSION] id={simulation.id} agents={agents} db={db_path}")
    print(f"[SESSION] run it with EAGLEX_SIMULATION_ID={simulation.id} eaglex-sim")


if __name__ == "__main__":
    main()
