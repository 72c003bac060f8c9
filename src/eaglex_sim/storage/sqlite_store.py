from __future__ import annotations

import json
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import AIStrategy, Car, Driver, MechanicalEvent, Simulation, TelemetrySnapshot
from eaglex_sim.storage.base import SimulationStore, StoreError

# Entity tables share one layout: id, simulation_id, JSON document.
_DOCUMENT_TABLES = ("simulations", "drivers", "cars", "agents", "events", "strategies")

_SIMULATION_FIELDS = {"mode", "track_id", "settings", "status", "sim_time", "speed_multiplier"}


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class SqliteStore(SimulationStore):
    """SQLite-backed entity store for local sessions."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            for table in _DOCUMENT_TABLES:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        simulation_id TEXT,
                        document TEXT NOT NULL,
                        created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
                    )
                    """
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_simulation ON {table} (simulation_id)"
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS telemetry (
                    simulation_id TEXT NOT NULL,
                    agent_id TEXT NOT NULL,
                    tick INTEGER NOT NULL,
                    x REAL, y REAL, heading REAL,
                    lap INTEGER, sector INTEGER,
                    speed_kph REAL, throttle REAL, brake_pressure REAL,
                    rotor_temp REAL, hub_temp REAL, battery_soc REAL,
                    tire_temp_fl REAL, tire_temp_fr REAL, tire_temp_rl REAL, tire_temp_rr REAL,
                    regen_power REAL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_telemetry_sim_agent_tick
                ON telemetry (simulation_id, agent_id, tick)
                """
            )

    def _insert_document(self, table: str, document: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(document)
        document["id"] = document.get("id") or _new_id()
        simulation_id = document["id"] if table == "simulations" else document.get("simulation_id")
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO {table} (id, simulation_id, document) VALUES (?, ?, ?)",
                    (document["id"], simulation_id, json.dumps(document, ensure_ascii=True)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"insert into {table} failed: {exc}") from exc
        return document

    def _select_documents(self, table: str, simulation_id: str) -> List[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT document FROM {table} WHERE simulation_id = ? ORDER BY rowid",
                    (simulation_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"select from {table} failed: {exc}") from exc
        return [json.loads(row["document"]) for row in rows]

    def create_simulation(self, simulation: Simulation) -> Simulation:
        return Simulation.from_dict(self._insert_document("simulations", simulation.to_dict()))

    def get_simulation(self, simulation_id: str) -> Optional[Simulation]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT document FROM simulations WHERE id = ?",
                    (simulation_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"select simulation {simulation_id} failed: {exc}") from exc
        if row is None:
            return None
        return Simulation.from_dict(json.loads(row["document"]))

    def update_simulation(self, simulation_id: str, changes: Dict[str, Any]) -> None:
        unknown = set(changes) - _SIMULATION_FIELDS
        if unknown:
            raise StoreError(f"unknown simulation fields: {sorted(unknown)}")
        current = self.get_simulation(simulation_id)
        if current is None:
            raise StoreError(f"simulation {simulation_id} not found")
        document = current.to_dict()
        document.update({key: getattr(value, "value", value) for key, value in changes.items()})
        try:
            with self._connect() as conn:
                conn.execute(
                    "UPDATE simulations SET document = ? WHERE id = ?",
                    (json.dumps(document, ensure_ascii=True), simulation_id),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"update simulation {simulation_id} failed: {exc}") from exc

    def list_agents(self, simulation_id: str) -> List[AgentState]:
        return [AgentState.from_dict(doc) for doc in self._select_documents("agents", simulation_id)]

    def create_driver(self, driver: Driver) -> Driver:
        return Driver(**self._insert_document("drivers", driver.to_dict()))

    def create_car(self, car: Car) -> Car:
        return Car(**self._insert_document("cars", car.to_dict()))

    def create_agent(self, agent: AgentState) -> AgentState:
        return AgentState.from_dict(self._insert_document("agents", agent.to_dict()))

    def create_event(self, event: MechanicalEvent) -> MechanicalEvent:
        return MechanicalEvent.from_dict(self._insert_document("events", event.to_dict()))

    def list_events(self, simulation_id: str) -> List[MechanicalEvent]:
        return [MechanicalEvent.from_dict(doc) for doc in self._select_documents("events", simulation_id)]

    def create_strategy(self, strategy: AIStrategy) -> AIStrategy:
        return AIStrategy.from_dict(self._insert_document("strategies", strategy.to_dict()))

    def list_strategies(self, simulation_id: str) -> List[AIStrategy]:
        return [AIStrategy.from_dict(doc) for doc in self._select_documents("strategies", simulation_id)]

    def bulk_create_telemetry(self, snapshots: Sequence[TelemetrySnapshot]) -> int:
        rows = [snapshot.to_dict() for snapshot in snapshots]
        if not rows:
            return 0
        try:
            with self._connect() as conn:
                conn.executemany(
                    """
                    INSERT INTO telemetry (
                        simulation_id, agent_id, tick, x, y, heading, lap, sector,
                        speed_kph, throttle, brake_pressure, rotor_temp, hub_temp, battery_soc,
                        tire_temp_fl, tire_temp_fr, tire_temp_rl, tire_temp_rr, regen_power
                    ) VALUES (
                        :simulation_id, :agent_id, :tick, :x, :y, :heading, :lap, :sector,
                        :speed_kph, :throttle, :brake_pressure, :rotor_temp, :hub_temp, :battery_soc,
                        :tire_temp_fl, :tire_temp_fr, :tire_temp_rl, :tire_temp_rr, :regen_power
                    )
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise StoreError(f"telemetry bulk insert failed: {exc}") from exc
        return len(rows)

    def count_telemetry(self, simulation_id: str) -> int:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) AS total FROM telemetry WHERE simulation_id = ?",
                    (simulation_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"telemetry count failed: {exc}") from exc
        return int(row["total"]) if row else 0
