from __future__ import annotations

import copy
import uuid
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence

from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import (
    AIStrategy,
    Car,
    Driver,
    MechanicalEvent,
    Simulation,
    SimulationStatus,
    TelemetrySnapshot,
)
from eaglex_sim.storage.base import SimulationStore, StoreError


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class InMemoryStore(SimulationStore):
    """Process-local store used by the mock backend and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._simulations: Dict[str, Simulation] = {}
        self._drivers: Dict[str, Driver] = {}
        self._cars: Dict[str, Car] = {}
        self._agents: Dict[str, AgentState] = {}
        self._events: List[MechanicalEvent] = []
        self._strategies: List[AIStrategy] = []
        self._telemetry: List[TelemetrySnapshot] = []

    def create_simulation(self, simulation: Simulation) -> Simulation:
        stored = copy.deepcopy(simulation)
        stored.id = stored.id or _new_id()
        with self._lock:
            self._simulations[stored.id] = stored
        return copy.deepcopy(stored)

    def get_simulation(self, simulation_id: str) -> Optional[Simulation]:
        with self._lock:
            simulation = self._simulations.get(simulation_id)
            return copy.deepcopy(simulation) if simulation is not None else None

    def update_simulation(self, simulation_id: str, changes: Dict[str, Any]) -> None:
        with self._lock:
            simulation = self._simulations.get(simulation_id)
            if simulation is None:
                raise StoreError(f"simulation {simulation_id} not found")
            for key, value in changes.items():
                if key not in Simulation.__dataclass_fields__ or key == "id":
                    raise StoreError(f"unknown simulation field: {key}")
                if key == "status":
                    value = SimulationStatus(value)
                setattr(simulation, key, value)

    def list_agents(self, simulation_id: str) -> List[AgentState]:
        with self._lock:
            return [agent.clone() for agent in self._agents.values() if agent.simulation_id == simulation_id]

    def create_driver(self, driver: Driver) -> Driver:
        stored = copy.deepcopy(driver)
        stored.id = stored.id or _new_id()
        with self._lock:
            self._drivers[stored.id] = stored
        return copy.deepcopy(stored)

    def create_car(self, car: Car) -> Car:
        stored = copy.deepcopy(car)
        stored.id = stored.id or _new_id()
        with self._lock:
            self._cars[stored.id] = stored
        return copy.deepcopy(stored)

    def create_agent(self, agent: AgentState) -> AgentState:
        stored = agent.clone()
        stored.id = stored.id or _new_id()
        with self._lock:
            self._agents[stored.id] = stored
        return stored.clone()

    def create_event(self, event: MechanicalEvent) -> MechanicalEvent:
        stored = copy.deepcopy(event)
        stored.id = stored.id or _new_id()
        with self._lock:
            self._events.append(stored)
        return copy.deepcopy(stored)

    def list_events(self, simulation_id: str) -> List[MechanicalEvent]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._events if e.simulation_id == simulation_id]

    def create_strategy(self, strategy: AIStrategy) -> AIStrategy:
        stored = copy.deepcopy(strategy)
        stored.id = stored.id or _new_id()
        with self._lock:
            self._strategies.append(stored)
        return copy.deepcopy(stored)

    def list_strategies(self, simulation_id: str) -> List[AIStrategy]:
        with self._lock:
            return [copy.deepcopy(s) for s in self._strategies if s.simulation_id == simulation_id]

    def bulk_create_telemetry(self, snapshots: Sequence[TelemetrySnapshot]) -> int:
        with self._lock:
            self._telemetry.extend(copy.deepcopy(list(snapshots)))
        return len(snapshots)

    def count_telemetry(self, simulation_id: str) -> int:
        with self._lock:
            return sum(1 for snapshot in self._telemetry if snapshot.simulation_id == simulation_id)

    def count_drivers(self) -> int:
        with self._lock:
            return len(self._drivers)

    def count_cars(self) -> int:
        with self._lock:
            return len(self._cars)
