from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import AIStrategy, Car, Driver, MechanicalEvent, Simulation, TelemetrySnapshot


class StoreError(RuntimeError):
    """Raised when the persistence backend rejects or fails an operation."""


class SimulationStore(ABC):
    """Entity storage the simulation reads config from and writes records to."""

    @abstractmethod
    def create_simulation(self, simulation: Simulation) -> Simulation:
        pass

    @abstractmethod
    def get_simulation(self, simulation_id: str) -> Optional[Simulation]:
        pass

    @abstractmethod
    def update_simulation(self, simulation_id: str, changes: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def list_agents(self, simulation_id: str) -> List[AgentState]:
        pass

    @abstractmethod
    def create_driver(self, driver: Driver) -> Driver:
        pass

    @abstractmethod
    def create_car(self, car: Car) -> Car:
        pass

    @abstractmethod
    def create_agent(self, agent: AgentState) -> AgentState:
        pass

    @abstractmethod
    def create_event(self, event: MechanicalEvent) -> MechanicalEvent:
        pass

    @abstractmethod
    def list_events(self, simulation_id: str) -> List[MechanicalEvent]:
        pass

    @abstractmethod
    def create_strategy(self, strategy: AIStrategy) -> AIStrategy:
        pass

    @abstractmethod
    def list_strategies(self, simulation_id: str) -> List[AIStrategy]:
        pass

    @abstractmethod
    def bulk_create_telemetry(self, snapshots: Sequence[TelemetrySnapshot]) -> int:
        pass

    @abstractmethod
    def count_telemetry(self, simulation_id: str) -> int:
        pass

    def close(self) -> None:
        return None
