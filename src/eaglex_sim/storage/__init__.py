"""Persistence adapters for simulation records and telemetry."""

from eaglex_sim.storage.base import SimulationStore, StoreError
from eaglex_sim.storage.memory_store import InMemoryStore
from eaglex_sim.storage.sqlite_store import SqliteStore
from eaglex_sim.storage.telemetry_recorder import TelemetryRecorder
from eaglex_sim.storage.writer import PersistenceWriter

__all__ = [
    "InMemoryStore",
    "PersistenceWriter",
    "SimulationStore",
    "SqliteStore",
    "StoreError",
    "TelemetryRecorder",
]
