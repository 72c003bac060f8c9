"""Tick engine and the clock that drives it."""

from eaglex_sim.engine.clock import SimulationClock
from eaglex_sim.engine.tick_engine import EngineSettings, SimulationEngine

__all__ = ["EngineSettings", "SimulationClock", "SimulationEngine"]
