from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Deque, Dict, List

from eaglex_sim.analysis.leaderboard import global_stats, sort_agents
from eaglex_sim.core.events import RosterSnapshot
from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import AIStrategy, MechanicalEvent


def _agent_row(agent: AgentState) -> Dict[str, Any]:
    t = agent.telemetry
    return {
        "id": agent.id,
        "agent_number": agent.agent_number,
        "team_name": agent.team_name,
        "driver_name": agent.driver_name,
        "personality": agent.personality.value,
        "rank": agent.rank,
        "lap": agent.position.lap,
        "sector": agent.position.sector,
        "x": agent.position.x,
        "y": agent.position.y,
        "heading": round(agent.position.heading, 2),
        "path_index": agent.path_index,
        "speed": round(t.speed, 1),
        "throttle": round(t.throttle, 3) if t.throttle is not None else None,
        "brake_pressure": round(t.brake_pressure, 3) if t.brake_pressure is not None else None,
        "rotor_temp": round(t.rotor_temp, 1),
        "battery_soc": round(t.battery_soc, 4),
        "mechanical_health": round(agent.mechanical_health, 2),
        "time_to_critical": round(agent.time_to_critical, 2),
        "dnf_risk": round(agent.dnf_risk, 2),
        "service_load": round(agent.service_load, 2),
        "last_lap_time": round(agent.last_lap_time, 3) if agent.last_lap_time is not None else None,
        "best_lap_time": round(agent.best_lap_time, 3) if agent.best_lap_time is not None else None,
    }


@dataclass(slots=True)
class DashboardState:
    """Read model fed by engine snapshots; never handed back to the engine."""

    simulation_id: str
    config_view: Dict[str, Any]
    started_at: float = field(default_factory=time.time)
    status: str = "booting"
    tick_count: int = 0
    sim_time_s: float = 0.0
    agents: List[Dict[str, Any]] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    recent_events: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=50))
    strategies_by_agent: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    recent_laps: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=30))
    _known_agents: set = field(default_factory=set)
    _lock: Lock = field(default_factory=Lock)

    def set_status(self, status: str) -> None:
        with self._lock:
            self.status = status

    def update_roster(self, snapshot: RosterSnapshot) -> None:
        rows = [_agent_row(agent) for agent in sort_agents(snapshot.agents, "rank")]
        stats = global_stats(snapshot.agents).to_dict()
        with self._lock:
            self.tick_count = snapshot.tick
            self.sim_time_s = round(snapshot.sim_time_s, 2)
            self.agents = rows
            self.stats = stats
            self._known_agents = {agent.id for agent in snapshot.agents}

    def add_event(self, event: MechanicalEvent) -> bool:
        with self._lock:
            if self._known_agents and event.agent_id not in self._known_agents:
                return False
            self.recent_events.appendleft(
                {
                    **event.to_dict(),
                    "ts": round(time.time() - self.started_at, 2),
                }
            )
            return True

    def set_strategy(self, strategy: AIStrategy) -> bool:
        with self._lock:
            if self._known_agents and strategy.agent_id not in self._known_agents:
                return False
            self.strategies_by_agent[strategy.agent_id] = strategy.to_dict()
            return True

    def add_lap(self, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.recent_laps.appendleft(
                {
                    "agent_id": payload.get("agent_id"),
                    "agent_number": payload.get("agent_number"),
                    "lap": payload.get("lap"),
                    "lap_time_s": round(float(payload.get("lap_time_s") or 0.0), 3),
                    "best_lap_time_s": round(float(payload.get("best_lap_time_s") or 0.0), 3),
                    "tick": payload.get("tick"),
                }
            )

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "simulation_id": self.simulation_id,
                "status": self.status,
                "uptime_s": round(time.time() - self.started_at, 2),
                "tick_count": self.tick_count,
                "sim_time_s": self.sim_time_s,
                "agents": [dict(row) for row in self.agents],
                "global_stats": dict(self.stats),
                "recent_events": list(self.recent_events),
                "strategies": dict(self.strategies_by_agent),
                "recent_laps": list(self.recent_laps),
                "config": dict(self.config_view),
            }
