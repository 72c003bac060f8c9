from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import AIStrategy, MechanicalEvent

ROSTER_UPDATED = "roster_updated"
EVENT_EMITTED = "event_emitted"
STRATEGY_EMITTED = "strategy_emitted"
LAP_COMPLETED = "lap_completed"
STATUS_CHANGED = "status_changed"
TELEMETRY_BATCH = "telemetry_batch"


@dataclass(slots=True)
class Event:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RosterSnapshot:
    """Immutable view of one finished tick, safe to hand to observers."""

    tick: int
    sim_time_s: float
    agents: Tuple[AgentState, ...]
    events: Tuple[MechanicalEvent, ...] = ()
    strategies: Tuple[AIStrategy, ...] = ()

    def agent(self, agent_id: str) -> AgentState | None:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def agent_ids(self) -> List[str]:
        return [agent.id for agent in self.agents]

