from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, List, Sequence

from eaglex_sim.models.agent import AgentState

_MISSING = 999.0


@dataclass(slots=True)
class GlobalStats:
    avg_mechanical_health: float
    min_time_to_critical: float | None
    max_dnf_risk: float
    total_service_load: float
    critical_agents: int

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def _or_missing(value: float | None) -> float:
    return _MISSING if value is None else value


_SORT_KEYS: Dict[str, Callable[[AgentState], float]] = {
    "rank": lambda a: float(a.rank),
    "health": lambda a: a.mechanical_health,
    "ttc": lambda a: _or_missing(a.time_to_critical),
    "risk": lambda a: -a.dnf_risk,
    "last_lap": lambda a: _or_missing(a.last_lap_time),
    "best_lap": lambda a: _or_missing(a.best_lap_time),
}


def rank_agents(agents: Sequence[AgentState]) -> None:
    """Assigns race order in place: most laps, then furthest along the loop."""
    ordered = sorted(
        agents,
        key=lambda a: (-a.position.lap, -a.path_index, a.race_time, a.agent_number),
    )
    for rank, agent in enumerate(ordered, start=1):
        agent.rank = rank


def sort_agents(agents: Iterable[AgentState], sort_by: str = "rank") -> List[AgentState]:
    key = _SORT_KEYS.get(sort_by)
    if key is None:
        raise ValueError(f"unknown sort key: {sort_by}")
    return sorted(agents, key=key)


def global_stats(agents: Sequence[AgentState]) -> GlobalStats:
    if not agents:
        return GlobalStats(
            avg_mechanical_health=100.0,
            min_time_to_critical=None,
            max_dnf_risk=0.0,
            total_service_load=0.0,
            critical_agents=0,
        )
    return GlobalStats(
        avg_mechanical_health=sum(a.mechanical_health for a in agents) / len(agents),
        min_time_to_critical=min(a.time_to_critical for a in agents),
        max_dnf_risk=max(a.dnf_risk for a in agents),
        total_service_load=sum(a.service_load for a in agents),
        critical_agents=sum(1 for a in agents if a.mechanical_health < 50.0),
    )
