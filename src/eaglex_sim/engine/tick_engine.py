from __future__ import annotations

import math
from dataclasses import dataclass
from random import Random
from threading import Lock
from typing import List, Optional, Sequence

from eaglex_sim.analysis.leaderboard import rank_agents
from eaglex_sim.core.event_bus import EventBus
from eaglex_sim.core.events import (
    EVENT_EMITTED,
    LAP_COMPLETED,
    ROSTER_UPDATED,
    STRATEGY_EMITTED,
    TELEMETRY_BATCH,
    Event,
    RosterSnapshot,
)
from eaglex_sim.diagnostics.generator import EventStrategyGenerator, pick, uniform
from eaglex_sim.models.agent import (
    DNF_RISK_MAX,
    HEALTH_MAX,
    HEALTH_MIN,
    SOC_MAX,
    SOC_MIN,
    AgentState,
    Personality,
    SuspensionTravel,
    clamp,
)
from eaglex_sim.models.records import AIStrategy, MechanicalEvent, Simulation, TelemetrySnapshot
from eaglex_sim.models.track import Track

LAP_WINDOW = 3


@dataclass(slots=True)
class EngineSettings:
    degrade_every_ticks: int = 10
    event_every_ticks: int = 50
    telemetry_every_ticks: int = 100
    strategy_every_ticks: int = 300
    event_probability: float = 0.3
    nominal_lap_time_s: float = 88.0
    lap_time_spread_s: float = 6.0
    base_tick_s: float = 0.1


@dataclass(slots=True)
class AgentStep:
    new_index: int
    lap_completed: bool


def path_increment(personality: Personality, aggression_factor: float, r: float) -> int:
    profile = personality.profile
    speed_boost = profile.speed_boost * aggression_factor
    spread = profile.aggression_spread * aggression_factor
    return int(math.floor(speed_boost * (1.0 + r * spread)))


def advance_path_index(index: int, increment: int, length: int) -> int:
    return (index + increment) % length


def is_lap_crossing(previous_index: int, new_index: int, length: int) -> bool:
    return previous_index >= length - LAP_WINDOW and new_index < LAP_WINDOW


def next_battery_soc(soc: float, energy_consumption: float, regen_gain: float) -> float:
    return clamp(soc - energy_consumption + regen_gain, SOC_MIN, SOC_MAX)


def degrade_health(agent: AgentState, rng: Random) -> float:
    """Applies one wear step to ``agent`` and returns the health lost."""
    throttle = agent.telemetry.throttle if agent.telemetry.throttle is not None else 0.5
    brake_pressure = agent.telemetry.brake_pressure if agent.telemetry.brake_pressure is not None else 0.3
    stress = throttle * brake_pressure
    base = 0.05 + stress * 0.1 + rng.random() * 0.05
    degradation = base * agent.risk_factor * ((agent.heat_factor + agent.brake_factor) / 2.0)

    agent.mechanical_health = clamp(agent.mechanical_health - degradation, HEALTH_MIN, HEALTH_MAX)
    agent.time_to_critical = max(0.0, agent.time_to_critical - 0.05 * agent.risk_factor)
    risk_step = 0.5 if agent.mechanical_health < 50.0 else 0.1
    agent.dnf_risk = min(DNF_RISK_MAX, agent.dnf_risk + risk_step * agent.risk_factor)
    agent.service_load += degradation * 0.15
    return degradation


def step_agent(
    agent: AgentState,
    track: Track,
    rng: Random,
    speed_multiplier: float = 1.0,
    nominal_lap_time_s: float = 88.0,
    lap_time_spread_s: float = 6.0,
) -> AgentStep:
    """Moves one agent along the track and recomputes its telemetry."""
    profile = agent.personality.profile
    length = len(track)
    previous_index = agent.path_index % length
    increment = path_increment(agent.personality, agent.aggression_factor, rng.random())
    index = advance_path_index(previous_index, increment, length)

    point = track.point(index)
    heading = track.heading_deg(index)
    braking = track.crosses_sector(index)

    speed = (250.0 + math.sin(index / 3.0) * 50.0) * profile.speed_factor + (rng.random() - 0.5) * 30.0
    if braking:
        brake_pressure = uniform(rng, 0.75, 1.0) * agent.brake_factor
    else:
        brake_pressure = uniform(rng, 0.0, 0.2) * agent.brake_factor
    rotor_temp = (
        450.0
        + math.sin(index / 2.0) * 150.0
        + (100.0 if braking else 0.0)
        + (100.0 - agent.mechanical_health)
    ) * agent.heat_factor
    if braking:
        throttle = uniform(rng, 0.2, 0.5) * agent.aggression_factor
    else:
        throttle = uniform(rng, 0.7, 1.0) * agent.aggression_factor

    energy_consumption = throttle * 0.0003 * agent.efficiency_factor * profile.energy_factor
    regen_gain = brake_pressure * 0.0002 * (1.0 / agent.efficiency_factor)

    telemetry = agent.telemetry
    telemetry.speed = speed
    telemetry.throttle = throttle
    telemetry.brake_pressure = brake_pressure
    telemetry.rotor_temp = rotor_temp
    telemetry.hub_temp = rotor_temp * 0.25
    telemetry.battery_soc = next_battery_soc(telemetry.battery_soc, energy_consumption, regen_gain)
    telemetry.tire_temp_fl = (85.0 + rng.random() * 20.0 + speed / 10.0) * agent.heat_factor
    telemetry.tire_temp_fr = (85.0 + rng.random() * 20.0 + speed / 10.0) * agent.heat_factor
    telemetry.tire_temp_rl = (80.0 + rng.random() * 20.0) * agent.heat_factor
    telemetry.tire_temp_rr = (80.0 + rng.random() * 20.0) * agent.heat_factor
    telemetry.regen_power = brake_pressure * 50.0
    telemetry.suspension_travel = SuspensionTravel(
        lf=uniform(rng, 0.05, 0.2),
        rf=uniform(rng, 0.05, 0.2),
        lr=uniform(rng, 0.05, 0.2),
        rr=uniform(rng, 0.05, 0.2),
    )

    lap_completed = is_lap_crossing(previous_index, index, length)
    if lap_completed:
        lap_time = nominal_lap_time_s + rng.random() * lap_time_spread_s
        agent.last_lap_time = lap_time
        agent.best_lap_time = lap_time if agent.best_lap_time is None else min(agent.best_lap_time, lap_time)
        agent.position.lap += 1

    agent.path_index = index
    agent.position.x = point.x
    agent.position.y = point.y
    agent.position.sector = point.sector
    agent.position.heading = heading
    agent.race_time += 0.1 * speed_multiplier
    return AgentStep(new_index=index, lap_completed=lap_completed)


def telemetry_snapshot(agent: AgentState, tick: int) -> TelemetrySnapshot:
    t = agent.telemetry
    return TelemetrySnapshot(
        simulation_id=agent.simulation_id,
        agent_id=agent.id,
        tick=tick,
        x=agent.position.x,
        y=agent.position.y,
        heading=agent.position.heading,
        lap=agent.position.lap,
        sector=agent.position.sector,
        speed_kph=t.speed,
        throttle=t.throttle if t.throttle is not None else 0.0,
        brake_pressure=t.brake_pressure if t.brake_pressure is not None else 0.0,
        rotor_temp=t.rotor_temp,
        hub_temp=t.hub_temp,
        battery_soc=t.battery_soc * 100.0,
        tire_temp_fl=t.tire_temp_fl,
        tire_temp_fr=t.tire_temp_fr,
        tire_temp_rl=t.tire_temp_rl,
        tire_temp_rr=t.tire_temp_rr,
        regen_power=t.regen_power,
    )


class SimulationEngine:
    """Advances every agent by one discrete step per ``tick()`` call."""

    def __init__(
        self,
        simulation: Simulation,
        agents: Sequence[AgentState],
        track: Track,
        event_bus: EventBus,
        rng: Random | None = None,
        settings: EngineSettings | None = None,
        generator: EventStrategyGenerator | None = None,
    ) -> None:
        if len(track) < LAP_WINDOW * 2:
            raise ValueError(f"track {track.track_id} needs at least {LAP_WINDOW * 2} waypoints")
        self.simulation = simulation
        self.track = track
        self.event_bus = event_bus
        self.rng = rng or Random()
        self.settings = settings or EngineSettings()
        self.generator = generator or EventStrategyGenerator(self.rng)
        self.speed_multiplier = simulation.speed_multiplier or 1.0
        self.tick_count = 0
        self.sim_time_s = 0.0
        self.skipped_ticks = 0
        self._agents: List[AgentState] = [agent.clone() for agent in agents]
        self._tick_lock = Lock()
        self._latest: Optional[RosterSnapshot] = None
        for agent in self._agents:
            agent.path_index %= len(self.track)
        rank_agents(self._agents)

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    def snapshot(self) -> RosterSnapshot:
        with self._tick_lock:
            if self._latest is None:
                self._latest = self._build_snapshot((), ())
            return self._latest

    def set_speed_multiplier(self, value: float) -> None:
        if value <= 0.0:
            raise ValueError("speed multiplier must be positive")
        self.speed_multiplier = value

    def reset(self) -> None:
        with self._tick_lock:
            self.tick_count = 0
            self.sim_time_s = 0.0
            for i, agent in enumerate(self._agents):
                agent.path_index = i % len(self.track)
            self._latest = None

    def tick(self) -> Optional[RosterSnapshot]:
        """Runs one step. Returns ``None`` when another tick is still in flight."""
        if not self._tick_lock.acquire(blocking=False):
            self.skipped_ticks += 1
            return None
        try:
            outbox = self._run_tick()
        finally:
            self._tick_lock.release()
        for event in outbox:
            self.event_bus.publish(event)
        return self._latest

    def evaluate_strategies(self) -> List[AIStrategy]:
        return [self.generator.classify_strategy(agent, sim_time=self.tick_count) for agent in self._agents]

    def _run_tick(self) -> List[Event]:
        self.tick_count += 1
        self.sim_time_s += self.settings.base_tick_s * self.speed_multiplier
        tick = self.tick_count
        outbox: List[Event] = []

        for agent in self._agents:
            step = step_agent(
                agent,
                self.track,
                self.rng,
                speed_multiplier=self.speed_multiplier,
                nominal_lap_time_s=self.settings.nominal_lap_time_s,
                lap_time_spread_s=self.settings.lap_time_spread_s,
            )
            if step.lap_completed:
                outbox.append(
                    Event(
                        name=LAP_COMPLETED,
                        payload={
                            "agent_id": agent.id,
                            "agent_number": agent.agent_number,
                            "lap": agent.position.lap,
                            "lap_time_s": agent.last_lap_time,
                            "best_lap_time_s": agent.best_lap_time,
                            "tick": tick,
                        },
                    )
                )

        if self._due(tick, self.settings.telemetry_every_ticks):
            batch = [telemetry_snapshot(agent, tick) for agent in self._agents]
            outbox.append(Event(name=TELEMETRY_BATCH, payload={"tick": tick, "snapshots": batch}))

        if self._due(tick, self.settings.degrade_every_ticks):
            for agent in self._agents:
                degrade_health(agent, self.rng)

        events: List[MechanicalEvent] = []
        if self._due(tick, self.settings.event_every_ticks):
            event = self._maybe_generate_event(tick)
            if event is not None:
                events.append(event)
                outbox.append(Event(name=EVENT_EMITTED, payload={"event": event}))

        strategies: List[AIStrategy] = []
        if self._due(tick, self.settings.strategy_every_ticks):
            strategies = self.evaluate_strategies()
            for strategy in strategies:
                outbox.append(Event(name=STRATEGY_EMITTED, payload={"strategy": strategy}))

        rank_agents(self._agents)
        self._latest = self._build_snapshot(tuple(events), tuple(strategies))
        outbox.append(Event(name=ROSTER_UPDATED, payload={"snapshot": self._latest}))
        return outbox

    def _maybe_generate_event(self, tick: int) -> Optional[MechanicalEvent]:
        vulnerable = [agent for agent in self._agents if agent.is_vulnerable()]
        if not vulnerable or self.rng.random() > self.settings.event_probability:
            return None
        agent = pick(self.rng, vulnerable)
        return self.generator.random_event(agent, sim_time=tick)

    def _build_snapshot(
        self,
        events: tuple[MechanicalEvent, ...],
        strategies: tuple[AIStrategy, ...],
    ) -> RosterSnapshot:
        return RosterSnapshot(
            tick=self.tick_count,
            sim_time_s=self.sim_time_s,
            agents=tuple(agent.clone() for agent in self._agents),
            events=events,
            strategies=strategies,
        )

    @staticmethod
    def _due(tick: int, every: int) -> bool:
        return every > 0 and tick % every == 0
