"""Tests for the tick engine: movement, wear, event gating and snapshots."""

from __future__ import annotations

from random import Random

import pytest

from eaglex_sim.core.event_bus import EventBus
from eaglex_sim.core.events import (
    EVENT_EMITTED,
    LAP_COMPLETED,
    ROSTER_UPDATED,
    STRATEGY_EMITTED,
    TELEMETRY_BATCH,
    Event,
)
from eaglex_sim.engine.tick_engine import (
    EngineSettings,
    SimulationEngine,
    advance_path_index,
    degrade_health,
    is_lap_crossing,
    next_battery_soc,
    path_increment,
    step_agent,
)
from eaglex_sim.models.agent import AgentState, AgentTelemetry, Personality
from eaglex_sim.models.records import Simulation
from eaglex_sim.models.track import Track, Waypoint, get_track

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _ScriptedRandom(Random):
    """Replays fixed values from ``random()``, cycling when exhausted."""

    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self._values = list(values)
        self._cursor = 0

    def random(self) -> float:
        value = self._values[self._cursor % len(self._values)]
        self._cursor += 1
        return value


def _agent(i: int, **overrides: object) -> AgentState:
    fields: dict[str, object] = {
        "id": f"agent-{i}",
        "simulation_id": "sim-1",
        "agent_number": f"CAR{i + 1:02d}",
        "team_name": f"Team {chr(65 + i)}",
        "path_index": i,
    }
    fields.update(overrides)
    return AgentState(**fields)  # type: ignore[arg-type]


def _engine(
    agents: list[AgentState],
    rng: Random | None = None,
    settings: EngineSettings | None = None,
    bus: EventBus | None = None,
) -> SimulationEngine:
    return SimulationEngine(
        simulation=Simulation(mode="formula_e", track_id="las_vegas_gp", id="sim-1"),
        agents=agents,
        track=get_track("las_vegas_gp"),
        event_bus=bus or EventBus(),
        rng=rng or Random(7),
        settings=settings,
    )


def _collect(bus: EventBus, name: str) -> list[Event]:
    received: list[Event] = []
    bus.subscribe(name, received.append)
    return received


# ---------------------------------------------------------------------------
# Pure steps
# ---------------------------------------------------------------------------


def test_path_increment_uses_personality_profile() -> None:
    assert path_increment(Personality.BALANCED, 1.0, 0.0) == 1
    # 1.15 * 1.2 * (1 + 1.0 * 0.4 * 1.2) = 2.04
    assert path_increment(Personality.AGGRESSIVE, 1.2, 1.0) == 2
    # 0.92 * 0.8 < 1, the agent holds position for one tick.
    assert path_increment(Personality.CONSERVATIVE, 0.8, 0.0) == 0


def test_index_wraps_modulo_track_length() -> None:
    assert advance_path_index(18, 4, 20) == 2
    for k in range(1, 6):
        assert advance_path_index(19, k, 20) == (19 + k) % 20


def test_lap_crossing_window() -> None:
    assert is_lap_crossing(18, 2, 20)
    assert is_lap_crossing(17, 0, 20)
    assert not is_lap_crossing(16, 1, 20)
    assert not is_lap_crossing(18, 19, 20)
    assert not is_lap_crossing(10, 12, 20)


def test_battery_soc_is_clamped() -> None:
    assert next_battery_soc(0.05, 0.01, 0.0) == 0.05
    assert next_battery_soc(0.99, 0.0, 0.05) == 1.0
    assert abs(next_battery_soc(0.5, 0.01, 0.002) - 0.492) < 1e-12


def test_degradation_scenario_with_no_jitter() -> None:
    agent = _agent(
        0,
        risk_factor=1.3,
        heat_factor=1.2,
        brake_factor=1.15,
        telemetry=AgentTelemetry(throttle=0.9, brake_pressure=0.8),
    )
    lost = degrade_health(agent, _ScriptedRandom([0.0]))
    assert lost >= 0.186
    assert abs(lost - 0.122 * 1.3 * 1.175) < 1e-9
    assert agent.mechanical_health <= 100.0 - 0.186
    assert abs(agent.time_to_critical - (15.0 - 0.05 * 1.3)) < 1e-9
    assert abs(agent.dnf_risk - 0.13) < 1e-9
    assert abs(agent.service_load - lost * 0.15) < 1e-9


def test_degradation_defaults_missing_pedals() -> None:
    agent = _agent(0)
    assert agent.telemetry.throttle is None
    lost = degrade_health(agent, _ScriptedRandom([0.0]))
    # 0.05 + 0.5 * 0.3 * 0.1
    assert abs(lost - 0.065) < 1e-12


def test_degradation_respects_bounds() -> None:
    agent = _agent(0, mechanical_health=0.01, time_to_critical=0.01, dnf_risk=99.9, risk_factor=1.3)
    degrade_health(agent, _ScriptedRandom([1.0]))
    assert agent.mechanical_health == 0.0
    assert agent.time_to_critical == 0.0
    assert agent.dnf_risk == 100.0


def test_worn_agent_accumulates_risk_faster() -> None:
    agent = _agent(0, mechanical_health=40.0)
    degrade_health(agent, _ScriptedRandom([0.0]))
    assert abs(agent.dnf_risk - 0.5) < 1e-9


def test_wrap_scenario_completes_one_lap() -> None:
    agent = _agent(0, path_index=18, aggression_factor=4.0, best_lap_time=89.0)
    step = step_agent(agent, get_track("las_vegas_gp"), _ScriptedRandom([0.0]))
    assert step.new_index == 2
    assert step.lap_completed
    assert agent.path_index == 2
    assert agent.position.lap == 2
    assert agent.last_lap_time == 88.0
    assert agent.best_lap_time == 88.0


def test_best_lap_never_gets_worse() -> None:
    agent = _agent(0, path_index=18, aggression_factor=4.0, best_lap_time=87.5)
    step_agent(agent, get_track("las_vegas_gp"), _ScriptedRandom([0.25]))
    assert agent.position.lap == 2
    assert agent.last_lap_time == 89.5
    assert agent.best_lap_time == 87.5


def test_step_updates_telemetry_and_position() -> None:
    track = get_track("las_vegas_gp")
    agent = _agent(0, path_index=5)
    step = step_agent(agent, track, _ScriptedRandom([0.0]), speed_multiplier=2.0)
    assert step.new_index == 6
    assert not step.lap_completed
    assert (agent.position.x, agent.position.y) == (track.point(6).x, track.point(6).y)
    assert agent.position.sector == 1
    # Not braking: throttle 0.7, brake pressure 0.0.
    assert agent.telemetry.throttle == 0.7
    assert agent.telemetry.brake_pressure == 0.0
    assert agent.telemetry.hub_temp == agent.telemetry.rotor_temp * 0.25
    assert abs(agent.race_time - 0.2) < 1e-12


def test_step_brakes_when_entering_a_new_sector() -> None:
    agent = _agent(0, path_index=6)
    step_agent(agent, get_track("las_vegas_gp"), _ScriptedRandom([0.0]))
    assert agent.path_index == 7
    assert agent.telemetry.brake_pressure == 0.75
    assert agent.telemetry.throttle == 0.2
    assert agent.telemetry.regen_power == 0.75 * 50.0


def test_engine_rejects_tiny_tracks() -> None:
    tiny = Track(
        track_id="tiny",
        name="Tiny",
        waypoints=tuple(Waypoint(float(i), 0.0, 1) for i in range(5)),
    )
    with pytest.raises(ValueError):
        SimulationEngine(
            simulation=Simulation(mode="formula_e", track_id="tiny", id="sim-1"),
            agents=[_agent(0)],
            track=tiny,
            event_bus=EventBus(),
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def test_invariants_hold_over_many_ticks() -> None:
    engine = _engine([_agent(i, risk_factor=1.3) for i in range(6)], rng=Random(11))
    previous = {agent.id: agent for agent in engine.snapshot().agents}
    for _ in range(1500):
        snapshot = engine.tick()
        assert snapshot is not None
        for agent in snapshot.agents:
            before = previous[agent.id]
            assert 0.0 <= agent.mechanical_health <= 100.0
            assert 0.05 <= agent.telemetry.battery_soc <= 1.0
            assert agent.time_to_critical >= 0.0
            assert agent.dnf_risk <= 100.0
            assert 0 <= agent.path_index < 20
            assert agent.mechanical_health <= before.mechanical_health
            assert agent.position.lap - before.position.lap in (0, 1)
            if before.best_lap_time is not None:
                assert agent.best_lap_time is not None
                assert agent.best_lap_time <= before.best_lap_time
        previous = {agent.id: agent for agent in snapshot.agents}


def test_lap_events_match_lap_counters() -> None:
    bus = EventBus()
    laps = _collect(bus, LAP_COMPLETED)
    engine = _engine([_agent(i) for i in range(4)], bus=bus)
    for _ in range(400):
        engine.tick()
    finished = {agent.id: agent.position.lap - 1 for agent in engine.snapshot().agents}
    for agent_id, count in finished.items():
        assert count == sum(1 for event in laps if event.payload["agent_id"] == agent_id)
    assert sum(finished.values()) > 0


def test_no_event_when_nobody_is_vulnerable() -> None:
    bus = EventBus()
    emitted = _collect(bus, EVENT_EMITTED)
    settings = EngineSettings(degrade_every_ticks=0, event_every_ticks=1, event_probability=1.0)
    engine = _engine([_agent(i) for i in range(4)], settings=settings, bus=bus)
    for _ in range(200):
        engine.tick()
    assert emitted == []


def test_events_target_vulnerable_agents_only() -> None:
    bus = EventBus()
    emitted = _collect(bus, EVENT_EMITTED)
    settings = EngineSettings(degrade_every_ticks=0, event_every_ticks=1, event_probability=1.0)
    agents = [_agent(0), _agent(1, mechanical_health=70.0), _agent(2)]
    engine = _engine(agents, settings=settings, bus=bus)
    for _ in range(20):
        engine.tick()
    assert len(emitted) == 20
    assert {event.payload["event"].agent_id for event in emitted} == {"agent-1"}


def test_event_cadence_defaults_to_every_fiftieth_tick() -> None:
    bus = EventBus()
    emitted = _collect(bus, EVENT_EMITTED)
    settings = EngineSettings(degrade_every_ticks=0, event_probability=1.0)
    engine = _engine([_agent(0, time_to_critical=5.0)], settings=settings, bus=bus)
    for _ in range(149):
        engine.tick()
    assert [event.payload["event"].sim_time for event in emitted] == [50, 100]


def test_telemetry_batches_every_hundredth_tick() -> None:
    bus = EventBus()
    batches = _collect(bus, TELEMETRY_BATCH)
    engine = _engine([_agent(i) for i in range(3)], bus=bus)
    for _ in range(250):
        engine.tick()
    assert [event.payload["tick"] for event in batches] == [100, 200]
    snapshots = batches[0].payload["snapshots"]
    assert len(snapshots) == 3
    assert all(5.0 <= s.battery_soc <= 100.0 for s in snapshots)


def test_strategies_are_refreshed_for_every_agent() -> None:
    bus = EventBus()
    strategies = _collect(bus, STRATEGY_EMITTED)
    engine = _engine([_agent(i) for i in range(5)], bus=bus)
    for _ in range(300):
        engine.tick()
    assert len(strategies) == 5
    assert {event.payload["strategy"].agent_id for event in strategies} == {f"agent-{i}" for i in range(5)}


def test_roster_published_once_per_tick_after_update() -> None:
    bus = EventBus()
    rosters = _collect(bus, ROSTER_UPDATED)
    engine = _engine([_agent(i) for i in range(3)], bus=bus)
    for _ in range(5):
        engine.tick()
    assert [event.payload["snapshot"].tick for event in rosters] == [1, 2, 3, 4, 5]
    ranks = sorted(agent.rank for agent in rosters[-1].payload["snapshot"].agents)
    assert ranks == [1, 2, 3]


def test_snapshots_are_isolated_from_the_engine() -> None:
    source = _agent(0)
    engine = _engine([source])
    first = engine.tick()
    assert first is not None
    first.agents[0].mechanical_health = -50.0
    first.agents[0].position.lap = 99
    second = engine.tick()
    assert second is not None
    assert second.agents[0].mechanical_health >= 0.0
    assert second.agents[0].position.lap < 99
    # The caller's original object is never touched either.
    assert source.path_index == 0
    assert first.tick == 1


def test_tick_skips_while_another_tick_is_running() -> None:
    engine = _engine([_agent(0)])
    engine._tick_lock.acquire()
    try:
        assert engine.tick() is None
    finally:
        engine._tick_lock.release()
    assert engine.skipped_ticks == 1
    assert engine.tick_count == 0
    assert engine.tick() is not None
    assert engine.tick_count == 1


def test_reset_restores_counters_and_start_positions() -> None:
    engine = _engine([_agent(i) for i in range(3)])
    for _ in range(30):
        engine.tick()
    engine.reset()
    snapshot = engine.snapshot()
    assert engine.tick_count == 0
    assert engine.sim_time_s == 0.0
    assert [agent.path_index for agent in sorted(snapshot.agents, key=lambda a: a.id)] == [0, 1, 2]


def test_speed_multiplier_scales_sim_time() -> None:
    engine = _engine([_agent(0)])
    engine.set_speed_multiplier(4.0)
    engine.tick()
    assert abs(engine.sim_time_s - 0.4) < 1e-12
    with pytest.raises(ValueError):
        engine.set_speed_multiplier(0.0)
