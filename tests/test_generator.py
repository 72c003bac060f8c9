"""Tests for mechanical event and strategy generation."""

from __future__ import annotations

from random import Random

import pytest

from eaglex_sim.diagnostics.generator import (
    ENGINE_EVENT_TYPES,
    SETUP_EVENT_TYPES,
    EventStrategyGenerator,
    build_prognosis,
    build_recommendation,
    is_critical,
    pick,
    trigger_signals,
)
from eaglex_sim.models.agent import AgentState, AgentTelemetry
from eaglex_sim.models.records import ActionType, EventStatus, EventType, Priority, StrategyType

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _ScriptedRandom(Random):
    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self._values = list(values)
        self._cursor = 0

    def random(self) -> float:
        value = self._values[self._cursor % len(self._values)]
        self._cursor += 1
        return value


def _agent(**overrides: object) -> AgentState:
    fields: dict[str, object] = {
        "id": "agent-1",
        "simulation_id": "sim-1",
        "agent_number": "CAR01",
        "team_name": "Team A",
    }
    fields.update(overrides)
    return AgentState(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def test_critical_threshold_is_strict() -> None:
    assert not is_critical(0.7)
    assert is_critical(0.71)


def test_every_event_type_has_signals_and_two_prognosis_bands() -> None:
    for event_type in EventType:
        assert trigger_signals(event_type)
        high = build_prognosis(event_type, 0.9)
        low = build_prognosis(event_type, 0.4)
        assert high != low
        assert "Monitoring situation" not in high


def test_thermal_surge_prognosis_wording() -> None:
    high = build_prognosis(EventType.THERMAL_SURGE, 0.9)
    low = build_prognosis(EventType.THERMAL_SURGE, 0.5)
    assert "critically elevated" in high
    assert high.endswith("Immediate action required.")
    assert "significantly elevated" in low
    assert low.endswith("Monitor temperature trends.")


def test_recommendation_follows_severity() -> None:
    text, action = build_recommendation(0.8)
    assert action is ActionType.EMERGENCY_PIT
    assert text.startswith("Immediate pit stop required")
    text, action = build_recommendation(0.5)
    assert action is ActionType.MONITOR
    assert text.startswith("Monitor closely")


def test_pick_rejects_empty_and_clamps_to_last_item() -> None:
    with pytest.raises(ValueError):
        pick(Random(1), [])
    assert pick(_ScriptedRandom([0.999999]), ["a", "b", "c"]) == "c"
    assert pick(_ScriptedRandom([0.0]), ["a", "b", "c"]) == "a"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def test_critical_event_timing_and_action() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.5]))
    event = generator.create_event(_agent(), EventType.BRAKE_DEBRIS, 0.9, sim_time=150)
    assert event.action_type is ActionType.EMERGENCY_PIT
    assert abs(event.time_to_critical - 3.5) < 1e-9
    assert abs(event.service_time - 10.5) < 1e-9
    assert abs(event.confidence - 0.85) < 1e-9
    assert abs(event.fail_probability - 90.0) < 1e-9
    assert event.status is EventStatus.ACTIVE
    assert event.sim_time == 150
    assert event.agent_id == "agent-1"
    assert event.is_critical
    assert event.trigger_signals == trigger_signals(EventType.BRAKE_DEBRIS)


def test_non_critical_event_timing_and_action() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.5]))
    event = generator.create_event(_agent(), EventType.SENSOR_DRIFT, 0.5, sim_time=50)
    assert event.action_type is ActionType.MONITOR
    assert abs(event.time_to_critical - 10.0) < 1e-9
    assert abs(event.service_time - 5.0) < 1e-9
    assert not event.is_critical


def test_random_events_use_engine_types_and_severity_range() -> None:
    generator = EventStrategyGenerator(Random(3))
    for _ in range(200):
        event = generator.random_event(_agent(), sim_time=50)
        assert event.event_type in ENGINE_EVENT_TYPES
        assert 0.3 <= event.severity <= 0.8
        assert 0.75 <= event.confidence <= 0.95


def test_setup_events_use_setup_types_and_severity_range() -> None:
    generator = EventStrategyGenerator(Random(5))
    for _ in range(100):
        event = generator.setup_event(_agent())
        assert event.event_type in SETUP_EVENT_TYPES
        assert 0.4 <= event.severity <= 0.8
        assert event.sim_time == 0


# ---------------------------------------------------------------------------
# Strategy cascade
# ---------------------------------------------------------------------------


def test_worn_agent_gets_pit_advice() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(mechanical_health=55.0, telemetry=AgentTelemetry(battery_soc=0.2)))
    assert strategy.strategy_type is StrategyType.PIT_ADVISOR
    assert strategy.priority is Priority.CRITICAL
    assert strategy.recommendation == "Pit stop recommended in 3 laps - critical wear"


def test_risky_agent_gets_pit_advice() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(risk_factor=1.2))
    assert strategy.strategy_type is StrategyType.PIT_ADVISOR
    assert strategy.recommendation == "Pit stop recommended in 3 laps - high failure risk"


def test_low_battery_triggers_energy_saving() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(telemetry=AgentTelemetry(battery_soc=0.2)))
    assert strategy.strategy_type is StrategyType.CONSERVE_ENERGY
    assert strategy.priority is Priority.HIGH
    assert strategy.recommendation == "Reduce power by 10% - energy critical"


def test_inefficient_agent_triggers_energy_saving() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(efficiency_factor=1.12))
    assert strategy.strategy_type is StrategyType.CONSERVE_ENERGY
    assert strategy.recommendation == "Reduce power by 12% - energy critical"


def test_moderate_wear_gets_tactical_coaching() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(mechanical_health=75.0))
    assert strategy.strategy_type is StrategyType.TACTICAL_COACH
    assert strategy.priority is Priority.MEDIUM
    assert strategy.recommendation == "Monitor closely - pit window opens in 8 laps"


def test_healthy_agent_attacks() -> None:
    generator = EventStrategyGenerator(_ScriptedRandom([0.0]))
    strategy = generator.classify_strategy(_agent(), sim_time=300)
    assert strategy.strategy_type is StrategyType.ATTACK_MODE
    assert strategy.priority is Priority.LOW
    assert strategy.recommendation == "Maintain pace - optimal window for overtake in 5 laps"
    assert abs(strategy.confidence - 0.70) < 1e-9
    assert strategy.sim_time == 300
    assert len(strategy.reasons) == 4
    assert strategy.reasons[0] == "Health: 100% (risk factor: 1.00x)"
    assert strategy.reasons[1] == "Battery: 85% (efficiency: 1.00x)"


def test_strategy_confidence_range() -> None:
    generator = EventStrategyGenerator(Random(9))
    for _ in range(100):
        assert 0.70 <= generator.classify_strategy(_agent()).confidence <= 0.95
