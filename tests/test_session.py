"""Tests for session creation, roster setup and re-hydration."""

from __future__ import annotations

from random import Random

import pytest

from eaglex_sim.models.agent import Personality
from eaglex_sim.models.records import MechanicalEvent, SimulationStatus, StrategyType
from eaglex_sim.session.loader import (
    LoadedSession,
    SessionLoader,
    SessionNotFoundError,
    filter_known_agent_records,
)
from eaglex_sim.storage import InMemoryStore


def _loader(seed: int = 21) -> tuple[SessionLoader, InMemoryStore]:
    store = InMemoryStore()
    return SessionLoader(store, rng=Random(seed)), store


def test_create_clamps_agent_count_and_picks_mode_track() -> None:
    loader, _ = _loader()
    many = loader.create("formula_e", settings={"num_agents": 50})
    few = loader.create("motogp", settings={"num_agents": 1})
    default = loader.create("drone_racing")
    assert many.settings["num_agents"] == 20
    assert few.settings["num_agents"] == 2
    assert default.settings["num_agents"] == 6
    assert many.track_id == "las_vegas_gp"
    assert few.track_id == "mugello"
    assert default.track_id == "downtown_gates"
    assert many.status is SimulationStatus.RUNNING


def test_load_unknown_simulation_raises() -> None:
    loader, _ = _loader()
    with pytest.raises(SessionNotFoundError):
        loader.load("nope")


def test_first_load_creates_the_roster() -> None:
    loader, store = _loader()
    simulation = loader.create(
        "formula_e",
        settings={"num_agents": 4, "driver_style": "aggressive", "tire_compound": "soft"},
    )
    assert simulation.id
    session = loader.load(simulation.id)
    assert session.created_agents
    assert len(session.agents) == 4
    assert len({agent.id for agent in session.agents}) == 4
    assert [agent.agent_number for agent in session.agents] == ["CAR01", "CAR02", "CAR03", "CAR04"]
    assert [agent.team_name for agent in session.agents] == ["Team A", "Team B", "Team C", "Team D"]
    assert [agent.path_index for agent in session.agents] == [0, 1, 2, 3]
    assert session.agents[0].personality is Personality.AGGRESSIVE
    assert session.agents[1].personality is Personality.BALANCED
    assert session.agents[2].personality is Personality.CONSERVATIVE
    assert store.count_drivers() == 4
    assert store.count_cars() == 4


def test_new_agents_start_within_documented_ranges() -> None:
    loader, _ = _loader(seed=4)
    simulation = loader.create("formula_e", settings={"num_agents": 20})
    session = loader.load(simulation.id or "")
    for agent in session.agents:
        assert 0.8 <= agent.aggression_factor <= 1.2
        assert 0.85 <= agent.efficiency_factor <= 1.15
        assert 0.9 <= agent.heat_factor <= 1.2
        assert 0.85 <= agent.brake_factor <= 1.15
        assert 0.8 <= agent.risk_factor <= 1.3
        assert 95.0 <= agent.mechanical_health <= 100.0
        assert 0.9 <= agent.telemetry.battery_soc <= 1.0
        assert agent.best_lap_time is not None and agent.last_lap_time is not None
        assert agent.best_lap_time <= agent.last_lap_time
        assert agent.driver_id and agent.car_id


def test_second_load_reuses_agents() -> None:
    loader, _ = _loader()
    simulation = loader.create("formula_e", settings={"num_agents": 3})
    first = loader.load(simulation.id or "")
    second = loader.load(simulation.id or "")
    assert not second.created_agents
    assert [a.id for a in second.agents] == [a.id for a in first.agents]


def test_load_seeds_one_strategy_per_agent() -> None:
    loader, store = _loader()
    simulation = loader.create("formula_e", settings={"num_agents": 5})
    session = loader.load(simulation.id or "")
    assert len(session.strategies) == 5
    assert {s.agent_id for s in session.strategies} == {a.id for a in session.agents}
    assert len(store.list_strategies(simulation.id or "")) == 5


def test_seed_diagnostics_flags_at_most_two_worn_agents() -> None:
    loader, store = _loader()
    simulation = loader.create("formula_e", settings={"num_agents": 4})
    session = loader.load(simulation.id or "", seed_diagnostics=False)
    for agent in session.agents[:3]:
        agent.mechanical_health = 90.0
    loader.seed_diagnostics(session)
    assert len(session.events) == 2
    assert {e.agent_id for e in session.events} <= {a.id for a in session.agents[:3]}
    assert all(0.4 <= e.severity <= 0.8 for e in session.events)
    assert len(store.list_events(simulation.id or "")) == 2


def test_unknown_agent_records_are_filtered() -> None:
    loader, _ = _loader()
    simulation = loader.create("formula_e", settings={"num_agents": 2})
    session = loader.load(simulation.id or "")
    known = session.agents[0]
    stranger = known.clone()
    stranger.id = "ghost"
    records = [
        loader.generator.setup_event(known),
        loader.generator.setup_event(stranger),
    ]
    kept = filter_known_agent_records(records, session.agents)
    assert len(kept) == 1
    assert isinstance(kept[0], MechanicalEvent)
    assert kept[0].agent_id == known.id


def test_strategies_from_store_are_filtered_on_load() -> None:
    loader, store = _loader()
    simulation = loader.create("formula_e", settings={"num_agents": 2})
    session = loader.load(simulation.id or "")
    ghost = session.agents[0].clone()
    ghost.id = "ghost"
    store.create_strategy(loader.generator.classify_strategy(ghost))
    reloaded = loader.load(simulation.id or "", seed_diagnostics=False)
    assert isinstance(reloaded, LoadedSession)
    assert all(s.agent_id != "ghost" for s in reloaded.strategies)
    assert all(s.strategy_type in StrategyType for s in reloaded.strategies)
