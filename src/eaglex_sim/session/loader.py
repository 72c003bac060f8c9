from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Any, Dict, Iterable, List, Sequence, TypeVar

from eaglex_sim.diagnostics.generator import EventStrategyGenerator, uniform
from eaglex_sim.models.agent import AgentPosition, AgentState, AgentTelemetry, Personality
from eaglex_sim.models.records import AIStrategy, Car, Driver, MechanicalEvent, Simulation, SimulationStatus
from eaglex_sim.models.track import Track, default_track_for_mode, get_track
from eaglex_sim.storage.base import SimulationStore, StoreError

_STYLE_ROTATION = ("aggressive", "balanced", "conservative")
_TIRE_ROTATION = ("soft", "medium", "hard")
_MAX_SETUP_EVENTS = 2

R = TypeVar("R", MechanicalEvent, AIStrategy)


class SessionNotFoundError(RuntimeError):
    """The requested simulation does not exist in the store."""


@dataclass(slots=True)
class LoadedSession:
    simulation: Simulation
    track: Track
    agents: List[AgentState]
    events: List[MechanicalEvent] = field(default_factory=list)
    strategies: List[AIStrategy] = field(default_factory=list)
    created_agents: bool = False


def filter_known_agent_records(records: Iterable[R], agents: Sequence[AgentState]) -> List[R]:
    """Drops records whose agent is not part of the roster."""
    known = {agent.id for agent in agents}
    return [record for record in records if record.agent_id in known]


class SessionLoader:
    """Loads a simulation and creates its roster on first use."""

    def __init__(self, store: SimulationStore, rng: Random | None = None) -> None:
        self.store = store
        self.rng = rng or Random()
        self.generator = EventStrategyGenerator(self.rng)

    def create(
        self,
        mode: str,
        track_id: str | None = None,
        settings: Dict[str, Any] | None = None,
        speed_multiplier: float = 1.0,
    ) -> Simulation:
        mode = mode.strip().lower() or "formula_e"
        settings = dict(settings or {})
        settings["num_agents"] = max(2, min(20, int(settings.get("num_agents") or 6)))
        simulation = self.store.create_simulation(
            Simulation(
                mode=mode,
                track_id=track_id or default_track_for_mode(mode),
                settings=settings,
                status=SimulationStatus.RUNNING,
                speed_multiplier=speed_multiplier,
            )
        )
        print(
            f"[SESSION] simulation {simulation.id} created mode={simulation.mode} "
            f"track={simulation.track_id} agents={settings['num_agents']}"
        )
        return simulation

    def load(self, simulation_id: str, seed_diagnostics: bool = True) -> LoadedSession:
        simulation = self.store.get_simulation(simulation_id)
        if simulation is None:
            raise SessionNotFoundError(f"simulation {simulation_id} not found")
        track = get_track(simulation.track_id)

        agents = self.store.list_agents(simulation_id)
        created = False
        if agents:
            print(f"[SESSION] reusing {len(agents)} agents for simulation {simulation_id}")
        else:
            agents = self.initialize_agents(simulation, track)
            created = True
            print(f"[SESSION] created {len(agents)} agents for simulation {simulation_id}")

        events = filter_known_agent_records(self.store.list_events(simulation_id), agents)
        strategies = filter_known_agent_records(self.store.list_strategies(simulation_id), agents)
        session = LoadedSession(
            simulation=simulation,
            track=track,
            agents=agents,
            events=events,
            strategies=strategies,
            created_agents=created,
        )
        if seed_diagnostics:
            self.seed_diagnostics(session)
        return session

    def initialize_agents(self, simulation: Simulation, track: Track | None = None) -> List[AgentState]:
        if simulation.id is None:
            raise StoreError("simulation has no id")
        track = track or get_track(simulation.track_id)
        settings = simulation.settings
        driver_style = str(settings.get("driver_style") or "balanced")
        energy_target = float(settings.get("energy_target") or 70)
        tire_compound = str(settings.get("tire_compound") or "medium")
        regen_strategy = str(settings.get("regen_strategy") or "auto")
        car_model = str(settings.get("car_model") or "gen3")

        agents: List[AgentState] = []
        for i in range(simulation.num_agents):
            number = f"{i + 1:02d}"
            team_name = f"Team {chr(65 + i)}"
            driver = self.store.create_driver(
                Driver(
                    simulation_id=simulation.id,
                    driver_number=f"D{number}",
                    driver_name=f"Driver {i + 1}",
                    team_name=team_name,
                    style=driver_style if i == 0 else _STYLE_ROTATION[i % 3],
                    skill_rating=uniform(self.rng, 0.7, 1.0),
                    energy_target=energy_target if i == 0 else uniform(self.rng, 60.0, 90.0),
                    current_position=i + 1,
                )
            )
            car = self.store.create_car(
                Car(
                    simulation_id=simulation.id,
                    driver_id=driver.id or "",
                    car_number=f"CAR{number}",
                    model=car_model,
                    tire_compound=tire_compound if i == 0 else _TIRE_ROTATION[i % 3],
                    regen_strategy=regen_strategy if i == 0 else "auto",
                    battery_soc=uniform(self.rng, 95.0, 100.0),
                )
            )
            agents.append(self.store.create_agent(self._new_agent(simulation, track, i, driver, car)))
        return agents

    def seed_diagnostics(self, session: LoadedSession) -> None:
        """Raises opening events for worn agents and one strategy per agent."""
        simulation_id = session.simulation.id
        worn = [agent for agent in session.agents if agent.mechanical_health < 95.0][:_MAX_SETUP_EVENTS]
        for agent in worn:
            event = self.generator.setup_event(agent)
            try:
                session.events.append(self.store.create_event(event))
            except StoreError as exc:
                print(f"[SESSION] setup event for {agent.agent_number} not stored: {exc}")
        for agent in session.agents:
            strategy = self.generator.classify_strategy(agent)
            try:
                session.strategies.append(self.store.create_strategy(strategy))
            except StoreError as exc:
                print(f"[SESSION] strategy for {agent.agent_number} not stored: {exc}")
        print(
            f"[SESSION] simulation {simulation_id}: "
            f"{len(worn)} opening events, {len(session.agents)} strategies"
        )

    def _new_agent(self, simulation: Simulation, track: Track, i: int, driver: Driver, car: Car) -> AgentState:
        rng = self.rng
        path_index = i % len(track)
        start = track.point(path_index)
        last_lap = uniform(rng, 89.0, 94.0)
        return AgentState(
            id="",
            simulation_id=simulation.id or "",
            agent_number=car.car_number,
            team_name=driver.team_name,
            driver_name=driver.driver_name,
            driver_id=driver.id,
            car_id=car.id,
            personality=Personality.parse(driver.style),
            aggression_factor=uniform(rng, 0.8, 1.2),
            efficiency_factor=uniform(rng, 0.85, 1.15),
            heat_factor=uniform(rng, 0.9, 1.2),
            brake_factor=uniform(rng, 0.85, 1.15),
            risk_factor=uniform(rng, 0.8, 1.3),
            position=AgentPosition(x=start.x, y=start.y, heading=45.0, lap=1, sector=start.sector),
            path_index=path_index,
            rank=i + 1,
            telemetry=AgentTelemetry(
                speed=uniform(rng, 240.0, 300.0),
                battery_soc=uniform(rng, 0.9, 1.0),
                rotor_temp=uniform(rng, 450.0, 600.0),
            ),
            mechanical_health=uniform(rng, 95.0, 100.0),
            time_to_critical=uniform(rng, 12.0, 20.0),
            dnf_risk=uniform(rng, 5.0, 15.0),
            service_load=uniform(rng, 0.0, 3.0),
            last_lap_time=last_lap,
            best_lap_time=min(last_lap, uniform(rng, 89.0, 94.0)),
        )
