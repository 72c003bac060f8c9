from __future__ import annotations

from dataclasses import dataclass
from random import Random
from typing import Any, Dict, List, Optional

from eaglex_sim.config import AppConfig
from eaglex_sim.core.event_bus import EventBus
from eaglex_sim.core.events import (
    EVENT_EMITTED,
    LAP_COMPLETED,
    ROSTER_UPDATED,
    STATUS_CHANGED,
    STRATEGY_EMITTED,
    TELEMETRY_BATCH,
    Event,
    RosterSnapshot,
)
from eaglex_sim.dashboard.server import DashboardServer
from eaglex_sim.dashboard.state import DashboardState
from eaglex_sim.engine.clock import SimulationClock
from eaglex_sim.engine.tick_engine import EngineSettings, SimulationEngine
from eaglex_sim.models.records import AIStrategy, MechanicalEvent, SimulationStatus, TelemetrySnapshot
from eaglex_sim.session.loader import LoadedSession, SessionLoader, SessionNotFoundError
from eaglex_sim.storage.base import SimulationStore, StoreError
from eaglex_sim.storage.memory_store import InMemoryStore
from eaglex_sim.storage.sqlite_store import SqliteStore
from eaglex_sim.storage.telemetry_recorder import TelemetryRecorder
from eaglex_sim.storage.writer import PersistenceWriter


def build_store(config: AppConfig) -> SimulationStore:
    backend = config.store_backend.strip().lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "sqlite":
        return SqliteStore(config.db_path)
    raise RuntimeError(f"invalid store backend: {config.store_backend}")


@dataclass
class SimulationApp:
    config: AppConfig

    def __post_init__(self) -> None:
        self._capture_announced = False
        self._labels: Dict[str, str] = {}
        self.rng = Random(self.config.seed)
        self.event_bus = EventBus()
        self.store = build_store(self.config)
        self.writer = PersistenceWriter(max_pending=self.config.writer_queue_size)
        self.recorder = TelemetryRecorder(self.config.telemetry_dir)
        self.loader = SessionLoader(self.store, rng=self.rng)
        self.session: Optional[LoadedSession] = None
        self.engine: Optional[SimulationEngine] = None
        self.clock: Optional[SimulationClock] = None
        self.dashboard_state: Optional[DashboardState] = None
        self.dashboard_server: Optional[DashboardServer] = None

    def prepare(self) -> bool:
        """Creates or loads the session and wires the engine. False if nothing to run."""
        simulation_id = self.config.simulation_id.strip()
        if not simulation_id:
            simulation = self.loader.create(
                mode=self.config.mode,
                track_id=self.config.track_id.strip() or None,
                settings=self.config.session_settings(),
                speed_multiplier=self.config.speed_multiplier,
            )
            simulation_id = simulation.id or ""
        try:
            self.session = self.loader.load(simulation_id)
        except SessionNotFoundError as exc:
            print(f"[SESSION] {exc}; nothing to run.")
            return False

        session = self.session
        self._labels = {agent.id: agent.agent_number for agent in session.agents}
        self.engine = SimulationEngine(
            simulation=session.simulation,
            agents=session.agents,
            track=session.track,
            event_bus=self.event_bus,
            rng=self.rng,
            settings=EngineSettings(
                degrade_every_ticks=self.config.degrade_every_ticks,
                event_every_ticks=self.config.event_every_ticks,
                telemetry_every_ticks=self.config.telemetry_every_ticks,
                strategy_every_ticks=self.config.strategy_every_ticks,
                event_probability=self.config.event_probability,
                base_tick_s=self.config.base_interval_s,
            ),
            generator=self.loader.generator,
        )
        self.clock = SimulationClock(
            on_tick=self.engine.tick,
            base_interval_s=self.config.base_interval_s,
            speed_multiplier=session.simulation.speed_multiplier or 1.0,
            tick_limit=self.config.tick_limit,
        )
        self.dashboard_state, self.dashboard_server = self._build_dashboard(session)
        for event in session.events:
            self.dashboard_state.add_event(event)
        for strategy in session.strategies:
            self.dashboard_state.set_strategy(strategy)
        self.dashboard_state.update_roster(self.engine.snapshot())
        self._register_handlers()
        return True

    def run(self) -> None:
        if self.engine is None and not self.prepare():
            return
        clock, _, _ = self._require_prepared()
        self.dashboard_state.set_status("starting")
        if self.dashboard_server is not None:
            try:
                self.dashboard_server.start()
                print(f"[DASH] running at {self.dashboard_server.url}")
            except OSError as exc:
                print(f"[DASH] failed to start dashboard: {exc}")
                self.dashboard_server = None
        self.writer.start()
        try:
            self.play()
            while not clock.wait_finished(timeout_s=0.5):
                pass
            if clock.last_error is not None:
                print(f"[ENGINE] stopped after error: {clock.last_error!r}")
        except KeyboardInterrupt:
            print("[ENGINE] interrupted, shutting down.")
        finally:
            self.shutdown()

    def play(self) -> None:
        clock, _, _ = self._require_prepared()
        clock.play()
        self._publish_status(SimulationStatus.RUNNING)

    def pause(self) -> None:
        clock, _, _ = self._require_prepared()
        clock.pause()
        self._publish_status(SimulationStatus.PAUSED)

    def set_speed(self, value: float) -> None:
        clock, engine, session = self._require_prepared()
        clock.set_speed_multiplier(value)
        engine.set_speed_multiplier(value)
        simulation_id = session.simulation.id or ""
        self.writer.submit(
            f"speed {value:.2f}",
            lambda: self.store.update_simulation(simulation_id, {"speed_multiplier": value}),
        )
        print(f"[ENGINE] speed_multiplier={value:.2f}")

    def _require_prepared(self) -> tuple[SimulationClock, SimulationEngine, LoadedSession]:
        if self.clock is None or self.engine is None or self.session is None or self.dashboard_state is None:
            raise RuntimeError("session not prepared")
        return self.clock, self.engine, self.session

    def shutdown(self) -> None:
        if self.clock is not None:
            self.clock.stop()
        if self.dashboard_state is not None:
            self.dashboard_state.set_status("stopped")
        self._publish_status(SimulationStatus.PAUSED)
        self.writer.close()
        print(
            f"[PERSIST] writer completed={self.writer.completed} "
            f"failed={self.writer.failed} dropped={self.writer.dropped}"
        )
        if self.config.persist_telemetry:
            for agent_id, csv_path, parquet_path in self.recorder.flush_all(
                labels=self._labels,
                persist_parquet=self.config.persist_parquet,
            ):
                label = self._labels.get(agent_id, agent_id)
                if csv_path is not None:
                    print(f"[PERSIST] {label} telemetry CSV saved: {csv_path}")
                if parquet_path is not None:
                    print(f"[PERSIST] {label} telemetry Parquet saved: {parquet_path}")
        if self.engine is not None and self.session is not None:
            try:
                self.store.update_simulation(
                    self.session.simulation.id or "",
                    {"sim_time": int(self.engine.sim_time_s)},
                )
            except StoreError as exc:
                print(f"[PERSIST] final sim_time not saved: {exc}")
        if self.dashboard_server is not None:
            self.dashboard_server.stop()
        self.store.close()

    def _build_dashboard(self, session: LoadedSession) -> tuple[DashboardState, DashboardServer | None]:
        simulation = session.simulation
        config_view = {
            "store_backend": self.config.store_backend,
            "db_path": str(self.config.db_path),
            "mode": simulation.mode,
            "track_id": simulation.track_id,
            "num_agents": len(session.agents),
            "speed_multiplier": simulation.speed_multiplier,
            "base_interval_s": self.config.base_interval_s,
            "tick_limit": self.config.tick_limit,
            "degrade_every_ticks": self.config.degrade_every_ticks,
            "event_every_ticks": self.config.event_every_ticks,
            "telemetry_every_ticks": self.config.telemetry_every_ticks,
            "strategy_every_ticks": self.config.strategy_every_ticks,
            "event_probability": self.config.event_probability,
            "telemetry_dir": str(self.config.telemetry_dir),
            "persist_parquet": self.config.persist_parquet,
            "dashboard_host": self.config.dashboard_host,
            "dashboard_port": self.config.dashboard_port,
        }
        state = DashboardState(simulation_id=simulation.id or "", config_view=config_view)
        if not self.config.enable_dashboard:
            return state, None
        server = DashboardServer(
            state=state,
            host=self.config.dashboard_host,
            port=self.config.dashboard_port,
        )
        return state, server

    def _register_handlers(self) -> None:
        self.event_bus.subscribe(ROSTER_UPDATED, self._on_roster)
        self.event_bus.subscribe(TELEMETRY_BATCH, self._on_telemetry)
        self.event_bus.subscribe(EVENT_EMITTED, self._on_event)
        self.event_bus.subscribe(STRATEGY_EMITTED, self._on_strategy)
        self.event_bus.subscribe(LAP_COMPLETED, self._on_lap)
        self.event_bus.subscribe(STATUS_CHANGED, self._on_status)

    def _publish_status(self, status: SimulationStatus) -> None:
        self.event_bus.publish(Event(name=STATUS_CHANGED, payload={"status": status}))

    def _on_status(self, event: Event) -> None:
        status: SimulationStatus = event.payload["status"]
        if self.dashboard_state is not None and self.dashboard_state.status != "stopped":
            self.dashboard_state.set_status(status.value)
        if self.session is None:
            return
        simulation_id = self.session.simulation.id or ""
        self.writer.submit(
            f"status {status.value}",
            lambda: self.store.update_simulation(simulation_id, {"status": status}),
        )

    def _on_roster(self, event: Event) -> None:
        snapshot: RosterSnapshot = event.payload["snapshot"]
        if self.dashboard_state is not None:
            self.dashboard_state.update_roster(snapshot)
        if not self.config.capture_heartbeat or not snapshot.agents:
            return
        leader = snapshot.agents[0]
        for agent in snapshot.agents:
            if agent.rank == 1:
                leader = agent
                break
        if not self._capture_announced:
            self._capture_announced = True
            print(
                "[CAPTURE] first_tick "
                f"tick={snapshot.tick} agents={len(snapshot.agents)} "
                f"leader={leader.agent_number} lap={leader.position.lap} sector={leader.position.sector}"
            )
        elif snapshot.tick % max(1, self.config.capture_heartbeat_every_ticks) == 0:
            weakest = min(snapshot.agents, key=lambda a: a.mechanical_health)
            print(
                "[CAPTURE] heartbeat "
                f"tick={snapshot.tick} sim_time={snapshot.sim_time_s:.1f}s "
                f"leader={leader.agent_number} lap={leader.position.lap} "
                f"speed={leader.telemetry.speed:.1f}kph soc={leader.telemetry.battery_soc:.3f} "
                f"weakest={weakest.agent_number} health={weakest.mechanical_health:.1f} "
                f"ttc={weakest.time_to_critical:.1f} risk={weakest.dnf_risk:.1f}"
            )

    def _on_telemetry(self, event: Event) -> None:
        tick = int(event.payload["tick"])
        batch: List[TelemetrySnapshot] = list(event.payload["snapshots"])
        if self.config.persist_telemetry:
            self.recorder.record(batch)
        self.writer.submit(
            f"telemetry tick {tick}",
            lambda: self.store.bulk_create_telemetry(batch),
        )

    def _on_event(self, event: Event) -> None:
        mechanical: MechanicalEvent = event.payload["event"]
        label = self._labels.get(mechanical.agent_id, mechanical.agent_id)
        print(
            f"[EVENT][{label}] {mechanical.event_type.value} "
            f"severity={mechanical.severity:.2f} ttc={mechanical.time_to_critical:.1f} "
            f"action={mechanical.action_type.value}"
        )
        if self.dashboard_state is not None:
            self.dashboard_state.add_event(mechanical)
        self.writer.submit(
            f"event {mechanical.event_type.value} for {label}",
            lambda: self.store.create_event(mechanical),
        )

    def _on_strategy(self, event: Event) -> None:
        strategy: AIStrategy = event.payload["strategy"]
        label = self._labels.get(strategy.agent_id, strategy.agent_id)
        print(
            f"[STRATEGY][{label}] {strategy.strategy_type.value} "
            f"priority={strategy.priority.value} confidence={strategy.confidence:.2f}"
        )
        if self.dashboard_state is not None:
            self.dashboard_state.set_strategy(strategy)
        self.writer.submit(
            f"strategy for {label}",
            lambda: self.store.create_strategy(strategy),
        )

    def _on_lap(self, event: Event) -> None:
        payload: Dict[str, Any] = event.payload
        print(
            f"[LAP][{payload['agent_number']}] lap={payload['lap']} "
            f"time={float(payload['lap_time_s'] or 0.0):.3f}s "
            f"best={float(payload['best_lap_time_s'] or 0.0):.3f}s"
        )
        if self.dashboard_state is not None:
            self.dashboard_state.add_lap(payload)
