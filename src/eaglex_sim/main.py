from __future__ import annotations

import os
from pathlib import Path

from eaglex_sim.app import SimulationApp
from eaglex_sim.config import AppConfig
from eaglex_sim.runtime_logging import configure_runtime_log, restore_runtime_log


def main() -> None:
    log_file = Path(os.getenv("EAGLEX_LOG_FILE", "logs/eaglex.log").strip() or "logs/eaglex.log")
    log_path = configure_runtime_log(log_file)
    store_backend = os.getenv("EAGLEX_STORE", "sqlite").strip().lower()
    db_path = os.getenv("EAGLEX_DB", "data/eaglex.sqlite").strip()
    simulation_id = os.getenv("EAGLEX_SIMULATION_ID", "").strip()
    mode = os.getenv("EAGLEX_MODE", "formula_e").strip().lower()
    track_id = os.getenv("EAGLEX_TRACK", "").strip()
    num_agents = int(os.getenv("EAGLEX_NUM_AGENTS", "6"))
    driver_style = os.getenv("EAGLEX_DRIVER_STYLE", "balanced").strip().lower()
    energy_target = float(os.getenv("EAGLEX_ENERGY_TARGET", "70"))
    tire_compound = os.getenv("EAGLEX_TIRE_COMPOUND", "medium").strip().lower()
    regen_strategy = os.getenv("EAGLEX_REGEN_STRATEGY", "auto").strip().lower()
    car_model = os.getenv("EAGLEX_CAR_MODEL", "gen3").strip()
    speed_multiplier = float(os.getenv("EAGLEX_SPEED", "1.0"))
    base_interval_s = float(os.getenv("EAGLEX_TICK_INTERVAL_S", "0.1"))
    tick_limit = int(os.getenv("EAGLEX_TICK_LIMIT", "0"))
    degrade_every_ticks = int(os.getenv("EAGLEX_DEGRADE_EVERY", "10"))
    event_every_ticks = int(os.getenv("EAGLEX_EVENT_EVERY", "50"))
    telemetry_every_ticks = int(os.getenv("EAGLEX_TELEMETRY_EVERY", "100"))
    strategy_every_ticks = int(os.getenv("EAGLEX_STRATEGY_EVERY", "300"))
    event_probability = float(os.getenv("EAGLEX_EVENT_PROBABILITY", "0.3"))
    writer_queue_size = int(os.getenv("EAGLEX_WRITER_QUEUE", "256"))
    telemetry_dir = os.getenv("EAGLEX_TELEMETRY_DIR", "data/telemetry").strip()
    persist_telemetry = os.getenv("EAGLEX_PERSIST_TELEMETRY", "1") != "0"
    persist_parquet = os.getenv("EAGLEX_PERSIST_PARQUET", "1") != "0"
    enable_dashboard = os.getenv("EAGLEX_DASHBOARD", "1") != "0"
    dashboard_host = os.getenv("EAGLEX_DASHBOARD_HOST", "127.0.0.1")
    dashboard_port = int(os.getenv("EAGLEX_DASHBOARD_PORT", "8766"))
    capture_heartbeat = os.getenv("EAGLEX_CAPTURE_HEARTBEAT", "1") != "0"
    capture_heartbeat_every_ticks = int(os.getenv("EAGLEX_CAPTURE_HEARTBEAT_EVERY", "100"))
    raw_seed = os.getenv("EAGLEX_SEED", "").strip()
    seed = int(raw_seed) if raw_seed else None

    print(
        f"[BOOT] store={store_backend} db={db_path} "
        f"simulation={simulation_id or 'new'} mode={mode} track={track_id or 'default'} "
        f"agents={num_agents} speed={speed_multiplier:.2f} interval={base_interval_s:.3f}s "
        f"tick_limit={tick_limit} event_p={event_probability:.2f} "
        f"capture_heartbeat={capture_heartbeat} every={capture_heartbeat_every_ticks} "
        f"dashboard={enable_dashboard}@{dashboard_host}:{dashboard_port} "
        f"seed={seed} log_file={log_path}"
    )
    app = SimulationApp(
        AppConfig(
            store_backend=store_backend,
            db_path=Path(db_path),
            simulation_id=simulation_id,
            mode=mode,
            track_id=track_id,
            num_agents=num_agents,
            driver_style=driver_style,
            energy_target=energy_target,
            tire_compound=tire_compound,
            regen_strategy=regen_strategy,
            car_model=car_model,
            speed_multiplier=speed_multiplier,
            base_interval_s=base_interval_s,
            tick_limit=tick_limit,
            degrade_every_ticks=degrade_every_ticks,
            event_every_ticks=event_every_ticks,
            telemetry_every_ticks=telemetry_every_ticks,
            strategy_every_ticks=strategy_every_ticks,
            event_probability=event_probability,
            writer_queue_size=writer_queue_size,
            telemetry_dir=Path(telemetry_dir),
            persist_telemetry=persist_telemetry,
            persist_parquet=persist_parquet,
            enable_dashboard=enable_dashboard,
            dashboard_host=dashboard_host,
            dashboard_port=dashboard_port,
            capture_heartbeat=capture_heartbeat,
            capture_heartbeat_every_ticks=capture_heartbeat_every_ticks,
            seed=seed,
        )
    )
    try:
        app.run()
    finally:
        restore_runtime_log()


if __name__ == "__main__":
    main()
