from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(slots=True)
class AppConfig:
    store_backend: str = "sqlite"  # sqlite | memory
    db_path: Path = Path("data") / "eaglex.sqlite"
    simulation_id: str = ""
    mode: str = "formula_e"  # formula_e | motogp | drone_racing | supply_chain | traffic_system
    track_id: str = ""
    num_agents: int = 6
    driver_style: str = "balanced"  # aggressive | balanced | conservative
    energy_target: float = 70.0
    tire_compound: str = "medium"
    regen_strategy: str = "auto"
    car_model: str = "gen3"
    speed_multiplier: float = 1.0
    base_interval_s: float = 0.1
    tick_limit: int = 0
    degrade_every_ticks: int = 10
    event_every_ticks: int = 50
    telemetry_every_ticks: int = 100
    strategy_every_ticks: int = 300
    event_probability: float = 0.3
    writer_queue_size: int = 256
    telemetry_dir: Path = Path("data") / "telemetry"
    persist_telemetry: bool = True
    persist_parquet: bool = True
    enable_dashboard: bool = True
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8766
    capture_heartbeat: bool = True
    capture_heartbeat_every_ticks: int = 100
    seed: Optional[int] = None

    def session_settings(self) -> Dict[str, Any]:
        return {
            "num_agents": self.num_agents,
            "driver_style": self.driver_style,
            "energy_target": self.energy_target,
            "tire_compound": self.tire_compound,
            "regen_strategy": self.regen_strategy,
            "car_model": self.car_model,
        }
