from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EventType(str, Enum):
    THERMAL_SURGE = "thermal_surge"
    CROSS_THREAD = "cross_thread"
    BOTTOM_OUT = "bottom_out"
    DAMPER_CAVITATION = "damper_cavitation"
    MICRO_FAILURE_CHAIN = "micro_failure_chain"
    SENSOR_DRIFT = "sensor_drift"
    DEATH_SPIRAL = "death_spiral"
    BRAKE_DEBRIS = "brake_debris"
    VAPOR_LOCK = "vapor_lock"
    DELAMINATION = "delamination"
    ERS_SHUTDOWN = "ers_shutdown"
    SHOCK_EVENT = "shock_event"
    ASSEMBLY_ERROR = "assembly_error"


class ActionType(str, Enum):
    EMERGENCY_PIT = "emergency_pit"
    MONITOR = "monitor"
    IGNORE = "ignore"
    ADJUST_SETTINGS = "adjust_settings"


class EventStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class StrategyType(str, Enum):
    PIT_ADVISOR = "pit_advisor"
    CONSERVE_ENERGY = "conserve_energy"
    TACTICAL_COACH = "tactical_coach"
    ATTACK_MODE = "attack_mode"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SimulationStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"


def _plain(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: (value.value if isinstance(value, Enum) else value) for key, value in data.items()}


@dataclass(slots=True)
class MechanicalEvent:
    simulation_id: str
    agent_id: str
    event_type: EventType
    severity: float
    time_to_critical: float
    service_time: float
    fail_probability: float
    prognosis: str
    recommendation: str
    action_type: ActionType
    confidence: float
    trigger_signals: List[str] = field(default_factory=list)
    status: EventStatus = EventStatus.ACTIVE
    sim_time: int = 0
    id: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.severity > 0.7

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MechanicalEvent":
        payload = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        payload["event_type"] = EventType(payload["event_type"])
        payload["action_type"] = ActionType(payload["action_type"])
        payload["status"] = EventStatus(payload.get("status", "active"))
        payload["trigger_signals"] = list(payload.get("trigger_signals") or [])
        return cls(**payload)


@dataclass(slots=True)
class AIStrategy:
    simulation_id: str
    agent_id: str
    strategy_type: StrategyType
    recommendation: str
    reasons: List[str]
    confidence: float
    priority: Priority
    sim_time: int = 0
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIStrategy":
        payload = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        payload["strategy_type"] = StrategyType(payload["strategy_type"])
        payload["priority"] = Priority(payload["priority"])
        payload["reasons"] = list(payload.get("reasons") or [])
        return cls(**payload)


@dataclass(slots=True)
class TelemetrySnapshot:
    """Point-in-time copy of one agent's telemetry for bulk persistence."""

    simulation_id: str
    agent_id: str
    tick: int
    x: float
    y: float
    heading: float
    lap: int
    sector: int
    speed_kph: float
    throttle: float
    brake_pressure: float
    rotor_temp: float
    hub_temp: float
    battery_soc: float
    tire_temp_fl: float
    tire_temp_fr: float
    tire_temp_rl: float
    tire_temp_rr: float
    regen_power: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Simulation:
    mode: str
    track_id: str
    settings: Dict[str, Any] = field(default_factory=dict)
    status: SimulationStatus = SimulationStatus.RUNNING
    sim_time: int = 0
    speed_multiplier: float = 1.0
    id: Optional[str] = None

    @property
    def num_agents(self) -> int:
        raw = self.settings.get("num_agents") or 6
        return max(2, min(20, int(raw)))

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Simulation":
        payload = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        payload["status"] = SimulationStatus(payload.get("status", "running"))
        payload["settings"] = dict(payload.get("settings") or {})
        return cls(**payload)


@dataclass(slots=True)
class Driver:
    simulation_id: str
    driver_number: str
    driver_name: str
    team_name: str
    style: str
    skill_rating: float
    energy_target: float
    current_position: int
    current_lap: int = 0
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Car:
    simulation_id: str
    driver_id: str
    car_number: str
    model: str
    tire_compound: str
    regen_strategy: str
    battery_capacity_kwh: float = 54.0
    mechanical_health: float = 100.0
    battery_soc: float = 100.0
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
