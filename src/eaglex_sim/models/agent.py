from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

SOC_MIN = 0.05
SOC_MAX = 1.0
HEALTH_MIN = 0.0
HEALTH_MAX = 100.0
DNF_RISK_MAX = 100.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Personality(str, Enum):
    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    CONSERVATIVE = "conservative"

    @classmethod
    def parse(cls, raw: object) -> "Personality":
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.BALANCED

    @property
    def profile(self) -> "PersonalityProfile":
        return PERSONALITY_PROFILES[self]


@dataclass(frozen=True, slots=True)
class PersonalityProfile:
    speed_boost: float
    aggression_spread: float
    speed_factor: float
    energy_factor: float


PERSONALITY_PROFILES: Dict[Personality, PersonalityProfile] = {
    Personality.AGGRESSIVE: PersonalityProfile(
        speed_boost=1.15, aggression_spread=0.4, speed_factor=1.15, energy_factor=1.2
    ),
    Personality.BALANCED: PersonalityProfile(
        speed_boost=1.0, aggression_spread=0.2, speed_factor=1.0, energy_factor=1.0
    ),
    Personality.CONSERVATIVE: PersonalityProfile(
        speed_boost=0.92, aggression_spread=0.1, speed_factor=0.9, energy_factor=1.0
    ),
}


@dataclass(slots=True)
class AgentPosition:
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0
    lap: int = 1
    sector: int = 1


@dataclass(slots=True)
class SuspensionTravel:
    lf: float = 0.0
    rf: float = 0.0
    lr: float = 0.0
    rr: float = 0.0


@dataclass(slots=True)
class AgentTelemetry:
    speed: float = 0.0
    throttle: Optional[float] = None
    brake_pressure: Optional[float] = None
    rotor_temp: float = 0.0
    hub_temp: float = 0.0
    battery_soc: float = 0.85
    tire_temp_fl: float = 0.0
    tire_temp_fr: float = 0.0
    tire_temp_rl: float = 0.0
    tire_temp_rr: float = 0.0
    regen_power: float = 0.0
    suspension_travel: SuspensionTravel = field(default_factory=SuspensionTravel)


@dataclass(slots=True)
class AgentState:
    """Mutable per-agent record. The engine is its only writer."""

    id: str
    simulation_id: str
    agent_number: str
    team_name: str
    driver_name: str = ""
    driver_id: Optional[str] = None
    car_id: Optional[str] = None
    personality: Personality = Personality.BALANCED
    aggression_factor: float = 1.0
    efficiency_factor: float = 1.0
    heat_factor: float = 1.0
    brake_factor: float = 1.0
    risk_factor: float = 1.0
    position: AgentPosition = field(default_factory=AgentPosition)
    path_index: int = 0
    rank: int = 0
    race_time: float = 0.0
    telemetry: AgentTelemetry = field(default_factory=AgentTelemetry)
    mechanical_health: float = 100.0
    time_to_critical: float = 15.0
    dnf_risk: float = 0.0
    service_load: float = 0.0
    last_lap_time: Optional[float] = None
    best_lap_time: Optional[float] = None
    pit_status: str = "on_track"

    def clone(self) -> "AgentState":
        return copy.deepcopy(self)

    def is_vulnerable(self) -> bool:
        return self.mechanical_health < 80.0 or self.time_to_critical < 10.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["personality"] = self.personality.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentState":
        payload = dict(data)
        position = payload.pop("position", None) or {}
        telemetry = dict(payload.pop("telemetry", None) or {})
        suspension = telemetry.pop("suspension_travel", None) or {}
        personality = Personality.parse(payload.pop("personality", "balanced"))
        known = set(cls.__dataclass_fields__)
        fields = {key: value for key, value in payload.items() if key in known}
        return cls(
            personality=personality,
            position=AgentPosition(**position),
            telemetry=AgentTelemetry(suspension_travel=SuspensionTravel(**suspension), **telemetry),
            **fields,
        )
