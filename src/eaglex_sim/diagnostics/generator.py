from __future__ import annotations

import math
from dataclasses import dataclass
from random import Random
from typing import Dict, List, Sequence, Tuple, TypeVar

from eaglex_sim.models.agent import AgentState
from eaglex_sim.models.records import (
    ActionType,
    AIStrategy,
    EventType,
    MechanicalEvent,
    Priority,
    StrategyType,
)

T = TypeVar("T")

CRITICAL_SEVERITY = 0.7

# Types the running engine can raise on its own; the rest come from setup or
# external tooling.
ENGINE_EVENT_TYPES: Tuple[EventType, ...] = (
    EventType.THERMAL_SURGE,
    EventType.BOTTOM_OUT,
    EventType.SENSOR_DRIFT,
    EventType.DAMPER_CAVITATION,
    EventType.BRAKE_DEBRIS,
)

SETUP_EVENT_TYPES: Tuple[EventType, ...] = (
    EventType.THERMAL_SURGE,
    EventType.BOTTOM_OUT,
    EventType.SENSOR_DRIFT,
)

_TRIGGER_SIGNALS: Dict[EventType, Tuple[str, ...]] = {
    EventType.THERMAL_SURGE: ("rotor_temp", "caliper_temp", "brake_pressure", "throttle"),
    EventType.BOTTOM_OUT: ("suspension_travel", "vertical_accel", "damper_velocity"),
    EventType.SENSOR_DRIFT: ("speed_sensor", "temp_sensor", "pressure_sensor"),
    EventType.DAMPER_CAVITATION: ("damper_velocity", "suspension_travel", "vertical_accel"),
    EventType.BRAKE_DEBRIS: ("brake_pressure", "rotor_temp", "pad_wear"),
    EventType.CROSS_THREAD: ("wheel_nut_torque", "hub_temp", "vibration"),
    EventType.MICRO_FAILURE_CHAIN: ("vibration", "rotor_temp", "suspension_travel"),
    EventType.DEATH_SPIRAL: ("rotor_temp", "battery_soc", "dnf_risk"),
    EventType.VAPOR_LOCK: ("brake_fluid_temp", "brake_pressure", "pedal_travel"),
    EventType.DELAMINATION: ("tire_temp", "tire_pressure", "vibration"),
    EventType.ERS_SHUTDOWN: ("battery_soc", "battery_temp", "regen_power"),
    EventType.SHOCK_EVENT: ("vertical_accel", "suspension_travel", "chassis_load"),
    EventType.ASSEMBLY_ERROR: ("wheel_nut_torque", "sensor_checksum", "vibration"),
}

# (lead sentence, high-severity tail, low-severity tail)
_PROGNOSES: Dict[EventType, Tuple[str, str, str]] = {
    EventType.THERMAL_SURGE: (
        "Brake rotor temperature {level} elevated. "
        "Risk of rotor glazing and reduced braking efficiency.",
        "Immediate action required.",
        "Monitor temperature trends.",
    ),
    EventType.BOTTOM_OUT: (
        "Suspension bottoming detected.",
        "Multiple high-severity impacts may have damaged suspension components.",
        "Isolated bottoming event - monitor for repeated occurrences.",
    ),
    EventType.SENSOR_DRIFT: (
        "Sensor readings diverging from expected values.",
        "Critical sensor failure - may affect vehicle control systems.",
        "Minor drift detected - recalibration recommended.",
    ),
    EventType.DAMPER_CAVITATION: (
        "Damper cavitation detected.",
        "Severe cavitation - damper effectiveness compromised.",
        "Early signs of cavitation - service recommended.",
    ),
    EventType.BRAKE_DEBRIS: (
        "Brake debris ingestion detected.",
        "Significant debris contamination - brake performance degraded.",
        "Minor debris ingestion - monitor brake temps.",
    ),
    EventType.CROSS_THREAD: (
        "Wheel fastener torque outside tolerance.",
        "Cross-threaded nut suspected - wheel retention at risk.",
        "Torque variance detected - verify at next stop.",
    ),
    EventType.MICRO_FAILURE_CHAIN: (
        "Correlated minor faults detected across subsystems.",
        "Faults are compounding - cascade failure likely.",
        "Isolated faults for now - watch for correlation.",
    ),
    EventType.DEATH_SPIRAL: (
        "Thermal and energy margins degrading together.",
        "Runaway degradation - retirement likely without service.",
        "Early coupling observed - reduce load to break the trend.",
    ),
    EventType.VAPOR_LOCK: (
        "Brake fluid temperature near boiling point.",
        "Pedal travel increasing - braking capacity compromised.",
        "Fluid temperature climbing - add cooling where possible.",
    ),
    EventType.DELAMINATION: (
        "Tire tread separation signature detected.",
        "Tread delaminating - puncture risk is high.",
        "Minor separation signature - monitor tire temps.",
    ),
    EventType.ERS_SHUTDOWN: (
        "Energy recovery system reporting faults.",
        "ERS shutdown imminent - power deployment will be lost.",
        "Intermittent ERS faults - reduce regen load.",
    ),
    EventType.SHOCK_EVENT: (
        "High vertical load impact recorded.",
        "Impact exceeded chassis limits - structural inspection required.",
        "Impact within limits - check for follow-up vibration.",
    ),
    EventType.ASSEMBLY_ERROR: (
        "Component configuration mismatch detected.",
        "Assembly fault affecting safety-critical parts.",
        "Non-critical assembly discrepancy - log for the next service.",
    ),
}

_CRITICAL_RECOMMENDATION = "Immediate pit stop required - component at risk of catastrophic failure"
_MONITOR_RECOMMENDATION = "Monitor closely. Pit at next convenient opportunity"


@dataclass(slots=True)
class Diagnosis:
    prognosis: str
    recommendation: str
    action_type: ActionType


def uniform(rng: Random, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def pick(rng: Random, items: Sequence[T]) -> T:
    if not items:
        raise ValueError("cannot pick from an empty sequence")
    index = min(len(items) - 1, int(rng.random() * len(items)))
    return items[index]


def is_critical(severity: float) -> bool:
    return severity > CRITICAL_SEVERITY


def trigger_signals(event_type: EventType) -> List[str]:
    return list(_TRIGGER_SIGNALS.get(event_type, ("unknown",)))


def build_prognosis(event_type: EventType, severity: float) -> str:
    template = _PROGNOSES.get(event_type)
    if template is None:
        return "Event detected. Monitoring situation."
    lead, high_tail, low_tail = template
    critical = is_critical(severity)
    lead = lead.format(level="critically" if critical else "significantly")
    return f"{lead} {high_tail if critical else low_tail}"


def build_recommendation(severity: float) -> Tuple[str, ActionType]:
    if is_critical(severity):
        return _CRITICAL_RECOMMENDATION, ActionType.EMERGENCY_PIT
    return _MONITOR_RECOMMENDATION, ActionType.MONITOR


def diagnose(event_type: EventType, severity: float) -> Diagnosis:
    recommendation, action_type = build_recommendation(severity)
    return Diagnosis(
        prognosis=build_prognosis(event_type, severity),
        recommendation=recommendation,
        action_type=action_type,
    )


class EventStrategyGenerator:
    """Turns an agent's derived state into mechanical events and strategy advice."""

    def __init__(self, rng: Random) -> None:
        self.rng = rng

    def create_event(
        self,
        agent: AgentState,
        event_type: EventType,
        severity: float,
        sim_time: int,
    ) -> MechanicalEvent:
        critical = is_critical(severity)
        diagnosis = diagnose(event_type, severity)
        if critical:
            time_to_critical = uniform(self.rng, 2.0, 5.0)
            service_time = uniform(self.rng, 8.0, 13.0)
        else:
            time_to_critical = uniform(self.rng, 5.0, 15.0)
            service_time = uniform(self.rng, 3.0, 7.0)
        return MechanicalEvent(
            simulation_id=agent.simulation_id,
            agent_id=agent.id,
            event_type=event_type,
            severity=severity,
            time_to_critical=time_to_critical,
            service_time=service_time,
            fail_probability=severity * 100.0,
            prognosis=diagnosis.prognosis,
            recommendation=diagnosis.recommendation,
            action_type=diagnosis.action_type,
            confidence=uniform(self.rng, 0.75, 0.95),
            trigger_signals=trigger_signals(event_type),
            sim_time=sim_time,
        )

    def random_event(self, agent: AgentState, sim_time: int) -> MechanicalEvent:
        event_type = pick(self.rng, ENGINE_EVENT_TYPES)
        severity = uniform(self.rng, 0.3, 0.8)
        return self.create_event(agent, event_type, severity, sim_time)

    def setup_event(self, agent: AgentState, sim_time: int = 0) -> MechanicalEvent:
        event_type = pick(self.rng, SETUP_EVENT_TYPES)
        severity = uniform(self.rng, 0.4, 0.8)
        return self.create_event(agent, event_type, severity, sim_time)

    def classify_strategy(self, agent: AgentState, sim_time: int = 0) -> AIStrategy:
        health = agent.mechanical_health
        risk = agent.risk_factor
        efficiency = agent.efficiency_factor
        soc = agent.telemetry.battery_soc

        if health < 60.0 or risk > 1.15:
            strategy_type = StrategyType.PIT_ADVISOR
            reason = "critical wear" if health < 60.0 else "high failure risk"
            recommendation = f"Pit stop recommended in {math.ceil(3 / risk)} laps - {reason}"
            priority = Priority.CRITICAL
        elif soc < 0.3 or efficiency > 1.1:
            strategy_type = StrategyType.CONSERVE_ENERGY
            recommendation = f"Reduce power by {math.ceil(efficiency * 10)}% - energy critical"
            priority = Priority.HIGH
        elif health < 80.0:
            strategy_type = StrategyType.TACTICAL_COACH
            recommendation = f"Monitor closely - pit window opens in {math.ceil(8 / risk)} laps"
            priority = Priority.MEDIUM
        else:
            strategy_type = StrategyType.ATTACK_MODE
            window = math.ceil(uniform(self.rng, 5.0, 8.0))
            recommendation = f"Maintain pace - optimal window for overtake in {window} laps"
            priority = Priority.LOW

        reasons = [
            f"Health: {health:.0f}% (risk factor: {risk:.2f}x)",
            f"Battery: {soc * 100:.0f}% (efficiency: {efficiency:.2f}x)",
            f"DNF Risk: {agent.dnf_risk:.0f}%",
            f"Heat: {agent.heat_factor:.2f}x, Brake: {agent.brake_factor:.2f}x",
        ]
        return AIStrategy(
            simulation_id=agent.simulation_id,
            agent_id=agent.id,
            strategy_type=strategy_type,
            recommendation=recommendation,
            reasons=reasons,
            confidence=uniform(self.rng, 0.70, 0.95),
            priority=priority,
            sim_time=sim_time,
        )
