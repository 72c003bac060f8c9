from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True, slots=True)
class Waypoint:
    x: float
    y: float
    sector: int


@dataclass(frozen=True, slots=True)
class Track:
    """Closed loop of waypoints the agents advance along."""

    track_id: str
    name: str
    waypoints: Tuple[Waypoint, ...]
    length_km: float = 0.0
    sectors: int = 3

    def __len__(self) -> int:
        return len(self.waypoints)

    def point(self, index: int) -> Waypoint:
        return self.waypoints[index % len(self.waypoints)]

    def previous_point(self, index: int) -> Waypoint:
        return self.waypoints[(index - 1) % len(self.waypoints)]

    def heading_deg(self, index: int) -> float:
        current = self.point(index)
        previous = self.previous_point(index)
        return math.degrees(math.atan2(current.y - previous.y, current.x - previous.x))

    def crosses_sector(self, index: int) -> bool:
        return self.point(index).sector != self.previous_point(index).sector


# Las Vegas GP street layout, simplified to 20 points.
_LAS_VEGAS_PATH: Tuple[Waypoint, ...] = (
    Waypoint(100, 200, 1),
    Waypoint(150, 180, 1),
    Waypoint(200, 170, 1),
    Waypoint(250, 160, 1),
    Waypoint(300, 155, 1),
    Waypoint(350, 160, 1),
    Waypoint(400, 180, 1),
    Waypoint(450, 210, 2),
    Waypoint(480, 250, 2),
    Waypoint(490, 300, 2),
    Waypoint(480, 350, 2),
    Waypoint(450, 390, 2),
    Waypoint(400, 420, 2),
    Waypoint(350, 430, 2),
    Waypoint(300, 425, 3),
    Waypoint(250, 410, 3),
    Waypoint(200, 380, 3),
    Waypoint(150, 340, 3),
    Waypoint(120, 290, 3),
    Waypoint(100, 240, 3),
)

DEFAULT_TRACK_ID = "las_vegas_gp"

# Every environment currently moves agents along the same reference path;
# only the catalog metadata differs.
_TRACK_CATALOG: Dict[str, Tuple[str, float, int]] = {
    "las_vegas_gp": ("Las Vegas GP", 6.12, 3),
    "monaco": ("Monaco ePrix", 3.32, 3),
    "berlin": ("Berlin Tempelhof", 2.38, 3),
    "mugello": ("Mugello Circuit", 5.25, 4),
    "downtown_gates": ("Downtown Gates", 0.0, 12),
    "west_coast": ("West Coast Network", 0.0, 8),
    "metro_grid": ("Metropolitan Grid", 0.0, 24),
}

TRACKS_BY_MODE: Dict[str, Tuple[str, ...]] = {
    "formula_e": ("las_vegas_gp", "monaco", "berlin"),
    "motogp": ("mugello",),
    "drone_racing": ("downtown_gates",),
    "supply_chain": ("west_coast",),
    "traffic_system": ("metro_grid",),
}


def get_track(track_id: str | None) -> Track:
    key = (track_id or "").strip().lower()
    if key not in _TRACK_CATALOG:
        key = DEFAULT_TRACK_ID
    name, length_km, sectors = _TRACK_CATALOG[key]
    return Track(
        track_id=key,
        name=name,
        waypoints=_LAS_VEGAS_PATH,
        length_km=length_km,
        sectors=sectors,
    )


def default_track_for_mode(mode: str) -> str:
    options = TRACKS_BY_MODE.get(mode.strip().lower())
    if not options:
        return DEFAULT_TRACK_ID
    return options[0]
