"""
Structured Last Breath payload shared by every channel.

Channels decide their own markup; this module only decides what is in it.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from safetrack.analysis.types import now_ms
from safetrack.utils.geo import bearing_to_compass
from safetrack.utils.validate import LocationFix, NetworkObservation, is_valid_identifier

# 2 km/h; below this speed and bearing are GPS noise
MOVING_SPEED_MS = 0.556


class VisibleNetwork(BaseModel):
    """
    One entry of the visible-network list.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    signal: int

    def __str__(self) -> str:
        return f"{self.name} ({self.signal} dBm)"


class EmergencyPayload(BaseModel):
    """
    Everything a Last Breath carries.
    """
    model_config = ConfigDict(frozen=True)

    reason: str
    is_test: bool = False
    ts: int
    lat: Optional[float] = None
    lon: Optional[float] = None
    alt: Optional[float] = None
    accuracy: Optional[float] = None
    speed_kmh: Optional[int] = None
    direction: Optional[str] = None
    networks: list[VisibleNetwork] = []
    network_count: int = 0

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def maps_url(self) -> Optional[str]:
        if not self.has_location:
            return None
        return f"https://maps.google.com/maps?q={self.lat},{self.lon}"

    def network_lines(self, limit: int = 5) -> list[str]:
        """
        Render at most `limit` networks, then a summary line for the rest.
        """
        lines = [str(n) for n in self.networks[:limit]]
        remaining = self.network_count - len(lines)
        if remaining > 0:
            lines.append(f"... and {remaining} more")
        return lines


def summarize_networks(observations: Iterable[NetworkObservation]) -> list[VisibleNetwork]:
    """
    Sort visible networks by signal (strongest first) and keep one entry per
    name, dropping blank and placeholder names.
    """
    seen: set[str] = set()
    summary: list[VisibleNetwork] = []
    for obs in sorted(observations, key=lambda o: o.signal, reverse=True):
        name = obs.display_name
        if not is_valid_identifier(name) or name in seen:
            continue
        seen.add(name)
        summary.append(VisibleNetwork(name=name, signal=obs.signal))
    return summary


def build_payload(
    reason: str,
    fix: Optional[LocationFix],
    networks: list[VisibleNetwork],
    is_test: bool = False,
    ts: Optional[int] = None,
) -> EmergencyPayload:
    """
    Assemble the payload; speed and direction only when actually moving.
    """
    fields: dict = {}
    if fix is not None:
        fields.update(lat=fix.lat, lon=fix.lon, alt=fix.alt, accuracy=fix.accuracy)
        if fix.speed is not None and fix.speed > MOVING_SPEED_MS:
            fields["speed_kmh"] = int(fix.speed * 3.6)
            if fix.bearing is not None:
                fields["direction"] = bearing_to_compass(fix.bearing)
    return EmergencyPayload(
        reason=reason,
        is_test=is_test,
        ts=now_ms() if ts is None else ts,
        networks=networks,
        network_count=len(networks),
        **fields,
    )
