# safetrack/analysis/types.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from safetrack.utils.validate import LocationFix, NetworkObservation


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Classification(str, Enum):
    UNKNOWN = "unknown"
    STATIC = "static"    # home, office: does not move
    DYNAMIC = "dynamic"  # car, boat: moves with the user


class TrackingMode(str, Enum):
    OFF = "off"                # master switch off, no tracking at all
    ACTIVE = "active"          # continuous positioning
    STATIONARY = "stationary"  # on a known static network, positioning suppressed
    LEARNING = "learning"      # gathering evidence for an unknown network


@dataclass
class NetworkFingerprint:
    """
    Learned classification record for one network identifier.

    Parameters
    ----------
    identifier : str
        SSID or Bluetooth address; unique key in the store.
    name : str
        Display name.
    is_bluetooth : bool
        True for Bluetooth devices, False for Wi-Fi networks.
    classification : Classification
        Current classification, UNKNOWN until evidence is sufficient.
    learned_lat : float, optional
        Latitude of the anchor; only set for STATIC networks.
    learned_lon : float, optional
        Longitude of the anchor; only set for STATIC networks.
    confidence : float
        How sure we are about the classification, in [0, 1].
    sample_count : int
        Number of learning updates applied.
    last_seen : int
        Epoch millis of the last update.
    created_at : int
        Epoch millis when the record was created.
    """
    identifier: str
    name: str
    is_bluetooth: bool = False
    classification: Classification = Classification.UNKNOWN
    learned_lat: Optional[float] = None
    learned_lon: Optional[float] = None
    confidence: float = 0.0
    sample_count: int = 0
    last_seen: int = field(default_factory=now_ms)
    created_at: int = field(default_factory=now_ms)

    @property
    def anchor(self) -> Optional[tuple[float, float]]:
        if self.learned_lat is None or self.learned_lon is None:
            return None
        return (self.learned_lat, self.learned_lon)

    @property
    def is_classified(self) -> bool:
        return self.classification is not Classification.UNKNOWN

    @classmethod
    def from_observation(cls, network: NetworkObservation, ts: Optional[int] = None) -> NetworkFingerprint:
        ts = now_ms() if ts is None else ts
        return cls(
            identifier=network.identifier,
            name=network.display_name,
            is_bluetooth=network.is_bluetooth,
            last_seen=ts,
            created_at=ts,
        )


@dataclass
class LearningSession:
    """
    The single network currently being learned.

    Parameters
    ----------
    network : NetworkObservation
        Network under observation.
    started_at : int
        Epoch millis when the session opened.
    anchor : LocationFix, optional
        First fix seen after the session opened; never replaced afterwards.
    """
    network: NetworkObservation
    started_at: int
    anchor: Optional[LocationFix] = None

    def set_anchor(self, fix: LocationFix) -> bool:
        """Record the anchor if none is set yet; return True when it was set."""
        if self.anchor is not None:
            return False
        self.anchor = fix
        return True
