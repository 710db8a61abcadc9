"""
Delivery channels for a Last Breath.

A channel pairs a sink (the transport) with the credentials it needs. A
channel whose credentials are missing is "not configured", which is reported
separately from a delivery failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, runtime_checkable

from safetrack.emergency.payload import EmergencyPayload
from safetrack.utils.log import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ChannelSink(Protocol):
    """
    Transport capability: deliver one payload, return True on success.

    A blocking `deliver` is accepted too and runs in a worker thread.
    """

    async def deliver(self, payload: EmergencyPayload) -> bool: ...


@dataclass
class Channel:
    """
    One independently configured delivery channel.

    Parameters
    ----------
    name
        Stable channel name used as the key in dispatch results.
    sink
        Transport that performs the delivery; None when unavailable.
    credentials
        Credential name -> value; every value must be non-blank for the
        channel to count as configured.
    """
    name: str
    sink: Optional[ChannelSink] = None
    credentials: Mapping[str, Optional[str]] = field(default_factory=dict)

    @property
    def configured(self) -> bool:
        if self.sink is None:
            return False
        return all(v is not None and v.strip() for v in self.credentials.values())

    @property
    def missing_credentials(self) -> list[str]:
        return sorted(k for k, v in self.credentials.items() if v is None or not v.strip())


class LogSink:
    """
    Sink that writes the payload to the log, for test runs without transports.
    """
    async def deliver(self, payload: EmergencyPayload) -> bool:
        header = "Last Breath TEST" if payload.is_test else "Last Breath"
        logger.warning("%s: %s", header, payload.reason)
        if payload.has_location:
            logger.warning(
                "Location: %s, %s (±%.0fm) %s",
                payload.lat, payload.lon, payload.accuracy or 0.0, payload.maps_url,
            )
        else:
            logger.warning("No GPS location available")
        if payload.speed_kmh is not None:
            logger.warning("Speed: %d km/h %s", payload.speed_kmh, payload.direction or "")
        if payload.network_count:
            logger.warning("Visible networks (%d):", payload.network_count)
            for line in payload.network_lines():
                logger.warning("  %s", line)
        return True
