"""
Pydantic schemas to validate observations entering the controller,
and the request/response shapes of the HTTP surface.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Placeholder reported by the platform when the SSID is hidden or unreadable
UNKNOWN_SSID = "<unknown ssid>"


def is_valid_identifier(identifier: Optional[str]) -> bool:
    """
    True when the identifier is non-blank and not the platform placeholder.
    """
    if identifier is None:
        return False
    stripped = identifier.strip()
    return bool(stripped) and stripped != UNKNOWN_SSID


class LocationFix(BaseModel):
    """
    Single position fix from the positioning collaborator.
    """
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    lon: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    alt: float = 0.0
    accuracy: float = Field(0.0, ge=0.0)
    speed: Optional[float] = Field(None, ge=0.0)
    bearing: Optional[float] = Field(None, ge=0.0, lt=360.0)
    ts: int  # epoch millis

    @property
    def point(self) -> tuple[float, float]:
        return (self.lat, self.lon)


class NetworkObservation(BaseModel):
    """
    A Wi-Fi network or Bluetooth device as seen by the scanner.
    """
    model_config = ConfigDict(frozen=True)

    identifier: str
    name: str = ""
    is_bluetooth: bool = False
    signal: int = 0  # RSSI in dBm, 0 when unknown

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, v: str) -> str:
        if not is_valid_identifier(v):
            raise ValueError("identifier must be non-empty and not a placeholder")
        return v.strip()

    @property
    def display_name(self) -> str:
        return self.name or self.identifier


class BatteryReading(BaseModel):
    """
    One battery level sample.
    """
    model_config = ConfigDict(frozen=True)

    percentage: int = Field(ge=0, le=100)
    is_charging: bool = False


class ObservationSnapshot(BaseModel):
    """
    Everything the tracking evaluation needs from one tick.
    """
    associated: list[NetworkObservation] = Field(default_factory=list)
    activity_is_moving: bool = False


class FingerprintOut(BaseModel):
    """
    Normalized record for a single learned network fingerprint.
    """
    identifier: str
    name: str
    is_bluetooth: bool
    classification: str
    learned_lat: Optional[float]
    learned_lon: Optional[float]
    confidence: float
    sample_count: int
    last_seen: int
    created_at: int


class ClassifyRequest(BaseModel):
    """
    Manual classification submitted by the user.
    """
    classification: str
    name: Optional[str] = None
    is_bluetooth: bool = False
    lat: Optional[float] = Field(None, ge=-90.0, le=90.0)
    lon: Optional[float] = Field(None, ge=-180.0, le=180.0)

    @field_validator("classification")
    @classmethod
    def _check_classification(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("static", "dynamic"):
            raise ValueError("classification must be 'static' or 'dynamic'")
        return v

    @model_validator(mode="after")
    def _check_anchor(self) -> "ClassifyRequest":
        if (self.lat is None) != (self.lon is None):
            raise ValueError("lat and lon must be given together")
        return self
