"""
Tests for boundary validation of observations and requests.
"""

import pytest
from pydantic import ValidationError

from safetrack.analysis.config import MonitorConfig
from safetrack.exceptions import ConfigurationError
from safetrack.utils.validate import (
    BatteryReading,
    ClassifyRequest,
    LocationFix,
    NetworkObservation,
    is_valid_identifier,
)


class TestIdentifiers:

    @pytest.mark.parametrize("value, expected", [
        ("HomeNet", True),
        ("AA:BB:CC:DD:EE:FF", True),
        ("", False),
        ("   ", False),
        (None, False),
        ("<unknown ssid>", False),
    ])
    def test_is_valid_identifier(self, value, expected):
        assert is_valid_identifier(value) is expected

    def test_observation_rejects_placeholder(self):
        with pytest.raises(ValidationError):
            NetworkObservation(identifier="<unknown ssid>")

    def test_observation_strips_identifier(self):
        network = NetworkObservation(identifier="  HomeNet ")
        assert network.identifier == "HomeNet"
        assert network.display_name == "HomeNet"


class TestLocationFix:

    @pytest.mark.parametrize("kw", [
        {"lat": 91.0},
        {"lon": -181.0},
        {"lat": float("nan")},
        {"accuracy": -1.0},
        {"speed": -0.1},
        {"bearing": 360.0},
    ])
    def test_rejects_out_of_range(self, kw):
        data = {"lat": 48.1, "lon": 11.5, "ts": 0, **kw}
        with pytest.raises(ValidationError):
            LocationFix(**data)

    def test_point(self):
        assert LocationFix(lat=48.1, lon=11.5, ts=0).point == (48.1, 11.5)


class TestBatteryAndConfig:

    def test_battery_range(self):
        with pytest.raises(ValidationError):
            BatteryReading(percentage=101)
        assert BatteryReading(percentage=0).percentage == 0

    def test_thresholds_validated(self):
        with pytest.raises(ConfigurationError):
            MonitorConfig(emergency_thresholds={0, 8})
        assert MonitorConfig(emergency_thresholds=[15, 8]).emergency_thresholds == frozenset({15, 8})

    def test_default_preset(self):
        cfg = MonitorConfig.default()
        assert cfg.tracking_enabled
        assert cfg.emergency_thresholds == frozenset({8, 4})
        assert not MonitorConfig().tracking_enabled


class TestClassifyRequest:

    def test_normalizes_label(self):
        assert ClassifyRequest(classification=" Static ").classification == "static"

    def test_rejects_unknown_label(self):
        with pytest.raises(ValidationError):
            ClassifyRequest(classification="unknown")

    def test_anchor_needs_both_coordinates(self):
        with pytest.raises(ValidationError):
            ClassifyRequest(classification="static", lon=11.5)
        assert ClassifyRequest(classification="static", lat=48.1, lon=11.5).lat == 48.1
