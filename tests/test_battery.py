"""
Tests for the battery threshold functions and the alarm-state owner.
"""

import pytest

from safetrack.analysis.battery import (
    BatteryMonitor,
    find_triggered_threshold,
    should_reset_charging_alert,
    should_reset_triggers,
    should_show_charging_alert,
)
from safetrack.analysis.config import MonitorConfig
from safetrack.exceptions import ConfigurationError
from safetrack.utils.validate import BatteryReading

THRESHOLDS = {15, 8, 4, 2}


class TestFindTriggeredThreshold:

    def test_sudden_drop_fires_highest_only(self):
        assert find_triggered_threshold(12, THRESHOLDS, set()) == 15

    def test_skips_already_triggered(self):
        assert find_triggered_threshold(7, THRESHOLDS, {15}) == 8

    def test_lower_thresholds_fire_on_later_readings(self):
        triggered = set()
        fired = []
        for pct in (3, 3, 3, 1):
            t = find_triggered_threshold(pct, THRESHOLDS, triggered)
            if t is not None:
                triggered.add(t)
                fired.append(t)
        assert fired == [15, 8, 4, 2]

    def test_exactly_at_threshold_fires(self):
        assert find_triggered_threshold(8, {8, 4}, set()) == 8

    def test_above_all_thresholds(self):
        assert find_triggered_threshold(50, THRESHOLDS, set()) is None

    def test_all_triggered(self):
        assert find_triggered_threshold(1, THRESHOLDS, THRESHOLDS) is None

    def test_empty_thresholds(self):
        assert find_triggered_threshold(1, set(), set()) is None

    def test_pure(self):
        triggered = {15}
        first = find_triggered_threshold(7, THRESHOLDS, triggered)
        second = find_triggered_threshold(7, THRESHOLDS, triggered)
        assert first == second == 8
        assert triggered == {15}


class TestShouldResetTriggers:

    @pytest.mark.parametrize("pct, thresholds, expected", [
        (26, {15, 8, 4, 2}, True),
        (25, {15, 8, 4, 2}, False),
        (24, {15, 8, 4, 2}, False),
        (14, {8, 4, 2}, True),
        (13, {8, 4, 2}, False),
        (12, {8, 4, 2}, False),
    ])
    def test_margin_depends_on_highest_threshold(self, pct, thresholds, expected):
        assert should_reset_triggers(pct, thresholds) is expected

    def test_empty_thresholds_use_default_highest(self):
        assert should_reset_triggers(26, set()) is True
        assert should_reset_triggers(25, set()) is False


class TestChargingAlert:

    def test_round_trip_with_hysteresis(self):
        alerted = False
        outcomes = []
        for pct in (79, 80, 82, 74, 81):
            if alerted and should_reset_charging_alert(pct):
                alerted = False
                outcomes.append("reset")
                continue
            fire = should_show_charging_alert(pct, True, True, alerted)
            if fire:
                alerted = True
            outcomes.append(fire)
        assert outcomes == [False, True, False, "reset", True]

    def test_requires_charging(self):
        assert should_show_charging_alert(90, False, True, False) is False

    def test_requires_enabled(self):
        assert should_show_charging_alert(90, True, False, False) is False

    @pytest.mark.parametrize("pct, expected", [(74, True), (75, False), (79, False)])
    def test_reset_band(self, pct, expected):
        assert should_reset_charging_alert(pct) is expected


class TestBatteryMonitor:

    def _monitor(self, **kw):
        return BatteryMonitor(MonitorConfig(**kw))

    def test_default_thresholds(self):
        monitor = self._monitor()
        assert monitor.on_reading(BatteryReading(percentage=9)).threshold is None
        assert monitor.on_reading(BatteryReading(percentage=8)).threshold == 8
        assert monitor.on_reading(BatteryReading(percentage=7)).threshold is None
        assert monitor.on_reading(BatteryReading(percentage=4)).threshold == 4

    def test_dedup_until_recharged(self):
        monitor = self._monitor(emergency_thresholds={15, 8, 4, 2})
        assert monitor.on_reading(BatteryReading(percentage=14)).fire_last_breath
        assert not monitor.on_reading(BatteryReading(percentage=14)).fire_last_breath
        assert not monitor.on_reading(BatteryReading(percentage=24, is_charging=True)).fire_last_breath
        assert monitor.state.triggered == {15}
        monitor.on_reading(BatteryReading(percentage=26, is_charging=True))
        assert monitor.state.triggered == set()
        assert monitor.on_reading(BatteryReading(percentage=14)).threshold == 15

    def test_charging_alert_fires_once(self):
        monitor = self._monitor(charging_alert_enabled=True)
        decisions = [
            monitor.on_reading(BatteryReading(percentage=p, is_charging=True)).charging_alert
            for p in (79, 80, 82, 74, 81)
        ]
        assert decisions == [False, True, False, False, True]

    def test_charging_alert_disabled(self):
        monitor = self._monitor(charging_alert_enabled=False)
        assert not monitor.on_reading(BatteryReading(percentage=90, is_charging=True)).charging_alert

    def test_reset_clears_state(self):
        monitor = self._monitor()
        monitor.on_reading(BatteryReading(percentage=3))
        monitor.reset()
        assert monitor.state.triggered == set()

    def test_invalid_threshold_rejected(self):
        with pytest.raises(ConfigurationError):
            MonitorConfig(emergency_thresholds={0, 8})
