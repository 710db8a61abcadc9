"""
Battery threshold logic for Last Breath and the charging reminder.

The four module-level functions are pure; `BatteryMonitor` owns the alarm
state and applies them to each reading.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import AbstractSet, Optional

from safetrack.analysis.config import MonitorConfig
from safetrack.utils.log import get_logger
from safetrack.utils.validate import BatteryReading

logger = get_logger(__name__)

CHARGING_ALERT_LEVEL = 80
CHARGING_ALERT_RESET_LEVEL = 75


def find_triggered_threshold(
    percentage: int,
    thresholds: AbstractSet[int],
    already_triggered: AbstractSet[int],
) -> Optional[int]:
    """
    Return the highest threshold at or above `percentage` that has not fired
    yet, or None.

    A sudden drop across several thresholds fires only the highest one;
    lower ones fire on later readings.
    """
    for threshold in sorted(thresholds, reverse=True):
        if percentage <= threshold and threshold not in already_triggered:
            return threshold
    return None


def should_reset_triggers(percentage: int, thresholds: AbstractSet[int]) -> bool:
    """
    True once the battery has recharged clearly above the highest threshold.

    The margin is 10 points for a highest threshold of 15% or more, else 5.
    """
    highest = max(thresholds, default=15)
    margin = 10 if highest >= 15 else 5
    return percentage > highest + margin


def should_show_charging_alert(
    percentage: int,
    is_charging: bool,
    enabled: bool,
    already_alerted: bool,
) -> bool:
    return enabled and is_charging and percentage >= CHARGING_ALERT_LEVEL and not already_alerted


def should_reset_charging_alert(percentage: int) -> bool:
    # 75-80 band is the hysteresis that prevents flapping
    return percentage < CHARGING_ALERT_RESET_LEVEL


@dataclass
class BatteryAlarmState:
    """
    Deduplication state for one monitoring session.
    """
    triggered: set[int] = field(default_factory=set)
    charging_alert_fired: bool = False


@dataclass(frozen=True)
class BatteryDecision:
    """
    What a single reading asks the caller to do.
    """
    threshold: Optional[int] = None
    charging_alert: bool = False

    @property
    def fire_last_breath(self) -> bool:
        return self.threshold is not None


class BatteryMonitor:
    """
    Applies the threshold functions to readings and owns the alarm state.
    """
    def __init__(self, cfg: MonitorConfig) -> None:
        self.cfg = cfg
        self.state = BatteryAlarmState()
        self._lock = threading.Lock()

    def on_reading(self, reading: BatteryReading) -> BatteryDecision:
        pct = reading.percentage
        thresholds = self.cfg.emergency_thresholds
        with self._lock:
            state = self.state
            if state.triggered and should_reset_triggers(pct, thresholds):
                logger.info("Battery at %d%%, re-arming thresholds %s", pct, sorted(state.triggered))
                state.triggered.clear()

            threshold = find_triggered_threshold(pct, thresholds, state.triggered)
            if threshold is not None:
                state.triggered.add(threshold)
                logger.warning("Battery at %d%% crossed threshold %d%%", pct, threshold)

            if state.charging_alert_fired and should_reset_charging_alert(pct):
                state.charging_alert_fired = False

            charging_alert = should_show_charging_alert(
                pct, reading.is_charging, self.cfg.charging_alert_enabled, state.charging_alert_fired
            )
            if charging_alert:
                state.charging_alert_fired = True
                logger.info("Battery charged to %d%%", pct)

        return BatteryDecision(threshold=threshold, charging_alert=charging_alert)

    def reset(self) -> None:
        with self._lock:
            self.state = BatteryAlarmState()
