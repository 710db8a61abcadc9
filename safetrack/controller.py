"""
Single per-device controller tying the decision engines together.

The host adapts platform events into calls on this object (pull) and
receives outcomes through a `ControllerListener` (push).
"""

from __future__ import annotations

from typing import Iterable, Optional

from safetrack.analysis.battery import BatteryDecision, BatteryMonitor
from safetrack.analysis.classifier import FingerprintClassifier
from safetrack.analysis.config import MonitorConfig
from safetrack.analysis.drift import DriftDetector
from safetrack.analysis.tracking import TrackingModeEngine
from safetrack.analysis.types import Classification, NetworkFingerprint, TrackingMode, now_ms
from safetrack.emergency.channels import Channel
from safetrack.emergency.dispatcher import DispatchResult, EmergencyDispatcher, ObservationFeed
from safetrack.exceptions import InvalidInputError
from safetrack.storage.dao import FingerprintStore
from safetrack.utils.log import get_logger
from safetrack.utils.validate import (
    BatteryReading,
    LocationFix,
    NetworkObservation,
    ObservationSnapshot,
)

logger = get_logger(__name__)


class ControllerListener:
    """
    Push notifications from the controller. Override what you need.
    """
    def on_mode_changed(self, old: Optional[TrackingMode], new: TrackingMode) -> None:
        pass

    def on_drift(self, distance_m: float, fix: LocationFix) -> None:
        pass

    def on_charging_alert(self, percentage: int) -> None:
        pass

    def on_dispatch(self, result: DispatchResult) -> None:
        pass


class SafetyController:
    """
    Owns the engines, the alarm state and the last evaluated mode.
    """
    def __init__(
        self,
        cfg: MonitorConfig,
        store: FingerprintStore,
        feed: ObservationFeed,
        channels: Iterable[Channel],
        listener: Optional[ControllerListener] = None,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.listener = listener or ControllerListener()
        self.classifier = FingerprintClassifier(store, cfg.classifier)
        self.engine = TrackingModeEngine(self.classifier)
        self.drift = DriftDetector(cfg.tracking)
        self.battery = BatteryMonitor(cfg)
        self.dispatcher = EmergencyDispatcher(feed, channels, cfg.dispatch)
        self.mode: Optional[TrackingMode] = None
        self._associated: list[NetworkObservation] = []

    def evaluate(self, snapshot: ObservationSnapshot, now: Optional[int] = None) -> TrackingMode:
        """
        Recompute the tracking mode for the current snapshot.
        """
        self._associated = list(snapshot.associated)
        known = self.store.get_many(n.identifier for n in self._associated)
        mode = self.engine.evaluate(
            self.cfg.tracking_enabled,
            self._associated,
            known,
            snapshot.activity_is_moving,
            now=now,
        )
        if mode is not self.mode:
            logger.info("Tracking mode: %s -> %s",
                        self.mode.name if self.mode else "-", mode.name)
            old, self.mode = self.mode, mode
            self.listener.on_mode_changed(old, mode)
        return mode

    def on_fix(self, fix: LocationFix, now: Optional[int] = None) -> Optional[float]:
        """
        Feed a location fix: advance learning, and check drift while stationary.

        Returns the drift distance (m) when drift was detected.
        """
        if self.engine.session is not None:
            self.engine.update_learning(fix, now=now)

        if self.mode is not TrackingMode.STATIONARY:
            return None
        anchors = self.store.get_many(n.identifier for n in self._associated)
        drift = self.drift.check_drift(fix, anchors)
        if drift is not None:
            self.listener.on_drift(drift, fix)
        return drift

    async def on_battery(self, reading: BatteryReading) -> BatteryDecision:
        """
        Apply a battery reading; fire a Last Breath when a threshold is crossed.
        """
        decision = self.battery.on_reading(reading)
        if decision.charging_alert:
            self.listener.on_charging_alert(reading.percentage)
        if decision.fire_last_breath:
            result = await self.dispatcher.dispatch(f"Battery critical: {reading.percentage}%")
            self.listener.on_dispatch(result)
        return decision

    async def test_last_breath(self, reason: str = "Manual test") -> DispatchResult:
        """
        Send a Last Breath marked as a test through all configured channels.
        """
        result = await self.dispatcher.dispatch(reason, is_test=True)
        self.listener.on_dispatch(result)
        return result

    async def close(self) -> None:
        await self.dispatcher.close()

    def classify(
        self,
        network: NetworkObservation,
        label: Classification,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> NetworkFingerprint:
        """
        User action: classify a network, optionally pinning its coordinate.
        """
        if (lat is None) != (lon is None):
            raise InvalidInputError(
                "Anchor needs both latitude and longitude", details={"lat": lat, "lon": lon}
            )
        anchor = None
        if lat is not None:
            anchor = LocationFix(lat=lat, lon=lon, ts=now_ms())
        return self.classifier.classify(network, label, anchor)

    def forget(self, identifier: str) -> bool:
        """
        User action: delete a learned network.
        """
        deleted = self.store.delete(identifier)
        if deleted:
            logger.info("Forgot network %s", identifier)
        return deleted

    def networks(self) -> list[NetworkFingerprint]:
        return self.store.get_all()

    def pending_network(self) -> Optional[NetworkObservation]:
        """
        Associated network awaiting a user classification, if any.
        """
        known = self.store.get_many(n.identifier for n in self._associated)
        return self.engine.pending_network(self._associated, known)
