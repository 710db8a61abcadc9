"""
Decide per evaluation whether continuous positioning should run.

Rules, first match wins:
1. master switch off             -> OFF
2. no associated networks        -> ACTIVE (unknown context, fail open)
3. any known DYNAMIC network     -> ACTIVE
4. any known STATIC network      -> STATIONARY
5. only unknown networks:
   - name looks like a vehicle   -> classify DYNAMIC, ACTIVE
   - otherwise                   -> learn one of them, LEARNING

Only the learning session survives between evaluations. When several unknown
networks are associated, the one already being learned is kept; otherwise
the lowest identifier wins.
"""

from __future__ import annotations

from typing import Iterable, Optional

from safetrack.analysis.classifier import FingerprintClassifier, is_likely_vehicle
from safetrack.analysis.types import (
    Classification,
    LearningSession,
    NetworkFingerprint,
    TrackingMode,
    now_ms,
)
from safetrack.utils.log import get_logger
from safetrack.utils.validate import LocationFix, NetworkObservation

logger = get_logger(__name__)


class TrackingModeEngine:
    """
    Tracking-mode state machine with a single sticky learning session.
    """
    def __init__(self, classifier: FingerprintClassifier) -> None:
        self.classifier = classifier
        self.session: Optional[LearningSession] = None

    def evaluate(
        self,
        master_switch: bool,
        associated: Iterable[NetworkObservation],
        known: Iterable[NetworkFingerprint],
        activity_is_moving: bool = False,
        now: Optional[int] = None,
    ) -> TrackingMode:
        """
        Compute the tracking mode for the current tick.

        Parameters
        ----------
        master_switch
            User's global tracking switch.
        associated
            Networks the device is currently connected to.
        known
            Stored fingerprints for (at least) the associated networks.
        activity_is_moving
            Activity recognition signal. Every rule already fails open to
            ACTIVE, so it is only logged.
        now
            Epoch millis used when a learning session starts.
        """
        now = now_ms() if now is None else now

        if not master_switch:
            self._end_session("tracking disabled")
            return TrackingMode.OFF

        networks = {n.identifier: n for n in associated}
        self._drop_if_disassociated(networks)

        if not networks:
            logger.debug("No associated networks (moving=%s)", activity_is_moving)
            return TrackingMode.ACTIVE

        by_id = {fp.identifier: fp for fp in known if fp.identifier in networks}

        dynamic = _first(by_id, Classification.DYNAMIC)
        if dynamic is not None:
            logger.debug("Connected to dynamic network: %s", dynamic.name)
            self._end_session("dynamic network present")
            return TrackingMode.ACTIVE

        static = _first(by_id, Classification.STATIC)
        if static is not None:
            logger.debug("Connected to static network: %s", static.name)
            self._end_session("static network present")
            return TrackingMode.STATIONARY

        unknown = [networks[i] for i in sorted(networks)]

        vehicle = next((n for n in unknown if is_likely_vehicle(n.display_name)), None)
        if vehicle is not None:
            self.classifier.classify(vehicle, Classification.DYNAMIC, now=now)
            self._end_session("vehicle network present")
            return TrackingMode.ACTIVE

        if self.session is None:
            self._start_learning(unknown[0], now)
        return TrackingMode.LEARNING

    def update_learning(
        self,
        fix: LocationFix,
        now: Optional[int] = None,
    ) -> Optional[NetworkFingerprint]:
        """
        Feed a fix into the active learning session.

        The first fix after the session starts becomes its anchor. Returns
        the updated fingerprint, or None when no session is active.
        """
        session = self.session
        if session is None:
            return None
        now = now_ms() if now is None else now

        if session.set_anchor(fix):
            logger.debug("Learning anchor for %s set at %.6f, %.6f",
                         session.network.display_name, fix.lat, fix.lon)

        fp = self.classifier.observe(
            session.network,
            fix,
            session.anchor,
            now - session.started_at,
            now=now,
        )
        if fp.is_classified:
            self._end_session(f"classified as {fp.classification.name}")
        return fp

    def pending_network(
        self,
        associated: Iterable[NetworkObservation],
        known: Iterable[NetworkFingerprint],
    ) -> Optional[NetworkObservation]:
        """
        Return the first associated network still awaiting a classification,
        for prompting the user.
        """
        classified = {fp.identifier for fp in known if fp.is_classified}
        for network in sorted(associated, key=lambda n: n.identifier):
            if network.identifier not in classified:
                return network
        return None

    def _start_learning(self, network: NetworkObservation, now: int) -> None:
        self.session = LearningSession(network=network, started_at=now)
        logger.info("Started learning network: %s", network.display_name)

    def _drop_if_disassociated(self, networks: dict[str, NetworkObservation]) -> None:
        if self.session is not None and self.session.network.identifier not in networks:
            self._end_session("network disassociated")

    def _end_session(self, reason: str) -> None:
        if self.session is None:
            return
        logger.info("Stopped learning %s: %s", self.session.network.display_name, reason)
        self.session = None


def _first(
    by_id: dict[str, NetworkFingerprint],
    classification: Classification,
) -> Optional[NetworkFingerprint]:
    for identifier in sorted(by_id):
        fp = by_id[identifier]
        if fp.classification is classification:
            return fp
    return None
