"""
Learn whether a network stays put (home, office) or travels with the user
(car, boat) from repeated co-occurrence with movement or stillness.

Evidence per observation, measured against the learning session's anchor:
- moved more than the movement threshold while connected: movement evidence
- stayed within it for longer than the learning time: stillness evidence
- otherwise: nothing learned yet

A classification is only assigned once both the confidence and the sample
count thresholds are met, and automatic evidence never reverts it.
"""

from __future__ import annotations

import threading
from typing import Optional

from safetrack.analysis.config import ClassifierConfig
from safetrack.analysis.types import Classification, NetworkFingerprint, now_ms
from safetrack.storage.dao import FingerprintStore
from safetrack.utils.geo import haversine
from safetrack.utils.log import get_logger
from safetrack.utils.validate import LocationFix, NetworkObservation

logger = get_logger(__name__)

VEHICLE_KEYWORDS = (
    "car", "auto", "bmw", "mercedes", "audi", "vw", "volkswagen", "tesla",
    "ford", "toyota", "honda", "porsche", "carplay", "android auto",
    "handsfree", "freisprechanlage", "boat", "ship", "schiff", "yacht",
    "marine", "navico", "garmin", "raymarine",
)


def is_likely_vehicle(name: str) -> bool:
    """
    Check whether a network name suggests a vehicle (car, ship, ...).
    """
    lower = name.lower()
    return any(keyword in lower for keyword in VEHICLE_KEYWORDS)


class FingerprintClassifier:
    """
    Stateful learner that turns observations into persisted fingerprints.
    """
    def __init__(self, store: FingerprintStore, cfg: ClassifierConfig) -> None:
        self.store = store
        self.cfg = cfg
        # serializes the read-modify-write on a fingerprint
        self._lock = threading.Lock()

    def observe(
        self,
        network: NetworkObservation,
        fix: LocationFix,
        anchor: LocationFix,
        elapsed_ms: int,
        now: Optional[int] = None,
    ) -> NetworkFingerprint:
        """
        Apply one learning update for `network` and persist the result.

        Parameters
        ----------
        network
            The network under observation.
        fix
            The current location fix.
        anchor
            The learning session's anchor fix.
        elapsed_ms
            Time since the learning session started.
        now
            Epoch millis to stamp as last_seen (defaults to the wall clock).

        Returns
        -------
        NetworkFingerprint
            The updated, persisted record.
        """
        now = now_ms() if now is None else now
        with self._lock:
            fp = self.store.get(network.identifier)
            if fp is None:
                fp = NetworkFingerprint.from_observation(network, now)
                logger.info("New network fingerprint: %s", fp.name)

            fp.sample_count += 1
            fp.last_seen = now

            distance = haversine(fix.point, anchor.point)
            if distance > self.cfg.movement_threshold_m:
                fp.confidence = min(1.0, round(fp.confidence + self.cfg.movement_step, 6))
                if self._ready(fp):
                    fp.classification = Classification.DYNAMIC
                    logger.info("Learned: %s is DYNAMIC (moved %.0fm)", fp.name, distance)
            elif elapsed_ms > self.cfg.learning_time_ms:
                fp.confidence = min(1.0, round(fp.confidence + self.cfg.stillness_step, 6))
                if self._ready(fp):
                    fp.classification = Classification.STATIC
                    fp.learned_lat = fix.lat
                    fp.learned_lon = fix.lon
                    logger.info("Learned: %s is STATIC at %.6f, %.6f", fp.name, fix.lat, fix.lon)

            self.store.upsert(fp)
            return fp

    def classify(
        self,
        network: NetworkObservation,
        label: Classification,
        anchor: Optional[LocationFix] = None,
        now: Optional[int] = None,
    ) -> NetworkFingerprint:
        """
        Manually classify a network, replacing any learned state.
        """
        now = now_ms() if now is None else now
        with self._lock:
            existing = self.store.get(network.identifier)
            fp = NetworkFingerprint(
                identifier=network.identifier,
                name=network.display_name,
                is_bluetooth=network.is_bluetooth,
                classification=label,
                learned_lat=anchor.lat if anchor else None,
                learned_lon=anchor.lon if anchor else None,
                confidence=1.0,  # manual classification = full confidence
                sample_count=1,
                last_seen=now,
                created_at=existing.created_at if existing else now,
            )
            self.store.upsert(fp)
        logger.info("Manually classified %s as %s", fp.name, label.name)
        return fp

    def _ready(self, fp: NetworkFingerprint) -> bool:
        """
        True when an UNKNOWN fingerprint has enough evidence to be classified.
        """
        return (
            fp.classification is Classification.UNKNOWN
            and fp.confidence >= self.cfg.confidence_threshold
            and fp.sample_count >= self.cfg.min_samples
        )
