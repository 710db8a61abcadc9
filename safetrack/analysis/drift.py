"""
Detect a fix that is far from the learned coordinate of a static network
the device claims to be connected to (relay, spoofed SSID or theft).
"""

from typing import Iterable, Optional

from safetrack.analysis.config import TrackingConfig
from safetrack.analysis.types import Classification, NetworkFingerprint
from safetrack.utils.geo import haversine
from safetrack.utils.log import get_logger
from safetrack.utils.validate import LocationFix

logger = get_logger(__name__)


class DriftDetector:
    def __init__(self, cfg: TrackingConfig) -> None:
        self.cfg = cfg

    def check_drift(
        self,
        fix: LocationFix,
        anchors: Iterable[NetworkFingerprint],
    ) -> Optional[float]:
        """
        Return the distance (m) to the first static anchor farther away than
        the drift threshold, or None when every anchor is close enough.
        """
        for fp in anchors:
            if fp.classification is not Classification.STATIC or fp.anchor is None:
                continue
            drift = haversine(fix.point, fp.anchor)
            if drift > self.cfg.drift_threshold_m:
                logger.warning(
                    "Drift detected: %.0fm from learned location of %s", drift, fp.name
                )
                return drift
        return None
