# safetrack/analysis/config.py

from dataclasses import dataclass, field

from safetrack.exceptions import ConfigurationError

@dataclass
class ClassifierConfig:
    """
    Configuration for the network fingerprint learner.

    Attributes
    ----------
    movement_threshold_m
        Distance (m) from the session anchor that counts as movement while connected.
    learning_time_ms
        Time (ms) without movement after which a network counts as stationary.
    confidence_threshold
        Confidence required before a classification is assigned.
    min_samples
        Samples required before a classification is assigned.
    movement_step
        Confidence gained from one movement observation.
    stillness_step
        Confidence gained from one stillness observation.
    """
    movement_threshold_m: float = 100.0
    learning_time_ms:     int   = 30 * 60 * 1000
    confidence_threshold: float = 0.7
    min_samples:          int   = 5
    movement_step:        float = 0.2
    stillness_step:       float = 0.3

    @classmethod
    def default(cls):
        """Preset used on devices (the thresholds above)."""
        return cls()


@dataclass
class TrackingConfig:
    """
    Configuration for tracking-mode evaluation.

    Attributes
    ----------
    drift_threshold_m
        Distance (m) from a static anchor beyond which drift is reported.
    """
    drift_threshold_m: float = 500.0


@dataclass
class DispatchConfig:
    """
    Timeouts for a Last Breath dispatch.

    Attributes
    ----------
    fix_timeout_s
        Maximum wait (s) for a location fix before sending without one.
    channel_timeout_s
        Maximum time (s) any single channel may take to deliver.
    """
    fix_timeout_s:     float = 10.0
    channel_timeout_s: float = 5.0


@dataclass
class MonitorConfig:
    """
    Top-level configuration injected into the controller.

    Attributes
    ----------
    tracking_enabled
        Master switch; when off no positioning runs at all.
    emergency_thresholds
        Battery percentages that each arm one Last Breath.
    charging_alert_enabled
        Whether to notify once the battery reaches 80% while charging.
    """
    tracking_enabled:       bool           = False
    emergency_thresholds:   frozenset[int] = frozenset({8, 4})
    charging_alert_enabled: bool           = False
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    tracking:   TrackingConfig   = field(default_factory=TrackingConfig)
    dispatch:   DispatchConfig   = field(default_factory=DispatchConfig)

    def __post_init__(self) -> None:
        self.emergency_thresholds = frozenset(self.emergency_thresholds)
        bad = sorted(t for t in self.emergency_thresholds if not 1 <= t <= 100)
        if bad:
            raise ConfigurationError(
                "Emergency thresholds must be between 1 and 100",
                details={"thresholds": bad},
            )

    @classmethod
    def default(cls):
        """Preset with tracking on and the default 8% / 4% thresholds."""
        return cls(tracking_enabled=True)
