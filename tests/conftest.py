"""
Shared fixtures: an in-memory fingerprint store and observation factories.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from safetrack.analysis.classifier import FingerprintClassifier
from safetrack.analysis.config import ClassifierConfig
from safetrack.storage.dao import FingerprintDAO
from safetrack.utils.validate import LocationFix, NetworkObservation

T0 = 1_700_000_000_000  # epoch millis
MINUTE = 60 * 1000


def make_fix(lat: float = 48.10, lon: float = 11.50, ts: int = T0, **kw) -> LocationFix:
    return LocationFix(lat=lat, lon=lon, ts=ts, **kw)


def make_network(identifier: str, name: Optional[str] = None, **kw) -> NetworkObservation:
    return NetworkObservation(identifier=identifier, name=name or identifier, **kw)


class FakeFeed:
    """
    Observation feed returning canned values, optionally after a delay.
    """
    def __init__(self, fix=None, networks=None, delay: float = 0.0, error: Exception | None = None):
        self.fix = fix
        self.networks = networks or []
        self.delay = delay
        self.error = error
        self.fix_requests = 0

    async def acquire_fix(self):
        self.fix_requests += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.fix

    def visible_networks(self):
        return list(self.networks)


class RecordingSink:
    """
    Sink that records payloads and returns a fixed outcome.
    """
    def __init__(self, ok: bool = True, delay: float = 0.0, error: Exception | None = None):
        self.ok = ok
        self.delay = delay
        self.error = error
        self.payloads = []

    async def deliver(self, payload) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.payloads.append(payload)
        return self.ok


@pytest.fixture
def dao():
    store = FingerprintDAO(":memory:")
    yield store
    store.close()


@pytest.fixture
def classifier(dao):
    return FingerprintClassifier(dao, ClassifierConfig.default())
