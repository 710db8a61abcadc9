"""
Last Breath: fan one emergency payload out to every configured channel.

Steps, each best-effort:
1. one location fix, bounded wait (no fix is still a valid Last Breath)
2. visible networks, strongest first, one per name
3. one structured payload
4. concurrent delivery, each channel with its own timeout
5. one immutable result; channel problems never raise
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Protocol

from safetrack.analysis.config import DispatchConfig
from safetrack.emergency.channels import Channel
from safetrack.emergency.payload import (
    EmergencyPayload,
    VisibleNetwork,
    build_payload,
    summarize_networks,
)
from safetrack.exceptions import ConfigurationError
from safetrack.utils.log import get_logger
from safetrack.utils.validate import LocationFix, NetworkObservation

logger = get_logger(__name__)

# time (s) a timed-out delivery gets to unwind after cancellation
CANCEL_GRACE_S = 0.5


class ObservationFeed(Protocol):
    """
    Positioning and scanning collaborator. Missing permission or hardware
    yields None / an empty list rather than an exception.
    """

    async def acquire_fix(self) -> Optional[LocationFix]: ...

    def visible_networks(self) -> list[NetworkObservation]: ...


class ChannelStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of one Last Breath.

    Parameters
    ----------
    statuses
        Channel name -> delivery status.
    errors
        Channel name -> cause, for FAILED channels only.
    fix
        Location used, or None when none could be acquired.
    networks
        Visible-network summary used.
    payload
        The payload that was (or would have been) delivered.
    """
    statuses: Mapping[str, ChannelStatus]
    errors: Mapping[str, str]
    fix: Optional[LocationFix]
    networks: tuple[VisibleNetwork, ...]
    payload: EmergencyPayload

    def __post_init__(self) -> None:
        object.__setattr__(self, "statuses", MappingProxyType(dict(self.statuses)))
        object.__setattr__(self, "errors", MappingProxyType(dict(self.errors)))

    @property
    def success(self) -> dict[str, bool]:
        return {name: s is ChannelStatus.DELIVERED for name, s in self.statuses.items()}

    @property
    def any_delivered(self) -> bool:
        return any(s is ChannelStatus.DELIVERED for s in self.statuses.values())

    @property
    def configured_channels(self) -> list[str]:
        return [n for n, s in self.statuses.items() if s is not ChannelStatus.NOT_CONFIGURED]


class EmergencyDispatcher:
    """
    Sends Last Breath payloads; one dispatch at a time per instance.
    """
    def __init__(
        self,
        feed: ObservationFeed,
        channels: Iterable[Channel],
        cfg: Optional[DispatchConfig] = None,
    ) -> None:
        self.feed = feed
        self.channels = list(channels)
        names = [c.name for c in self.channels]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                "Channel names must be unique", details={"duplicates": duplicates}
            )
        self.cfg = cfg or DispatchConfig()
        self._lock: Optional[asyncio.Lock] = None
        self._pending: set[asyncio.Task] = set()

    async def dispatch(self, reason: str, is_test: bool = False) -> DispatchResult:
        """
        Send a Last Breath to every configured channel.

        Concurrent calls are serialized, so a test firing and a real alarm
        never interleave and neither is dropped.
        """
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            return await self._dispatch(reason, is_test)

    async def close(self) -> None:
        """
        Cancel in-flight fix acquisition and deliveries (process shutdown).

        Cancelled work resolves to "no fix" / FAILED in the running dispatch.
        """
        for task in list(self._pending):
            task.cancel()

    async def _dispatch(self, reason: str, is_test: bool) -> DispatchResult:
        fix = await self._acquire_fix()
        networks = self._scan_networks()
        payload = build_payload(reason, fix, networks, is_test=is_test)

        statuses: dict[str, ChannelStatus] = {}
        errors: dict[str, str] = {}
        tasks: dict[str, asyncio.Task] = {}
        for channel in self.channels:
            if not channel.configured:
                statuses[channel.name] = ChannelStatus.NOT_CONFIGURED
                logger.info("Channel %s not configured (missing %s)",
                            channel.name, ", ".join(channel.missing_credentials) or "sink")
                continue
            tasks[channel.name] = self._track(_deliver(channel, payload))

        timed_out: set[str] = set()
        if tasks:
            try:
                await asyncio.wait(tasks.values(), timeout=self.cfg.channel_timeout_s)
            finally:
                timed_out = {n for n, t in tasks.items() if not t.done()}
                for name in timed_out:
                    tasks[name].cancel()
            if timed_out:
                await asyncio.wait([tasks[n] for n in timed_out], timeout=CANCEL_GRACE_S)

        for name, task in tasks.items():
            if name in timed_out:
                status, error = ChannelStatus.FAILED, f"timed out after {self.cfg.channel_timeout_s:.1f}s"
            else:
                status, error = _delivery_outcome(task)
            statuses[name] = status
            if error is not None:
                errors[name] = error
                logger.error("Channel %s failed: %s", name, error)
            else:
                logger.info("Channel %s delivered", name)

        result = DispatchResult(
            statuses=statuses,
            errors=errors,
            fix=fix,
            networks=tuple(networks),
            payload=payload,
        )
        logger.info(
            "Last Breath complete: reason=%s, test=%s, %s",
            reason,
            is_test,
            ", ".join(f"{n}={s.value}" for n, s in statuses.items()) or "no channels",
        )
        return result

    async def _acquire_fix(self) -> Optional[LocationFix]:
        task = self._track(self.feed.acquire_fix())
        try:
            done, _ = await asyncio.wait({task}, timeout=self.cfg.fix_timeout_s)
        finally:
            if not task.done():
                task.cancel()
        if not done:
            logger.warning("No location fix within %.1fs", self.cfg.fix_timeout_s)
            return None
        if task.cancelled():
            logger.warning("Location request cancelled")
            return None
        if task.exception() is not None:
            logger.error("Location request failed: %s", task.exception())
            return None
        return task.result()

    def _scan_networks(self) -> list[VisibleNetwork]:
        try:
            visible = self.feed.visible_networks()
        except Exception as e:
            logger.error("Network scan failed: %s", e)
            return []
        summary = summarize_networks(visible)
        logger.info("Network scan found %d networks", len(summary))
        return summary

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task


async def _deliver(channel: Channel, payload: EmergencyPayload) -> bool:
    deliver = channel.sink.deliver
    if inspect.iscoroutinefunction(deliver):
        return bool(await deliver(payload))
    # blocking transports run in a worker thread; a timed-out call is abandoned there
    return bool(await asyncio.to_thread(deliver, payload))


def _delivery_outcome(task: asyncio.Task) -> tuple[ChannelStatus, Optional[str]]:
    """
    Map a finished delivery task to a status and cause.
    """
    if task.cancelled():
        return ChannelStatus.FAILED, "cancelled"
    exc = task.exception()
    if exc is not None:
        return ChannelStatus.FAILED, f"{type(exc).__name__}: {exc}"
    if task.result():
        return ChannelStatus.DELIVERED, None
    return ChannelStatus.FAILED, "delivery reported failure"
