#!/usr/bin/env python3
"""
CLI entry point for the safetrack controller.

Defines the following commands:
  safetrack networks PROFILE [--class unknown|static|dynamic]
  safetrack classify PROFILE ID --as static|dynamic [--name NAME] [--bluetooth] [--lat LAT --lon LON]
  safetrack forget PROFILE ID
  safetrack breath [--reason TEXT] [--lat LAT --lon LON]
  safetrack serve PROFILE [--port 8000]
  safetrack version
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from importlib.metadata import PackageNotFoundError, version as _get_version
from pathlib import Path
from typing import Optional

import uvicorn
from rich.console import Console
from rich.table import Table

from safetrack.analysis.config import MonitorConfig
from safetrack.analysis.types import Classification, now_ms
from safetrack.controller import SafetyController
from safetrack.emergency.channels import Channel, LogSink
from safetrack.server import create_app
from safetrack.storage.dao import FingerprintDAO
from safetrack.utils.log import enable_json_log, get_logger
from safetrack.utils.validate import LocationFix, NetworkObservation

logger = get_logger(__name__)


def db_path_for(profile: str) -> str:
    return f"safetrack_{profile}.sqlite"


class OfflineFeed:
    """
    Observation feed for the command line: no scanner, optional fixed position.
    """
    def __init__(self, fix: Optional[LocationFix] = None) -> None:
        self.fix = fix

    async def acquire_fix(self) -> Optional[LocationFix]:
        return self.fix

    def visible_networks(self) -> list[NetworkObservation]:
        return []


def networks(profile: str, label: str | None = None) -> None:
    """
    Print the learned network fingerprints.

    Parameters
    ----------
    profile
        Profile name, which dictates the SQLite database file name.
    label
        Only list fingerprints with this classification (all when None).
    """
    dao = FingerprintDAO(db_path_for(profile))
    if label is None:
        rows = dao.get_all()
    else:
        rows = dao.get_by_classification(Classification(label))
    table = Table(title=f"Learned networks ({profile})")
    for col in ("Identifier", "Name", "Type", "Class", "Confidence", "Samples", "Anchor"):
        table.add_column(col)
    for fp in rows:
        anchor = f"{fp.learned_lat:.5f}, {fp.learned_lon:.5f}" if fp.anchor else "-"
        table.add_row(
            fp.identifier,
            fp.name,
            "BT" if fp.is_bluetooth else "WiFi",
            fp.classification.value,
            f"{fp.confidence:.2f}",
            str(fp.sample_count),
            anchor,
        )
    Console().print(table)


def classify(
    profile: str,
    identifier: str,
    label: str,
    name: str | None,
    bluetooth: bool,
    lat: float | None,
    lon: float | None,
) -> None:
    """
    Manually classify a network as static or dynamic.
    """
    logger.info("Classify: profile=%s, id=%s, as=%s", profile, identifier, label)
    dao = FingerprintDAO(db_path_for(profile))
    controller = SafetyController(MonitorConfig.default(), dao, OfflineFeed(), [])
    network = NetworkObservation(identifier=identifier, name=name or identifier, is_bluetooth=bluetooth)
    controller.classify(network, Classification(label), lat, lon)


def forget(profile: str, identifier: str) -> None:
    """
    Delete a learned network.
    """
    dao = FingerprintDAO(db_path_for(profile))
    if not dao.delete(identifier):
        logger.warning("No learned network with identifier %s", identifier)


def breath(reason: str, lat: float | None, lon: float | None) -> None:
    """
    Fire a test Last Breath through the console channel.
    """
    fix = None
    if lat is not None and lon is not None:
        fix = LocationFix(lat=lat, lon=lon, ts=now_ms())
    controller = SafetyController(
        MonitorConfig.default(),
        FingerprintDAO(":memory:"),
        OfflineFeed(fix),
        [Channel("console", LogSink())],
    )

    result = asyncio.run(controller.test_last_breath(reason))
    for channel, status in result.statuses.items():
        logger.info("%s: %s", channel, status.value)


def serve(profile: str, port: int) -> None:
    """
    Spin up FastAPI+Uvicorn to serve the fingerprint management API.

    Parameters
    ----------
    profile
        Profile name, which dictates the SQLite database file name.
    port
        Port on which to serve HTTP.
    """
    enable_json_log(Path.cwd() / "serve.log")
    logger.info("Serve: profile=%s, port=%d", profile, port)
    app = create_app(profile)
    uvicorn.run(app, host="127.0.0.1", port=port)

def version() -> None:
    """
    Print the installed safetrack package version.
    """
    try:
        ver = _get_version("safetrack")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("safetrack version %s", ver)


def parse_args(argv: list[str] | None = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="safetrack")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # safetrack networks
    p = subparsers.add_parser("networks", help="List learned networks.")
    p.add_argument("profile", type=str, help="Profile name.")
    p.add_argument(
        "--class", dest="label", choices=["unknown", "static", "dynamic"],
        help="Only list networks with this classification.",
    )

    # safetrack classify
    p = subparsers.add_parser("classify", help="Manually classify a network.")
    p.add_argument("profile", type=str, help="Profile name.")
    p.add_argument("identifier", type=str, help="SSID or Bluetooth address.")
    p.add_argument(
        "--as", dest="label", required=True, choices=["static", "dynamic"],
        help="Classification to assign.",
    )
    p.add_argument("--name", type=str, help="Display name (defaults to the identifier).")
    p.add_argument("--bluetooth", action="store_true", help="Identifier is a Bluetooth device.")
    p.add_argument("--lat", type=float, help="Anchor latitude.")
    p.add_argument("--lon", type=float, help="Anchor longitude.")

    # safetrack forget
    p = subparsers.add_parser("forget", help="Delete a learned network.")
    p.add_argument("profile", type=str, help="Profile name.")
    p.add_argument("identifier", type=str, help="SSID or Bluetooth address.")

    # safetrack breath
    p = subparsers.add_parser("breath", help="Send a test Last Breath to the console.")
    p.add_argument("--reason", type=str, default="Manual test", help="Reason text.")
    p.add_argument("--lat", type=float, help="Latitude to report.")
    p.add_argument("--lon", type=float, help="Longitude to report.")

    # safetrack serve
    p = subparsers.add_parser("serve", help="Serve via FastAPI + Uvicorn.")
    p.add_argument("profile", type=str, help="Profile name.")
    p.add_argument(
        "--port", type=int, default=8000, help="Port number to serve on."
    )

    # safetrack version
    subparsers.add_parser("version", help="Show safetrack version and exit.")

    args = parser.parse_args(argv)
    if (getattr(args, "lat", None) is None) != (getattr(args, "lon", None) is None):
        parser.error("--lat and --lon must be given together")
    return args


def main(argv: list[str] | None = None) -> None:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    match args.command:
        case "networks":
            networks(args.profile, args.label)
        case "classify":
            classify(args.profile, args.identifier, args.label, args.name,
                     args.bluetooth, args.lat, args.lon)
        case "forget":
            forget(args.profile, args.identifier)
        case "breath":
            breath(args.reason, args.lat, args.lon)
        case "serve":
            serve(args.profile, args.port)
        case "version":
            version()
        case _:
            sys.exit(1)


if __name__ == "__main__":
    main()
