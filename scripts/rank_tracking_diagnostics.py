"""Probe every ranking tier for one campaign and print per-tier health as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from app.core.exceptions import RankTrackingError
from app.core.logging import setup_logging
from app.services.rankings.orchestrator import run_diagnostics


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("campaign_id", help="Campaign id, e.g. 12345_67890")
    parser.add_argument("domain", help="Campaign domain, e.g. example.com")
    return parser.parse_args(argv)


async def async_main(argv: list[str] | None = None) -> int:
    """Async entrypoint."""
    args = parse_args(argv)
    setup_logging("ERROR")

    try:
        report = await run_diagnostics(args.campaign_id, args.domain)
    except RankTrackingError as exc:
        print(f"Diagnostics failed: {exc.message}", file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2, sort_keys=True))
    healthy = any(tier["success"] for tier in report["results"].values())
    return 0 if healthy else 2


def main() -> int:
    """Sync wrapper."""
    return asyncio.run(async_main())


if __name__ == "__main__":
    raise SystemExit(main())
