"""Command line entry point for the voice provider sync.

Runs the same reconciliation as ``POST /api/sync/full`` (or one scheduled
window with ``--scheduled``) against ``DATABASE_URL`` and prints the report.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from contact_center.config import get_settings
from contact_center.errors import ContactCenterError
from contact_center.models.session import get_session_factory
from contact_center.providers.elevenlabs import ElevenLabsClient
from contact_center.sync.service import SyncService


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and run one sync."""

    parser = argparse.ArgumentParser(description="Sync voice conversations into interactions")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum conversations to fetch (default: SYNC_FULL_LIMIT)",
    )
    parser.add_argument(
        "--scheduled",
        action="store_true",
        help="Run one scheduled window (SYNC_WINDOW_HOURS) instead of the full window",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    log = logging.getLogger("sync")

    settings = get_settings()
    service = SyncService(
        get_session_factory(),
        ElevenLabsClient(settings.elevenlabs),
        settings.sync,
        voice_settings=settings.elevenlabs,
    )
    try:
        report = service.run_scheduled() if args.scheduled else service.sync_full(args.limit)
    except ContactCenterError as exc:
        log.error("Sync failed: %s", exc.message)
        return 1
    if report is None:
        log.warning("Sync skipped")
        return 1
    sys.stdout.write(json.dumps(report.as_dict()) + "\n")
    return 0 if report.errors == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
