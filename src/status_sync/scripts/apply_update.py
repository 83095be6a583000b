"""Apply a remote status update document from the command line.

Useful for replaying a delivery that failed, or for feeding updates captured
elsewhere into a development database::

    status-sync-apply https://remote.example/notes/1 update.json
    cat update.json | status-sync-apply https://remote.example/notes/1 -
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from status_sync.core.errors import RaceConditionError
from status_sync.core.logging import configure_logging
from status_sync.db.session import SessionLocal, create_tables
from status_sync.services.process_status import build_process_status_service, process_status_update

logger = logging.getLogger(__name__)


def _load_payload(path: str) -> dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply a remote status update document")
    parser.add_argument("status_uri", help="URI of the stored status to update")
    parser.add_argument("payload", help="Path to the JSON document, or '-' for stdin")
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Override the Redis URL used for locking and job scheduling",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing database tables before applying the update.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level.upper() if args.log_level else None)

    try:
        payload = _load_payload(args.payload)
    except (OSError, ValueError) as exc:
        logger.error("Could not read %s: %s", args.payload, exc)
        return 2

    if args.create_tables:
        create_tables()

    service = build_process_status_service(redis_url=args.redis_url)
    with SessionLocal() as session:
        try:
            result = process_status_update(session, args.status_uri, payload, service=service)
        except ValidationError as exc:
            logger.error("Unusable document: %s", exc)
            return 2
        except RaceConditionError as exc:
            logger.warning("%s; retry later", exc)
            return 75

    print(result.value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
