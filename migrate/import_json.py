#!/usr/bin/env python3
"""One-time migration: import the legacy JSON history into the session log.

The old tracker kept everything in one nested document:

    {"2025-01-15": {"myproject": {"duration": 3600,
                                  "history": [{"start": ..., "end": ...,
                                               "type": "coding", "file": ...}]}},
     "config": {...}}

Run:
    DB_PATH=~/.cache/codepulse/data.db python -m migrate.import_json ~/.cache/phpstorm-time-tracker/data.json
"""

import json
import logging
import sys
import time
from pathlib import Path

from codepulse.sessions import (
    MalformedSessionError, Session, SessionType, StorageError, parse_ts,
)
from codepulse.store import append_session

logger = logging.getLogger(__name__)

LEGACY_FILE = Path.home() / ".cache" / "phpstorm-time-tracker" / "data.json"


def _entry_to_session(project: str, entry: dict) -> Session:
    try:
        stype = SessionType(entry.get("type", "coding"))
    except ValueError as e:
        raise MalformedSessionError(f"unknown session type {entry.get('type')!r}") from e
    return Session(
        project=project,
        start=parse_ts(entry.get("start", "")),
        end=parse_ts(entry.get("end", "")),
        type=stype,
        file=entry.get("file") or None,
        host=entry.get("host") or None,
        url=entry.get("url") or None,
    ).validate()


def import_legacy(tree: dict) -> dict:
    """Append every history entry in ``tree``. Bad entries are skipped, not fatal."""
    counts = {"imported": 0, "skipped": 0, "failed": 0}
    for date_key in sorted(tree):
        if date_key == "config":
            continue
        day = tree[date_key]
        if not isinstance(day, dict):
            continue
        for project, node in day.items():
            history = node.get("history") if isinstance(node, dict) else None
            if not isinstance(history, list):
                continue
            for entry in history:
                if not isinstance(entry, dict):
                    counts["skipped"] += 1
                    continue
                try:
                    append_session(_entry_to_session(project, entry))
                except MalformedSessionError as e:
                    logger.warning("Skipping %s entry for %s: %s", date_key, project, e)
                    counts["skipped"] += 1
                except StorageError:
                    counts["failed"] += 1
                else:
                    counts["imported"] += 1
    return counts


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    argv = sys.argv[1:] if argv is None else argv
    path = Path(argv[0]).expanduser() if argv else LEGACY_FILE
    if not path.exists():
        print(f"No JSON data found at {path}, nothing to migrate.")
        return 1

    try:
        tree = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        print(f"Could not read {path}: {e}", file=sys.stderr)
        return 1

    counts = import_legacy(tree)
    print("\nMigration complete:")
    print(f"  Sessions imported: {counts['imported']}")
    print(f"  Skipped:           {counts['skipped']}")
    print(f"  Failed writes:     {counts['failed']}")
    return 0 if counts["failed"] == 0 else 2


if __name__ == "__main__":
    start = time.time()
    rc = main()
    print(f"  Elapsed: {time.time() - start:.1f}s")
    sys.exit(rc)
