"""Headless front-end for the operation tracker sync layer.

Examples:
  python main.py configure --owner acme --repo ops-data --token ghp_xxx
  python main.py status
  python main.py sync
  python main.py export backup.json
  python main.py import backup.json --actor 1
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from core.errors import TrackerError
from services.sync_engine import SyncEngine
from services.tracker import Tracker
from storage.config import load_config
from storage.db import init_db
from storage.local_store import LocalStore


def build_tracker() -> Tracker:
    init_db()
    engine = SyncEngine(LocalStore(), load_config())
    return Tracker(engine)


def cmd_status(tracker: Tracker, args) -> int:
    tracker.initialize(timeout=args.timeout)
    print(json.dumps(tracker.engine.status(), ensure_ascii=False, indent=2))
    return 0


def cmd_sync(tracker: Tracker, args) -> int:
    tracker.initialize(timeout=args.timeout)
    result = tracker.sync_now(timeout=args.timeout)
    if result.processed:
        print(f"Synced {result.processed} pending changes")
    if result.remaining:
        print(f"{result.remaining} changes still pending" + (f" ({result.error})" if result.error else ""))
        return 1
    if not result.processed:
        print("All changes are synced")
    return 0


def cmd_refresh(tracker: Tracker, args) -> int:
    document = tracker.refresh(timeout=args.timeout)
    state = tracker.engine.state.value
    print(f"{state}: {len(document.tasks)} tasks, {len(document.requests)} requests, "
          f"{len(document.history)} history entries")
    return 0


def cmd_test(tracker: Tracker, args) -> int:
    result = tracker.engine.test_connection(timeout=args.timeout)
    print(f"Connected to {result.owner}/{result.repo}")
    return 0


def cmd_configure(tracker: Tracker, args) -> int:
    config = tracker.engine.config.with_changes(
        owner=args.owner,
        repo=args.repo,
        branch=args.branch,
        path=args.path,
        token=args.token,
    )
    state = tracker.configure(config, timeout=args.timeout)
    print(f"Configuration saved; status: {state.value}")
    return 0


def cmd_export(tracker: Tracker, args) -> int:
    tracker.initialize(timeout=args.timeout)
    target = Path(args.file)
    if args.encoded:
        target.write_bytes(tracker.export_snapshot())
    else:
        target.write_text(tracker.export_json(), encoding="utf-8")
    print(f"Exported to {target}")
    return 0


def cmd_import(tracker: Tracker, args) -> int:
    tracker.initialize(timeout=args.timeout)
    result = tracker.import_snapshot(Path(args.file).read_bytes(), actor_id=args.actor)
    print(f"Import {result.status.value}" + (f": {result.error}" if result.error else ""))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operation tracker sync tool")
    parser.add_argument("--timeout", type=float, default=None, help="network timeout, seconds")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="load the document and print sync status").set_defaults(func=cmd_status)
    sub.add_parser("sync", help="deliver queued changes").set_defaults(func=cmd_sync)
    sub.add_parser("refresh", help="reload the document from GitHub").set_defaults(func=cmd_refresh)
    sub.add_parser("test", help="check repository access").set_defaults(func=cmd_test)

    configure = sub.add_parser("configure", help="set repository coordinates and token")
    configure.add_argument("--owner")
    configure.add_argument("--repo")
    configure.add_argument("--branch")
    configure.add_argument("--path", help="data file path inside the repository")
    configure.add_argument("--token")
    configure.set_defaults(func=cmd_configure)

    export = sub.add_parser("export", help="write the current document to a file")
    export.add_argument("file")
    export.add_argument("--encoded", action="store_true", help="write the base64 envelope instead of JSON")
    export.set_defaults(func=cmd_export)

    imp = sub.add_parser("import", help="replace the document with a backup")
    imp.add_argument("file")
    imp.add_argument("--actor", type=int, required=True, help="id of the user performing the import")
    imp.set_defaults(func=cmd_import)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    tracker = build_tracker()
    try:
        return args.func(tracker, args)
    except TrackerError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
