from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from placerank.config.settings import get_settings
from placerank.core.env import resolve_project_path
from placerank.core.logging import configure_logging
from placerank.storage.documents import FileDocumentStore
from placerank.storage.sessions import SessionRepository

logger = logging.getLogger("placerank.sweeper")


@dataclass
class _SweeperState:
    runs: int = 0
    total_deleted: int = 0
    last_run_unix: int = 0

    @classmethod
    def load(cls, path: Path) -> "_SweeperState":
        if not path.exists():
            return cls()
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable sweeper state at %s", path)
            return cls()
        return cls(
            runs=int(payload.get("runs") or 0),
            total_deleted=int(payload.get("total_deleted") or 0),
            last_run_unix=int(payload.get("last_run_unix") or 0),
        )

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        payload = {"runs": self.runs, "total_deleted": self.total_deleted, "last_run_unix": self.last_run_unix}
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(path)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Periodically delete expired comparison sessions.")
    p.add_argument("--interval-seconds", type=float, default=None, help="Override sweep interval.")
    p.add_argument("--once", action="store_true", help="Run a single sweep and exit.")
    p.add_argument(
        "--state-path",
        type=str,
        default=".data/placerank/sweeper/state.json",
        help="Local state file path.",
    )
    args = p.parse_args(argv)

    configure_logging()
    settings = get_settings()
    interval = float(args.interval_seconds or settings.sweeper.interval_seconds)
    data_dir = resolve_project_path(settings.storage.dir)
    sessions = SessionRepository(
        FileDocumentStore(data_dir, "sessions", default_ttl_seconds=settings.storage.session_ttl_seconds)
    )
    state_path = resolve_project_path(args.state_path)
    state = _SweeperState.load(state_path)

    logger.info("Session sweeper starting (data=%s, interval=%.0fs)", data_dir, interval)
    while True:
        deleted = sessions.purge_expired()
        state.runs += 1
        state.total_deleted += deleted
        state.last_run_unix = int(time.time())
        state.save(state_path)
        logger.info("Sweep %d removed %d sessions (total %d)", state.runs, deleted, state.total_deleted)
        if args.once:
            return 0
        time.sleep(max(1.0, interval))


if __name__ == "__main__":
    raise SystemExit(main())
