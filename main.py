"""Console utility for Taskboard database maintenance."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, List, Optional, TextIO
import sys

from sqlmodel import Session, select

from core.settings import LOG_DIR
from models.category import Category
from models.user import User
from services.category_counter import CategoryCounter
from storage.db import get_session, init_db


LOG_PATH = LOG_DIR / "maintenance.log"


def reconcile_counts(counter: Optional[CategoryCounter] = None) -> List[str]:
    """Recompute denormalized category task counts; return the ids that changed."""

    counter = counter or CategoryCounter()
    fixed = counter.reconcile()
    logging.info("Reconciliation completed; %d categories fixed", len(fixed))
    return fixed


def debug_data(
    session_factory: Callable[[], Session] = get_session,
    out: TextIO = sys.stdout,
) -> int:
    """Print every user with their categories; returns the number of users."""

    with session_factory() as session:
        users = list(session.exec(select(User).order_by(User.created_at.asc())))
        print(f"Found {len(users)} users.", file=out)
        for user in users:
            print(f"\nUser: {user.username} ({user.email}) ID: {user.id}", file=out)
            stmt = select(Category).where(Category.owner_id == user.id).order_by(Category.name.asc())
            categories = list(session.exec(stmt))
            if not categories:
                print("  No categories found.", file=out)
                continue
            print("  Categories:", file=out)
            for category in categories:
                print(f"    - {category.name}: {category.id} (tasks: {category.task_count})", file=out)
    return len(users)


def _setup_logging(log_path: Path) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_path),
        filemode="a",
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__ or "")
    parser.add_argument(
        "--log",
        type=Path,
        default=LOG_PATH,
        help="Path to a log file (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables and run migrations")
    sub.add_parser("reconcile-counts", help="Recompute category task counts")
    sub.add_parser("debug-data", help="List users and their categories")
    args = parser.parse_args(argv)

    _setup_logging(args.log)
    try:
        init_db()
        if args.command == "init-db":
            print("Database ready.")
        elif args.command == "reconcile-counts":
            fixed = reconcile_counts()
            print(f"Reconciled {len(fixed)} categories.")
            for category_id in fixed:
                print(f"  - {category_id}")
        elif args.command == "debug-data":
            debug_data()
    except Exception as exc:
        logging.exception("%s failed: %s", args.command, exc)
        raise
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
