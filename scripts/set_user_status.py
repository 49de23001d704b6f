"""Approve or reject a registration from a shell.

Usage:
  python scripts/set_user_status.py --email alice@example.com --status approved
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from order_tracker.auth.crud import get_user_by_email, update_user_status
from order_tracker.config import load_config
from order_tracker.db import connect
from order_tracker.models import USER_STATUSES
from order_tracker.util.logs import configure_logging


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--status", choices=USER_STATUSES, required=True)
    args = ap.parse_args()

    cfg = load_config()
    configure_logging(cfg.LOG_LEVEL)

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, args.email)
        if row is None:
            sys.exit(f"error: no user with email {args.email!r}")
        u = update_user_status(conn, int(row["user_id"]), args.status)

    print(f"{u['email']}: {u['status']}")


if __name__ == "__main__":
    main()
