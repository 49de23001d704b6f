"""Create a user directly in the DB.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --role admin --status approved

NOTE: Intended for local/dev and for creating the first admin by hand.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from order_tracker.auth.crud import create_user
from order_tracker.config import load_config
from order_tracker.db import connect, init_db
from order_tracker.errors import AppError
from order_tracker.models import USER_ROLES, USER_STATUSES
from order_tracker.util.logs import configure_logging


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=USER_ROLES, default="user")
    ap.add_argument("--status", choices=USER_STATUSES, default="approved")
    args = ap.parse_args()

    cfg = load_config()
    configure_logging(cfg.LOG_LEVEL)
    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = create_user(
                conn,
                email=args.email,
                password=args.password,
                role=args.role,
                status=args.status,
                bcrypt_rounds=cfg.AUTH_BCRYPT_ROUNDS,
            )
    except AppError as e:
        sys.exit(f"error: {e.message} ({e.detail})")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
