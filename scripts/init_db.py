import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from order_tracker.auth.crud import bootstrap_admin_if_needed
from order_tracker.config import load_config
from order_tracker.db import init_db
from order_tracker.util.logs import configure_logging


log = logging.getLogger("scripts.init_db")


def main() -> None:
    cfg = load_config()
    configure_logging(cfg.LOG_LEVEL)
    init_db(cfg.DB_DSN)

    boot = bootstrap_admin_if_needed(cfg)
    if boot:
        log.info("Bootstrapped initial admin user: %s", boot["email"])

    log.info("DB initialized: %s", cfg.DB_DSN)


if __name__ == "__main__":
    main()
