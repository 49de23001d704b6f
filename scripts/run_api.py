import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn

from order_tracker.config import load_config
from order_tracker.util.logs import configure_logging


def main() -> None:
    cfg = load_config()
    configure_logging(cfg.LOG_LEVEL)
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "5000"))
    uvicorn.run("order_tracker.api.server:app", host=host, port=port, reload=False, log_config=None)


if __name__ == "__main__":
    main()
