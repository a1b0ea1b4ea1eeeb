from __future__ import annotations

import argparse
import asyncio
import uuid

from alert_engine.runtime.app import AlertApp
from alert_engine.utils.config import AlertSettings
from alert_engine.utils.logger import get_logger, init_logging

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Streaming volume-spike / new-high alert engine")
    parser.add_argument("--log-config", default=None, help="logging profiles JSON (default: LOG_CONFIG or configs/logging.json)")
    parser.add_argument("--log-profile", default=None, help="logging profile name (default: LOG_PROFILE or active_profile)")
    parser.add_argument("--heartbeat", type=float, default=60.0, help="heartbeat log interval in seconds (0 disables)")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    settings = AlertSettings.from_env()

    init_logging(
        args.log_config or settings.log_config,
        run_id=uuid.uuid4().hex[:12],
        mode=args.log_profile or settings.log_profile,
    )

    app = AlertApp(settings, heartbeat_s=args.heartbeat)
    app.install_signal_handlers()
    logger.info("Alert engine starting.")
    await app.run()


if __name__ == "__main__":
    asyncio.run(main())
