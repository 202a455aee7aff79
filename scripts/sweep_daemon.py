# scripts/sweep_daemon.py
from __future__ import annotations

import logging
import time

from app.container import build_container
from services.observability import configure_logging
from settings import settings


logger = logging.getLogger("partner_payouts.sweep_daemon")


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    interval = settings.SWEEP_INTERVAL_SECONDS
    container = build_container(settings)
    logger.info("sweep_daemon_start interval_s=%s", interval)

    try:
        while True:
            result = container.sweep.run()
            summary = result.get("summary") or {}
            logger.info(
                "sweep_daemon_report id=%s processing_checked=%s stale_processing=%s stuck_pending=%s receipts_replayed=%s",
                result.get("id"),
                summary.get("processing_checked"),
                summary.get("stale_processing"),
                summary.get("stuck_pending"),
                summary.get("receipts_replayed"),
            )
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("sweep_daemon_exit")
    except Exception:
        logger.exception("sweep_daemon_failed")
        raise
    finally:
        container.close()


if __name__ == "__main__":
    main()
