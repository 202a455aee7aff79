from __future__ import annotations

import argparse

from app.container import build_container
from settings import settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the payout maintenance sweep once.")
    parser.add_argument("--sla-minutes", type=int, default=None, help="override PROCESSING_SLA_MINUTES")
    args = parser.parse_args()

    s = settings
    if args.sla_minutes is not None:
        s = settings.model_copy(update={"PROCESSING_SLA_MINUTES": args.sla_minutes})

    container = build_container(s)
    try:
        result = container.sweep.run()
    finally:
        container.close()

    summary = result["summary"]
    print("sweep_report_id:", result["id"])
    print(
        "counts:",
        f"processing_checked={summary['processing_checked']}",
        f"processing_resolved={summary['processing_resolved']}",
        f"stale_processing={summary['stale_processing']}",
        f"processing_errors={summary['processing_errors']}",
        f"receipts_replayed={summary['receipts_replayed']}",
        f"receipts_failed={summary['receipts_failed']}",
        f"processed_events_purged={summary['processed_events_purged']}",
    )


if __name__ == "__main__":
    main()
