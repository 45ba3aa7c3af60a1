# scripts/retry_notifications.py
"""
Re-attempt WhatsApp notifications left 'pending' or 'failed' in the outbox.

Run from the project root (cron, k8s CronJob, by hand):
    python -m scripts.retry_notifications [--limit N]

This is the only place notifications are retried; the webhook path sends
each one at most once.
"""
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

log = logging.getLogger("scripts.retry_notifications")


def run(app, limit: int = 100) -> dict:
    return app.extensions["payrelay"].dispatcher.retry_pending(limit=limit)


def main(argv=None) -> int:
    from app import create_app

    ap = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    ap.add_argument("--limit", type=int, default=100)
    args = ap.parse_args(argv)

    # inline delivery: the script exits when the pass is done
    app = create_app({"NOTIFY_MODE": "sync", "METRICS_ENABLED": "0"})
    result = run(app, limit=args.limit)
    log.info("retry finished: %s", result)
    return 0 if result["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
